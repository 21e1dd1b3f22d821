from __future__ import annotations

import sys
from typing import Any


def eprint(*args: Any) -> None:
    print(*args, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)
