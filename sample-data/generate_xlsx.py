#!/usr/bin/env python3
"""
Generates sample-data/sample_playlist.xlsx, a playlist export shaped the way
scheduling tools tend to write it.

Run from the repo root:
    python sample-data/generate_xlsx.py

What it exercises:
  Sheet "Playlist" (first sheet, the only one imported)
    - Start times stored as Excel time values (fractions of a day)
    - A blank header over the time column, relabelled on import
    - Mixed-case media types ("Music", "ID")
    - Year stored as a number, so it arrives as 2019.0 and must print as 2019
    - An empty row in the middle of the data
  Sheet "Notes"
    - Ignored on import
"""

from datetime import time
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "sample_playlist.xlsx"

wb = openpyxl.Workbook()

# ── Sheet 1: Playlist ────────────────────────────────────────────────────────
ws = wb.active
ws.title = "Playlist"

# Column A has no header; it only holds start times.
ws.append([None, "Type", "Title", "Artist", "Album", "Year"])

data = [
    [time(0, 0, 0),          "Music", "Intro Theme",   "The Openers", "Morning Show", 2019],
    [time(0, 3, 30, 500000), "talk",  "Welcome back",  "Host Jane",   None,           None],
    [None,                   None,    None,            None,          None,           None],  # empty
    [time(0, 5, 0),          "ID",    "Station ID",    None,          None,           None],
    [time(1, 2, 3, 456000),  "music", "Late Song",     "Band X",      "Album Y",      1999],
]

for row in data:
    ws.append(row)

for cell in ws["A"][1:]:
    cell.number_format = "hh:mm:ss.000"

# ── Sheet 2: Notes (ignored) ─────────────────────────────────────────────────
ws_notes = wb.create_sheet("Notes")
ws_notes.append(["note"])
ws_notes.append(["Only the first worksheet is imported."])

wb.save(OUTPUT)
print(f"Created: {OUTPUT}")
