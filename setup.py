from setuptools import setup


setup(
    name="cue-sheet-builder",
    version="0.3.0",
    description="Import playlist spreadsheets, validate them, and export playout-ready cue sheet CSVs",
    packages=["cuesheet"],
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    entry_points={
        "console_scripts": [
            "cue-sheet=cuesheet.cli:main",
        ]
    },
)
