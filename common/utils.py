# Utility functions
"""Helpers for flag parsing, angle conversion and output naming."""

import math
from pathlib import Path
from typing import List


# Suffix appended to the source stem for every extracted JPEG
OUTPUT_SUFFIX = '_extracted'
OUTPUT_EXTENSION = '.jpg'


def split_csv(value: str) -> List[str]:
    """
    Split a comma-separated flag value into stripped, non-empty items.

    Example:
        ' NEF, cr2 ,' -> ['NEF', 'cr2']
    """
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def radians_to_degrees(radians_cw: float) -> float:
    """Convert a clockwise angle in radians to degrees."""
    return radians_cw * (180 / math.pi)


def format_degrees(degrees: float) -> str:
    """Format an angle the way the rotation tool expects it (2 decimals)."""
    return f"{degrees:.2f}"


def get_output_path(source: Path, dest_dir: Path) -> Path:
    """
    Destination JPEG path for a RAW file.

    The name depends only on the source stem, so re-running a batch
    overwrites the same outputs:
        /raws/DSC_0001.NEF -> <dest_dir>/DSC_0001_extracted.jpg
    """
    return dest_dir / f"{source.stem}{OUTPUT_SUFFIX}{OUTPUT_EXTENSION}"


def to_forward_slashes(path: Path) -> str:
    """Convert Windows path to forward slashes for darktable-cli."""
    return str(path).replace('\\', '/')


def format_duration(seconds: float) -> str:
    """Format elapsed time as 'X.XX minutes (Y.YY seconds)'."""
    return f"{seconds / 60:.2f} minutes ({seconds:.2f} seconds)"
