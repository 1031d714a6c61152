# Job Planner module
"""Discover RAW files per (source directory x extension) pass."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from .models import RawType, SourceFile
from .utils import get_output_path


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryPass:
    """All files of one RAW type found directly inside one source directory."""

    src_dir: Path
    raw_type: RawType
    files: tuple

    @property
    def file_count(self) -> int:
        return len(self.files)


def discover_source_files(src_dir: Path, raw_type: RawType) -> List[SourceFile]:
    """
    List the RAW files of one type directly inside a directory.

    Extensions match case-insensitively (DSC_0001.nef and DSC_0001.NEF are
    both NEF). Subdirectories are not searched. Results are sorted by name
    so discovery order is deterministic.

    Args:
        src_dir: Source directory to scan
        raw_type: RAW type to collect

    Returns:
        List of SourceFile in name order
    """
    files = []
    for item in src_dir.iterdir():
        if item.is_file() and item.suffix.lower() == raw_type.suffix:
            files.append(SourceFile(path=item.resolve(), raw_type=raw_type))
    return sorted(files, key=lambda f: f.path.name)


def plan_passes(
    src_dirs: Sequence[Path],
    raw_types: Sequence[RawType],
) -> List[DiscoveryPass]:
    """
    Create one pass per (source directory x RAW type) combination.

    Directories are visited in the order given, and within a directory the
    RAW types in the order given. A file reached through two source
    directories that resolve to the same place is only planned once.

    All outputs land in one destination directory, so two sources that map
    to the same output name (IMG.CR2 and IMG.cr2, IMG.CR2 and IMG.NEF, or
    the same name in two directories) cannot both be extracted. The first
    one planned wins; later ones are logged and skipped.
    """
    passes = []
    seen = set()
    outputs = {}

    for src_dir in src_dirs:
        for raw_type in raw_types:
            files = []
            for source in discover_source_files(src_dir, raw_type):
                if source.path in seen:
                    logger.debug("Skipping already planned file: %s", source.path)
                    continue
                seen.add(source.path)

                output_name = get_output_path(source.path, Path()).name
                if output_name in outputs:
                    logger.warning(
                        "Skipping %s: output %s is already planned for %s",
                        source.path, output_name, outputs[output_name],
                    )
                    continue
                outputs[output_name] = source.path
                files.append(source)
            passes.append(DiscoveryPass(src_dir=src_dir, raw_type=raw_type, files=tuple(files)))

    return passes


def count_planned_files(passes: Iterable[DiscoveryPass]) -> int:
    """Count the files across all passes."""
    return sum(p.file_count for p in passes)
