# Data model
"""Value types shared by discovery, decoding, rotation and scheduling."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import ValidationError
from .utils import radians_to_degrees


class RawType(str, Enum):
    """Supported RAW file extensions."""

    NEF = 'NEF'
    CR2 = 'CR2'
    ARW = 'ARW'
    DNG = 'DNG'
    ORF = 'ORF'
    RW2 = 'RW2'
    RAF = 'RAF'
    PEF = 'PEF'

    @classmethod
    def parse(cls, value: str) -> 'RawType':
        """Parse a user-supplied extension such as 'cr2' or '.NEF'."""
        key = value.strip().lstrip('.').upper()
        try:
            return cls(key)
        except ValueError:
            supported = ' | '.join(t.value for t in cls)
            raise ValidationError(
                f"Invalid Raw File extension: {key or value!r} (supported: {supported})"
            ) from None

    @property
    def suffix(self) -> str:
        return f'.{self.value.lower()}'


@dataclass(frozen=True)
class SourceFile:
    path: Path
    raw_type: RawType


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of one decode task. Orientation is in radians, clockwise."""

    source: SourceFile
    output_path: Optional[Path] = None
    orientation: float = 0.0
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, source: SourceFile, error: str) -> 'ExtractionResult':
        return cls(source=source, success=False, error=error)

    @property
    def needs_rotation(self) -> bool:
        return self.success and self.output_path is not None and self.orientation != 0.0


@dataclass(frozen=True)
class RotationRequest:
    path: Path
    degrees: float

    @classmethod
    def from_result(cls, result: ExtractionResult) -> Optional['RotationRequest']:
        """Build a request for a result that needs rotating, else None."""
        if not result.needs_rotation:
            return None
        return cls(path=result.output_path, degrees=radians_to_degrees(result.orientation))


@dataclass
class RotationReport:
    completed: int = 0
    failed: int = 0
    pending: int = 0


@dataclass
class BatchSummary:
    """
    Totals for a run, accumulated on the orchestrating thread only.

    `discovered` is the batch total: every file found counts, whether or not
    its decode succeeded.
    """

    discovered: int = 0
    extracted: int = 0
    failed: int = 0
    rotated: int = 0
    rotation_failed: int = 0
    rotation_pending: int = 0

    @property
    def total(self) -> int:
        return self.discovered

    def add_discovered(self, count: int) -> None:
        self.discovered += count

    def record(self, result: ExtractionResult) -> None:
        if result.success:
            self.extracted += 1
        else:
            self.failed += 1

    def record_rotations(self, report: RotationReport) -> None:
        self.rotated += report.completed
        self.rotation_failed += report.failed
        self.rotation_pending += report.pending
