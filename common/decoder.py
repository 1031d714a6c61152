# Decoder module
"""Pluggable RAW decoder backends producing one JPEG per RAW file."""

import io
import logging
import math
import subprocess
from pathlib import Path
from typing import Dict, Optional, Protocol, Type

import rawpy
from PIL import Image

from .errors import DecodeError, ValidationError
from .models import ExtractionResult, SourceFile
from .utils import get_output_path, to_forward_slashes


logger = logging.getLogger(__name__)


# LibRaw sizes.flip -> radians clockwise needed to display upright
FLIP_TO_RADIANS = {
    0: 0.0,
    3: math.pi,
    5: -math.pi / 2,
    6: math.pi / 2,
}


class Decoder(Protocol):
    """
    Capability every backend provides.

    Implementations must be safe to call from several threads at once and
    keep no mutable state between calls.
    """

    name: str

    def extract(self, source: SourceFile, dest_dir: Path, quality: int) -> ExtractionResult:
        ...


class RawpyDecoder:
    """Extract the JPEG preview embedded in a RAW file using LibRaw (rawpy)."""

    name = 'rawpy'

    @classmethod
    def from_settings(cls, settings) -> 'RawpyDecoder':
        return cls()

    def extract(self, source: SourceFile, dest_dir: Path, quality: int) -> ExtractionResult:
        output_path = get_output_path(source.path, dest_dir)

        try:
            with rawpy.imread(str(source.path)) as raw:
                thumb = raw.extract_thumb()
                flip = raw.sizes.flip
        except (rawpy.LibRawError, OSError) as e:
            raise DecodeError(source.path, f"unable to read embedded preview: {e}") from e

        try:
            if thumb.format == rawpy.ThumbFormat.JPEG:
                image = Image.open(io.BytesIO(thumb.data))
            else:
                image = Image.fromarray(thumb.data)
            with image:
                image.convert('RGB').save(output_path, 'JPEG', quality=quality)
        except OSError as e:
            raise DecodeError(source.path, f"unable to write {output_path}: {e}") from e

        orientation = FLIP_TO_RADIANS.get(flip, 0.0)
        logger.debug("Extracted %s -> %s (flip=%s)", source.path.name, output_path.name, flip)
        return ExtractionResult(source=source, output_path=output_path, orientation=orientation)


class DarktableDecoder:
    """
    Render a RAW file with darktable-cli.

    darktable applies the EXIF orientation itself, so results never ask
    for an extra rotation.
    """

    name = 'darktable'

    def __init__(self, darktable_cli: str = 'darktable-cli', timeout: Optional[float] = None):
        self.darktable_cli = darktable_cli
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> 'DarktableDecoder':
        return cls(settings.darktable_cli, settings.decoder_timeout)

    def build_command(self, source: Path, output_path: Path, quality: int) -> list:
        return [
            self.darktable_cli,
            to_forward_slashes(source),
            to_forward_slashes(output_path),
            '--core',
            '--conf', f'plugins/imageio/format/jpeg/quality={quality}',
        ]

    def extract(self, source: SourceFile, dest_dir: Path, quality: int) -> ExtractionResult:
        output_path = get_output_path(source.path, dest_dir)
        cmd = self.build_command(source.path, output_path, quality)

        # darktable-cli writes to a renamed file when the target exists
        try:
            output_path.unlink(missing_ok=True)
        except OSError as e:
            raise DecodeError(source.path, f"unable to replace {output_path}: {e}") from e

        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise DecodeError(source.path, f"darktable-cli timed out after {e.timeout}s") from e
        except OSError as e:
            raise DecodeError(source.path, f"unable to run darktable-cli: {e}") from e

        if proc.returncode != 0:
            detail = (proc.stderr or '').strip() or f"Exit code: {proc.returncode}"
            raise DecodeError(source.path, detail)

        return ExtractionResult(source=source, output_path=output_path)


DECODERS: Dict[str, Type] = {
    RawpyDecoder.name: RawpyDecoder,
    DarktableDecoder.name: DarktableDecoder,
}


def create_decoder(name: str, settings=None) -> Decoder:
    """
    Instantiate the decoder backend registered under `name`.

    Raises:
        ValidationError: unknown backend name
    """
    key = (name or '').strip().lower()
    decoder_cls: Optional[Type] = DECODERS.get(key)
    if decoder_cls is None:
        raise ValidationError(
            f"Unknown decoder backend: {name!r} (available: {', '.join(sorted(DECODERS))})"
        )
    if settings is None:
        return decoder_cls()
    return decoder_cls.from_settings(settings)
