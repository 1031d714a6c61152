# CLI module
"""Command-line interface for jpgextract."""

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from .config import APP_NAME, APP_VERSION, CONFIG_FILE, RunConfig, Settings, create_config_file
from .errors import ValidationError
from .logging_setup import setup_logging
from .models import RawType
from .utils import format_duration, split_csv


logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description='Extract the JPEGs embedded in camera RAW files, optionally rotating them per EXIF orientation.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --raws "NEF,CR2" --src-dirs /photos/raw1,/photos/raw2 --dest-dir /photos/jpeg
  %(prog)s --raws CR2 --src-dirs /photos/raw --dest-dir /photos/jpeg --num-routines 8 --quality 90 --rotate
  %(prog)s --configure
  %(prog)s --validate --rotate
        """,
    )

    # Main arguments
    parser.add_argument(
        '--raws',
        help='comma-separated list of RAW file extensions to process. Supported: '
             + ' | '.join(t.value for t in RawType),
    )
    parser.add_argument(
        '--src-dirs',
        help='comma-separated list of directories containing RAW files',
    )
    parser.add_argument(
        '--dest-dir',
        help='directory receiving the extracted jpegs (must exist)',
    )
    parser.add_argument(
        '--num-routines',
        type=int,
        default=None,
        help='number of files processed concurrently (default: config.ini, 2)',
    )
    parser.add_argument(
        '--quality',
        type=int,
        default=None,
        help='JPEG quality 0-100 for extracted jpegs (default: config.ini, 80)',
    )
    parser.add_argument(
        '--rotate',
        action='store_true',
        help="rotate jpegs per the RAW file's orientation using ImageMagick's 'convert' (must be in PATH)",
    )
    parser.add_argument(
        '--decoder',
        default=None,
        help='decoder backend: rawpy or darktable (default: config.ini, rawpy)',
    )

    # Configuration and logging
    parser.add_argument(
        '--config',
        type=Path,
        default=CONFIG_FILE,
        help='path to config.ini (default: %(default)s)',
    )
    parser.add_argument(
        '--log-file',
        type=Path,
        default=None,
        help='also write the log to this file',
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='enable debug logging',
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='hide the progress bar',
    )

    # Utility commands
    parser.add_argument(
        '--configure',
        action='store_true',
        help='Create initial config.ini with default values',
    )
    parser.add_argument(
        '--validate',
        action='store_true',
        help='Validate installation (check external tools) and exit',
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {APP_VERSION}',
    )

    return parser


def validate_user_dir(dir_str: str) -> Path:
    """
    Check that a user-supplied path is an existing, readable directory.

    Raises:
        ValidationError: missing path, not a directory, or not listable
    """
    path = Path(dir_str.strip()).expanduser()
    if not path.exists():
        raise ValidationError(f"'{dir_str}': unable to open directory!")
    if not path.is_dir():
        raise ValidationError(f"'{dir_str}': is not a directory!")
    if not os.access(path, os.R_OK | os.X_OK):
        raise ValidationError(f"'{dir_str}': permission denied!")
    return path.resolve()


def parse_raw_types(value: str) -> List[RawType]:
    """Parse --raws into RawTypes, keeping order and dropping duplicates."""
    raw_types = []
    for ext in split_csv(value):
        raw_type = RawType.parse(ext)
        if raw_type not in raw_types:
            raw_types.append(raw_type)
    if not raw_types:
        raise ValidationError("--raws does not name any RAW file extension")
    return raw_types


def build_run_config(args: argparse.Namespace, settings: Settings) -> RunConfig:
    """
    Validate the parsed arguments and freeze them into a RunConfig.

    CLI flags win over config.ini values.

    Raises:
        ValidationError: any invalid or missing input
    """
    missing = [
        flag for flag, value in (
            ('--raws', args.raws),
            ('--src-dirs', args.src_dirs),
            ('--dest-dir', args.dest_dir),
        )
        if not (value or '').strip()
    ]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required for conversion.")

    raw_types = parse_raw_types(args.raws)

    src_entries = split_csv(args.src_dirs)
    if not src_entries:
        raise ValidationError("--src-dirs does not name any directory")
    src_dirs = []
    for entry in src_entries:
        src_dir = validate_user_dir(entry)
        if src_dir not in src_dirs:
            src_dirs.append(src_dir)

    dest_dir = validate_user_dir(args.dest_dir)

    try:
        num_routines = args.num_routines if args.num_routines is not None else settings.num_routines
        quality = args.quality if args.quality is not None else settings.jpeg_quality
        rotation_workers = settings.rotation_workers
        rotation_timeout = settings.rotation_timeout
        rotation_wait_timeout = settings.rotation_wait_timeout
    except ValueError as e:
        raise ValidationError(f"invalid value in {settings.path}: {e}") from e

    if num_routines < 1:
        raise ValidationError(f"--num-routines must be at least 1, got {num_routines}")

    if not 0 <= quality <= 100:
        raise ValidationError(f"--quality must be between 0 and 100, got {quality}")

    decoder = (args.decoder or settings.decoder_backend).strip().lower()

    return RunConfig(
        raw_types=tuple(raw_types),
        src_dirs=tuple(src_dirs),
        dest_dir=dest_dir,
        num_routines=num_routines,
        quality=quality,
        rotate=args.rotate,
        decoder=decoder,
        convert_bin=settings.convert_bin,
        rotation_workers=rotation_workers,
        rotation_timeout=rotation_timeout,
        rotation_wait_timeout=rotation_wait_timeout,
    )


def handle_configure(config_path: Path) -> int:
    """Create config.ini with default values."""
    if config_path.exists():
        print(f"⚠️  Config file already exists: {config_path.absolute()}")
        response = input("Overwrite? [y/N]: ").strip().lower()
        if response != 'y':
            print("Aborted.")
            return 1

    create_config_file(config_path)
    print(f"✓ Created config file: {config_path.absolute()}")
    print("  Edit this file to customize settings.")
    return 0


def print_validation(result: dict) -> None:
    for tool in result['tools']:
        if tool['ok']:
            print(f"✓ {tool['name']}: {tool['version'] or 'unknown version'}")
            print(f"  Path: {tool['path']}")
        else:
            print(f"✗ {tool['name']}: NOT FOUND")
            print(f"  Expected: {tool['path']}")

    if result['errors']:
        print()
        print("Errors:")
        for err in result['errors']:
            print(f"  - {err}")


def handle_validate(args: argparse.Namespace, settings: Settings) -> int:
    """Validate installation."""
    from .capability import validate_installation

    backend = (args.decoder or settings.decoder_backend).strip().lower()
    print("Validating installation...")
    print(f"  Decoder backend: {backend}")
    result = validate_installation(settings, rotate=args.rotate, backend=backend)

    print()
    print_validation(result)
    if result['errors']:
        return 1

    print()
    print("✓ All tools validated successfully!")
    return 0


def run_conversion(args: argparse.Namespace, settings: Settings) -> int:
    """Run the main extraction workflow."""
    from .capability import validate_installation
    from .decoder import create_decoder
    from .executor import ExtractionScheduler
    from .planner import count_planned_files, plan_passes
    from .rotation import RotationDispatcher

    t0 = time.monotonic()

    # Everything is validated before any file is scheduled
    try:
        run_config = build_run_config(args, settings)
        decoder = create_decoder(run_config.decoder, settings)
        validation = validate_installation(settings, rotate=run_config.rotate, backend=run_config.decoder)
        if validation['errors']:
            raise ValidationError('; '.join(validation['errors']))
    except ValidationError as e:
        logger.error("Validation failed: %s", e)
        print(f"❌ Error: {e}")
        return 1

    logger.info(
        "RawTypes: %s SourceDirs: %s DestinationDir: %s JPEG Quality: %d Rotate Images: %s Decoder: %s",
        [t.value for t in run_config.raw_types],
        [str(d) for d in run_config.src_dirs],
        run_config.dest_dir,
        run_config.quality,
        run_config.rotate,
        run_config.decoder,
    )

    print(f"\n📁 Input:  {', '.join(str(d) for d in run_config.src_dirs)}")
    print(f"📁 Output: {run_config.dest_dir}")
    print()

    passes = plan_passes(run_config.src_dirs, run_config.raw_types)
    total_files = count_planned_files(passes)
    print(f"🔍 Found {total_files} RAW files")

    if not total_files:
        print("   No RAW files found. Exiting.")
        return 0

    rotator = RotationDispatcher.from_config(run_config) if run_config.rotate else None
    scheduler = ExtractionScheduler(run_config, decoder, rotator=rotator, progress=not args.quiet)
    summary = scheduler.run(passes)

    duration = time.monotonic() - t0
    logger.info("%s processed %d files in %s", APP_NAME, summary.total, format_duration(duration))

    # Summary
    print()
    print("=" * 50)
    print(f"✓ Extracted: {summary.extracted} files")
    print(f"✗ Failed:    {summary.failed} files")
    if run_config.rotate:
        print(f"↻ Rotated:   {summary.rotated} files ({summary.rotation_failed} failed, "
              f"{summary.rotation_pending} unfinished)")
    print("=" * 50)
    print(f"\nProcessed {summary.total} files in {format_duration(duration)}")

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Handle utility commands first
    if args.configure:
        return handle_configure(args.config)

    settings = Settings(args.config)
    try:
        debug = args.debug or settings.debug
    except ValueError as e:
        print(f"❌ Error: invalid value in {settings.path}: {e}")
        return 1
    setup_logging(debug=debug, log_file=args.log_file or settings.log_file)

    if args.validate:
        return handle_validate(args, settings)

    if not (args.raws and args.src_dirs and args.dest_dir):
        parser.print_help()
        print("\n❌ Error: --raws, --src-dirs and --dest-dir are required for conversion.")
        return 1

    return run_conversion(args, settings)


if __name__ == '__main__':
    sys.exit(main())
