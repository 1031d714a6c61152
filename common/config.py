# Configuration for jpgextract
"""Configuration constants, config.ini management and the per-run config."""

import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .models import RawType


APP_NAME = 'jpgextract'
APP_VERSION = '1.0'

# Default config values
DEFAULTS = {
    'tools': {
        'convert_bin': 'convert',
        'darktable_cli': 'darktable-cli',
    },
    'output': {
        'jpeg_quality': '80',
    },
    'performance': {
        'num_routines': '2',
        'rotation_workers': '2',
    },
    'rotation': {
        'timeout': '120',
        'wait_timeout': '600',
    },
    'decoder': {
        'backend': 'rawpy',
        'timeout': '300',
    },
    'logging': {
        'log_file': '',
        'debug': 'false',
    },
}

# Configuration parameter descriptions for the ini file
COMMENTS = {
    'num_routines': '# Number of RAW files decoded concurrently. File IO bound; too many can exhaust open file handles.',
    'rotation_workers': '# Number of concurrent ImageMagick rotation processes.',
    'timeout': '# Seconds before a single external process is killed.',
    'wait_timeout': '# Seconds to wait for outstanding rotations before reporting the run.',
    'backend': '# Decoder backend: rawpy (embedded JPEG) or darktable (full render via darktable-cli).',
}

# Config file path
CONFIG_FILE = Path('config.ini')


def get_default_config() -> configparser.ConfigParser:
    """Create a ConfigParser with default values."""
    config = configparser.ConfigParser()
    for section, values in DEFAULTS.items():
        config[section] = values
    return config


def create_config_file(path: Path = CONFIG_FILE) -> None:
    """Create config.ini with default values and descriptive comments."""
    with open(path, 'w') as f:
        for section, values in DEFAULTS.items():
            f.write(f"[{section}]\n")
            for key, val in values.items():
                if key in COMMENTS:
                    f.write(f"{COMMENTS[key]}\n")
                f.write(f"{key} = {val}\n\n" if key in COMMENTS else f"{key} = {val}\n")
            f.write("\n")


def load_config(path: Path = CONFIG_FILE) -> configparser.ConfigParser:
    """Load config from file, falling back to defaults."""
    config = get_default_config()
    if path.exists():
        config.read(path)
    return config


def _optional_seconds(value: float) -> Optional[float]:
    # 0 or negative disables the timeout
    return value if value > 0 else None


class Settings:
    """Typed access to config.ini values."""

    def __init__(self, config_path: Optional[Path] = None):
        self.path = config_path or CONFIG_FILE
        self._config = load_config(self.path)

    @property
    def convert_bin(self) -> str:
        return self._config.get('tools', 'convert_bin')

    @property
    def darktable_cli(self) -> str:
        return self._config.get('tools', 'darktable_cli')

    @property
    def jpeg_quality(self) -> int:
        return self._config.getint('output', 'jpeg_quality')

    @property
    def num_routines(self) -> int:
        return self._config.getint('performance', 'num_routines')

    @property
    def rotation_workers(self) -> int:
        return max(1, self._config.getint('performance', 'rotation_workers'))

    @property
    def rotation_timeout(self) -> Optional[float]:
        return _optional_seconds(self._config.getfloat('rotation', 'timeout'))

    @property
    def rotation_wait_timeout(self) -> Optional[float]:
        return _optional_seconds(self._config.getfloat('rotation', 'wait_timeout'))

    @property
    def decoder_backend(self) -> str:
        return self._config.get('decoder', 'backend').strip().lower()

    @property
    def decoder_timeout(self) -> Optional[float]:
        return _optional_seconds(self._config.getfloat('decoder', 'timeout'))

    @property
    def log_file(self) -> Optional[Path]:
        value = self._config.get('logging', 'log_file').strip()
        return Path(value) if value else None

    @property
    def debug(self) -> bool:
        return self._config.getboolean('logging', 'debug')


@dataclass(frozen=True)
class RunConfig:
    """
    Parameters for one conversion run.

    Built once at startup after validation and passed explicitly to the
    scheduler, its tasks and the rotation dispatcher.
    """

    raw_types: Tuple[RawType, ...]
    src_dirs: Tuple[Path, ...]
    dest_dir: Path
    num_routines: int = 2
    quality: int = 80
    rotate: bool = False
    decoder: str = 'rawpy'
    convert_bin: str = 'convert'
    rotation_workers: int = 2
    rotation_timeout: Optional[float] = None
    rotation_wait_timeout: Optional[float] = None
