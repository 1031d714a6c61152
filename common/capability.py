# Capability detection module
"""Detect external tools and validate the installation."""

import re
import shutil
import subprocess
from typing import List, Optional


def is_executable_in_path(name: str) -> bool:
    """True when `name` resolves to an executable (absolute path or via PATH)."""
    return shutil.which(name) is not None


def get_tool_version(cmd: List[str], pattern: Optional[str] = None) -> Optional[str]:
    """
    Run a tool's version command and parse an x.y.z version out of it.

    Args:
        cmd: Command to run, e.g. ['convert', '-version']
        pattern: Tool-specific regex with one group; tried before the generic one

    Returns:
        Version string (e.g., "7.1.1") or None
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (subprocess.TimeoutExpired, OSError):
        return None

    output = result.stdout + result.stderr
    if pattern:
        match = re.search(pattern, output, re.IGNORECASE)
        if match:
            return match.group(1)

    # Try simpler pattern
    match = re.search(r'(\d+\.\d+\.\d+)', output)
    if match:
        return match.group(1)
    return None


def get_convert_version(convert_bin: str) -> Optional[str]:
    """Get the installed ImageMagick version."""
    return get_tool_version([convert_bin, '-version'], r'ImageMagick\s+(\d+\.\d+\.\d+)')


def get_darktable_version(darktable_cli: str) -> Optional[str]:
    """Get the installed darktable-cli version."""
    return get_tool_version([darktable_cli, '--version'], r'darktable[- ]cli\s+(\d+\.\d+\.\d+)')


def _check_tool(name: str, path: str, version_getter) -> dict:
    resolved = shutil.which(path)
    return {
        'name': name,
        'path': resolved or path,
        'ok': resolved is not None,
        'version': version_getter(path) if resolved else None,
    }


def validate_installation(settings, rotate: bool = False, backend: Optional[str] = None) -> dict:
    """
    Validate that the external tools needed for a run are installed.

    Args:
        settings: Settings with tool paths
        rotate: Whether ImageMagick's 'convert' is required
        backend: Decoder backend; 'darktable' requires darktable-cli

    Returns:
        dict with keys:
            - 'tools': list of {'name', 'path', 'ok', 'version'}
            - 'errors': list of error messages
    """
    backend = backend or settings.decoder_backend
    result = {
        'tools': [],
        'errors': [],
    }

    if backend == 'darktable':
        tool = _check_tool('darktable-cli', settings.darktable_cli, get_darktable_version)
        result['tools'].append(tool)
        if not tool['ok']:
            result['errors'].append(f"darktable-cli not found: {settings.darktable_cli}")

    if rotate:
        tool = _check_tool('convert', settings.convert_bin, get_convert_version)
        result['tools'].append(tool)
        if not tool['ok']:
            result['errors'].append(
                f"Rotation of jpegs was enabled, but ImageMagick's '{settings.convert_bin}' is not in path!"
            )

    return result
