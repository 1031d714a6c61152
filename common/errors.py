# Errors module
"""Exception types raised by jpgextract."""


class JpgExtractError(Exception):
    """Base class for jpgextract errors."""


class ValidationError(JpgExtractError):
    """Bad or missing user input; raised before any file is scheduled."""


class DecodeError(JpgExtractError):
    """A single RAW file could not be decoded."""

    def __init__(self, path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class RotationError(JpgExtractError):
    """The rotation tool could not be launched or exited with an error."""
