"""
Exception types for kvconfig.

Registration and file-discovery problems are raised to the caller as
ConfigurationError subclasses. CoercionError is raised by the coercion
functions and is turned into a diagnostic by the parser.
"""

from typing import Iterable, Optional
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when declaring options or loading a configuration file fails."""
    pass


class DuplicateOptionError(ConfigurationError):
    """Raised when an option name is declared twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'"{name}" option already exists')


class UnsupportedFlagError(ConfigurationError):
    """Raised when a flag is not valid for the declared option type."""

    def __init__(self, name: str, type_name: str, flags):
        self.name = name
        self.flags = flags
        super().__init__(f"unsupported flag {flags!r} for {type_name} option \"{name}\"")


class NoConfigFileFoundError(ConfigurationError):
    """Raised when none of the candidate configuration files exist."""

    def __init__(self, candidates: Iterable[Path]):
        self.candidates = list(candidates)
        searched = ", ".join(str(c) for c in self.candidates) or "<no candidates>"
        super().__init__(f"no configuration files found (searched: {searched})")


class FileOpenError(ConfigurationError):
    """Raised when the selected configuration file cannot be opened or read."""

    def __init__(self, path: Path, reason: Optional[str] = None):
        self.path = path
        message = f'error opening "{path}"'
        if reason:
            message += f": {reason}"
        super().__init__(message)


class DeclarationError(ConfigurationError):
    """Raised when a YAML option declaration document is invalid."""
    pass


class CoercionError(ValueError):
    """Raised when a raw value cannot be converted to the declared type."""

    def __init__(self, value: str, type_name: str):
        self.value = value
        self.type_name = type_name
        super().__init__(f'"{value}" not a recognizable {type_name}')
