"""
Configuration loading package for kvconfig.

This package provides the OPTION=value file parser, value coercion, and YAML
option declarations.
"""

from .parser import (
    ConfigParser,
    ConfigParseResult,
    Diagnostic,
    DiagnosticKind,
    configure,
    validate_config_file,
    stderr_reporter,
    make_logging_reporter
)
from .declarations import load_declarations

__all__ = [
    'ConfigParser',
    'ConfigParseResult',
    'Diagnostic',
    'DiagnosticKind',
    'configure',
    'validate_config_file',
    'stderr_reporter',
    'make_logging_reporter',
    'load_declarations'
]
