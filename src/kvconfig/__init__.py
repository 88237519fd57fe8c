"""
kvconfig - Typed OPTION=value configuration files

Declare named options with a type and normalization flags, then populate them
from the first configuration file found in an ordered list of candidates.
"""

from .errors import (
    ConfigurationError,
    DuplicateOptionError,
    UnsupportedFlagError,
    NoConfigFileFoundError,
    FileOpenError,
    DeclarationError,
    CoercionError
)
from .models.options import OptionFlag, OptionType, OptionRegistry, OptionDeclaration, Slot
from .config.parser import ConfigParser, ConfigParseResult, Diagnostic, DiagnosticKind, configure

__version__ = "0.1.0"
__author__ = "kvconfig Team"

__all__ = [
    'ConfigurationError',
    'DuplicateOptionError',
    'UnsupportedFlagError',
    'NoConfigFileFoundError',
    'FileOpenError',
    'DeclarationError',
    'CoercionError',
    'OptionFlag',
    'OptionType',
    'OptionRegistry',
    'OptionDeclaration',
    'Slot',
    'ConfigParser',
    'ConfigParseResult',
    'Diagnostic',
    'DiagnosticKind',
    'configure'
]
