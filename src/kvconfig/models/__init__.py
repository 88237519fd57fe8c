"""
Data models for kvconfig.

This module contains the option flags and types, write-back slots, and the
option registry.
"""

from .options import OptionFlag, OptionType, OptionDeclaration, OptionRegistry, Slot

__all__ = ['OptionFlag', 'OptionType', 'OptionDeclaration', 'OptionRegistry', 'Slot']
