"""
Option declaration models for kvconfig.

This module defines the option flags and value types, the write-back slot that
receives parsed values, the validated option declaration, and the registry that
maps canonical option names to their declarations.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
from enum import Enum, Flag
import logging
from pydantic import BaseModel, ConfigDict, field_validator

from ..errors import DuplicateOptionError, UnsupportedFlagError


logger = logging.getLogger(__name__)


class OptionFlag(Flag):
    """Normalization flags accepted by the add_* methods."""
    NONE = 0
    STRIP = 1
    UPPER = 2
    LOWER = 4
    UNSIGNED = 8


class OptionType(Enum):
    """Value types an option can be declared with."""
    BOOL = 16
    FLOAT = 32
    INT = 64
    STRING = 128


ALL_FLAGS = OptionFlag.STRIP | OptionFlag.UPPER | OptionFlag.LOWER | OptionFlag.UNSIGNED

ALLOWED_FLAGS: Dict[OptionType, OptionFlag] = {
    OptionType.STRING: OptionFlag.STRIP | OptionFlag.UPPER | OptionFlag.LOWER,
    OptionType.INT: OptionFlag.UNSIGNED,
    OptionType.FLOAT: OptionFlag.UNSIGNED,
    OptionType.BOOL: OptionFlag.NONE,
}


def canonical_name(name: str) -> str:
    """Return the lookup key for an option name."""
    return name.strip().upper()


def validate_option_name(name: str) -> str:
    """
    Return the canonical name, rejecting names no configuration line can match.

    Raises:
        ValueError: If the name is empty or contains '=' or ':'
    """
    uname = canonical_name(name)
    if not uname:
        raise ValueError("Option name cannot be empty")
    if '=' in uname or ':' in uname:
        raise ValueError(f"Option name cannot contain '=' or ':': {name!r}")
    return uname


class Slot:
    """
    Write-back cell for a declared option.

    The caller owns the slot and reads ``value`` after configuring; the
    registry only keeps a reference and writes into it when a line in the
    configuration file coerces successfully.
    """

    def __init__(self, value: Any = None):
        self.value = value
        self.default = value
        self.assigned = False

    def get(self) -> Any:
        return self.value

    def set(self, value: Any) -> None:
        self.value = value
        self.assigned = True

    def __repr__(self) -> str:
        return f"Slot({self.value!r})"


class OptionDeclaration(BaseModel):
    """
    A single declared option.

    Attributes:
        name: Canonical (stripped, upper-cased) option name
        type: Declared value type
        flags: Normalization flags applied during coercion
        target: Slot that receives the coerced value
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    type: OptionType
    flags: OptionFlag = OptionFlag.NONE
    target: Slot

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Canonicalize the name and reject names the file grammar cannot match."""
        return validate_option_name(v)

    def has_flag(self, flag: OptionFlag) -> bool:
        return bool(self.flags & flag)


class OptionRegistry:
    """
    Registry of declared options, keyed by canonical name.

    A name occupies a single namespace regardless of its type, so declaring
    ``port`` as an integer and ``PORT`` as a string is a duplicate. Registries
    are independent of each other; ``reset`` clears one for a new configure
    cycle.
    """

    def __init__(self):
        self._options: Dict[str, OptionDeclaration] = {}
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def reset(self) -> None:
        """Discard every declaration."""
        self._options = {}

    def add_string(self, target: Slot, name: str, flags: Union[OptionFlag, int] = OptionFlag.NONE) -> OptionDeclaration:
        """
        Declare a string option.

        Accepts STRIP, UPPER and LOWER. If both UPPER and LOWER are given,
        LOWER wins when the value is coerced.
        """
        return self._add(OptionType.STRING, target, name, flags)

    def add_int(self, target: Slot, name: str, flags: Union[OptionFlag, int] = OptionFlag.NONE) -> OptionDeclaration:
        """Declare an integer option. Accepts UNSIGNED."""
        return self._add(OptionType.INT, target, name, flags)

    def add_float(self, target: Slot, name: str, flags: Union[OptionFlag, int] = OptionFlag.NONE) -> OptionDeclaration:
        """Declare a floating point option. Accepts UNSIGNED."""
        return self._add(OptionType.FLOAT, target, name, flags)

    def add_bool(self, target: Slot, name: str) -> OptionDeclaration:
        """Declare a boolean option. Booleans take no flags."""
        return self._add(OptionType.BOOL, target, name, OptionFlag.NONE)

    def add(self, option_type: OptionType, target: Slot, name: str,
            flags: Union[OptionFlag, int] = OptionFlag.NONE) -> OptionDeclaration:
        """Declare an option whose type is only known at runtime."""
        return self._add(option_type, target, name, flags)

    def _add(self, option_type: OptionType, target: Slot, name: str,
             flags: Union[OptionFlag, int]) -> OptionDeclaration:
        if not isinstance(target, Slot):
            raise TypeError(f"target must be a Slot, got {type(target).__name__}")

        uname, flags = self.check(option_type, name, flags)
        declaration = OptionDeclaration(name=uname, type=option_type, flags=flags, target=target)

        if declaration.has_flag(OptionFlag.UPPER) and declaration.has_flag(OptionFlag.LOWER):
            self.logger.warning(f"Option {declaration.name} declared with both UPPER and LOWER; LOWER takes precedence")

        self._options[declaration.name] = declaration
        self.logger.debug(f"Declared {option_type.name} option {declaration.name} (flags={flags})")
        return declaration

    def check(self, option_type: OptionType, name: str,
              flags: Union[OptionFlag, int] = OptionFlag.NONE) -> Tuple[str, OptionFlag]:
        """
        Validate a declaration without registering it.

        Returns:
            Tuple of (canonical name, normalized flags)

        Raises:
            UnsupportedFlagError: If a flag is not valid for the type
            DuplicateOptionError: If the name is already declared
            ValueError: If the name can never match a configuration line
        """
        uname = canonical_name(name)
        flags = self._normalize_flags(uname, option_type, flags)

        allowed = ALLOWED_FLAGS[option_type]
        if flags.value & ~allowed.value:
            raise UnsupportedFlagError(uname, option_type.name.lower(), flags)

        if uname in self._options:
            raise DuplicateOptionError(uname)

        return validate_option_name(name), flags

    @staticmethod
    def _normalize_flags(name: str, option_type: OptionType, flags: Union[OptionFlag, int]) -> OptionFlag:
        if isinstance(flags, OptionFlag):
            return flags
        if isinstance(flags, bool) or not isinstance(flags, int):
            raise TypeError(f"flags must be an OptionFlag or int, got {type(flags).__name__}")
        if flags < 0 or flags & ~ALL_FLAGS.value:
            raise UnsupportedFlagError(name, option_type.name.lower(), flags)
        return OptionFlag(flags)

    def option_type(self, name: str) -> Optional[OptionType]:
        """Return the declared type of ``name``, or None if it is not declared."""
        declaration = self._options.get(canonical_name(name))
        return declaration.type if declaration else None

    def get(self, name: str) -> Optional[OptionDeclaration]:
        return self._options.get(canonical_name(name))

    def names(self) -> List[str]:
        return list(self._options)

    def values(self) -> Dict[str, Any]:
        """Current slot value of every declared option."""
        return {name: decl.target.value for name, decl in self._options.items()}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and canonical_name(name) in self._options

    def __len__(self) -> int:
        return len(self._options)

    def __iter__(self) -> Iterator[OptionDeclaration]:
        return iter(list(self._options.values()))
