"""
YAML option declarations for kvconfig.

Lets a program describe its options in a YAML document instead of a series of
add_* calls:

    options:
      port: {type: int, default: 8080, flags: [unsigned]}
      greeting: {type: string, default: hello, flags: [strip, lower]}
      debug: {type: bool, default: false}

Each entry is validated and then registered on an OptionRegistry with a fresh
Slot holding the default.
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..errors import DeclarationError, DuplicateOptionError
from ..models.options import OptionFlag, OptionRegistry, OptionType, Slot


logger = logging.getLogger(__name__)

TYPE_NAMES = {
    'string': OptionType.STRING,
    'str': OptionType.STRING,
    'int': OptionType.INT,
    'integer': OptionType.INT,
    'float': OptionType.FLOAT,
    'bool': OptionType.BOOL,
    'boolean': OptionType.BOOL,
}


class OptionSpec(BaseModel):
    """
    One option as described in a declaration document.

    Attributes:
        type: Value type name (string, int, float, bool)
        default: Initial slot value, converted to the declared type
        flags: Flag names (strip, upper, lower, unsigned, none)
    """

    type: OptionType
    default: Any = None
    flags: List[OptionFlag] = Field(default_factory=list)

    @field_validator('type', mode='before')
    @classmethod
    def validate_type(cls, v) -> OptionType:
        """Accept type names case-insensitively."""
        if isinstance(v, OptionType):
            return v
        if isinstance(v, str) and v.strip().lower() in TYPE_NAMES:
            return TYPE_NAMES[v.strip().lower()]
        raise ValueError(f"Invalid option type: {v}")

    @field_validator('flags', mode='before')
    @classmethod
    def validate_flags(cls, v) -> List[OptionFlag]:
        """Convert flag names to OptionFlag members."""
        if v is None:
            return []
        if not isinstance(v, list):
            v = [v]

        flags = []
        for flag in v:
            if isinstance(flag, OptionFlag):
                flags.append(flag)
            elif isinstance(flag, str) and flag.strip().upper() in OptionFlag.__members__:
                flags.append(OptionFlag[flag.strip().upper()])
            else:
                raise ValueError(f"Invalid option flag: {flag}")
        return flags

    @model_validator(mode='after')
    def validate_default(self) -> 'OptionSpec':
        """Check that the default matches the declared type."""
        if self.default is None:
            return self

        if self.type is OptionType.STRING:
            self.default = str(self.default)
        elif self.type is OptionType.BOOL:
            if not isinstance(self.default, bool):
                raise ValueError(f"Default for bool option must be true or false, got {self.default!r}")
        elif self.type is OptionType.INT:
            if isinstance(self.default, bool) or not isinstance(self.default, int):
                raise ValueError(f"Default for int option must be an integer, got {self.default!r}")
        elif self.type is OptionType.FLOAT:
            if isinstance(self.default, bool) or not isinstance(self.default, (int, float)):
                raise ValueError(f"Default for float option must be a number, got {self.default!r}")
            self.default = float(self.default)
        return self

    def combined_flags(self) -> OptionFlag:
        combined = OptionFlag.NONE
        for flag in self.flags:
            combined |= flag
        return combined


def _load_yaml_file(file_path: Path) -> Dict[str, Any]:
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DeclarationError(f"Invalid YAML syntax in {file_path}: {e}") from e
    except OSError as e:
        raise DeclarationError(f"Cannot read declaration file {file_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DeclarationError(f"Declaration file must contain a YAML object, got {type(data).__name__}")
    return data


def parse_declarations(data: Mapping[str, Any]) -> Dict[str, OptionSpec]:
    """
    Validate a declaration document.

    Args:
        data: Parsed document; options live under the ``options`` key

    Returns:
        Option name (as written) to validated OptionSpec, in document order

    Raises:
        DeclarationError: If the document or any entry is invalid
    """
    options = data.get('options', {}) if data else {}
    if options is None:
        return {}
    if not isinstance(options, dict):
        raise DeclarationError(f"'options' must be a mapping, got {type(options).__name__}")

    specs = {}
    for name, entry in options.items():
        if not isinstance(name, str):
            raise DeclarationError(f"Option name must be a string, got {type(name).__name__} {name!r}")
        if isinstance(entry, str):
            entry = {'type': entry}
        if not isinstance(entry, dict):
            raise DeclarationError(f"Option {name!r} must be a mapping or a type name")
        try:
            specs[name] = OptionSpec(**entry)
        except ValidationError as e:
            raise DeclarationError(f"Invalid declaration for option {name!r}: {e}") from e
    return specs


def load_declarations(source: Union[str, os.PathLike, Mapping[str, Any]],
                      registry: OptionRegistry) -> Dict[str, Slot]:
    """
    Declare every option described by a YAML file or an already-parsed mapping.

    Args:
        source: Path to a YAML document, or the parsed mapping
        registry: Registry to declare the options on

    Returns:
        Canonical option name to the Slot created for it

    Raises:
        DeclarationError: If the document is invalid
        DuplicateOptionError: If an option is already declared
        UnsupportedFlagError: If a flag does not fit the option type
    """
    if isinstance(source, Mapping):
        data = source
    else:
        data = _load_yaml_file(Path(source).expanduser())

    specs = parse_declarations(data)

    # Nothing is registered unless every entry checks out
    checked = []
    seen = set()
    for name, spec in specs.items():
        try:
            uname, flags = registry.check(spec.type, name, spec.combined_flags())
        except ValueError as e:
            raise DeclarationError(f"Invalid declaration for option {name!r}: {e}") from e
        if uname in seen:
            raise DuplicateOptionError(uname)
        seen.add(uname)
        checked.append((uname, spec, flags))

    slots = {}
    for uname, spec, flags in checked:
        slot = Slot(spec.default)
        registry.add(spec.type, slot, uname, flags)
        slots[uname] = slot

    logger.info(f"Declared {len(slots)} option(s)")
    return slots
