"""
Value coercion for kvconfig.

Converts the raw text on the right-hand side of an ``OPTION=value`` line into
the type an option was declared with, applying the option's flags. Numeric
values go through a coarse token extraction first: the first run that looks
like a number is pulled out of the text and handed to ``int``/``float``.
"""

import re
import math
from typing import Any

from ..errors import CoercionError
from ..models.options import OptionDeclaration, OptionFlag, OptionType


INT_TOKEN = re.compile(r'-?[0-9]+')
UINT_TOKEN = re.compile(r'[0-9]+')
FLOAT_TOKEN = re.compile(r'-?[0-9.]+')
UFLOAT_TOKEN = re.compile(r'[0-9.]+')

BOOLEAN_TRUES = frozenset(['1', 't', 'true', 'y', 'yes', '+'])
BOOLEAN_FALSES = frozenset(['0', 'f', 'false', 'n', 'no', '-', 'nil'])


def coerce_string(raw: str, flags: OptionFlag = OptionFlag.NONE) -> str:
    value = raw
    if flags & OptionFlag.STRIP:
        value = value.strip()
    if flags & OptionFlag.LOWER:
        value = value.lower()
    elif flags & OptionFlag.UPPER:
        value = value.upper()
    return value


def _extract_token(raw: str, pattern: 're.Pattern[str]', type_name: str) -> str:
    match = pattern.search(raw)
    if match is None:
        raise CoercionError(raw, type_name)
    return match.group(0)


def coerce_int(raw: str, flags: OptionFlag = OptionFlag.NONE) -> int:
    """
    Extract and parse the first integer in ``raw``.

    With UNSIGNED the sign is never consulted, so ``-42`` yields ``42``.

    Raises:
        CoercionError: If no integer token is present
    """
    pattern = UINT_TOKEN if flags & OptionFlag.UNSIGNED else INT_TOKEN
    token = _extract_token(raw, pattern, 'integer')
    try:
        return int(token)
    except ValueError:
        raise CoercionError(token, 'integer')


def coerce_float(raw: str, flags: OptionFlag = OptionFlag.NONE) -> float:
    """
    Extract and parse the first float-looking token in ``raw``.

    The token pattern only admits digits and dots; whether something like
    ``1.2.3`` is a float is left to ``float()``. Values out of range for a
    double are rejected rather than stored as infinity.

    Raises:
        CoercionError: If no token is present, ``float()`` rejects it, or it overflows
    """
    pattern = UFLOAT_TOKEN if flags & OptionFlag.UNSIGNED else FLOAT_TOKEN
    token = _extract_token(raw, pattern, 'float')
    try:
        value = float(token)
    except ValueError:
        raise CoercionError(token, 'float')
    # Digit runs too long for a double overflow to inf
    if math.isinf(value):
        raise CoercionError(token, 'float')
    return value


def coerce_bool(raw: str) -> bool:
    """Map a case-insensitive boolean literal to True or False."""
    token = raw.strip().lower()
    if token in BOOLEAN_TRUES:
        return True
    if token in BOOLEAN_FALSES:
        return False
    raise CoercionError(token, 'boolean')


def coerce_value(declaration: OptionDeclaration, raw: str) -> Any:
    """
    Coerce ``raw`` according to the declaration's type and flags.

    Raises:
        CoercionError: If the text cannot be converted
    """
    if declaration.type is OptionType.STRING:
        return coerce_string(raw, declaration.flags)
    elif declaration.type is OptionType.INT:
        return coerce_int(raw, declaration.flags)
    elif declaration.type is OptionType.FLOAT:
        return coerce_float(raw, declaration.flags)
    elif declaration.type is OptionType.BOOL:
        return coerce_bool(raw)
    raise CoercionError(raw, declaration.type.name.lower())
