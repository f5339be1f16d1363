# core/values.py
import itertools
import re
from typing import Any, Iterable, Iterator, List, Sequence, Tuple, Union

import structlog

from ..errors import TypeUnsupported

Value = Union[int, bool, str]

INT_TYPE = re.compile(r"^u?int\d*$")
MAPPING_TYPE = re.compile(r"^mapping\((.+?) => (.+)\)$")

INT_DOMAIN = (0, 1, 2)
BOOL_DOMAIN = (True, False)
ADDRESS_COUNT = 2


def value_to_string(value: Value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def values_to_string(values: Sequence[Value]) -> str:
    return ", ".join(value_to_string(v) for v in values)


def value_key(value: Any) -> Tuple[str, Any]:
    """
    Type-tagged key for a value. Python treats True == 1, so an untagged
    tuple would conflate a bool result with an int result.
    """
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, int):
        return ("int", value)
    if isinstance(value, (bytes, bytearray)):
        return ("bytes", bytes(value).hex())
    if isinstance(value, (list, tuple)):
        return ("tuple", tuple(value_key(v) for v in value))
    return ("str", str(value))


def normalize_type(type_name: str) -> str:
    """Strip data-location and payable qualifiers from a type string."""
    words = [w for w in type_name.split() if w not in ("payable", "memory", "storage", "calldata")]
    return " ".join(words)


def mapping_key_types(type_name: str) -> Tuple[List[str], str]:
    """Split `mapping(K1 => mapping(K2 => V))` into ([K1, K2], V)."""
    keys: List[str] = []
    current = normalize_type(type_name)
    match = MAPPING_TYPE.match(current)
    if not match:
        raise TypeUnsupported(type_name)
    while match:
        keys.append(normalize_type(match.group(1)))
        current = normalize_type(match.group(2))
        match = MAPPING_TYPE.match(current)
    return keys, current


class ValueGenerator:
    """
    Closed-world candidate values per parameter type. The domains are fixed:
    integers {0,1,2}, booleans {true,false}, the first two backend accounts for
    addresses, and cross products for composite keys.
    """

    def __init__(self, accounts: Iterable[str], logger=None):
        self.accounts = list(accounts)
        self.logger = logger or structlog.get_logger(__name__)

    def int_values(self) -> Iterator[Value]:
        yield from INT_DOMAIN

    def bool_values(self) -> Iterator[Value]:
        yield from BOOL_DOMAIN

    def address_values(self) -> Iterator[Value]:
        yield from self.accounts[:ADDRESS_COUNT]

    def values_of_type(self, type_name: str) -> List[Value]:
        normalized = normalize_type(type_name)

        if INT_TYPE.match(normalized):
            return list(self.int_values())

        if normalized == "address":
            return list(self.address_values())

        if normalized == "bool":
            return list(self.bool_values())

        self.logger.debug("No value domain for type", type=type_name)
        raise TypeUnsupported(type_name)

    def values_of_types(self, types: Sequence[str]) -> Iterator[Tuple[Value, ...]]:
        if not types:
            yield ()
            return

        domains = [self.values_of_type(t) for t in types]
        yield from itertools.product(*domains)

    def map_indices(self, mapping_type: str) -> Iterator[Tuple[Value, ...]]:
        key_types, _ = mapping_key_types(mapping_type)
        yield from self.values_of_types(key_types)
