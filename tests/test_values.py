from unittest.mock import MagicMock

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from contract_simulation.core.values import (
    ValueGenerator,
    mapping_key_types,
    normalize_type,
    value_key,
    value_to_string,
)
from contract_simulation.errors import TypeUnsupported

from conftest import ACCOUNTS

type_strategy = st.sampled_from(["uint256", "int8", "uint", "bool", "address", "address payable"])


def test_integer_domain():
    generator = ValueGenerator(ACCOUNTS)
    assert generator.values_of_type("uint256") == [0, 1, 2]
    assert generator.values_of_type("int32") == [0, 1, 2]


def test_bool_and_address_domains():
    generator = ValueGenerator(ACCOUNTS)
    assert generator.values_of_type("bool") == [True, False]
    # only the first two accounts are used
    assert generator.values_of_type("address") == ACCOUNTS[:2]
    assert generator.values_of_type("address payable") == ACCOUNTS[:2]


def test_unsupported_type_fails_fast():
    generator = ValueGenerator(ACCOUNTS)
    with pytest.raises(TypeUnsupported) as excinfo:
        generator.values_of_type("string memory")
    assert excinfo.value.type_name == "string memory"


def test_unsupported_type_is_logged_on_injected_logger():
    logger = MagicMock()
    with pytest.raises(TypeUnsupported):
        ValueGenerator(ACCOUNTS, logger).values_of_type("bytes32")
    logger.debug.assert_called_once_with("No value domain for type", type="bytes32")


def test_values_of_types_is_cross_product():
    generator = ValueGenerator(ACCOUNTS)
    assert list(generator.values_of_types([])) == [()]
    tuples = list(generator.values_of_types(["bool", "uint8"]))
    assert len(tuples) == 6
    assert tuples[0] == (True, 0)
    assert tuples[-1] == (False, 2)


def test_map_indices_nested_mapping():
    generator = ValueGenerator(ACCOUNTS)
    indices = list(generator.map_indices("mapping(address => mapping(uint256 => bool))"))
    assert len(indices) == 6
    assert indices[0] == (ACCOUNTS[0], 0)


def test_mapping_key_types():
    assert mapping_key_types("mapping(address => uint256)") == (["address"], "uint256")
    with pytest.raises(TypeUnsupported):
        mapping_key_types("uint256")


def test_normalize_type_strips_qualifiers():
    assert normalize_type("address payable") == "address"
    assert normalize_type("uint256[] memory") == "uint256[]"


def test_value_key_distinguishes_bool_from_int():
    assert value_key(True) != value_key(1)
    assert value_key(False) != value_key(0)
    assert value_to_string(True) == "true"


@settings(max_examples=50, deadline=None)
@given(types=st.lists(type_strategy, max_size=3))
def test_generation_is_deterministic(types):
    first = list(ValueGenerator(ACCOUNTS).values_of_types(types))
    second = list(ValueGenerator(ACCOUNTS).values_of_types(types))
    assert first == second
