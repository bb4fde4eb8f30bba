"""ABI encoding of constructor arguments and initializer calls."""

from typing import Any, Dict, List, Sequence, Tuple

from eth_abi import encode, is_encodable
from eth_utils import function_signature_to_4byte_selector
from eth_utils.abi import collapse_if_tuple

from azoth_deployment.constants import INITIALIZER_NAME
from azoth_deployment.exceptions import (
    ArgumentArityMismatch,
    ArgumentTypeMismatch,
    InitializerNotFound,
)

ABIItem = Dict[str, Any]


def _input_types(abi_item: ABIItem) -> List[str]:
    return [collapse_if_tuple(abi_input) for abi_input in abi_item.get("inputs", [])]


def function_signature(abi_item: ABIItem) -> str:
    """Returns the canonical signature of a function, e.g. `initialize(address,address)`."""
    return f"{abi_item['name']}({','.join(_input_types(abi_item))})"


def _validate_args(label: str, abi_item: ABIItem, args: Sequence[Any]) -> List[str]:
    """Validates arguments against the ABI inputs and returns the input types."""
    input_types = _input_types(abi_item)
    if len(input_types) != len(args):
        raise ArgumentArityMismatch(
            f"{label} requires {len(input_types)} argument(s), got {len(args)}."
        )

    for position, (abi_type, value) in enumerate(zip(input_types, args)):
        if not is_encodable(abi_type, value):
            raise ArgumentTypeMismatch(
                f"{label} argument at position {position} has a value '{value!r}' "
                f"whose type does not match expected ABI type '{abi_type}'."
            )
    return input_types


def _select_function_abi(
    function_abis: List[ABIItem], args: Sequence[Any]
) -> Tuple[ABIItem, List[str]]:
    """Picks the overload matching the arguments in count and type."""
    abis_matching_args_length = [
        abi for abi in function_abis if len(abi.get("inputs", [])) == len(args)
    ]
    if not abis_matching_args_length:
        signatures = ", ".join(function_signature(abi) for abi in function_abis)
        raise ArgumentArityMismatch(
            f"No '{function_abis[0]['name']}' overload takes {len(args)} argument(s); "
            f"available: {signatures}."
        )

    type_error = None
    for abi in abis_matching_args_length:
        try:
            input_types = _validate_args(function_signature(abi), abi, args)
        except ArgumentTypeMismatch as e:
            type_error = e
            continue
        return abi, input_types
    raise type_error


def encode_function_call(abi: List[ABIItem], function_name: str, args: Sequence[Any]) -> bytes:
    """Encodes a call to `function_name` (selector followed by the encoded arguments)."""
    function_abis = [
        item
        for item in abi
        if item.get("type") == "function" and item.get("name") == function_name
    ]
    if not function_abis:
        raise InitializerNotFound(f"No function named '{function_name}' in ABI.")

    function_abi, input_types = _select_function_abi(function_abis, args)
    selector = function_signature_to_4byte_selector(function_signature(function_abi))
    return selector + encode(input_types, list(args))


def encode_initializer(abi: List[ABIItem], args: Sequence[Any]) -> bytes:
    """Encodes a call to the `initialize` function, for use as proxy constructor data."""
    return encode_function_call(abi, INITIALIZER_NAME, args)


def encode_constructor_args(abi: List[ABIItem], args: Sequence[Any]) -> bytes:
    """Encodes constructor arguments; empty when the constructor takes none."""
    constructor_abi = {"inputs": []}
    for item in abi:
        if item.get("type") == "constructor":
            constructor_abi = item
            break

    input_types = _validate_args("constructor", constructor_abi, args)
    if not input_types:
        return b""
    return encode(input_types, list(args))
