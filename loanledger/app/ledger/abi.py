from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError as AbiDecodingError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address

from loanledger.app.ledger.errors import ConfigurationError, EncodingError
from loanledger.app.ledger.hashing import from_bytes32, to_bytes32

logger = logging.getLogger(__name__)

AbiEntry = Dict[str, Any]


def load_abi(contract_name: str, abi_dir: Optional[str] = None) -> List[AbiEntry]:
    """Load ``<contract_name>.abi.json`` from ``abi_dir`` or from the bundled descriptors."""
    filename = f"{contract_name}.abi.json"
    try:
        if abi_dir:
            text = (Path(abi_dir) / filename).read_text(encoding="utf-8")
        else:
            text = resources.files("loanledger.app.ledger").joinpath("abis").joinpath(filename).read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as exc:
        raise ConfigurationError(f"ABI not found: {filename}") from exc
    try:
        abi = json.loads(text)
    except ValueError as exc:
        raise ConfigurationError(f"ABI is not valid JSON: {filename}") from exc
    if not isinstance(abi, list):
        raise ConfigurationError(f"ABI must be a JSON array: {filename}")
    return abi


def type_string(entry: AbiEntry) -> str:
    abi_type = entry["type"]
    if abi_type.startswith("tuple"):
        inner = ",".join(type_string(component) for component in entry.get("components", []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def _element(entry: AbiEntry) -> AbiEntry:
    element = dict(entry)
    element["type"] = entry["type"][: entry["type"].rindex("[")]
    return element


def _coerce_input(entry: AbiEntry, value: Any) -> Any:
    abi_type = entry["type"]
    name = entry.get("name") or "arg"
    if abi_type.endswith("]"):
        if not isinstance(value, (list, tuple)):
            raise EncodingError(f"{name}: expected a sequence")
        return [_coerce_input(_element(entry), item) for item in value]
    if abi_type.startswith("tuple"):
        components = entry.get("components", [])
        if isinstance(value, dict):
            value = [value[c["name"]] for c in components]
        return tuple(_coerce_input(c, v) for c, v in zip(components, value))
    if abi_type == "bytes32":
        return to_bytes32(value)
    if abi_type == "address":
        if not isinstance(value, str) or not is_address(value):
            raise EncodingError(f"{name}: not an address")
        return to_checksum_address(value)
    if abi_type == "bool":
        if not isinstance(value, bool):
            raise EncodingError(f"{name}: expected bool")
        return value
    if abi_type.startswith("uint") or abi_type.startswith("int"):
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"{name}: expected an integer, got {type(value).__name__}")
        if abi_type.startswith("uint") and value < 0:
            raise EncodingError(f"{name}: must not be negative")
        return value
    return value


def _normalize_output(entry: AbiEntry, value: Any) -> Any:
    abi_type = entry["type"]
    if abi_type.endswith("]"):
        return [_normalize_output(_element(entry), item) for item in value]
    if abi_type.startswith("tuple"):
        components = entry.get("components", [])
        return {c["name"]: _normalize_output(c, v) for c, v in zip(components, value)}
    if abi_type == "bytes32":
        return from_bytes32(value)
    if abi_type == "address":
        return to_checksum_address(value)
    return value


@dataclass(frozen=True)
class PreparedCall:
    contract: str
    address: str
    function: str
    data: bytes

    @property
    def label(self) -> str:
        return f"{self.contract}.{self.function}"


class ContractBinding:
    """A deployed contract: its address plus the function schemas from its ABI."""

    def __init__(self, name: str, address: str, abi: Sequence[AbiEntry]) -> None:
        if not address or not is_address(address):
            raise ConfigurationError(f"{name}: contract address missing or invalid")
        self.name = name
        self.address = to_checksum_address(address)
        self._functions: Dict[str, AbiEntry] = {
            entry["name"]: entry for entry in abi if entry.get("type") == "function" and entry.get("name")
        }

    def _function(self, function: str) -> AbiEntry:
        try:
            return self._functions[function]
        except KeyError:
            raise EncodingError(f"{self.name} ABI has no function {function!r}") from None

    def selector(self, function: str) -> bytes:
        entry = self._function(function)
        signature = f"{function}({','.join(type_string(i) for i in entry.get('inputs', []))})"
        return function_signature_to_4byte_selector(signature)

    def encode_call(self, function: str, *args: Any) -> PreparedCall:
        entry = self._function(function)
        inputs = entry.get("inputs", [])
        if len(args) != len(inputs):
            raise EncodingError(f"{self.name}.{function} takes {len(inputs)} arguments, got {len(args)}")
        values = [_coerce_input(i, a) for i, a in zip(inputs, args)]
        try:
            encoded = abi_encode([type_string(i) for i in inputs], values)
        except (AbiEncodingError, TypeError, ValueError, OverflowError) as exc:
            raise EncodingError(f"{self.name}.{function}: {exc}") from exc
        return PreparedCall(contract=self.name, address=self.address, function=function, data=self.selector(function) + encoded)

    def decode_output(self, function: str, data: bytes) -> Any:
        """Decode return data; a single output is returned bare, several as a list."""
        outputs = self._function(function).get("outputs", [])
        try:
            values = abi_decode([type_string(o) for o in outputs], data)
        except (AbiDecodingError, TypeError, ValueError, OverflowError) as exc:
            raise EncodingError(f"{self.name}.{function}: cannot decode result: {exc}") from exc
        normalized = [_normalize_output(o, v) for o, v in zip(outputs, values)]
        if len(normalized) == 1:
            return normalized[0]
        return normalized


__all__ = ["AbiEntry", "ContractBinding", "PreparedCall", "load_abi", "type_string"]
