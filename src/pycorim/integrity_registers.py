"""Integrity registers: named or numbered registers holding digests.

In CBOR the register set is a native map whose keys may mix unsigned
integers and text strings. JSON object keys are always strings, so each
entry records the original key type::

    {"0": {"key-type": "uint", "value": ["sha-256;..."]},
     "PCR": {"key-type": "text", "value": ["sha-384;..."]}}
"""

from typing import Any, Union

from . import cbor_utils
from .encoding import Serializable
from .hashentry import Digests, HashEntry
from .register_index import RegisterIndex

UINT_TYPE = "uint"
TEXT_TYPE = "text"

Index = Union[int, str, RegisterIndex]


def _native_key(index: Index) -> Union[int, str]:
    if isinstance(index, RegisterIndex):
        return index.key()
    if isinstance(index, bool) or not isinstance(index, (int, str)):
        raise ValueError(f"unexpected type for index: {type(index).__name__}")
    if isinstance(index, int) and index < 0:
        raise ValueError("invalid negative integer key")
    return index


class IntegrityRegisters(Serializable):
    """Mapping of register index to an ordered list of digests."""

    def __init__(self) -> None:
        self.registers: dict[Union[int, str], Digests] = {}

    def add_digest(self, index: Index, digest: HashEntry) -> "IntegrityRegisters":
        key = _native_key(index)
        self.registers.setdefault(key, Digests()).append(digest)
        return self

    def add_digests(self, index: Index, digests: list[HashEntry]) -> "IntegrityRegisters":
        """Append digests to a register, creating it if needed.

        Raises:
            ValueError: If digests is empty or the index has the wrong type
        """
        if len(digests) == 0:
            raise ValueError("no digests to add")
        for digest in digests:
            try:
                self.add_digest(index, digest)
            except ValueError as e:
                raise ValueError(f"unable to add Digest: {e}") from e
        return self

    def get(self, index: Index) -> Digests:
        return self.registers[_native_key(index)]

    def indices(self) -> list[RegisterIndex]:
        return [RegisterIndex.of(key) for key in self.registers]

    def is_empty(self) -> bool:
        return len(self.registers) == 0

    def valid(self) -> None:
        for key, digests in self.registers.items():
            try:
                digests.valid()
            except ValueError as e:
                raise ValueError(f"register {key!r}: {e}") from e

    def to_cbor_obj(self) -> dict[Union[int, str], Any]:
        return {key: digests.to_cbor_obj() for key, digests in self.registers.items()}

    def load_cbor_obj(self, obj: Any) -> None:
        if not isinstance(obj, dict):
            raise ValueError(f"register map decoding failure: expected map, got {type(obj).__name__}")
        registers: dict[Union[int, str], Digests] = {}
        for key, value in obj.items():
            if cbor_utils.is_int(key):
                if key < 0:
                    raise ValueError("invalid negative integer key")
            elif not isinstance(key, str):
                raise ValueError(f"unexpected type for index: {type(key).__name__}")
            digests = Digests()
            digests.load_cbor_obj(value)
            registers[key] = digests
        self.registers = registers

    def to_json_obj(self) -> dict[str, Any]:
        ret = {}
        for key, digests in self.registers.items():
            key_type = TEXT_TYPE if isinstance(key, str) else UINT_TYPE
            ret[str(key)] = {"key-type": key_type, "value": digests.to_json_obj()}
        return ret

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, dict):
            raise ValueError(
                f"register map decoding failure: expected object, got {type(obj).__name__}"
            )
        registers = IntegrityRegisters()
        for key, entry in obj.items():
            if not isinstance(entry, dict):
                raise ValueError("unable to unmarshal keyTypeAndValue: expected object")
            digests = Digests()
            try:
                digests.load_json_obj(entry.get("value"))
            except ValueError as e:
                raise ValueError(f"unable to unmarshal Digests: {e}") from e

            key_type = entry.get("key-type")
            index: Union[int, str]
            if key_type == UINT_TYPE:
                try:
                    index = int(key, 10)
                except ValueError as e:
                    raise ValueError(f"unable to convert key to uint: {e}") from e
                if index < 0:
                    raise ValueError("invalid negative integer key")
            elif key_type == TEXT_TYPE:
                index = key
            else:
                raise ValueError(f"unexpected key type for index: {key_type}")

            try:
                registers.add_digests(index, digests)
            except ValueError as e:
                raise ValueError(f"unable to add digests into register set: {e}") from e
        self.registers = registers.registers

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntegrityRegisters):
            return NotImplemented
        if self.registers.keys() != other.registers.keys():
            return False
        return all(
            digests.set_equal(other.registers[key]) for key, digests in self.registers.items()
        )

    def matches(self, reference: "IntegrityRegisters") -> bool:
        """Tell whether this (claimed) set satisfies a reference set.

        Every register in the reference must be present here, and each of
        the reference digests for it must appear in the claimed register.
        """
        for key, ref_digests in reference.registers.items():
            claimed = self.registers.get(key)
            if claimed is None or not claimed.matches(ref_digests):
                return False
        return True

    compare = matches

    def __repr__(self) -> str:
        return f"IntegrityRegisters({self.registers!r})"
