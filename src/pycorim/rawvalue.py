"""Raw value type-choice ($raw-value-type-choice)."""

from typing import Any

from . import cbor_utils
from .primitives import TaggedBytes
from .typechoice import TypeChoice


class RawValue(TypeChoice):
    """Raw measured bytes, currently always carried as tagged bytes."""

    choice_name = "raw value"

    def set_bytes(self, value: Any) -> "RawValue":
        self.value = TaggedBytes(value)
        return self

    def get_bytes(self) -> bytes:
        if self.value is None:
            raise ValueError("raw value is not set")
        if not isinstance(self.value, TaggedBytes):
            raise ValueError(f"unknown type {self.value.type_name} for raw value")
        return self.value.data


RawValue._add_variant(TaggedBytes, cbor_utils.TAG_BYTES)
