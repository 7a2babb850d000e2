"""Class identifier type-choice ($class-id-type-choice)."""

from typing import Any

from . import cbor_utils
from .primitives import IntValue, TaggedBytes, TaggedOID, TaggedUUID
from .typechoice import TypeChoice


class ClassID(TypeChoice):
    """Identifies a class of environments (OID, UUID, int, bytes, ...)."""

    choice_name = "class id"
    _int_type = IntValue.type_name

    def set_uuid(self, value: Any) -> "ClassID":
        self.value = TaggedUUID(value)
        return self

    def set_oid(self, value: Any) -> "ClassID":
        self.value = TaggedOID(value)
        return self

    def set_int(self, value: int) -> "ClassID":
        self.value = IntValue(value)
        return self

    def set_bytes(self, value: Any) -> "ClassID":
        self.value = TaggedBytes(value)
        return self


ClassID._add_variant(TaggedOID, cbor_utils.TAG_OID)
ClassID._add_variant(TaggedUUID, cbor_utils.TAG_UUID)
ClassID._add_variant(IntValue)
ClassID._add_variant(TaggedBytes, cbor_utils.TAG_BYTES)
