"""Measurement key type-choice ($measured-element-type-choice)."""

from typing import Any

from . import cbor_utils
from .primitives import StringValue, TaggedOID, TaggedUUID, UintValue
from .typechoice import TypeChoice


class Mkey(TypeChoice):
    """Identifies the measured element within an environment."""

    choice_name = "mkey"
    _int_type = UintValue.type_name
    _text_type = StringValue.type_name

    def set_uint(self, value: Any) -> "Mkey":
        self.value = UintValue(value)
        return self

    def set_string(self, value: str) -> "Mkey":
        self.value = StringValue(value)
        return self

    def set_oid(self, value: Any) -> "Mkey":
        self.value = TaggedOID(value)
        return self

    def set_uuid(self, value: Any) -> "Mkey":
        self.value = TaggedUUID(value)
        return self


Mkey._add_variant(UintValue)
Mkey._add_variant(StringValue)
Mkey._add_variant(TaggedOID, cbor_utils.TAG_OID)
Mkey._add_variant(TaggedUUID, cbor_utils.TAG_UUID)
