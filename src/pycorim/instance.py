"""Instance and group identifier type-choices."""

from typing import Any

from . import cbor_utils
from .primitives import TaggedBytes, TaggedUEID, TaggedUUID
from .typechoice import TypeChoice


class Instance(TypeChoice):
    """Identifies a specific environment instance."""

    choice_name = "instance"

    def set_ueid(self, value: Any) -> "Instance":
        self.value = TaggedUEID(value)
        return self

    def set_uuid(self, value: Any) -> "Instance":
        self.value = TaggedUUID(value)
        return self

    def set_bytes(self, value: Any) -> "Instance":
        self.value = TaggedBytes(value)
        return self


class Group(TypeChoice):
    """Identifies a group of environments."""

    choice_name = "group"

    def set_uuid(self, value: Any) -> "Group":
        self.value = TaggedUUID(value)
        return self

    def set_bytes(self, value: Any) -> "Group":
        self.value = TaggedBytes(value)
        return self


Instance._add_variant(TaggedUEID, cbor_utils.TAG_UEID)
Instance._add_variant(TaggedUUID, cbor_utils.TAG_UUID)
Instance._add_variant(TaggedBytes, cbor_utils.TAG_BYTES)

Group._add_variant(TaggedUUID, cbor_utils.TAG_UUID)
Group._add_variant(TaggedBytes, cbor_utils.TAG_BYTES)
