"""Tag identifiers and the tag-identity map."""

import re
import uuid
from typing import Any, Optional

from .encoding import Field, MapStruct, ObjectCodec, Serializable, UintCodec
from .primitives import parse_uuid

_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


class TagID(Serializable):
    """A tag identifier: either a text string or a UUID.

    UUIDs are 16-byte byte strings in CBOR. In JSON both forms are strings;
    a string in canonical UUID form is read back as a UUID.
    """

    def __init__(self, value: Any = None):
        self.value: Optional[Any] = None
        self._set(value)

    def _set(self, value: Any) -> None:
        if value is None:
            self.value = None
            return
        if isinstance(value, TagID):
            self.value = value.value
        elif isinstance(value, str):
            self.value = uuid.UUID(value) if _UUID_RE.match(value) else value
        elif isinstance(value, (uuid.UUID, bytes, bytearray)):
            self.value = parse_uuid(value)
        else:
            raise ValueError(f"unexpected type for tag-id: {type(value).__name__}")

    def is_set(self) -> bool:
        return self.value is not None and self.value != ""

    def is_uuid(self) -> bool:
        return isinstance(self.value, uuid.UUID)

    def valid(self) -> None:
        if not self.is_set():
            raise ValueError("empty tag-id")

    def to_cbor_obj(self) -> Any:
        if isinstance(self.value, uuid.UUID):
            return self.value.bytes
        return self.value

    def load_cbor_obj(self, obj: Any) -> None:
        if isinstance(obj, str):
            self.value = obj
        elif isinstance(obj, bytes):
            self.value = parse_uuid(obj)
        else:
            raise ValueError(f"expecting tag-id string or UUID bytes, got {type(obj).__name__}")

    def to_json_obj(self) -> Optional[str]:
        return None if self.value is None else str(self.value)

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, str):
            raise ValueError(f"expecting tag-id string, got {type(obj).__name__}")
        self._set(obj)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagID):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        return "" if self.value is None else str(self.value)

    def __repr__(self) -> str:
        return f"TagID({self.value!r})"


class VersionCodec(UintCodec):
    """Tag version: zero is the default and is left out."""

    def is_empty(self, value: Any) -> bool:
        return value is None or value == 0


class TagIdentity(MapStruct):
    FIELDS = (
        Field("tag_id", 0, "id", ObjectCodec(TagID), omit_empty=False),
        Field("tag_version", 1, "version", VersionCodec()),
    )

    def __init__(self, tag_id: Any = None, tag_version: int = 0):
        super().__init__()
        self.tag_id = TagID(tag_id)
        self.tag_version = tag_version

    def valid(self) -> None:
        self.tag_id.valid()
