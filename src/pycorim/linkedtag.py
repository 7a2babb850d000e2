"""Links from a CoMID to other tags."""

from typing import Any, Optional

from .codes import CodeValue
from .encoding import Field, MapStruct, ObjectCodec
from .extensions import Collection
from .tagidentity import TagID

REL_SUPPLEMENTS = 0
REL_REPLACES = 1


class Rel(CodeValue):
    """Relation between the linking tag and the linked one."""

    kind = "rel"
    display_name = "rel"


Rel._add_builtin(REL_SUPPLEMENTS, "supplements")
Rel._add_builtin(REL_REPLACES, "replaces")


def register_rel(code: int, name: str) -> None:
    """Register a custom linked-tag relation."""
    Rel.register(code, name)


class LinkedTag(MapStruct):
    FIELDS = (
        Field("target", 0, "target", ObjectCodec(TagID), omit_empty=False),
        Field("rel", 1, "rel", ObjectCodec(Rel), omit_empty=False),
    )

    def __init__(self, target: Any = None, rel: Optional[int] = None):
        super().__init__()
        self.target = TagID(target)
        self.rel = Rel(rel)

    def valid(self) -> None:
        if not self.target.is_set():
            raise ValueError("tag-id must be set in linked-tag")
        try:
            self.rel.valid()
        except ValueError as e:
            raise ValueError(f"rel validation failed: {e}") from e


class LinkedTags(Collection):
    item_type = LinkedTag

    def valid(self) -> None:
        for i, tag in enumerate(self.items):
            try:
                tag.valid()
            except ValueError as e:
                raise ValueError(f"invalid linked-tag entry at index {i}: {e}") from e
