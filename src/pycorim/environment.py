"""Environments: the class, instance and group a triple applies to."""

from typing import Any, Optional

from .classid import ClassID
from .encoding import Field, MapStruct, ObjectCodec, TextCodec, UintCodec
from .instance import Group, Instance


class Class(MapStruct):
    """Describes a class of environments. At least one member must be set."""

    FIELDS = (
        Field("class_id", 0, "id", ObjectCodec(ClassID)),
        Field("vendor", 1, "vendor", TextCodec()),
        Field("model", 2, "model", TextCodec()),
        Field("layer", 3, "layer", UintCodec()),
        Field("index", 4, "index", UintCodec()),
    )

    @classmethod
    def of(cls, class_id: Any, type_name: str) -> "Class":
        """Build a class around a class id of the named variant."""
        ret = cls()
        ret.class_id = ClassID.new(class_id, type_name)
        return ret

    def set_vendor(self, vendor: str) -> "Class":
        self.vendor = vendor
        return self

    def set_model(self, model: str) -> "Class":
        self.model = model
        return self

    def set_layer(self, layer: int) -> "Class":
        self.layer = layer
        return self

    def set_index(self, index: int) -> "Class":
        self.index = index
        return self

    def valid(self) -> None:
        if (
            (self.class_id is None or not self.class_id.is_set())
            and self.vendor is None
            and self.model is None
            and self.layer is None
            and self.index is None
        ):
            raise ValueError("class must not be empty")
        if self.class_id is not None and self.class_id.is_set():
            self.class_id.valid()


class Environment(MapStruct):
    """Target environment of a triple. At least one member must be set."""

    FIELDS = (
        Field("class_", 0, "class", ObjectCodec(Class)),
        Field("instance", 1, "instance", ObjectCodec(Instance)),
        Field("group", 2, "group", ObjectCodec(Group)),
    )

    def __init__(
        self,
        class_: Optional[Class] = None,
        instance: Optional[Instance] = None,
        group: Optional[Group] = None,
    ):
        super().__init__()
        self.class_ = class_
        self.instance = instance
        self.group = group

    def valid(self) -> None:
        if self.class_ is None and self.instance is None and self.group is None:
            raise ValueError("environment must not be empty")
        for member in (self.class_, self.instance, self.group):
            if member is None:
                continue
            try:
                member.valid()
            except ValueError as e:
                raise ValueError(f"environment validation failed: {e}") from e
