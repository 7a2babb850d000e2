"""CoMID entities and their roles."""

from typing import Any, Optional

from .codes import CodeList, CodeValue
from .encoding import Field, MapStruct, ObjectCodec, TextCodec
from .extensions import EXT_ENTITY, Collection
from .primitives import URICodec, check_absolute_uri, new_uri

ROLE_TAG_CREATOR = 0
ROLE_CREATOR = 1
ROLE_MAINTAINER = 2


class Role(CodeValue):
    """Role of an entity with respect to a CoMID tag."""

    kind = "role"
    display_name = "Role"


Role._add_builtin(ROLE_TAG_CREATOR, "tagCreator")
Role._add_builtin(ROLE_CREATOR, "creator")
Role._add_builtin(ROLE_MAINTAINER, "maintainer")


def register_role(code: int, name: str) -> None:
    """Register a custom CoMID entity role."""
    Role.register(code, name)


class Roles(CodeList):
    code_type = Role


class Entity(MapStruct):
    """An organization responsible for the contents of a tag."""

    FIELDS = (
        Field("name", 0, "name", TextCodec(), omit_empty=False),
        Field("reg_id", 1, "regid", URICodec()),
        Field("roles", 2, "roles", ObjectCodec(Roles), omit_empty=False),
    )
    EXTENSION_POINT = EXT_ENTITY
    ROLES_TYPE: type = Roles

    def __init__(
        self,
        name: Optional[str] = None,
        reg_id: Optional[str] = None,
        roles: Optional[list[Any]] = None,
    ):
        super().__init__()
        self.name = name
        self.reg_id = new_uri(reg_id)
        self.roles = self.ROLES_TYPE().add(*(roles or []))

    def set_name(self, name: str) -> "Entity":
        if not name:
            raise ValueError("empty entity-name")
        self.name = name
        return self

    def set_reg_id(self, uri: str) -> "Entity":
        self.reg_id = new_uri(uri)
        return self

    def set_roles(self, *roles: Any) -> "Entity":
        self.roles.add(*roles)
        return self

    def valid(self) -> None:
        if not self.name:
            raise ValueError("invalid entity: empty entity-name")

        if self.reg_id is not None:
            if self.reg_id == "":
                raise ValueError("invalid entity: empty reg-id")
            try:
                check_absolute_uri(self.reg_id)
            except ValueError as e:
                raise ValueError(f"invalid entity: {e}") from e

        try:
            self.roles.valid()
        except ValueError as e:
            raise ValueError(f"invalid entity: {e}") from e

        self.extensions.call("validate_entity", self)


class Entities(Collection):
    item_type = Entity

    def valid(self) -> None:
        for i, entity in enumerate(self.items):
            try:
                entity.valid()
            except ValueError as e:
                raise ValueError(f"entity at index {i}: {e}") from e
