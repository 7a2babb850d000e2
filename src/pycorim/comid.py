"""Concise Module Identifier (CoMID) documents."""

from typing import Any, Optional

from .encoding import Field, MapStruct, ObjectCodec, TextCodec
from .entity import Entities, Entity
from .extensions import EXT_COMID, EXT_ENTITY, ExtensionMap
from .linkedtag import LinkedTag, LinkedTags
from .tagidentity import TagIdentity
from .triples import CondEndorseSeriesTriple, KeyTriple, Triples, ValueTriple


class Comid(MapStruct):
    """A CoMID tag: identity, optional entities and links, and triples.

    Example:
        >>> from pycorim.entity import ROLE_CREATOR
        >>> comid = Comid().set_tag_identity("my-tag", 0)
        >>> comid = comid.add_entity("ACME Ltd.", "https://acme.example", ROLE_CREATOR)
    """

    FIELDS = (
        Field("language", 0, "lang", TextCodec()),
        Field("tag_identity", 1, "tag-identity", ObjectCodec(TagIdentity), omit_empty=False),
        Field("entities", 2, "entities", ObjectCodec(Entities, omit_empty=True)),
        Field("linked_tags", 3, "linked-tags", ObjectCodec(LinkedTags, omit_empty=True)),
        Field("triples", 4, "triples", ObjectCodec(Triples), omit_empty=False),
    )
    EXTENSION_POINT = EXT_COMID

    def __init__(self) -> None:
        super().__init__()
        self.tag_identity = TagIdentity()
        self.triples = Triples()

    def register_extensions(self, exts: ExtensionMap) -> None:
        """Dispatch extensions to the CoMID, its entities and its triples.

        ``Comid`` attaches to the document itself and ``ComidEntity`` to every
        entity. All other points are handed to the triples container.

        Raises:
            ValueError: If a point is not known anywhere in the document
        """
        triples_exts = ExtensionMap()
        for point, value in exts.items():
            if point == EXT_COMID:
                self.extensions.register(value)
            elif point == EXT_ENTITY:
                if self.entities is None:
                    self.entities = Entities()
                self.entities.register_extensions(ExtensionMap({EXT_ENTITY: value}))
            else:
                triples_exts.add(point, value)
        if triples_exts:
            self.triples.register_extensions(triples_exts)

    def set_language(self, language: str) -> "Comid":
        if not language:
            raise ValueError("empty language")
        self.language = language
        return self

    def set_tag_identity(self, tag_id: Any, tag_version: int = 0) -> "Comid":
        self.tag_identity = TagIdentity(tag_id, tag_version)
        return self

    def add_entity(self, name: str, reg_id: Optional[str] = None, *roles: int) -> "Comid":
        if self.entities is None:
            self.entities = Entities()
        self.entities.add(Entity(name, reg_id, list(roles)))
        return self

    def add_linked_tag(self, tag_id: Any, rel: int) -> "Comid":
        if self.linked_tags is None:
            self.linked_tags = LinkedTags()
        self.linked_tags.add(LinkedTag(tag_id, rel))
        return self

    def add_reference_value(self, triple: ValueTriple) -> "Comid":
        self.triples.add_reference_value(triple)
        return self

    def add_endorsed_value(self, triple: ValueTriple) -> "Comid":
        self.triples.add_endorsed_value(triple)
        return self

    def add_attest_verif_key(self, triple: KeyTriple) -> "Comid":
        self.triples.add_attest_verif_key(triple)
        return self

    def add_dev_identity_key(self, triple: KeyTriple) -> "Comid":
        self.triples.add_dev_identity_key(triple)
        return self

    def add_cond_endorse_series(self, triple: CondEndorseSeriesTriple) -> "Comid":
        self.triples.add_cond_endorse_series(triple)
        return self

    def valid(self) -> None:
        try:
            self.tag_identity.valid()
        except ValueError as e:
            raise ValueError(f"tag-identity validation failed: {e}") from e

        if self.entities is not None:
            try:
                self.entities.valid()
            except ValueError as e:
                raise ValueError(f"entities validation failed: {e}") from e

        if self.linked_tags is not None:
            try:
                self.linked_tags.valid()
            except ValueError as e:
                raise ValueError(f"linked-tags validation failed: {e}") from e

        try:
            self.triples.valid()
        except ValueError as e:
            raise ValueError(f"triples validation failed: {e}") from e

        self.extensions.call("validate_comid", self)
