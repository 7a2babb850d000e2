"""Unsigned CoRIM: the manifest that carries CoMID, CoSWID and CoTS tags."""

import re
from collections.abc import Iterator
from datetime import datetime
from typing import Any, Optional, Union

from . import cbor_utils
from .codes import CodeList, CodeValue
from .comid import Comid
from .encoding import Codec, Field, MapStruct, ObjectCodec, Serializable, b64decode, b64encode
from .entity import Entity
from .extensions import EXT_CORIM_ENTITY, EXT_UNSIGNED_CORIM, Collection, ExtensionMap, unexpected_point
from .hashentry import HashEntry
from .meta import Validity
from .primitives import URICodec, check_absolute_uri, oid_from_ber, oid_from_string, oid_to_ber
from .tagidentity import TagID

ROLE_MANIFEST_CREATOR = 1

_DOTTED_OID_RE = re.compile(r"^[0-9]+(\.[0-9]+)+$")


class CorimRole(CodeValue):
    """Role of an entity with respect to the CoRIM as a whole."""

    kind = "role"
    display_name = "Role"


CorimRole._add_builtin(ROLE_MANIFEST_CREATOR, "manifestCreator")


def register_corim_role(code: int, name: str) -> None:
    """Register a custom CoRIM entity role."""
    CorimRole.register(code, name)


class CorimRoles(CodeList):
    code_type = CorimRole

    def valid(self) -> None:
        if len(self) == 0:
            raise ValueError("empty roles")
        for i, role in enumerate(self):
            if role.code not in CorimRole._names:
                raise ValueError(f"unknown role {role.code} at index {i}")


class CorimEntity(Entity):
    """An organization responsible for the CoRIM (e.g. its creator)."""

    EXTENSION_POINT = EXT_CORIM_ENTITY
    ROLES_TYPE = CorimRoles


class CorimEntities(Collection):
    item_type = CorimEntity

    def valid(self) -> None:
        for i, entity in enumerate(self.items):
            try:
                entity.valid()
            except ValueError as e:
                raise ValueError(f"entity at index {i}: {e}") from e


class Locator(MapStruct):
    """Where to find a dependent RIM, optionally pinned by a thumbprint."""

    FIELDS = (
        Field("href", 0, "href", URICodec(), omit_empty=False),
        Field("thumbprint", 1, "thumbprint", ObjectCodec(HashEntry)),
    )

    def __init__(self, href: Optional[str] = None, thumbprint: Optional[HashEntry] = None):
        super().__init__()
        self.href = href
        self.thumbprint = thumbprint

    def valid(self) -> None:
        if not self.href:
            raise ValueError("empty href")
        if self.thumbprint is not None:
            try:
                self.thumbprint.valid()
            except ValueError as e:
                raise ValueError(f"invalid locator thumbprint: {e}") from e


class Locators(Collection):
    item_type = Locator


class Profile(Serializable):
    """A profile identifier: an absolute URI or an OID.

    URIs are text strings in CBOR, OIDs are byte strings holding the BER
    value octets. Both are plain strings in JSON.
    """

    def __init__(self, value: Union[str, tuple[int, ...], None] = None):
        self.uri: Optional[str] = None
        self.oid: Optional[tuple[int, ...]] = None
        if isinstance(value, tuple):
            self.oid = value
        elif value is not None:
            self._parse(value)

    def _parse(self, text: Any) -> None:
        if not isinstance(text, str):
            raise ValueError(f"expecting profile string, got {type(text).__name__}")
        if _DOTTED_OID_RE.match(text):
            self.oid = oid_from_string(text)
            return
        try:
            check_absolute_uri(text)
        except ValueError as e:
            raise ValueError(f"profile should be OID or URI: {e}") from e
        self.uri = text

    def is_oid(self) -> bool:
        return self.oid is not None

    def is_uri(self) -> bool:
        return self.uri is not None

    def valid(self) -> None:
        if not self.is_oid() and not self.is_uri():
            raise ValueError("profile should be OID or URI")

    def to_cbor_obj(self) -> Union[str, bytes]:
        if self.oid is not None:
            return oid_to_ber(self.oid)
        return self.uri  # type: ignore[return-value]

    def load_cbor_obj(self, obj: Any) -> None:
        if isinstance(obj, bytes):
            self.oid, self.uri = oid_from_ber(obj), None
        elif isinstance(obj, str):
            self.oid, self.uri = None, obj
        elif cbor_utils.is_tag(obj, cbor_utils.TAG_URI) and isinstance(obj.value, str):
            self.oid, self.uri = None, obj.value
        else:
            raise ValueError(f"expecting profile URI or OID, got {cbor_utils.to_hex(obj)}")

    def to_json_obj(self) -> str:
        return str(self)

    def load_json_obj(self, obj: Any) -> None:
        self.oid = self.uri = None
        self._parse(obj)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Profile):
            return NotImplemented
        return self.uri == other.uri and self.oid == other.oid

    def __hash__(self) -> int:
        return hash((self.uri, self.oid))

    def __str__(self) -> str:
        if self.oid is not None:
            return ".".join(str(arc) for arc in self.oid)
        return self.uri or ""

    def __repr__(self) -> str:
        return f"Profile({str(self)!r})"


class Profiles(list):
    """Profiles list. A single profile is accepted on decode."""

    def valid(self) -> None:
        for i, profile in enumerate(self):
            try:
                profile.valid()
            except ValueError as e:
                raise ValueError(f"profile validation failed at pos {i}: {e}") from e

    def to_cbor_obj(self) -> list[Any]:
        return [p.to_cbor_obj() for p in self]

    def load_cbor_obj(self, obj: Any) -> None:
        items = obj if isinstance(obj, list) else [obj]
        self[:] = [Profile.from_cbor_obj(item) for item in items]

    def to_json_obj(self) -> list[str]:
        return [p.to_json_obj() for p in self]

    def load_json_obj(self, obj: Any) -> None:
        items = obj if isinstance(obj, list) else [obj]
        self[:] = [Profile.from_json_obj(item) for item in items]


def tag_type(data: bytes) -> Optional[int]:
    """Return the CBOR tag number of an embedded tag, None if unknown."""
    tag, _ = cbor_utils.split_tag_prefix(data)
    return tag


class TagsCodec(Codec):
    """Embedded tags.

    Each tag is kept as the bytes of a tagged CBOR item (``506(...)`` for a
    CoMID, ``505(...)`` for a CoSWID, ``507(...)`` for a CoTS). On the wire the
    items are inlined in the array; a byte string wrapping such an item is
    accepted on decode. JSON carries the base64 of the item bytes.
    """

    def to_cbor(self, value: Any) -> list[Any]:
        return [cbor_utils.RawCBOR(tag) for tag in value]

    def from_cbor(self, obj: Any, current: Any = None) -> list[bytes]:
        if not isinstance(obj, list):
            raise ValueError(f"expecting tags array, got {type(obj).__name__}")
        ret = []
        for item in obj:
            if isinstance(item, bytes):
                ret.append(item)
            elif cbor_utils.is_tag(item):
                ret.append(cbor_utils.encode(item))
            else:
                raise ValueError(f"expecting tagged CBOR item, got {cbor_utils.to_hex(item)}")
        return ret

    def to_json(self, value: Any) -> list[str]:
        return [b64encode(tag) for tag in value]

    def from_json(self, obj: Any, current: Any = None) -> list[bytes]:
        if not isinstance(obj, list):
            raise ValueError(f"expecting tags array, got {type(obj).__name__}")
        return [b64decode(item) for item in obj]

    def is_empty(self, value: Any) -> bool:
        return value is None


class UnsignedCorim(MapStruct):
    """unsigned-corim-map.

    Example:
        >>> corim = UnsignedCorim().set_id("5c57e8f4-46cd-421b-91c9-08cf93e13cfc")
        >>> corim = corim.add_coswid(bytes.fromhex("44deadbeef"))
        >>> corim.to_cbor().hex()
        'a200505c57e8f446cd421b91c908cf93e13cfc0181d901f944deadbeef'
    """

    FIELDS = (
        Field("id", 0, "corim-id", ObjectCodec(TagID), omit_empty=False),
        Field("tags", 1, "tags", TagsCodec(), omit_empty=False),
        Field("dependent_rims", 2, "dependent-rims", ObjectCodec(Locators, omit_empty=True)),
        Field("profiles", 3, "profiles", ObjectCodec(Profiles, omit_empty=True)),
        Field("rim_validity", 4, "validity", ObjectCodec(Validity)),
        Field("entities", 5, "entities", ObjectCodec(CorimEntities, omit_empty=True)),
    )
    EXTENSION_POINT = EXT_UNSIGNED_CORIM

    def __init__(self) -> None:
        super().__init__()
        self.id = TagID()
        self.tags: list[bytes] = []

    def register_extensions(self, exts: ExtensionMap) -> None:
        for point, value in exts.items():
            if point == EXT_UNSIGNED_CORIM:
                self.extensions.register(value)
            elif point == EXT_CORIM_ENTITY:
                if self.entities is None:
                    self.entities = CorimEntities()
                self.entities.register_extensions(ExtensionMap({EXT_CORIM_ENTITY: value}))
            else:
                raise unexpected_point(point)

    def load_cbor_obj(self, obj: Any) -> None:
        if isinstance(obj, cbor_utils.CBORTag) and obj.tag == cbor_utils.UNSIGNED_CORIM_TAG:
            obj = obj.value
        super().load_cbor_obj(obj)

    def load_cbor(self, data: bytes) -> None:
        """Decode CBOR bytes in place, keeping each embedded tag exactly as encoded.

        Re-encoding a decoded CoMID, CoSWID or CoTS is not guaranteed to give
        back its original bytes (a tag 0 date becomes a tag 1 epoch, for
        instance), so the tags are sliced out of the input instead.
        """
        data = bytes(data)
        obj = cbor_utils.decode(data)
        self.load_cbor_obj(obj)
        if cbor_utils.is_tag(obj, cbor_utils.UNSIGNED_CORIM_TAG):
            obj = obj.value
        raw_tags = cbor_utils.raw_map_values(data).get(1)
        if raw_tags is None:
            return
        for i, (item, raw) in enumerate(zip(obj[1], cbor_utils.raw_array_items(raw_tags))):
            if cbor_utils.is_tag(item):
                self.tags[i] = raw

    @classmethod
    def from_cbor(cls, data: bytes, extensions: Optional[ExtensionMap] = None) -> "UnsignedCorim":
        ret = cls()
        if extensions:
            ret.register_extensions(extensions)
        ret.load_cbor(data)
        return ret

    def set_id(self, value: Any) -> "UnsignedCorim":
        """Set the corim-id from a UUID (text or bytes) or a non-empty string."""
        tag_id = TagID(value)
        if not tag_id.is_set():
            raise ValueError("empty id")
        self.id = tag_id
        return self

    def get_id(self) -> str:
        return str(self.id)

    def add_tag(self, data: bytes) -> "UnsignedCorim":
        """Append an already tagged CoMID, CoSWID or CoTS."""
        check_tag(data)
        self.tags.append(bytes(data))
        return self

    def add_comid(self, comid: Comid) -> "UnsignedCorim":
        """Validate, encode and append a CoMID under tag 506."""
        self.tags.append(cbor_utils.COMID_TAG_PREFIX + comid.to_cbor())
        return self

    def add_coswid(self, data: bytes) -> "UnsignedCorim":
        """Append a CBOR-encoded CoSWID under tag 505 (contents are not checked)."""
        self.tags.append(cbor_utils.COSWID_TAG_PREFIX + bytes(data))
        return self

    def add_cots(self, data: Union[bytes, Serializable]) -> "UnsignedCorim":
        """Append a CoTS under tag 507.

        Raw bytes are taken as they are; a ``ConciseTaStores`` is validated
        and encoded first.
        """
        if isinstance(data, Serializable):
            data = data.to_cbor()
        self.tags.append(cbor_utils.COTS_TAG_PREFIX + bytes(data))
        return self

    def add_dependent_rim(self, href: str, thumbprint: Optional[HashEntry] = None) -> "UnsignedCorim":
        if self.dependent_rims is None:
            self.dependent_rims = Locators()
        self.dependent_rims.add(Locator(href, thumbprint))
        return self

    def add_profile(self, uri_or_oid: str) -> "UnsignedCorim":
        if self.profiles is None:
            self.profiles = Profiles()
        self.profiles.append(Profile(uri_or_oid))
        return self

    def get_profile(self) -> Optional[Profile]:
        """Return the first profile, which selects the profile manifest."""
        if not self.profiles:
            return None
        return self.profiles[0]

    def set_rim_validity(self, not_after: datetime, not_before: Optional[datetime] = None) -> "UnsignedCorim":
        self.rim_validity = Validity().set(not_after, not_before)
        return self

    def add_entity(self, name: str, reg_id: Optional[str] = None, *roles: int) -> "UnsignedCorim":
        if self.entities is None:
            self.entities = CorimEntities()
        self.entities.add(CorimEntity(name, reg_id, list(roles)))
        return self

    def iter_tags(self) -> Iterator[tuple[Optional[int], bytes]]:
        """Yield (tag number or None, inner CBOR) for every embedded tag."""
        for tag in self.tags:
            yield cbor_utils.split_tag_prefix(tag)

    def to_tagged_cbor(self) -> bytes:
        """Encode with the tag 501 prefix."""
        return cbor_utils.UNSIGNED_CORIM_TAG_PREFIX + self.to_cbor()

    def valid(self) -> None:
        if not self.id.is_set():
            raise ValueError("empty id")

        if not self.tags:
            raise ValueError("tags validation failed: no tags")
        for i, tag in enumerate(self.tags):
            try:
                check_tag(tag)
            except ValueError as e:
                raise ValueError(f"tag validation failed at pos {i}: {e}") from e

        if self.dependent_rims is not None:
            for i, locator in enumerate(self.dependent_rims):
                try:
                    locator.valid()
                except ValueError as e:
                    raise ValueError(f"dependent RIM validation failed at pos {i}: {e}") from e

        if self.profiles is not None:
            self.profiles.valid()

        if self.rim_validity is not None:
            try:
                self.rim_validity.valid()
            except ValueError as e:
                raise ValueError(f"RIM validity validation failed: {e}") from e

        if self.entities is not None:
            for i, entity in enumerate(self.entities):
                try:
                    entity.valid()
                except ValueError as e:
                    raise ValueError(f"entity validation failed at pos {i}: {e}") from e

        self.extensions.call("validate_corim", self)


def check_tag(data: bytes) -> None:
    """Raise ValueError unless data is a non-empty, recognized embedded tag."""
    if len(data) == 0:
        raise ValueError("empty tag")
    if tag_type(data) is None:
        raise ValueError(f"unrecognized tag prefix {bytes(data[:3]).hex()}")
