"""Concise Trust Anchor Stores (CoTS).

A CoTS names the trust anchors (and optionally CA certificates) to be used
in a set of environments, together with the purposes they serve and the
claims a verifier may accept or must reject when using them. Inside a CoRIM
the stores are carried under tag 507 as a ``concise-ta-stores`` array.

Example:
    >>> store = ConciseTaStore().set_tag_identity("ab0f44b1-bfdc-4604-ab4a-30f80407ebcc", 5)
    >>> store = store.add_environment_group(EnvironmentGroup(named_ta_store="acme"))
    >>> store = store.set_keys(TasAndCas().add_ta(TA_FORMAT_SPKI, b"spki"))
    >>> ConciseTaStores([store]).to_cbor().hex()[:6]
    '81a301'
"""

from typing import Any, Optional, Union

from . import cbor_utils
from .codes import CodeList, CodeValue
from .corim import Profile
from .encoding import (
    BoolCodec,
    BytesCodec,
    Codec,
    Field,
    IntCodec,
    MapStruct,
    ObjectCodec,
    Serializable,
    TextCodec,
    UintCodec,
    b64decode,
    b64encode,
)
from .environment import Environment
from .extensions import Collection
from .primitives import validate_ueid
from .tagidentity import TagID, TagIdentity, VersionCodec

TA_FORMAT_CERT = 0
TA_FORMAT_TA = 1
TA_FORMAT_SPKI = 2

TA_FORMATS = {TA_FORMAT_CERT: "cert", TA_FORMAT_TA: "ta", TA_FORMAT_SPKI: "spki"}

MIN_NONCE_LEN = 8
MAX_NONCE_LEN = 64


class FlagCodec(BoolCodec):
    """Booleans defaulting to false: false is left out."""

    def is_empty(self, value: Any) -> bool:
        return value is None or value is False


class TextListCodec(Codec):
    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if not isinstance(obj, list) or not all(isinstance(item, str) for item in obj):
            raise ValueError(f"expected array of text strings, got {cbor_utils.to_hex(obj)}")
        return list(obj)

    from_json = from_cbor

    def is_empty(self, value: Any) -> bool:
        return not value


class BytesListCodec(Codec):
    """Arrays of byte strings: base64 strings in JSON."""

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if not isinstance(obj, list) or not all(isinstance(item, bytes) for item in obj):
            raise ValueError("expected array of byte strings")
        return list(obj)

    def to_json(self, value: Any) -> Any:
        return [b64encode(item) for item in value]

    def from_json(self, obj: Any, current: Any = None) -> Any:
        if not isinstance(obj, list):
            raise ValueError(f"expected array, got {type(obj).__name__}")
        return [b64decode(item) for item in obj]

    def is_empty(self, value: Any) -> bool:
        return not value


class NonceCodec(Codec):
    """A nonce, or an array of nonces."""

    def to_cbor(self, value: Any) -> Any:
        return value[0] if len(value) == 1 else list(value)

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        items = obj if isinstance(obj, list) else [obj]
        if not items or not all(isinstance(item, bytes) for item in items):
            raise ValueError("expected nonce byte string or array of nonces")
        return list(items)

    def to_json(self, value: Any) -> Any:
        encoded = [b64encode(item) for item in value]
        return encoded[0] if len(encoded) == 1 else encoded

    def from_json(self, obj: Any, current: Any = None) -> Any:
        items = obj if isinstance(obj, list) else [obj]
        return [b64decode(item) for item in items]


class AudienceCodec(Codec):
    """A single audience string, or an array of them."""

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if isinstance(obj, str):
            return obj
        if isinstance(obj, list) and obj and all(isinstance(item, str) for item in obj):
            return list(obj)
        raise ValueError(f"expected audience string or array, got {cbor_utils.to_hex(obj)}")

    from_json = from_cbor


class VersionScheme(CodeValue):
    """CoSWID software version scheme."""

    kind = "version scheme"
    display_name = "VersionScheme"

    def load_json_obj(self, obj: Any) -> None:
        if cbor_utils.is_int(obj):
            self.code = obj
            return
        super().load_json_obj(obj)

    def to_json_obj(self) -> Any:
        self.valid()
        return self._names.get(self.code, self.code)  # type: ignore[arg-type]


VersionScheme._add_builtin(1, "multipartnumeric")
VersionScheme._add_builtin(2, "multipartnumeric+suffix")
VersionScheme._add_builtin(3, "alphanumeric")
VersionScheme._add_builtin(4, "decimal")
VersionScheme._add_builtin(16384, "semver")


class VersionType(Serializable):
    """A version string qualified by its scheme (``[version, scheme]``)."""

    def __init__(self, version: str = "", scheme: Any = None):
        self.version = version
        self.scheme = scheme if isinstance(scheme, VersionScheme) else VersionScheme(scheme)

    def valid(self) -> None:
        if not self.version:
            raise ValueError("empty version")
        self.scheme.valid()

    def to_cbor_obj(self) -> list[Any]:
        return [self.version, self.scheme.to_cbor_obj()]

    def load_cbor_obj(self, obj: Any) -> None:
        if not isinstance(obj, list) or len(obj) != 2 or not isinstance(obj[0], str):
            raise ValueError(f"expected [version, scheme], got {cbor_utils.to_hex(obj)}")
        self.version = obj[0]
        self.scheme.load_cbor_obj(obj[1])

    def to_json_obj(self) -> dict[str, Any]:
        return {"version": self.version, "scheme": self.scheme.to_json_obj()}

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, dict):
            raise ValueError(f"expected object for version, got {type(obj).__name__}")
        version = obj.get("version")
        if not isinstance(version, str):
            raise ValueError("version must be a string")
        self.version = version
        self.scheme.load_json_obj(obj.get("scheme"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionType):
            return NotImplemented
        return self.version == other.version and self.scheme == other.scheme

    def __repr__(self) -> str:
        return f"VersionType({self.version!r}, {self.scheme!r})"


class EatCWTClaim(MapStruct):
    """A set of EAT and CWT claims, used as permitted or excluded claims."""

    FIELDS = (
        Field("issuer", 1, "iss", TextCodec()),
        Field("subject", 2, "sub", TextCodec()),
        Field("audience", 3, "aud", AudienceCodec()),
        Field("expiration", 4, "exp", IntCodec()),
        Field("not_before", 5, "nbf", IntCodec()),
        Field("issued_at", 6, "iat", IntCodec()),
        Field("cwt_id", 7, "cti", BytesCodec()),
        Field("nonce", 10, "nonce", NonceCodec()),
        Field("ueid", 11, "ueid", BytesCodec()),
        Field("origination", 12, "origination", TextCodec()),
        Field("oemid", 13, "oemid", BytesCodec()),
        Field("security_level", 14, "security-level", IntCodec()),
        Field("secure_boot", 15, "secure-boot", BoolCodec()),
        Field("debug_disable", 16, "debug-disable", IntCodec()),
        Field("eat_profile", 18, "eat-profile", ObjectCodec(Profile)),
        Field("uptime", 19, "uptime", UintCodec()),
        Field("hw_model", 259, "hwmodel", BytesCodec()),
        Field("hw_version", 260, "hwvers", ObjectCodec(VersionType)),
        Field("sw_name", 998, "swname", TextCodec()),
        Field("sw_version", 999, "swversion", ObjectCodec(VersionType)),
    )

    def valid(self) -> None:
        for nonce in self.nonce or []:
            if not MIN_NONCE_LEN <= len(nonce) <= MAX_NONCE_LEN:
                raise ValueError(
                    f"nonce must be between {MIN_NONCE_LEN} and {MAX_NONCE_LEN} bytes, "
                    f"got {len(nonce)}"
                )
        if self.ueid is not None:
            validate_ueid(self.ueid)
        for attr in ("hw_version", "sw_version"):
            value = getattr(self, attr)
            if value is not None:
                value.valid()


class EatCWTClaims(Collection):
    item_type = EatCWTClaim

    def valid(self) -> None:
        if len(self.items) == 0:
            raise ValueError("empty EatCWTClaims")
        super().valid()


# abbreviated SWID tags


class SwidRole(CodeValue):
    """Role of a CoSWID entity."""

    kind = "swid role"
    display_name = "SwidRole"


SwidRole._add_builtin(1, "tagCreator")
SwidRole._add_builtin(2, "softwareCreator")
SwidRole._add_builtin(3, "aggregator")
SwidRole._add_builtin(4, "distributor")
SwidRole._add_builtin(5, "licensor")
SwidRole._add_builtin(6, "maintainer")


class SwidRoles(CodeList):
    code_type = SwidRole


class SwidRolesCodec(Codec):
    """One role on its own, more than one as an array."""

    def to_cbor(self, value: Any) -> Any:
        obj = value.to_cbor_obj()
        return obj[0] if len(obj) == 1 else obj

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        roles = SwidRoles()
        roles.load_cbor_obj(obj if isinstance(obj, list) else [obj])
        return roles

    def to_json(self, value: Any) -> Any:
        obj = value.to_json_obj()
        return obj[0] if len(obj) == 1 else obj

    def from_json(self, obj: Any, current: Any = None) -> Any:
        roles = SwidRoles()
        roles.load_json_obj(obj if isinstance(obj, list) else [obj])
        return roles


class SwidEntity(MapStruct):
    FIELDS = (
        Field("name", 31, "entity-name", TextCodec(), omit_empty=False),
        Field("reg_id", 32, "reg-id", TextCodec()),
        Field("roles", 33, "role", SwidRolesCodec(), omit_empty=False),
    )

    def __init__(self, name: Optional[str] = None, reg_id: Optional[str] = None, *roles: int):
        super().__init__()
        self.name = name
        self.reg_id = reg_id
        self.roles = SwidRoles().add(*roles)

    def valid(self) -> None:
        if not self.name:
            raise ValueError("empty entity-name")
        self.roles.valid()


class SwidEntities(Collection):
    item_type = SwidEntity


class AbbreviatedSwidTag(MapStruct):
    """A CoSWID with every member but the entities made optional."""

    FIELDS = (
        Field("tag_id", 0, "tag-id", ObjectCodec(TagID)),
        Field("software_name", 1, "software-name", TextCodec()),
        Field("entities", 2, "entity", ObjectCodec(SwidEntities), omit_empty=False),
        Field("corpus", 8, "corpus", FlagCodec()),
        Field("patch", 9, "patch", FlagCodec()),
        Field("media", 10, "media", TextCodec()),
        Field("supplemental", 11, "supplemental", FlagCodec()),
        Field("tag_version", 12, "tag-version", VersionCodec()),
        Field("software_version", 13, "software-version", TextCodec()),
        Field("version_scheme", 14, "version-scheme", ObjectCodec(VersionScheme)),
    )

    def __init__(
        self,
        tag_id: Any = None,
        software_name: Optional[str] = None,
        software_version: Optional[str] = None,
    ):
        super().__init__()
        self.tag_id = None if tag_id is None else TagID(tag_id)
        self.software_name = software_name
        self.software_version = software_version
        self.entities = SwidEntities()

    def add_entity(self, name: str, reg_id: Optional[str] = None, *roles: int) -> "AbbreviatedSwidTag":
        self.entities.add(SwidEntity(name, reg_id, *roles))
        return self

    def valid(self) -> None:
        if self.entities is None or len(self.entities) == 0:
            raise ValueError("no entities present, must have at least 1 entity")
        self.entities.valid()
        if self.tag_id is not None:
            self.tag_id.valid()


# environment groups and keys


class EnvironmentGroup(MapStruct):
    """Scope of a trust anchor store: an environment, a software tag or a named store."""

    FIELDS = (
        Field("environment", 1, "environment", ObjectCodec(Environment)),
        Field("swid_tag", 2, "swidtag", ObjectCodec(AbbreviatedSwidTag)),
        Field("named_ta_store", 3, "namedtastore", TextCodec()),
    )

    def __init__(
        self,
        environment: Optional[Environment] = None,
        swid_tag: Optional[AbbreviatedSwidTag] = None,
        named_ta_store: Optional[str] = None,
    ):
        super().__init__()
        self.environment = environment
        self.swid_tag = swid_tag
        self.named_ta_store = named_ta_store

    def valid(self) -> None:
        if self.environment is None and self.swid_tag is None and self.named_ta_store is None:
            raise ValueError("environment group must not be empty")
        if self.environment is not None:
            self.environment.valid()
        if self.swid_tag is not None:
            try:
                self.swid_tag.valid()
            except ValueError as e:
                raise ValueError(f"invalid swidtag: {e}") from e
        if self.named_ta_store == "":
            raise ValueError("empty namedtastore")


class EnvironmentGroups(Collection):
    item_type = EnvironmentGroup

    def valid(self) -> None:
        if len(self.items) == 0:
            raise ValueError("empty EnvironmentGroups")
        super().valid()


class TrustAnchor(Serializable):
    """A trust anchor: a certificate, a TrustAnchorInfo or a SubjectPublicKeyInfo.

    CBOR carries ``[format, data]``, JSON an object with the same members.
    """

    def __init__(self, fmt: int = TA_FORMAT_CERT, data: bytes = b""):
        self.format = fmt
        self.data = data

    def valid(self) -> None:
        if self.format not in TA_FORMATS:
            raise ValueError(f"unknown trust anchor format {self.format}")
        if not self.data:
            raise ValueError("empty trust anchor data")

    def to_cbor_obj(self) -> list[Any]:
        return [self.format, self.data]

    def load_cbor_obj(self, obj: Any) -> None:
        if (
            not isinstance(obj, list)
            or len(obj) != 2
            or not cbor_utils.is_int(obj[0])
            or not isinstance(obj[1], bytes)
        ):
            raise ValueError(f"expected [format, data], got {cbor_utils.to_hex(obj)}")
        self.format, self.data = obj

    def to_json_obj(self) -> dict[str, Any]:
        return {"format": self.format, "data": b64encode(self.data)}

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, dict):
            raise ValueError(f"expected object for trust anchor, got {type(obj).__name__}")
        fmt = obj.get("format")
        if not cbor_utils.is_int(fmt):
            raise ValueError(f"trust anchor format must be an integer, got {fmt!r}")
        self.format = fmt
        self.data = b64decode(obj.get("data", ""))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TrustAnchor):
            return NotImplemented
        return self.format == other.format and self.data == other.data

    def __repr__(self) -> str:
        return f"TrustAnchor({TA_FORMATS.get(self.format, self.format)}, {len(self.data)} bytes)"


class TrustAnchors(Collection):
    item_type = TrustAnchor


class TasAndCas(MapStruct):
    FIELDS = (
        Field("tas", 0, "tas", ObjectCodec(TrustAnchors), omit_empty=False),
        Field("cas", 1, "cas", BytesListCodec()),
    )

    def __init__(self) -> None:
        super().__init__()
        self.tas = TrustAnchors()
        self.cas: Optional[list[bytes]] = None

    def add_ta(self, fmt: int, data: bytes) -> "TasAndCas":
        self.tas.add(TrustAnchor(fmt, data))
        return self

    def add_ta_cert(self, cert: bytes) -> "TasAndCas":
        return self.add_ta(TA_FORMAT_CERT, cert)

    def add_ca_cert(self, cert: bytes) -> "TasAndCas":
        if self.cas is None:
            self.cas = []
        self.cas.append(cert)
        return self

    def valid(self) -> None:
        if self.tas is None or len(self.tas) == 0:
            raise ValueError("empty TasAndCas")
        self.tas.valid()


# stores


class ConciseTaStore(MapStruct):
    """concise-ta-store-map."""

    FIELDS = (
        Field("language", 0, "language", TextCodec()),
        Field("tag_identity", 1, "tag-identity", ObjectCodec(TagIdentity)),
        Field("environments", 2, "environments", ObjectCodec(EnvironmentGroups), omit_empty=False),
        Field("purposes", 3, "purposes", TextListCodec()),
        Field("perm_claims", 4, "permclaims", ObjectCodec(EatCWTClaims, omit_empty=True)),
        Field("excl_claims", 5, "exclclaims", ObjectCodec(EatCWTClaims, omit_empty=True)),
        Field("keys", 6, "keys", ObjectCodec(TasAndCas), omit_empty=False),
    )

    def set_language(self, language: str) -> "ConciseTaStore":
        if not language:
            raise ValueError("empty language")
        self.language = language
        return self

    def set_tag_identity(self, tag_id: Any, tag_version: int = 0) -> "ConciseTaStore":
        self.tag_identity = TagIdentity(tag_id, tag_version)
        return self

    def add_environment_group(self, group: EnvironmentGroup) -> "ConciseTaStore":
        if self.environments is None:
            self.environments = EnvironmentGroups()
        self.environments.add(group)
        return self

    def add_purpose(self, purpose: str) -> "ConciseTaStore":
        if self.purposes is None:
            self.purposes = []
        self.purposes.append(purpose)
        return self

    def add_perm_claims(self, claims: EatCWTClaim) -> "ConciseTaStore":
        if self.perm_claims is None:
            self.perm_claims = EatCWTClaims()
        self.perm_claims.add(claims)
        return self

    def add_excl_claims(self, claims: EatCWTClaim) -> "ConciseTaStore":
        if self.excl_claims is None:
            self.excl_claims = EatCWTClaims()
        self.excl_claims.add(claims)
        return self

    def set_keys(self, keys: TasAndCas) -> "ConciseTaStore":
        self.keys = keys
        return self

    def valid(self) -> None:
        if self.environments is None:
            raise ValueError("environmentGroups must be present")
        try:
            self.environments.valid()
        except ValueError as e:
            raise ValueError(f"invalid environmentGroups: {e}") from e

        if self.tag_identity is not None:
            try:
                self.tag_identity.valid()
            except ValueError as e:
                raise ValueError(f"invalid TagIdentity: {e}") from e

        if self.keys is None or self.keys.tas is None or len(self.keys.tas) == 0:
            raise ValueError("empty Keys")
        try:
            self.keys.valid()
        except ValueError as e:
            raise ValueError(f"invalid Keys: {e}") from e

        for name, claims in (("permclaims", self.perm_claims), ("exclclaims", self.excl_claims)):
            if claims is None:
                continue
            try:
                claims.valid()
            except ValueError as e:
                raise ValueError(f"invalid {name}: {e}") from e


class ConciseTaStores(Collection, Serializable):
    """concise-ta-stores: the payload of a tag 507.

    A lone concise-ta-store-map is accepted on decode as a one-store array.
    """

    item_type = ConciseTaStore

    def valid(self) -> None:
        if len(self.items) == 0:
            raise ValueError("empty concise-ta-stores")
        for i, store in enumerate(self.items):
            try:
                store.valid()
            except ValueError as e:
                raise ValueError(f"bad ConciseTaStore group at index {i}: {e}") from e

    def load_cbor_obj(self, obj: Any) -> None:
        super().load_cbor_obj([obj] if isinstance(obj, dict) else obj)

    def load_json_obj(self, obj: Any) -> None:
        super().load_json_obj([obj] if isinstance(obj, dict) else obj)

    def to_tagged_cbor(self) -> bytes:
        """Encode with the tag 507 prefix, as embedded in a CoRIM."""
        return cbor_utils.COTS_TAG_PREFIX + self.to_cbor()


def stores_from_cbor(data: Union[bytes, bytearray]) -> ConciseTaStores:
    """Decode CoTS bytes, with or without the tag 507 prefix."""
    tag, inner = cbor_utils.split_tag_prefix(bytes(data))
    if tag is not None and tag != cbor_utils.COTS_TAG:
        raise ValueError(f"expecting CoTS, found tag {tag}")
    return ConciseTaStores.from_cbor(data if tag is None else inner)


cbor_utils.register_tag(cbor_utils.COTS_TAG, ConciseTaStores)
