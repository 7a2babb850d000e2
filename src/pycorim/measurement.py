"""Measurements: a measured element key plus its measured values."""

import uuid
from typing import Any, Optional, Union

from .cryptokey import CryptoKey
from .encoding import (
    BytesCodec,
    Codec,
    Field,
    MapStruct,
    ObjectCodec,
    TextCodec,
)
from .extensions import EXT_FLAGS, EXT_MVAL, Collection, ExtensionMap, unexpected_point
from .flagsmap import FlagsMap
from .hashentry import Digests, HashEntry
from .integrity_registers import IntegrityRegisters
from .mkey import Mkey
from .primitives import (
    AddrCodec,
    IPAddr,
    MACAddr,
    UUIDCodec,
    parse_uuid,
    validate_ueid,
    validate_uuid,
)
from .rawvalue import RawValue
from .svn import SVN

# SWID version-scheme registry
SCHEME_MULTIPARTNUMERIC = 1
SCHEME_MULTIPARTNUMERIC_SUFFIX = 2
SCHEME_ALPHANUMERIC = 3
SCHEME_DECIMAL = 4
SCHEME_SEMVER = 16384

VERSION_SCHEMES = {
    SCHEME_MULTIPARTNUMERIC: "multipartnumeric",
    SCHEME_MULTIPARTNUMERIC_SUFFIX: "multipartnumeric+suffix",
    SCHEME_ALPHANUMERIC: "alphanumeric",
    SCHEME_DECIMAL: "decimal",
    SCHEME_SEMVER: "semver",
}

VERSION_SCHEME_CODES = {name: code for code, name in VERSION_SCHEMES.items()}


class SchemeCodec(Codec):
    """Version scheme: integer in CBOR, registry name (or integer) in JSON."""

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if isinstance(obj, bool) or not isinstance(obj, int):
            raise ValueError(f"expected integer version scheme, got {obj!r}")
        return obj

    def to_json(self, value: Any) -> Any:
        return VERSION_SCHEMES.get(value, value)

    def from_json(self, obj: Any, current: Any = None) -> Any:
        if isinstance(obj, str):
            if obj not in VERSION_SCHEME_CODES:
                raise ValueError(f"unknown version scheme {obj!r}")
            return VERSION_SCHEME_CODES[obj]
        return self.from_cbor(obj)


class Version(MapStruct):
    """A version string and the scheme it follows."""

    FIELDS = (
        Field("value", 0, "value", TextCodec(), omit_empty=False),
        Field("scheme", 1, "scheme", SchemeCodec(), omit_empty=False),
    )

    def __init__(self, value: str = "", scheme: int = 0):
        super().__init__()
        self.value = value
        self.scheme = scheme

    def valid(self) -> None:
        if not self.value:
            raise ValueError("empty version")

    def compare_against_reference(self, reference: "Version") -> bool:
        return self.value == reference.value and self.scheme == reference.scheme


class Mval(MapStruct):
    """Measurement values map. At least one member must be set.

    Members registered by a ``Mval`` extension use keys outside the built-in
    set. A ``flags`` map with nothing set is left out of the encoding, even
    when a ``Flags`` extension was attached to it.
    """

    FIELDS = (
        Field("version", 0, "version", ObjectCodec(Version)),
        Field("svn", 1, "svn", ObjectCodec(SVN)),
        Field("digests", 2, "digests", ObjectCodec(Digests)),
        Field("flags", 3, "flags", ObjectCodec(FlagsMap, omit_empty=True)),
        Field("raw_value", 4, "raw-value", ObjectCodec(RawValue)),
        Field("raw_value_mask", 5, "raw-value-mask", BytesCodec()),
        Field("mac_addr", 6, "mac-addr", AddrCodec(MACAddr)),
        Field("ip_addr", 7, "ip-addr", AddrCodec(IPAddr)),
        Field("serial_number", 8, "serial-number", TextCodec()),
        Field("ueid", 9, "ueid", BytesCodec()),
        Field("uuid", 10, "uuid", UUIDCodec()),
        Field("name", 11, "name", TextCodec()),
        Field("integrity_registers", 14, "integrity-registers", ObjectCodec(IntegrityRegisters)),
    )
    EXTENSION_POINT = EXT_MVAL

    def register_extensions(self, exts: ExtensionMap) -> None:
        for point, value in exts.items():
            if point == EXT_MVAL:
                self.extensions.register(value)
            elif point == EXT_FLAGS:
                if self.flags is None:
                    self.flags = FlagsMap()
                self.flags.register_extensions(ExtensionMap({EXT_FLAGS: value}))
            else:
                raise unexpected_point(point)

    def is_empty(self) -> bool:
        return not self._field_values() and self.extensions.is_empty()

    def valid(self) -> None:
        if self.is_empty():
            raise ValueError("no measurement value set")

        if self.version is not None:
            self.version.valid()
        if self.svn is not None:
            self.svn.valid()
        if self.digests is not None:
            self.digests.valid()
        if self.flags is not None:
            self.flags.valid()
        if self.raw_value is not None:
            self.raw_value.valid()
        if self.mac_addr is not None:
            self.mac_addr.valid()
        if self.ip_addr is not None:
            self.ip_addr.valid()
        if self.ueid is not None:
            validate_ueid(self.ueid)
        if self.uuid is not None:
            validate_uuid(self.uuid)
        if self.integrity_registers is not None:
            self.integrity_registers.valid()

        self.extensions.call("validate_mval", self)


class Measurement(MapStruct):
    """A measured element: optional key, mandatory values, optional signer."""

    FIELDS = (
        Field("key", 0, "key", ObjectCodec(Mkey)),
        Field("val", 1, "value", ObjectCodec(Mval), omit_empty=False),
        Field("authorized_by", 2, "authorized-by", ObjectCodec(CryptoKey)),
    )

    def __init__(self) -> None:
        super().__init__()
        self.val = Mval()

    def register_extensions(self, exts: ExtensionMap) -> None:
        self.val.register_extensions(exts)

    def get_extensions(self) -> Any:
        return self.val.extensions.value

    def valid(self) -> None:
        if self.key is not None and self.key.is_set():
            try:
                self.key.valid()
            except ValueError as e:
                raise ValueError(f"invalid measurement key: {e}") from e
        self.val.valid()

    # key setters

    def set_key(self, value: Any, type_name: str) -> "Measurement":
        self.key = Mkey.new(value, type_name)
        return self

    def set_key_uint(self, value: int) -> "Measurement":
        self.key = Mkey().set_uint(value)
        return self

    def set_key_string(self, value: str) -> "Measurement":
        self.key = Mkey().set_string(value)
        return self

    def set_key_uuid(self, value: Any) -> "Measurement":
        self.key = Mkey().set_uuid(value)
        return self

    def set_key_oid(self, value: Any) -> "Measurement":
        self.key = Mkey().set_oid(value)
        return self

    # value setters

    def set_version(self, value: str, scheme: int) -> "Measurement":
        self.val.version = Version(value, scheme)
        return self

    def set_svn(self, value: int) -> "Measurement":
        self.val.svn = SVN().set_exact(value)
        return self

    def set_min_svn(self, value: int) -> "Measurement":
        self.val.svn = SVN().set_min(value)
        return self

    def add_digest(self, alg_id: int, digest: bytes) -> "Measurement":
        if self.val.digests is None:
            self.val.digests = Digests()
        self.val.digests.add(alg_id, digest)
        return self

    def set_flag_true(self, *flags: int) -> "Measurement":
        self._flags().set_true(*flags)
        return self

    def set_flag_false(self, *flags: int) -> "Measurement":
        self._flags().set_false(*flags)
        return self

    def clear_flag(self, *flags: int) -> "Measurement":
        self._flags().clear(*flags)
        return self

    def _flags(self) -> FlagsMap:
        if self.val.flags is None:
            self.val.flags = FlagsMap()
        return self.val.flags

    def set_raw_value_bytes(self, value: bytes, mask: Optional[bytes] = None) -> "Measurement":
        self.val.raw_value = RawValue().set_bytes(value)
        self.val.raw_value_mask = mask
        return self

    def set_mac_addr(self, value: Union[str, bytes]) -> "Measurement":
        self.val.mac_addr = MACAddr(value)
        return self

    def set_ip_addr(self, value: Union[str, bytes]) -> "Measurement":
        self.val.ip_addr = IPAddr(value)
        return self

    def set_serial_number(self, value: str) -> "Measurement":
        self.val.serial_number = value
        return self

    def set_ueid(self, value: bytes) -> "Measurement":
        self.val.ueid = bytes(value)
        return self

    def set_uuid(self, value: Union[str, bytes, uuid.UUID]) -> "Measurement":
        self.val.uuid = parse_uuid(value)
        return self

    def set_name(self, value: str) -> "Measurement":
        self.val.name = value
        return self

    def add_register_digest(self, index: Union[int, str], digest: HashEntry) -> "Measurement":
        if self.val.integrity_registers is None:
            self.val.integrity_registers = IntegrityRegisters()
        self.val.integrity_registers.add_digest(index, digest)
        return self

    def set_authorized_by(self, key: CryptoKey) -> "Measurement":
        self.authorized_by = key
        return self


class Measurements(Collection):
    item_type = Measurement
