"""Primitive typed values shared by CoMID and CoRIM.

UUIDs, OIDs, UEIDs and tagged byte strings double as type-choice variants.
MAC/IP addresses and URIs are plain field values with their own textual JSON
forms.
"""

import ipaddress
import re
import uuid
from typing import Any, Optional, Union
from urllib.parse import urlparse

from . import cbor_utils
from .encoding import Codec, b64decode, b64encode
from .typechoice import TypeChoiceValue

MIN_OID_ARCS = 3
MAX_OID_LEN = 255


def parse_uuid(value: Any) -> uuid.UUID:
    """Convert a convenience input into a ``uuid.UUID``.

    Args:
        value: ``uuid.UUID``, canonical string, or 16 raw bytes

    Returns:
        The parsed UUID

    Raises:
        ValueError: If the input cannot be interpreted as a UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, TaggedUUID):
        return value.uuid
    if isinstance(value, str):
        try:
            return uuid.UUID(value)
        except ValueError as e:
            raise ValueError(f"invalid UUID {value!r}: {e}") from e
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 16:
            raise ValueError(f"invalid UUID: expecting 16 bytes, got {len(value)}")
        return uuid.UUID(bytes=bytes(value))
    raise ValueError(f"unexpected type for UUID: {type(value).__name__}")


def validate_uuid(value: uuid.UUID) -> None:
    if value.variant != uuid.RFC_4122:
        raise ValueError(f"expecting RFC4122 UUID, got {value.variant} instead")


class TaggedUUID(TypeChoiceValue):
    """UUID carried under CBOR tag 37."""

    type_name = "uuid"
    cbor_tag = cbor_utils.TAG_UUID

    def __init__(self, value: Any = None):
        self.uuid = uuid.UUID(int=0) if value is None else parse_uuid(value)

    def valid(self) -> None:
        validate_uuid(self.uuid)

    def to_cbor_value(self) -> bytes:
        return self.uuid.bytes

    @classmethod
    def from_cbor_value(cls, value: Any) -> "TaggedUUID":
        if not isinstance(value, bytes):
            raise ValueError(f"expecting UUID bytes, got {type(value).__name__}")
        return cls(value)

    def to_json_value(self) -> str:
        return str(self.uuid)

    @classmethod
    def from_json_value(cls, value: Any) -> "TaggedUUID":
        if not isinstance(value, str):
            raise ValueError(f"expecting UUID string, got {type(value).__name__}")
        return cls(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TaggedUUID) and self.uuid == other.uuid

    def __hash__(self) -> int:
        return hash(self.uuid)

    def __str__(self) -> str:
        return str(self.uuid)

    def __repr__(self) -> str:
        return f"TaggedUUID({str(self.uuid)!r})"


class UUIDCodec(Codec):
    """Untagged UUID field: 16 raw bytes in CBOR, canonical string in JSON."""

    def to_cbor(self, value: Any) -> bytes:
        return value.bytes

    def from_cbor(self, obj: Any, current: Any = None) -> uuid.UUID:
        if isinstance(obj, uuid.UUID):
            return obj
        if not isinstance(obj, bytes):
            raise ValueError(f"expecting UUID bytes, got {type(obj).__name__}")
        return parse_uuid(obj)

    def to_json(self, value: Any) -> str:
        return str(value)

    def from_json(self, obj: Any, current: Any = None) -> uuid.UUID:
        if not isinstance(obj, str):
            raise ValueError(f"expecting UUID string, got {type(obj).__name__}")
        return parse_uuid(obj)


def oid_from_string(text: str) -> tuple[int, ...]:
    """Parse an absolute OID in dotted-decimal form.

    Raises:
        ValueError: If the OID is empty, relative, has a negative or
            non-numeric arc, or has fewer than three arcs
    """
    if text == "":
        raise ValueError("empty OID")
    if text.startswith("."):
        raise ValueError("OID must be absolute")

    arcs = []
    for part in text.split("."):
        try:
            arc = int(part)
        except ValueError as e:
            raise ValueError(f"invalid OID: {e}") from e
        if arc < 0:
            raise ValueError(f"invalid OID: negative arc {arc} not allowed")
        arcs.append(arc)

    check_oid_arcs(arcs)
    return tuple(arcs)


def check_oid_arcs(arcs: Union[list[int], tuple[int, ...]]) -> None:
    if len(arcs) < MIN_OID_ARCS:
        raise ValueError(
            f"invalid OID: got {len(arcs)} arcs, expecting at least {MIN_OID_ARCS}"
        )
    if arcs[0] > 2:
        raise ValueError(f"invalid OID: first arc must be 0, 1 or 2, got {arcs[0]}")
    if arcs[0] < 2 and arcs[1] > 39:
        raise ValueError(
            f"invalid OID: second arc must be at most 39 when the first is {arcs[0]}"
        )


def _vlq(value: int) -> bytes:
    out = [value & 0x7F]
    value >>= 7
    while value:
        out.append(0x80 | (value & 0x7F))
        value >>= 7
    return bytes(reversed(out))


def oid_to_ber(arcs: Union[list[int], tuple[int, ...]]) -> bytes:
    """Encode OID arcs as BER value octets (no tag, no length)."""
    check_oid_arcs(arcs)
    data = _vlq(arcs[0] * 40 + arcs[1])
    for arc in arcs[2:]:
        data += _vlq(arc)
    if len(data) > MAX_OID_LEN:
        raise ValueError(f"OIDs greater than {MAX_OID_LEN} bytes are not accepted")
    return data


def oid_from_ber(data: bytes) -> tuple[int, ...]:
    """Decode BER value octets into OID arcs.

    Raises:
        ValueError: If the encoding is truncated or has too few arcs
    """
    if not data:
        raise ValueError("empty OID")
    if len(data) > MAX_OID_LEN:
        raise ValueError(f"OIDs greater than {MAX_OID_LEN} bytes are not accepted")

    subids = []
    value = 0
    pending = False
    for byte in data:
        if not pending and byte == 0x80:
            raise ValueError("invalid OID: non-minimal subidentifier encoding")
        value = (value << 7) | (byte & 0x7F)
        pending = bool(byte & 0x80)
        if not pending:
            subids.append(value)
            value = 0
    if pending:
        raise ValueError("invalid OID: truncated subidentifier")

    first = subids[0]
    if first < 40:
        arcs = [0, first]
    elif first < 80:
        arcs = [1, first - 40]
    else:
        arcs = [2, first - 80]
    arcs.extend(subids[1:])

    check_oid_arcs(arcs)
    return tuple(arcs)


class TaggedOID(TypeChoiceValue):
    """Absolute OID carried under CBOR tag 111 as BER value octets."""

    type_name = "oid"
    cbor_tag = cbor_utils.TAG_OID

    def __init__(self, value: Any = None):
        if value is None:
            self.arcs: tuple[int, ...] = ()
        elif isinstance(value, TaggedOID):
            self.arcs = value.arcs
        elif isinstance(value, str):
            self.arcs = oid_from_string(value)
        elif isinstance(value, (bytes, bytearray)):
            self.arcs = oid_from_ber(bytes(value))
        elif isinstance(value, (list, tuple)):
            check_oid_arcs(value)
            self.arcs = tuple(value)
        else:
            raise ValueError(f"unexpected type for OID: {type(value).__name__}")

    def valid(self) -> None:
        check_oid_arcs(self.arcs)

    def to_cbor_value(self) -> bytes:
        return oid_to_ber(self.arcs)

    @classmethod
    def from_cbor_value(cls, value: Any) -> "TaggedOID":
        if not isinstance(value, bytes):
            raise ValueError(f"expecting OID bytes, got {type(value).__name__}")
        return cls(value)

    def to_json_value(self) -> str:
        return str(self)

    @classmethod
    def from_json_value(cls, value: Any) -> "TaggedOID":
        if not isinstance(value, str):
            raise ValueError(f"expecting OID string, got {type(value).__name__}")
        return cls(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TaggedOID) and self.arcs == other.arcs

    def __hash__(self) -> int:
        return hash(self.arcs)

    def __str__(self) -> str:
        return ".".join(str(arc) for arc in self.arcs)

    def __repr__(self) -> str:
        return f"TaggedOID({str(self)!r})"


# UEID type byte (first byte of the identifier)
UEID_TYPE_RAND = 0x01
UEID_TYPE_EUI = 0x02
UEID_TYPE_IMEI = 0x03


def validate_ueid(data: bytes) -> None:
    """Check a UEID against the EAT format rules.

    Raises:
        ValueError: If the UEID type byte is unknown or the length is wrong
    """
    if len(data) == 0:
        raise ValueError("empty UEID")

    kind = data[0]
    if kind == UEID_TYPE_RAND:
        if len(data) not in (17, 25, 33):
            raise ValueError(
                f"length must be 17, 25, or 33 bytes, instead found: {len(data)}"
            )
    elif kind == UEID_TYPE_EUI:
        if len(data) != 7:
            raise ValueError(f"length must be 7 bytes, instead found: {len(data)}")
    elif kind == UEID_TYPE_IMEI:
        if len(data) != 15:
            raise ValueError(f"length must be 15 bytes, instead found: {len(data)}")
    else:
        raise ValueError(f"invalid UEID type {kind}")


class _BytesValue(TypeChoiceValue):
    """Variant whose payload is a byte string (base64 in JSON)."""

    def __init__(self, value: Any = None):
        if value is None:
            self.data = b""
        elif isinstance(value, _BytesValue):
            self.data = value.data
        elif isinstance(value, (bytes, bytearray)):
            self.data = bytes(value)
        elif isinstance(value, str):
            self.data = b64decode(value)
        else:
            raise ValueError(
                f"unexpected type for {self.type_name}: {type(value).__name__}"
            )

    def to_cbor_value(self) -> bytes:
        return self.data

    @classmethod
    def from_cbor_value(cls, value: Any) -> "_BytesValue":
        if not isinstance(value, bytes):
            raise ValueError(f"expecting byte string, got {type(value).__name__}")
        return cls(value)

    def to_json_value(self) -> str:
        return b64encode(self.data)

    @classmethod
    def from_json_value(cls, value: Any) -> "_BytesValue":
        return cls(b64decode(value))

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.data == other.data  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.data))

    def __str__(self) -> str:
        return b64encode(self.data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.data.hex()!r})"


class TaggedUEID(_BytesValue):
    """UEID carried under CBOR tag 550."""

    type_name = "ueid"
    cbor_tag = cbor_utils.TAG_UEID

    def valid(self) -> None:
        validate_ueid(self.data)


class TaggedBytes(_BytesValue):
    """Opaque byte string carried under CBOR tag 560."""

    type_name = "bytes"
    cbor_tag = cbor_utils.TAG_BYTES


class IntValue(TypeChoiceValue):
    """Signed integer encoded as a bare CBOR integer."""

    type_name = "int"

    def __init__(self, value: Any = None):
        if value is None:
            self.value = 0
        elif isinstance(value, IntValue):
            self.value = value.value
        elif isinstance(value, str):
            try:
                self.value = int(value, 10)
            except ValueError as e:
                raise ValueError(f"invalid {self.type_name}: {e}") from e
        elif cbor_utils.is_int(value):
            self.value = value
        else:
            raise ValueError(
                f"unexpected type for {self.type_name}: {type(value).__name__}"
            )

    def to_cbor_value(self) -> int:
        return self.value

    @classmethod
    def from_cbor_value(cls, value: Any) -> "IntValue":
        if not cbor_utils.is_int(value):
            raise ValueError(f"expecting integer, got {type(value).__name__}")
        return cls(value)

    def to_json_value(self) -> int:
        return self.value

    @classmethod
    def from_json_value(cls, value: Any) -> "IntValue":
        if not cbor_utils.is_int(value):
            raise ValueError(f"expecting integer, got {type(value).__name__}")
        return cls(value)

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.value == other.value  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.value))

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value})"


class UintValue(IntValue):
    """Unsigned integer encoded as a bare CBOR integer."""

    type_name = "uint"

    def valid(self) -> None:
        if self.value < 0:
            raise ValueError(f"negative value {self.value}")


class StringValue(TypeChoiceValue):
    """Text string encoded as a bare CBOR text string."""

    type_name = "string"

    def __init__(self, value: Any = None):
        if value is None:
            self.value = ""
        elif isinstance(value, StringValue):
            self.value = value.value
        elif isinstance(value, str):
            self.value = value
        else:
            raise ValueError(
                f"unexpected type for {self.type_name}: {type(value).__name__}"
            )

    def valid(self) -> None:
        if self.value == "":
            raise ValueError("empty string")

    def to_cbor_value(self) -> str:
        return self.value

    @classmethod
    def from_cbor_value(cls, value: Any) -> "StringValue":
        if not isinstance(value, str):
            raise ValueError(f"expecting text string, got {type(value).__name__}")
        return cls(value)

    to_json_value = to_cbor_value
    from_json_value = from_cbor_value

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.value == other.value  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.value))

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


_MAC_RE = re.compile(r"^[0-9A-Fa-f]{2}([:-][0-9A-Fa-f]{2})*$")


class MACAddr:
    """EUI-48 or EUI-64 address."""

    def __init__(self, value: Any = b""):
        if isinstance(value, MACAddr):
            self.data = value.data
        elif isinstance(value, (bytes, bytearray)):
            self.data = bytes(value)
        elif isinstance(value, str):
            self.data = self.parse(value)
        else:
            raise ValueError(f"unexpected type for MAC address: {type(value).__name__}")

    @staticmethod
    def parse(text: str) -> bytes:
        """Parse colon- or dash-separated hex into bytes."""
        if not _MAC_RE.match(text):
            raise ValueError(f"invalid MAC address {text!r}")
        return bytes(int(part, 16) for part in re.split("[:-]", text))

    def valid(self) -> None:
        if len(self.data) not in (6, 8):
            raise ValueError(
                f"invalid MAC address length: expected 6 or 8 bytes, got {len(self.data)}"
            )

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MACAddr) and self.data == other.data

    def __hash__(self) -> int:
        return hash(self.data)

    def __str__(self) -> str:
        return ":".join(f"{b:02x}" for b in self.data)

    def __repr__(self) -> str:
        return f"MACAddr({str(self)!r})"


class IPAddr:
    """IPv4 or IPv6 address held as 4 or 16 raw bytes."""

    def __init__(self, value: Any = b""):
        if isinstance(value, IPAddr):
            self.data = value.data
        elif isinstance(value, (bytes, bytearray)):
            self.data = bytes(value)
        elif isinstance(value, str):
            try:
                self.data = ipaddress.ip_address(value).packed
            except ValueError as e:
                raise ValueError(f"invalid IP address {value!r}") from e
        elif isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            self.data = value.packed
        else:
            raise ValueError(f"unexpected type for IP address: {type(value).__name__}")

    def valid(self) -> None:
        if len(self.data) not in (4, 16):
            raise ValueError(
                f"invalid IP address length: expected 4 or 16 bytes, got {len(self.data)}"
            )

    def __eq__(self, other: object) -> bool:
        return isinstance(other, IPAddr) and self.data == other.data

    def __hash__(self) -> int:
        return hash(self.data)

    def __str__(self) -> str:
        if len(self.data) in (4, 16):
            return str(ipaddress.ip_address(self.data))
        return self.data.hex()

    def __repr__(self) -> str:
        return f"IPAddr({str(self)!r})"


class AddrCodec(Codec):
    """Raw bytes in CBOR, textual form in JSON for MACAddr and IPAddr."""

    def __init__(self, cls: type):
        self.cls = cls

    def to_cbor(self, value: Any) -> bytes:
        return value.data

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if not isinstance(obj, bytes):
            raise ValueError(f"expecting byte string, got {type(obj).__name__}")
        return self.cls(obj)

    def to_json(self, value: Any) -> str:
        return str(value)

    def from_json(self, obj: Any, current: Any = None) -> Any:
        if not isinstance(obj, str):
            raise ValueError(f"expecting string, got {type(obj).__name__}")
        return self.cls(obj)


def check_absolute_uri(text: str) -> None:
    """Raise ValueError unless text is an absolute URI (has a scheme)."""
    try:
        parsed = urlparse(text)
    except ValueError as e:
        raise ValueError(f"{text!r} failed to parse as URI: {e}") from e
    if not parsed.scheme:
        raise ValueError(f"{text!r} is not an absolute URI")


class URICodec(Codec):
    """URI carried under CBOR tag 32; plain string in JSON."""

    def to_cbor(self, value: Any) -> Any:
        return cbor_utils.create_tag(cbor_utils.TAG_URI, value)

    def from_cbor(self, obj: Any, current: Any = None) -> str:
        if not cbor_utils.is_tag(obj, cbor_utils.TAG_URI):
            raise ValueError(f"expecting tagged URI, got {cbor_utils.to_hex(obj)}")
        if not isinstance(obj.value, str):
            raise ValueError("expecting URI text string")
        return obj.value

    def from_json(self, obj: Any, current: Any = None) -> str:
        if not isinstance(obj, str):
            raise ValueError(f"expecting URI string, got {type(obj).__name__}")
        return obj


def new_uri(text: Optional[str]) -> Optional[str]:
    """Validate an optional absolute URI, passing None through."""
    if text is None:
        return None
    try:
        check_absolute_uri(text)
    except ValueError as e:
        raise ValueError(f"expecting an absolute URI: {e}") from e
    return text


class URI(str):
    """Marker type bound to CBOR tag 32 in the tag registry."""


cbor_utils.register_tag(cbor_utils.TAG_URI, URI)
cbor_utils.register_tag(cbor_utils.TAG_UUID, TaggedUUID)
cbor_utils.register_tag(cbor_utils.TAG_OID, TaggedOID)
cbor_utils.register_tag(cbor_utils.TAG_UEID, TaggedUEID)
cbor_utils.register_tag(cbor_utils.TAG_BYTES, TaggedBytes)
