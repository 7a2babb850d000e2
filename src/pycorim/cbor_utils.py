"""CBOR utilities module.

This module provides a unified interface for CBOR operations, isolating the
underlying CBOR library implementation. Every CoMID and CoRIM codec goes
through the same encode/decode configuration defined here:

- definite-length items only (indefinite-length input is rejected on decode)
- time values always carry a tag (tag 1, epoch based)
- a process-wide registry binding CBOR tag numbers to value types

Currently uses cbor2 as the underlying implementation.
"""

import uuid
from datetime import timezone
from typing import Any, Optional, Union

import cbor2

# Type aliases for CBOR special values
CBORTag = cbor2.CBORTag
CBORDecodeError = cbor2.CBORDecodeError
CBOREncodeError = cbor2.CBOREncodeError

# Tag numbers used by the CoMID/CoRIM data model
TAG_EPOCH_TIME = 1
TAG_URI = 32
TAG_UUID = 37
TAG_OID = 111
TAG_UEID = 550
TAG_SVN = 552
TAG_MIN_SVN = 553
TAG_PKIX_BASE64_KEY = 554
TAG_PKIX_BASE64_CERT = 555
TAG_PKIX_BASE64_CERT_PATH = 556
TAG_THUMBPRINT = 557
TAG_COSE_KEY = 558
TAG_CERT_THUMBPRINT = 559
TAG_BYTES = 560
TAG_CERT_PATH_THUMBPRINT = 561
TAG_INT_RANGE = 564
TAG_PSA_IMPL_ID = 600
TAG_PSA_REFVAL_ID = 601
TAG_CCA_PLATFORM_CONFIG_ID = 602
TAG_CCA_REFVAL_ID = 603
TAG_CCA_IMPL_ID = 604

# Tags wrapping documents carried inside a CoRIM
COSE_SIGN1_TAG = 18
UNSIGNED_CORIM_TAG = 501
COSWID_TAG = 505
COMID_TAG = 506
COTS_TAG = 507

# Three-byte prefixes (major type 6, two-byte argument) of the embedded tags
COSWID_TAG_PREFIX = b"\xd9\x01\xf9"
COMID_TAG_PREFIX = b"\xd9\x01\xfa"
COTS_TAG_PREFIX = b"\xd9\x01\xfb"
UNSIGNED_CORIM_TAG_PREFIX = b"\xd9\x01\xf5"

TAG_PREFIXES = {
    COSWID_TAG_PREFIX: COSWID_TAG,
    COMID_TAG_PREFIX: COMID_TAG,
    COTS_TAG_PREFIX: COTS_TAG,
}

_MAJOR_BYTES = 2
_MAJOR_TEXT = 3
_MAJOR_ARRAY = 4
_MAJOR_MAP = 5
_MAJOR_TAG = 6
_INDEFINITE = 31

_tag_registry: dict[int, type] = {}
_registries_frozen = False


class RawCBOR:
    """An already encoded CBOR data item, emitted verbatim by encode()."""

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, RawCBOR) and self.data == other.data

    def __hash__(self) -> int:
        return hash(self.data)

    def __repr__(self) -> str:
        return f"RawCBOR({self.data.hex()!r})"


def _encode_raw(encoder: Any, value: Any) -> None:
    if not isinstance(value, RawCBOR):
        raise CBOREncodeError(f"cannot serialize type {type(value).__name__}")
    encoder.write(value.data)


def encode(obj: Any, canonical: bool = False) -> bytes:
    """Encode an object to CBOR bytes.

    Datetimes are emitted as epoch-based tag 1 values in UTC. ``RawCBOR``
    values are copied to the output unchanged.

    Args:
        obj: The object to encode
        canonical: Whether to use canonical encoding (deterministic)

    Returns:
        CBOR-encoded bytes
    """
    return cbor2.dumps(
        obj,
        canonical=canonical,
        datetime_as_timestamp=True,
        timezone=timezone.utc,
        default=_encode_raw,
    )


def decode(data: bytes) -> Any:
    """Decode CBOR bytes to an object.

    Args:
        data: CBOR-encoded bytes

    Returns:
        The decoded object

    Raises:
        CBORDecodeError: If the data is not valid CBOR or uses
            indefinite-length encoding
    """
    obj = cbor2.loads(data)
    check_definite_length(data)
    return obj


def check_definite_length(data: bytes) -> None:
    """Reject CBOR data containing indefinite-length items.

    The data is expected to be well-formed (i.e. already accepted by the
    decoder); only the first data item is inspected.

    Args:
        data: CBOR-encoded bytes

    Raises:
        CBORDecodeError: If an indefinite-length string, array or map is found
    """
    _skip_item(bytes(data), 0)


def _head(data: bytes, pos: int) -> tuple[int, int, int]:
    """Read an item head; return its major type, argument and the offset after it."""
    if pos >= len(data):
        raise CBORDecodeError("premature end of CBOR data")

    initial = data[pos]
    major = initial >> 5
    info = initial & 0x1F
    pos += 1

    if info == _INDEFINITE:
        if major in (_MAJOR_BYTES, _MAJOR_TEXT, _MAJOR_ARRAY, _MAJOR_MAP):
            raise CBORDecodeError("indefinite-length items are not allowed")
        raise CBORDecodeError(f"unexpected break or reserved value 0x{initial:02x}")

    if info < 24:
        arg = info
    elif info < 28:
        size = 1 << (info - 24)
        arg = int.from_bytes(data[pos:pos + size], byteorder="big")
        pos += size
    else:
        raise CBORDecodeError(f"invalid additional information {info}")

    return major, arg, pos


def _skip_item(data: bytes, pos: int) -> int:
    major, arg, pos = _head(data, pos)
    if major in (_MAJOR_BYTES, _MAJOR_TEXT):
        pos += arg
    elif major == _MAJOR_ARRAY:
        for _ in range(arg):
            pos = _skip_item(data, pos)
    elif major == _MAJOR_MAP:
        for _ in range(arg * 2):
            pos = _skip_item(data, pos)
    elif major == _MAJOR_TAG:
        pos = _skip_item(data, pos)

    return pos


def _skip_tags(data: bytes, pos: int) -> tuple[int, int]:
    major, arg, after = _head(data, pos)
    while major == _MAJOR_TAG:
        pos = after
        major, arg, after = _head(data, pos)
    return major, pos


def raw_array_items(data: bytes) -> list[bytes]:
    """Split an encoded array (possibly tagged) into the encodings of its items.

    The returned slices are the exact input bytes, so items decoded and
    re-encoded by cbor2 can be replaced by what was actually on the wire.

    Raises:
        CBORDecodeError: If the data is not an array
    """
    major, pos = _skip_tags(data, 0)
    if major != _MAJOR_ARRAY:
        raise CBORDecodeError("expecting CBOR array")
    _, count, pos = _head(data, pos)
    items = []
    for _ in range(count):
        end = _skip_item(data, pos)
        items.append(data[pos:end])
        pos = end
    return items


def raw_map_values(data: bytes) -> dict[Any, bytes]:
    """Return the encodings of the values of an encoded map, by integer or text key.

    Raises:
        CBORDecodeError: If the data is not a map
    """
    major, pos = _skip_tags(data, 0)
    if major != _MAJOR_MAP:
        raise CBORDecodeError("expecting CBOR map")
    _, count, pos = _head(data, pos)
    values = {}
    for _ in range(count):
        key_end = _skip_item(data, pos)
        key = cbor2.loads(data[pos:key_end])
        end = _skip_item(data, key_end)
        if isinstance(key, (int, str)):
            values[key] = data[key_end:end]
        pos = end
    return values


def create_tag(tag: int, value: Any) -> CBORTag:
    """Create a CBOR tag.

    Args:
        tag: The tag number
        value: The tagged value

    Returns:
        A CBOR tag object
    """
    return CBORTag(tag, value)


def is_tag(obj: Any, tag_number: Union[int, None] = None) -> bool:
    """Check if an object is a CBOR tag.

    UUIDs already decoded by cbor2 are treated as tag 37.

    Args:
        obj: The object to check
        tag_number: Optional specific tag number to check for

    Returns:
        True if the object is a CBOR tag (and matches tag_number if specified)
    """
    obj = as_tag(obj)
    if not isinstance(obj, CBORTag):
        return False
    if tag_number is not None:
        return obj.tag == tag_number
    return True


def as_tag(obj: Any) -> Any:
    """Undo cbor2's semantic decoding for the tags the data model owns.

    cbor2 turns tag 37 into ``uuid.UUID``; the type-choice decoders expect to
    see the tag itself.

    Args:
        obj: A decoded CBOR object

    Returns:
        The object, with UUIDs turned back into tag 37
    """
    if isinstance(obj, uuid.UUID):
        return CBORTag(TAG_UUID, obj.bytes)
    return obj


def to_hex(obj: Any) -> str:
    """Re-encode a decoded CBOR object and return it as a hex string."""
    try:
        return encode(obj).hex()
    except (CBOREncodeError, TypeError, ValueError):
        return repr(obj)


def is_int(obj: Any) -> bool:
    """Check if a decoded object is a CBOR integer (major type 0 or 1)."""
    return isinstance(obj, int) and not isinstance(obj, bool)


def register_tag(tag: int, value_type: type) -> None:
    """Bind a CBOR tag number to a value type.

    Args:
        tag: The CBOR tag number
        value_type: The Python type encoded under that tag

    Raises:
        ValueError: If the tag is already bound or registration is closed
    """
    ensure_registration_open()
    if tag in _tag_registry:
        raise ValueError(f"tag {tag} is already registered")
    _tag_registry[tag] = value_type


def lookup_tag(tag: int) -> Optional[type]:
    """Return the value type bound to a CBOR tag, if any."""
    return _tag_registry.get(tag)


def registered_tags() -> dict[int, type]:
    """Return a copy of the tag registry."""
    return dict(_tag_registry)


def freeze_registries() -> None:
    """Close the registration phase.

    After this call every attempt to register a tag, a type-choice variant,
    a role, a relation or a profile fails.
    """
    global _registries_frozen
    _registries_frozen = True


def registries_frozen() -> bool:
    """Tell whether the registration phase has been closed."""
    return _registries_frozen


def ensure_registration_open() -> None:
    """Raise if the registration phase has been closed.

    Raises:
        ValueError: If freeze_registries() has been called
    """
    if _registries_frozen:
        raise ValueError("registration is closed: registries are frozen")


def split_tag_prefix(data: bytes) -> tuple[Optional[int], bytes]:
    """Split an embedded CoRIM tag into its tag number and inner CBOR.

    Args:
        data: Bytes starting with a three-byte CBOR tag header

    Returns:
        Tuple of (tag number or None if the prefix is unknown, inner bytes)
    """
    prefix, inner = bytes(data[:3]), bytes(data[3:])
    tag = TAG_PREFIXES.get(prefix)
    if tag is None:
        return None, bytes(data)
    return tag, inner
