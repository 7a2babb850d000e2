"""Shared serialization helpers for map-shaped CoMID/CoRIM structures.

Most entities in the data model encode as a CBOR map keyed by small integers
and as a JSON object keyed by kebab-case names. ``MapStruct`` drives both
encodings from a table of ``Field`` descriptors, merges registered extension
fields into the output and hands unknown keys back to the extension on
decode.
"""

import base64
import binascii
import json
from typing import Any, Optional

from . import cbor_utils
from .extensions import ExtensionMap, Extensions


def b64encode(data: bytes) -> str:
    """Encode bytes as standard padded base64 text."""
    return base64.b64encode(data).decode("ascii")


def b64decode(text: Any) -> bytes:
    """Decode standard base64 text (padding optional).

    Raises:
        ValueError: If the input is not a string or not valid base64
    """
    if not isinstance(text, str):
        raise ValueError(f"expected base64 string, got {type(text).__name__}")
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64: {e}") from e


class Serializable:
    """Mixin giving top-level CBOR/JSON entry points to data model classes.

    Subclasses implement ``to_cbor_obj``/``load_cbor_obj`` and
    ``to_json_obj``/``load_json_obj`` which work on decoded Python objects.
    The byte/text level methods validate before encoding.
    """

    def valid(self) -> None:
        """Raise ValueError if the object is not valid."""

    def to_cbor_obj(self) -> Any:
        raise NotImplementedError

    def load_cbor_obj(self, obj: Any) -> None:
        raise NotImplementedError

    def to_json_obj(self) -> Any:
        raise NotImplementedError

    def load_json_obj(self, obj: Any) -> None:
        raise NotImplementedError

    def to_cbor(self) -> bytes:
        """Validate and encode to CBOR bytes."""
        self.valid()
        return cbor_utils.encode(self.to_cbor_obj())

    def to_json(self, indent: Optional[int] = None) -> str:
        """Validate and encode to JSON text."""
        self.valid()
        return json.dumps(self.to_json_obj(), indent=indent)

    @classmethod
    def from_cbor_obj(cls, obj: Any, extensions: Optional[ExtensionMap] = None) -> Any:
        ret = cls()
        if extensions:
            ret.register_extensions(extensions)
        ret.load_cbor_obj(obj)
        return ret

    @classmethod
    def from_json_obj(cls, obj: Any, extensions: Optional[ExtensionMap] = None) -> Any:
        ret = cls()
        if extensions:
            ret.register_extensions(extensions)
        ret.load_json_obj(obj)
        return ret

    @classmethod
    def from_cbor(cls, data: bytes, extensions: Optional[ExtensionMap] = None) -> Any:
        """Decode an instance from CBOR bytes.

        Args:
            data: CBOR-encoded bytes
            extensions: Optional extensions to register before decoding

        Returns:
            The decoded instance (not validated)
        """
        return cls.from_cbor_obj(cbor_utils.decode(data), extensions)

    @classmethod
    def from_json(cls, data: Any, extensions: Optional[ExtensionMap] = None) -> Any:
        """Decode an instance from JSON text or bytes.

        Args:
            data: JSON document
            extensions: Optional extensions to register before decoding

        Returns:
            The decoded instance (not validated)
        """
        try:
            obj = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid JSON: {e}") from e
        return cls.from_json_obj(obj, extensions)

    def register_extensions(self, exts: ExtensionMap) -> None:
        if exts:
            raise ValueError(f"unexpected extension point: {next(iter(exts))}")


class Codec:
    """Converts a field value to and from its CBOR and JSON forms.

    The base codec passes values through unchanged.
    """

    def to_cbor(self, value: Any) -> Any:
        return value

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        return obj

    def to_json(self, value: Any) -> Any:
        return value

    def from_json(self, obj: Any, current: Any = None) -> Any:
        return obj

    def is_empty(self, value: Any) -> bool:
        return value is None


class UintCodec(Codec):
    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if not cbor_utils.is_int(obj) or obj < 0:
            raise ValueError(f"expected unsigned integer, got {obj!r}")
        return obj

    from_json = from_cbor


class IntCodec(Codec):
    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if not cbor_utils.is_int(obj):
            raise ValueError(f"expected integer, got {obj!r}")
        return obj

    from_json = from_cbor


class TextCodec(Codec):
    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if not isinstance(obj, str):
            raise ValueError(f"expected text string, got {type(obj).__name__}")
        return obj

    from_json = from_cbor


class BoolCodec(Codec):
    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if not isinstance(obj, bool):
            raise ValueError(f"expected boolean, got {obj!r}")
        return obj

    from_json = from_cbor


class BytesCodec(Codec):
    """Byte strings: raw in CBOR, base64 in JSON."""

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        if not isinstance(obj, bytes):
            raise ValueError(f"expected byte string, got {type(obj).__name__}")
        return obj

    def to_json(self, value: Any) -> Any:
        return b64encode(value)

    def from_json(self, obj: Any, current: Any = None) -> Any:
        return b64decode(obj)


class ObjectCodec(Codec):
    """Delegates to a data model class implementing the Serializable protocol.

    On decode, an existing value in the slot (e.g. created when extensions
    were registered) is populated in place so that its extensions apply.
    """

    def __init__(self, cls: type, omit_empty: bool = False):
        self.cls = cls
        self.omit_empty = omit_empty

    def to_cbor(self, value: Any) -> Any:
        return value.to_cbor_obj()

    def from_cbor(self, obj: Any, current: Any = None) -> Any:
        target = current if current is not None else self.cls()
        target.load_cbor_obj(obj)
        return target

    def to_json(self, value: Any) -> Any:
        return value.to_json_obj()

    def from_json(self, obj: Any, current: Any = None) -> Any:
        target = current if current is not None else self.cls()
        target.load_json_obj(obj)
        return target

    def is_empty(self, value: Any) -> bool:
        if value is None:
            return True
        if not self.omit_empty:
            return False
        if hasattr(value, "is_empty"):
            return value.is_empty()
        return len(value) == 0


class Field:
    """Describes one member of a map-shaped structure."""

    def __init__(
        self,
        attr: str,
        key: int,
        json_name: str,
        codec: Optional[Codec] = None,
        omit_empty: bool = True,
    ):
        self.attr = attr
        self.key = key
        self.json_name = json_name
        self.codec = codec if codec is not None else Codec()
        self.omit_empty = omit_empty


class MapStruct(Serializable):
    """Base class for structures encoded as integer-keyed maps.

    Subclasses list their members in ``FIELDS`` and may accept a single
    extension via ``EXTENSION_POINT``.
    """

    FIELDS: tuple[Field, ...] = ()
    EXTENSION_POINT: Optional[str] = None

    def __init__(self) -> None:
        for field in self.FIELDS:
            setattr(self, field.attr, None)
        self.extensions = Extensions()

    def register_extensions(self, exts: ExtensionMap) -> None:
        for point, value in exts.items():
            if point == self.EXTENSION_POINT:
                self.extensions.register(value)
            else:
                raise ValueError(f"unexpected extension point: {point}")

    def _field_values(self) -> list[tuple[Field, Any]]:
        ret = []
        for field in self.FIELDS:
            value = getattr(self, field.attr)
            if field.omit_empty and field.codec.is_empty(value):
                continue
            ret.append((field, value))
        return ret

    def to_cbor_obj(self) -> dict[Any, Any]:
        ret: dict[Any, Any] = {}
        for field, value in self._field_values():
            ret[field.key] = None if value is None else field.codec.to_cbor(value)
        for key, value in self.extensions.to_cbor_fields().items():
            if key in ret:
                raise ValueError(f"extension field {key} collides with a core field")
            ret[key] = value
        return ret

    def to_json_obj(self) -> dict[str, Any]:
        ret: dict[str, Any] = {}
        for field, value in self._field_values():
            ret[field.json_name] = None if value is None else field.codec.to_json(value)
        for name, value in self.extensions.to_json_fields().items():
            if name in ret:
                raise ValueError(f"extension field {name!r} collides with a core field")
            ret[name] = value
        return ret

    def load_cbor_obj(self, obj: Any) -> None:
        if not isinstance(obj, dict):
            raise ValueError(
                f"expected map for {type(self).__name__}, got {type(obj).__name__}"
            )
        known = set()
        for field in self.FIELDS:
            known.add(field.key)
            if field.key in obj:
                current = getattr(self, field.attr)
                setattr(self, field.attr, field.codec.from_cbor(obj[field.key], current))
        self.extensions.load_cbor_fields(
            {k: v for k, v in obj.items() if k not in known}
        )

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, dict):
            raise ValueError(
                f"expected object for {type(self).__name__}, got {type(obj).__name__}"
            )
        known = set()
        for field in self.FIELDS:
            known.add(field.json_name)
            if field.json_name in obj:
                current = getattr(self, field.attr)
                setattr(self, field.attr, field.codec.from_json(obj[field.json_name], current))
        self.extensions.load_json_fields(
            {k: v for k, v in obj.items() if k not in known}
        )

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        for field in self.FIELDS:
            mine, theirs = getattr(self, field.attr), getattr(other, field.attr)
            if field.codec.is_empty(mine) and field.codec.is_empty(theirs):
                continue
            if mine != theirs:
                return False
        return self.extensions == other.extensions  # type: ignore[attr-defined]

    def __repr__(self) -> str:
        members = ", ".join(
            f"{field.attr}={value!r}" for field, value in self._field_values()
        )
        return f"{type(self).__name__}({members})"
