"""Extension engine.

Profiles add fields and behaviour to the data model by attaching an
extension object at a named extension point. An extension object is a
dataclass whose fields carry ``cbor`` (integer map key) and ``json`` (member
name) metadata, e.g.::

    @dataclass
    class EntityExtensions:
        address: Optional[str] = field(
            default=None, metadata={"cbor": -1, "json": "address"}
        )

        def validate_entity(self, entity) -> None:
            ...

The host structure merges those fields into its own map on encode, hands
unknown map keys to the extension on decode and calls the extension's hook
methods (``validate_comid``, ``validate_entity``, ``validate_triples``,
``validate_mval``, ``validate_flags``, ...) from its own ``valid()``.
"""

import copy
import dataclasses
from typing import Any, Optional, Union

# CoMID extension points
EXT_COMID = "Comid"
EXT_ENTITY = "ComidEntity"
EXT_TRIPLES = "Triples"
EXT_REFERENCE_VALUE = "ReferenceValue"
EXT_REFERENCE_VALUE_FLAGS = "ReferenceValueFlags"
EXT_ENDORSED_VALUE = "EndorsedValue"
EXT_ENDORSED_VALUE_FLAGS = "EndorsedValueFlags"
EXT_COND_ENDORSE_SERIES_VALUE = "CondEndorseSeriesValue"
EXT_COND_ENDORSE_SERIES_VALUE_FLAGS = "CondEndorseSeriesValueFlags"
EXT_MVAL = "Mval"
EXT_FLAGS = "Flags"

# CoRIM extension points
EXT_UNSIGNED_CORIM = "UnsignedCorim"
EXT_CORIM_ENTITY = "CorimEntity"
EXT_SIGNER = "Signer"

COMID_EXTENSION_POINTS = (
    EXT_COMID,
    EXT_ENTITY,
    EXT_TRIPLES,
    EXT_REFERENCE_VALUE,
    EXT_REFERENCE_VALUE_FLAGS,
    EXT_ENDORSED_VALUE,
    EXT_ENDORSED_VALUE_FLAGS,
    EXT_COND_ENDORSE_SERIES_VALUE,
    EXT_COND_ENDORSE_SERIES_VALUE_FLAGS,
)

CORIM_EXTENSION_POINTS = (EXT_UNSIGNED_CORIM, EXT_CORIM_ENTITY, EXT_SIGNER)

ALL_EXTENSION_POINTS = frozenset(
    COMID_EXTENSION_POINTS + CORIM_EXTENSION_POINTS + (EXT_MVAL, EXT_FLAGS)
)


class ExtensionMap(dict):
    """Mapping of extension point names to extension objects (or classes)."""

    def add(self, point: str, value: Any) -> "ExtensionMap":
        """Attach an extension to a point, replacing any previous one.

        Returns:
            The map itself, to allow chaining
        """
        self[point] = value
        return self

    def subset(self, points: tuple[str, ...]) -> "ExtensionMap":
        """Return a new map restricted to the given points."""
        return ExtensionMap({p: v for p, v in self.items() if p in points})


def unexpected_point(point: str) -> ValueError:
    return ValueError(f"unexpected extension point: {point}")


def _field_spec(field: dataclasses.Field) -> tuple[Optional[int], str]:
    return field.metadata.get("cbor"), field.metadata.get("json", field.name)


class Extensions:
    """Holds the extension object registered with a host structure."""

    def __init__(self, value: Any = None):
        self.value = None
        if value is not None:
            self.register(value)

    def register(self, value: Any) -> None:
        """Register an extension object.

        Args:
            value: A dataclass instance or a dataclass type. Instances are
                copied so that each host owns its own extension state.

        Raises:
            TypeError: If value is not a dataclass
        """
        if isinstance(value, type):
            if not dataclasses.is_dataclass(value):
                raise TypeError(f"extension must be a dataclass, got {value.__name__}")
            self.value = value()
            return
        if not dataclasses.is_dataclass(value):
            raise TypeError(f"extension must be a dataclass, got {type(value).__name__}")
        self.value = copy.deepcopy(value)

    def have_extensions(self) -> bool:
        return self.value is not None

    def new(self) -> Any:
        """Return a fresh, empty instance of the registered extension type."""
        if self.value is None:
            return None
        return type(self.value)()

    def is_empty(self) -> bool:
        """True if no extension is registered or none of its fields is set."""
        if self.value is None:
            return True
        return all(
            getattr(self.value, f.name) is None for f in dataclasses.fields(self.value)
        )

    def _find(self, name: Union[str, int]) -> dataclasses.Field:
        if self.value is not None:
            for field in dataclasses.fields(self.value):
                cbor_key, json_name = _field_spec(field)
                if name in (field.name, json_name, cbor_key) or name == str(cbor_key):
                    return field
        raise KeyError(f"extension not found: {name}")

    def get(self, name: Union[str, int]) -> Any:
        """Look up an extension field by attribute name, JSON name or CBOR key.

        Raises:
            KeyError: If no such field exists
        """
        return getattr(self.value, self._find(name).name)

    def get_string(self, name: Union[str, int]) -> str:
        value = self.get(name)
        if value is None:
            return ""
        return str(value)

    def get_int(self, name: Union[str, int]) -> int:
        value = self.get(name)
        if value is None:
            return 0
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"cannot convert extension {name} to int: {e}") from e

    def get_bool(self, name: Union[str, int]) -> bool:
        value = self.get(name)
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes")
        return bool(value)

    def set(self, name: Union[str, int], value: Any) -> None:
        """Set an extension field by attribute name, JSON name or CBOR key.

        Raises:
            KeyError: If no such field exists
        """
        setattr(self.value, self._find(name).name, value)

    def call(self, hook: str, *args: Any) -> Any:
        """Invoke a hook method on the extension if it defines one."""
        if self.value is None:
            return None
        method = getattr(self.value, hook, None)
        if method is None:
            return None
        return method(*args)

    def has_hook(self, hook: str) -> bool:
        return self.value is not None and callable(getattr(self.value, hook, None))

    def to_cbor_fields(self) -> dict[int, Any]:
        ret: dict[int, Any] = {}
        if self.value is None:
            return ret
        for field in dataclasses.fields(self.value):
            cbor_key, _ = _field_spec(field)
            value = getattr(self.value, field.name)
            if cbor_key is None or value is None:
                continue
            codec = field.metadata.get("codec")
            ret[cbor_key] = codec.to_cbor(value) if codec is not None else value
        return ret

    def to_json_fields(self) -> dict[str, Any]:
        ret: dict[str, Any] = {}
        if self.value is None:
            return ret
        for field in dataclasses.fields(self.value):
            _, json_name = _field_spec(field)
            value = getattr(self.value, field.name)
            if value is None:
                continue
            codec = field.metadata.get("codec")
            ret[json_name] = codec.to_json(value) if codec is not None else value
        return ret

    def load_cbor_fields(self, extra: dict[Any, Any]) -> None:
        """Populate extension fields from map entries unknown to the host.

        Entries with no matching extension field are ignored.
        """
        if self.value is None:
            return
        for field in dataclasses.fields(self.value):
            cbor_key, _ = _field_spec(field)
            if cbor_key is None or cbor_key not in extra:
                continue
            codec = field.metadata.get("codec")
            raw = extra[cbor_key]
            setattr(self.value, field.name, codec.from_cbor(raw) if codec is not None else raw)

    def load_json_fields(self, extra: dict[str, Any]) -> None:
        if self.value is None:
            return
        for field in dataclasses.fields(self.value):
            _, json_name = _field_spec(field)
            if json_name not in extra:
                continue
            codec = field.metadata.get("codec")
            raw = extra[json_name]
            setattr(self.value, field.name, codec.from_json(raw) if codec is not None else raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Extensions):
            return NotImplemented
        if self.is_empty() and other.is_empty():
            return True
        return self.value == other.value

    def __repr__(self) -> str:
        return f"Extensions({self.value!r})"


class Collection:
    """Ordered container of extensible items.

    Extensions registered with the collection are applied to every item it
    holds, including items added or decoded later.
    """

    item_type: type = object

    def __init__(self, items: Optional[list] = None):
        self.items: list[Any] = []
        self._extensions = ExtensionMap()
        for item in items or []:
            self.add(item)

    def add(self, item: Any) -> "Collection":
        """Append an item, registering the collection's extensions on it."""
        if self._extensions:
            item.register_extensions(self._extensions)
        self.items.append(item)
        return self

    def register_extensions(self, exts: ExtensionMap) -> None:
        # check the points on a scratch item before touching the contents
        self.item_type().register_extensions(exts)
        self._extensions = ExtensionMap(exts)
        for item in self.items:
            item.register_extensions(exts)

    def get_extensions(self) -> ExtensionMap:
        return self._extensions

    def _new_item(self) -> Any:
        item = self.item_type()
        if self._extensions:
            item.register_extensions(self._extensions)
        return item

    def clear(self) -> None:
        self.items = []

    def is_empty(self) -> bool:
        return len(self.items) == 0

    def valid(self) -> None:
        for i, item in enumerate(self.items):
            try:
                item.valid()
            except ValueError as e:
                raise ValueError(f"error at index {i}: {e}") from e

    def to_cbor_obj(self) -> list[Any]:
        return [item.to_cbor_obj() for item in self.items]

    def to_json_obj(self) -> list[Any]:
        return [item.to_json_obj() for item in self.items]

    def load_cbor_obj(self, obj: Any) -> None:
        if not isinstance(obj, list):
            raise ValueError(f"expected array, got {type(obj).__name__}")
        items = []
        for i, raw in enumerate(obj):
            item = self._new_item()
            try:
                item.load_cbor_obj(raw)
            except ValueError as e:
                raise ValueError(f"error at index {i}: {e}") from e
            items.append(item)
        self.items = items

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, list):
            raise ValueError(f"expected array, got {type(obj).__name__}")
        items = []
        for i, raw in enumerate(obj):
            item = self._new_item()
            try:
                item.load_json_obj(raw)
            except ValueError as e:
                raise ValueError(f"error at index {i}: {e}") from e
            items.append(item)
        self.items = items

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self.items)

    def __getitem__(self, index: int) -> Any:
        return self.items[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Collection):
            return NotImplemented
        return self.items == other.items

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.items!r})"
