"""Tagged type-choice framework.

A type-choice is a sum type whose variants are told apart by a CBOR tag on
the wire and by a ``type`` member in JSON::

    {"type": "uuid", "value": "31fb5abf-023e-4992-aa4e-95f9c1503bfa"}

Each choice (ClassID, Mkey, Instance, ...) subclasses ``TypeChoice`` and
owns a registry mapping type names to factories. Variants subclass
``TypeChoiceValue``. New variants may be registered by profiles with
``register_type`` before any document is encoded or decoded.
"""

from typing import Any, Callable, ClassVar, Optional

from . import cbor_utils
from .encoding import Serializable

# A factory turns a convenience input (None for the zero value) into a variant
Factory = Callable[[Any], "TypeChoiceValue"]


class TypeChoiceValue:
    """Base class for the concrete variants of a type-choice.

    Subclasses set ``type_name`` and, if tagged, ``cbor_tag`` and implement
    the payload conversions. ``cbor_tag`` of None means the variant is
    encoded as a bare CBOR item.
    """

    type_name: ClassVar[str] = ""
    cbor_tag: ClassVar[Optional[int]] = None

    def valid(self) -> None:
        """Raise ValueError if the value is not valid."""

    def to_cbor_value(self) -> Any:
        """Return the (untagged) CBOR payload."""
        raise NotImplementedError

    @classmethod
    def from_cbor_value(cls, value: Any) -> "TypeChoiceValue":
        """Build the variant from its (untagged) CBOR payload."""
        raise NotImplementedError

    def to_json_value(self) -> Any:
        """Return the JSON payload placed under ``value``."""
        raise NotImplementedError

    @classmethod
    def from_json_value(cls, value: Any) -> "TypeChoiceValue":
        """Build the variant from the JSON payload found under ``value``."""
        raise NotImplementedError

    def to_cbor_obj(self) -> Any:
        payload = self.to_cbor_value()
        if self.cbor_tag is None:
            return payload
        return cbor_utils.create_tag(self.cbor_tag, payload)


class TypeChoice(Serializable):
    """Carrier for exactly one variant of a tagged sum type."""

    choice_name: ClassVar[str] = "type choice"
    # type name -> factory
    _factories: ClassVar[dict[str, Factory]]
    # CBOR tag -> type name
    _tags: ClassVar[dict[int, str]]
    # type names of variants encoded as bare integers / text strings
    _int_type: ClassVar[Optional[str]] = None
    _text_type: ClassVar[Optional[str]] = None

    def __init_subclass__(cls, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        cls._factories = {}
        cls._tags = {}

    def __init__(self, value: Optional[TypeChoiceValue] = None):
        self.value = value

    @classmethod
    def new(cls, value: Any, type_name: str) -> "TypeChoice":
        """Create a choice holding the variant registered under ``type_name``.

        Args:
            value: Input accepted by the variant's factory (None for the
                zero value)
            type_name: Registered variant name

        Returns:
            A new choice instance

        Raises:
            ValueError: If the type name is unknown or the factory rejects
                the input
        """
        factory = cls._factories.get(type_name)
        if factory is None:
            raise ValueError(f"unknown {cls.choice_name} type: {type_name}")
        return cls(factory(value))

    @classmethod
    def register_type(cls, tag: int, factory: Factory) -> None:
        """Register a new variant for this choice.

        Args:
            tag: CBOR tag the variant is encoded with
            factory: Callable producing the variant from a convenience input

        Raises:
            ValueError: If the type name or the tag is already registered
        """
        cbor_utils.ensure_registration_open()
        zero = factory(None)
        name = zero.type_name
        if name in cls._factories:
            raise ValueError(f'{cls.choice_name} type with name "{name}" already exists')
        cbor_utils.register_tag(tag, type(zero))
        cls._factories[name] = factory
        cls._tags[tag] = name

    @classmethod
    def _add_variant(cls, factory: Factory, tag: Optional[int] = None) -> None:
        """Add a built-in variant whose tag is already in the global registry."""
        name = factory(None).type_name
        cls._factories[name] = factory
        if tag is not None:
            cls._tags[tag] = name

    @classmethod
    def type_names(cls) -> list[str]:
        return sorted(cls._factories)

    def type(self) -> str:
        if self.value is None:
            return ""
        return self.value.type_name

    def is_set(self) -> bool:
        return self.value is not None

    def valid(self) -> None:
        if self.value is None:
            raise ValueError("nil value")
        self.value.valid()

    def to_cbor_obj(self) -> Any:
        if self.value is None:
            raise ValueError("nil value")
        return self.value.to_cbor_obj()

    def _zero(self, type_name: str) -> TypeChoiceValue:
        return self._factories[type_name](None)

    def load_cbor_obj(self, obj: Any) -> None:
        obj = cbor_utils.as_tag(obj)
        if isinstance(obj, cbor_utils.CBORTag):
            name = self._tags.get(obj.tag)
            payload = obj.value
        elif cbor_utils.is_int(obj):
            name = self._int_type
            payload = obj
        elif isinstance(obj, str):
            name = self._text_type
            payload = obj
        else:
            name = None
            payload = None

        if name is None:
            raise ValueError(
                f"unknown {self.choice_name} (CBOR: {cbor_utils.to_hex(obj)})"
            )

        try:
            value = type(self._zero(name)).from_cbor_value(payload)
            value.valid()
        except ValueError as e:
            raise ValueError(f"invalid {name}: {e}") from e
        self.value = value

    def to_json_obj(self) -> dict[str, Any]:
        if self.value is None:
            raise ValueError("nil value")
        return {"type": self.value.type_name, "value": self.value.to_json_value()}

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, dict):
            raise ValueError(
                f"{self.choice_name} decoding failure: expected object, got {type(obj).__name__}"
            )
        type_name = obj.get("type")
        if not type_name:
            raise ValueError(f"{self.choice_name} decoding failure: missing type")
        if type_name not in self._factories:
            raise ValueError(f"unknown {self.choice_name} type: {type_name}")
        if "value" not in obj:
            raise ValueError(f"invalid {type_name}: missing value")

        try:
            value = type(self._zero(type_name)).from_json_value(obj["value"])
            value.valid()
        except ValueError as e:
            raise ValueError(f"invalid {type_name}: {e}") from e
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeChoice):
            return NotImplemented
        return type(self) is type(other) and self.value == other.value

    def __hash__(self) -> int:
        return hash((type(self), self.value))

    def __str__(self) -> str:
        return "" if self.value is None else str(self.value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"
