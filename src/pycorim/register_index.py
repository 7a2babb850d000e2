"""Integrity register index type-choice."""

from typing import Any

from .primitives import StringValue, UintValue
from .typechoice import TypeChoice


class TextIndex(StringValue):
    type_name = "text"


class RegisterIndex(TypeChoice):
    """Names an integrity register by number or by label."""

    choice_name = "register index"
    _int_type = UintValue.type_name
    _text_type = TextIndex.type_name

    @classmethod
    def of(cls, value: Any) -> "RegisterIndex":
        """Build an index from a non-negative int or a non-empty string."""
        if isinstance(value, RegisterIndex):
            return value
        if isinstance(value, bool):
            raise ValueError(f"unexpected type for index: {type(value).__name__}")
        if isinstance(value, int):
            return cls(UintValue(value))
        if isinstance(value, str):
            return cls(TextIndex(value))
        raise ValueError(f"unexpected type for index: {type(value).__name__}")

    def key(self) -> Any:
        """Return the native map key (int or str)."""
        if self.value is None:
            raise ValueError("nil value")
        return self.value.value


RegisterIndex._add_variant(UintValue)
RegisterIndex._add_variant(TextIndex)
