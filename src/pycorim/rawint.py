"""Raw integer type-choice: a plain integer or an inclusive range."""

from typing import Any, Optional

from . import cbor_utils
from .primitives import IntValue
from .typechoice import TypeChoice, TypeChoiceValue


class RawIntInteger(IntValue):
    type_name = "rawIntInteger"


class TaggedRawIntRange(TypeChoiceValue):
    """Inclusive range; a missing bound stands for infinity."""

    type_name = "rawIntRange"
    cbor_tag = cbor_utils.TAG_INT_RANGE

    def __init__(self, value: Any = None, maximum: Optional[int] = None):
        self.min: Optional[int] = None
        self.max: Optional[int] = None
        if isinstance(value, TaggedRawIntRange):
            self.min, self.max = value.min, value.max
        elif isinstance(value, (tuple, list)) and len(value) == 2:
            self.min, self.max = value
        elif isinstance(value, dict):
            self.min, self.max = value.get("min"), value.get("max")
        elif cbor_utils.is_int(value) or value is None:
            self.min, self.max = value, maximum
        else:
            raise ValueError(f"unexpected type for TaggedRawIntRange: {type(value).__name__}")

    def valid(self) -> None:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(
                f"TaggedRawIntRange: Invalid Range, Min: {self.min} Max: {self.max}"
            )

    def contains(self, value: int) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def to_cbor_value(self) -> list[Optional[int]]:
        return [self.min, self.max]

    @classmethod
    def from_cbor_value(cls, value: Any) -> "TaggedRawIntRange":
        if not isinstance(value, list) or len(value) != 2:
            raise ValueError("expecting range array of two elements")
        for bound in value:
            if bound is not None and not cbor_utils.is_int(bound):
                raise ValueError(f"invalid range bound {bound!r}")
        return cls(value)

    def to_json_value(self) -> dict[str, Optional[int]]:
        ret = {}
        if self.min is not None:
            ret["min"] = self.min
        if self.max is not None:
            ret["max"] = self.max
        return ret

    @classmethod
    def from_json_value(cls, value: Any) -> "TaggedRawIntRange":
        if not isinstance(value, dict):
            raise ValueError(f"expecting range object, got {type(value).__name__}")
        return cls.from_cbor_value([value.get("min"), value.get("max")])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TaggedRawIntRange):
            return NotImplemented
        return (self.min, self.max) == (other.min, other.max)

    def __hash__(self) -> int:
        return hash((self.min, self.max))

    def __str__(self) -> str:
        lower = f"[{self.min}" if self.min is not None else "(-inf"
        upper = f"{self.max}]" if self.max is not None else "inf)"
        return f"{lower}:{upper}"


class RawInt(TypeChoice):
    choice_name = "raw int"
    _int_type = RawIntInteger.type_name

    def compare_against_reference(self, reference: "RawInt") -> bool:
        """Tell whether this (claimed) value falls within the reference.

        An integer reference requires an equal integer, or a range pinned to
        that single value. A range reference accepts integers it contains and
        ranges it encloses.
        """
        if self.value is None or reference.value is None:
            raise ValueError("RawInt value unset")

        claim, ref = self.value, reference.value
        if isinstance(ref, RawIntInteger):
            if isinstance(claim, RawIntInteger):
                return claim.value == ref.value
            return claim.min == ref.value and claim.max == ref.value
        if isinstance(claim, RawIntInteger):
            return ref.contains(claim.value)
        if claim.min is None and ref.min is not None:
            return False
        if claim.max is None and ref.max is not None:
            return False
        if ref.min is not None and claim.min < ref.min:
            return False
        if ref.max is not None and claim.max > ref.max:
            return False
        return True


cbor_utils.register_tag(cbor_utils.TAG_INT_RANGE, TaggedRawIntRange)

RawInt._add_variant(RawIntInteger)
RawInt._add_variant(TaggedRawIntRange, cbor_utils.TAG_INT_RANGE)
