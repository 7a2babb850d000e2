"""Security version number type-choice."""

from . import cbor_utils
from .primitives import UintValue
from .typechoice import TypeChoice


class TaggedSVN(UintValue):
    """Exact security version number (tag 552)."""

    type_name = "exact-value"
    cbor_tag = cbor_utils.TAG_SVN


class TaggedMinSVN(UintValue):
    """Lower bound on the security version number (tag 553)."""

    type_name = "min-value"
    cbor_tag = cbor_utils.TAG_MIN_SVN


class SVN(TypeChoice):
    """Either an exact SVN or a minimum SVN."""

    choice_name = "svn"

    def set_exact(self, value: int) -> "SVN":
        self.value = TaggedSVN(value)
        return self

    def set_min(self, value: int) -> "SVN":
        self.value = TaggedMinSVN(value)
        return self

    def matches(self, reference: "SVN") -> bool:
        """Compare a claimed (exact) SVN against a reference SVN.

        An exact reference requires equality; a minimum reference requires
        the claimed value to be at least the minimum.
        """
        if not isinstance(self.value, TaggedSVN) or reference.value is None:
            return False
        if isinstance(reference.value, TaggedMinSVN):
            return self.value.value >= reference.value.value
        return self.value.value == reference.value.value


cbor_utils.register_tag(cbor_utils.TAG_SVN, TaggedSVN)
cbor_utils.register_tag(cbor_utils.TAG_MIN_SVN, TaggedMinSVN)

SVN._add_variant(TaggedSVN, cbor_utils.TAG_SVN)
SVN._add_variant(TaggedMinSVN, cbor_utils.TAG_MIN_SVN)
