"""Operational mode flags of a measured environment."""

from enum import IntEnum
from typing import Optional

from .encoding import BoolCodec, Field, MapStruct
from .extensions import EXT_FLAGS


class Flag(IntEnum):
    """Well-known flags. Values past the last member belong to extensions."""

    IS_CONFIGURED = 0
    IS_SECURE = 1
    IS_RECOVERY = 2
    IS_DEBUG = 3
    IS_REPLAY_PROTECTED = 4
    IS_INTEGRITY_PROTECTED = 5
    IS_RUNTIME_MEASURED = 6
    IS_IMMUTABLE = 7
    IS_TCB = 8
    IS_CONFIDENTIALITY_PROTECTED = 9


_FLAG_ATTRS = {
    Flag.IS_CONFIGURED: "is_configured",
    Flag.IS_SECURE: "is_secure",
    Flag.IS_RECOVERY: "is_recovery",
    Flag.IS_DEBUG: "is_debug",
    Flag.IS_REPLAY_PROTECTED: "is_replay_protected",
    Flag.IS_INTEGRITY_PROTECTED: "is_integrity_protected",
    Flag.IS_RUNTIME_MEASURED: "is_runtime_measured",
    Flag.IS_IMMUTABLE: "is_immutable",
    Flag.IS_TCB: "is_tcb",
    Flag.IS_CONFIDENTIALITY_PROTECTED: "is_confidentiality_protected",
}


class FlagsMap(MapStruct):
    """Tri-state flags: each one is True, False or None (unknown).

    Flags outside the well-known set are forwarded to the registered
    ``Flags`` extension through its ``set_true``, ``set_false``, ``clear``,
    ``get`` and ``any_set`` hooks.
    """

    FIELDS = (
        Field("is_configured", 0, "is-configured", BoolCodec()),
        Field("is_secure", 1, "is-secure", BoolCodec()),
        Field("is_recovery", 2, "is-recovery", BoolCodec()),
        Field("is_debug", 3, "is-debug", BoolCodec()),
        Field("is_replay_protected", 4, "is-replay-protected", BoolCodec()),
        Field("is_integrity_protected", 5, "is-integrity-protected", BoolCodec()),
        Field("is_runtime_measured", 6, "is-runtime-meas", BoolCodec()),
        Field("is_immutable", 7, "is-immutable", BoolCodec()),
        Field("is_tcb", 8, "is-tcb", BoolCodec()),
        Field(
            "is_confidentiality_protected", 9, "is-confidentiality-protected", BoolCodec()
        ),
    )
    EXTENSION_POINT = EXT_FLAGS

    def _set(self, flags: tuple[int, ...], value: Optional[bool], hook: str) -> "FlagsMap":
        for flag in flags:
            attr = _FLAG_ATTRS.get(flag)  # type: ignore[call-overload]
            if attr is not None:
                setattr(self, attr, value)
            else:
                self.extensions.call(hook, flag)
        return self

    def set_true(self, *flags: int) -> "FlagsMap":
        return self._set(flags, True, "set_true")

    def set_false(self, *flags: int) -> "FlagsMap":
        return self._set(flags, False, "set_false")

    def clear(self, *flags: int) -> "FlagsMap":
        return self._set(flags, None, "clear")

    def get(self, flag: int) -> Optional[bool]:
        attr = _FLAG_ATTRS.get(flag)  # type: ignore[call-overload]
        if attr is not None:
            return getattr(self, attr)
        return self.extensions.call("get", flag)

    def any_set(self) -> bool:
        """Tell whether any built-in or extension flag holds a value."""
        if any(getattr(self, attr) is not None for attr in _FLAG_ATTRS.values()):
            return True
        if self.extensions.has_hook("any_set"):
            return bool(self.extensions.call("any_set"))
        return not self.extensions.is_empty()

    def valid(self) -> None:
        self.extensions.call("validate_flags", self)

    def is_empty(self) -> bool:
        return not self.any_set()
