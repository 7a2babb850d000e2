"""CoRIM signer metadata carried in the COSE protected header."""

from datetime import datetime, timezone
from typing import Any, Optional

from .encoding import Codec, Field, MapStruct, ObjectCodec, TextCodec
from .extensions import EXT_SIGNER
from .primitives import URICodec, check_absolute_uri, new_uri


class TimeCodec(Codec):
    """Timestamps: tag 1 epoch time in CBOR, RFC 3339 text in JSON."""

    def from_cbor(self, obj: Any, current: Any = None) -> datetime:
        # cbor2 only yields a datetime for tagged (0/1) time values
        if not isinstance(obj, datetime):
            raise ValueError(f"expecting tagged time value, got {type(obj).__name__}")
        return _as_utc(obj)

    def to_json(self, value: Any) -> str:
        return _as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")

    def from_json(self, obj: Any, current: Any = None) -> datetime:
        if not isinstance(obj, str):
            raise ValueError(f"expecting RFC 3339 time string, got {type(obj).__name__}")
        text = obj[:-1] + "+00:00" if obj.endswith(("Z", "z")) else obj
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError as e:
            raise ValueError(f"invalid time {obj!r}: {e}") from e


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Validity(MapStruct):
    """Validity period: optional not-before, mandatory not-after."""

    FIELDS = (
        Field("not_before", 0, "not-before", TimeCodec()),
        Field("not_after", 1, "not-after", TimeCodec(), omit_empty=False),
    )

    def __init__(self, not_after: Optional[datetime] = None, not_before: Optional[datetime] = None):
        super().__init__()
        self.not_after = None if not_after is None else _as_utc(not_after)
        self.not_before = None if not_before is None else _as_utc(not_before)

    def set(self, not_after: datetime, not_before: Optional[datetime] = None) -> "Validity":
        """Set the validity period.

        Raises:
            ValueError: If not-before comes after not-after
        """
        candidate = Validity(not_after, not_before)
        candidate.valid()
        self.not_after, self.not_before = candidate.not_after, candidate.not_before
        return self

    def valid(self) -> None:
        if self.not_after is None:
            raise ValueError("missing not-after")
        if self.not_before is not None:
            delta = self.not_after - self.not_before
            if delta.total_seconds() < 0:
                raise ValueError(
                    f"invalid not-before / not-after: negative delta ({int(delta.total_seconds())}s)"
                )


class Signer(MapStruct):
    """The entity that signed the CoRIM: a name and an optional URI."""

    FIELDS = (
        Field("name", 0, "name", TextCodec(), omit_empty=False),
        Field("uri", 1, "uri", URICodec()),
    )
    EXTENSION_POINT = EXT_SIGNER

    def __init__(self, name: Optional[str] = None, uri: Optional[str] = None):
        super().__init__()
        self.name = name
        self.uri = uri

    def set_name(self, name: str) -> "Signer":
        if not name:
            raise ValueError("empty name")
        self.name = name
        return self

    def set_uri(self, uri: str) -> "Signer":
        self.uri = new_uri(uri)
        return self

    def valid(self) -> None:
        if not self.name:
            raise ValueError("empty name")
        if self.uri is not None:
            try:
                check_absolute_uri(self.uri)
            except ValueError as e:
                raise ValueError(f"invalid URI: {e}") from e
        self.extensions.call("validate_signer", self)


class Meta(MapStruct):
    """corim-meta-map: signer plus an optional signature validity."""

    FIELDS = (
        Field("signer", 0, "signer", ObjectCodec(Signer), omit_empty=False),
        Field("validity", 1, "validity", ObjectCodec(Validity)),
    )

    def __init__(self) -> None:
        super().__init__()
        self.signer = Signer()

    def register_extensions(self, exts: Any) -> None:
        self.signer.register_extensions(exts)

    def set_signer(self, name: str, uri: Optional[str] = None) -> "Meta":
        signer = Signer().set_name(name)
        if uri is not None:
            signer.set_uri(uri)
        signer.extensions = self.signer.extensions
        self.signer = signer
        return self

    def set_validity(self, not_after: datetime, not_before: Optional[datetime] = None) -> "Meta":
        self.validity = Validity().set(not_after, not_before)
        return self

    def valid(self) -> None:
        try:
            self.signer.valid()
        except ValueError as e:
            raise ValueError(f"invalid meta: {e}") from e
        if self.validity is not None:
            try:
                self.validity.valid()
            except ValueError as e:
                raise ValueError(f"invalid meta: {e}") from e
