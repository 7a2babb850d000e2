"""Arm PSA and CCA profile identifiers.

Importing this module registers the profile variants with the class id and
measurement key type-choices.
"""

from typing import Any, Optional

from . import cbor_utils
from .classid import ClassID
from .encoding import (
    BytesCodec,
    Field,
    MapStruct,
    TextCodec,
    b64decode,
    b64encode,
)
from .mkey import Mkey
from .typechoice import TypeChoiceValue

IMPL_ID_SIZE = 32


class _ImplID(TypeChoiceValue):
    """32-byte implementation identifier (base64 in JSON)."""

    def __init__(self, value: Any = None):
        if value is None:
            self.data = bytes(IMPL_ID_SIZE)
        elif isinstance(value, _ImplID):
            self.data = value.data
        elif isinstance(value, (bytes, bytearray)):
            if len(value) != IMPL_ID_SIZE:
                raise ValueError(
                    f"bad {self.type_name}: got {len(value)} bytes, want {IMPL_ID_SIZE}"
                )
            self.data = bytes(value)
        elif isinstance(value, str):
            try:
                data = b64decode(value)
            except ValueError as e:
                raise ValueError(f"bad {self.type_name}: {e}") from e
            if len(data) != IMPL_ID_SIZE:
                raise ValueError(
                    f"bad {self.type_name}: decoded {len(data)} bytes, want {IMPL_ID_SIZE}"
                )
            self.data = data
        else:
            raise ValueError(
                f"unexpected type for {self.type_name}: {type(value).__name__}"
            )

    def valid(self) -> None:
        if len(self.data) != IMPL_ID_SIZE:
            raise ValueError(f"bad {self.type_name}: got {len(self.data)} bytes, want 32")

    def to_cbor_value(self) -> bytes:
        return self.data

    @classmethod
    def from_cbor_value(cls, value: Any) -> "_ImplID":
        if not isinstance(value, bytes):
            raise ValueError(f"expecting byte string, got {type(value).__name__}")
        return cls(value)

    def to_json_value(self) -> str:
        return b64encode(self.data)

    @classmethod
    def from_json_value(cls, value: Any) -> "_ImplID":
        if not isinstance(value, str):
            raise ValueError(f"expecting base64 string, got {type(value).__name__}")
        return cls(value)

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.data == other.data  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.data))

    def __str__(self) -> str:
        return b64encode(self.data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.data.hex()!r})"


class PSAImplID(_ImplID):
    type_name = "psa.impl-id"
    cbor_tag = cbor_utils.TAG_PSA_IMPL_ID


class CCAImplID(_ImplID):
    type_name = "cca.impl-id"
    cbor_tag = cbor_utils.TAG_CCA_IMPL_ID


class _RefValIDMap(MapStruct):
    FIELDS = (
        Field("label", 1, "label", TextCodec()),
        Field("version", 4, "version", TextCodec()),
        Field("signer_id", 5, "signer-id", BytesCodec()),
    )


class _RefValIDValue(TypeChoiceValue):
    """Reference value identifier: optional label and version, plus signer."""

    def __init__(
        self,
        value: Any = None,
        label: Optional[str] = None,
        version: Optional[str] = None,
    ):
        self.fields = _RefValIDMap()
        if value is None:
            pass
        elif isinstance(value, _RefValIDValue):
            self.fields.label = value.fields.label
            self.fields.version = value.fields.version
            self.fields.signer_id = value.fields.signer_id
        elif isinstance(value, (bytes, bytearray)):
            self.fields.signer_id = bytes(value)
            self._check_signer_id()
        elif isinstance(value, dict):
            self.fields.load_json_obj(value)
        else:
            raise ValueError(
                f"unexpected type for {self.type_name}: {type(value).__name__}"
            )
        if label is not None:
            self.fields.label = label
        if version is not None:
            self.fields.version = version

    @property
    def label(self) -> Optional[str]:
        return self.fields.label

    @property
    def version(self) -> Optional[str]:
        return self.fields.version

    @property
    def signer_id(self) -> Optional[bytes]:
        return self.fields.signer_id

    def _check_signer_id(self) -> None:
        if self.fields.signer_id is None:
            raise ValueError("missing mandatory signer ID")
        size = len(self.fields.signer_id)
        if size not in (32, 48, 64):
            raise ValueError(f"want 32, 48 or 64 bytes, got {size}")

    def valid(self) -> None:
        self._check_signer_id()

    def to_cbor_value(self) -> dict[int, Any]:
        return self.fields.to_cbor_obj()

    @classmethod
    def from_cbor_value(cls, value: Any) -> "_RefValIDValue":
        ret = cls()
        ret.fields.load_cbor_obj(value)
        return ret

    def to_json_value(self) -> dict[str, Any]:
        return self.fields.to_json_obj()

    @classmethod
    def from_json_value(cls, value: Any) -> "_RefValIDValue":
        ret = cls()
        ret.fields.load_json_obj(value)
        return ret

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.fields == other.fields  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.label, self.version, self.signer_id))

    def __str__(self) -> str:
        parts = []
        if self.label is not None:
            parts.append(f"label={self.label}")
        if self.version is not None:
            parts.append(f"version={self.version}")
        if self.signer_id is not None:
            parts.append(f"signer-id={self.signer_id.hex()}")
        return ", ".join(parts)


class PSARefValID(_RefValIDValue):
    type_name = "psa.refval-id"
    cbor_tag = cbor_utils.TAG_PSA_REFVAL_ID


class CCARefValID(_RefValIDValue):
    type_name = "cca.refval-id"
    cbor_tag = cbor_utils.TAG_CCA_REFVAL_ID


class CCAPlatformConfigID(TypeChoiceValue):
    """Non-empty label naming a CCA platform configuration."""

    type_name = "cca.platform-config-id"
    cbor_tag = cbor_utils.TAG_CCA_PLATFORM_CONFIG_ID

    def __init__(self, value: Any = None):
        if value is None:
            self.value = ""
        elif isinstance(value, CCAPlatformConfigID):
            self.value = value.value
        elif isinstance(value, str):
            if value == "":
                raise ValueError("empty input string")
            self.value = value
        else:
            raise ValueError(
                f"unexpected type for {self.type_name}: {type(value).__name__}"
            )

    def valid(self) -> None:
        if self.value == "":
            raise ValueError("empty CCA platform config ID")

    def to_cbor_value(self) -> str:
        return self.value

    @classmethod
    def from_cbor_value(cls, value: Any) -> "CCAPlatformConfigID":
        if not isinstance(value, str):
            raise ValueError(f"expecting text string, got {type(value).__name__}")
        ret = cls()
        ret.value = value
        return ret

    to_json_value = to_cbor_value
    from_json_value = from_cbor_value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CCAPlatformConfigID) and self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        return self.value


ClassID.register_type(cbor_utils.TAG_PSA_IMPL_ID, PSAImplID)
ClassID.register_type(cbor_utils.TAG_CCA_IMPL_ID, CCAImplID)
Mkey.register_type(cbor_utils.TAG_PSA_REFVAL_ID, PSARefValID)
Mkey.register_type(cbor_utils.TAG_CCA_REFVAL_ID, CCARefValID)
Mkey.register_type(cbor_utils.TAG_CCA_PLATFORM_CONFIG_ID, CCAPlatformConfigID)
