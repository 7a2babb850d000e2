"""Extensible registries of named integer codes (roles, relations)."""

from typing import Any, ClassVar, Optional

from . import cbor_utils
from .encoding import Serializable


class CodeValue(Serializable):
    """An integer code that may be unset, well known, or custom registered.

    CBOR carries the bare integer and accepts any value. JSON carries the
    registered name only.
    """

    kind: ClassVar[str] = "code"
    display_name: ClassVar[str] = "code"
    _names: ClassVar[dict[int, str]]
    _codes: ClassVar[dict[str, int]]

    def __init_subclass__(cls, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        cls._names = {}
        cls._codes = {}

    def __init__(self, code: Optional[int] = None):
        self.code = code

    @classmethod
    def register(cls, code: int, name: str) -> None:
        """Add a named code to the registry.

        Raises:
            ValueError: If the name or the code is already registered
        """
        cbor_utils.ensure_registration_open()
        if name in cls._codes:
            raise ValueError(f'{cls.kind} with name "{name}" already exists')
        if code in cls._names:
            raise ValueError(f"{cls.kind} with value {code} already exists")
        cls._names[code] = name
        cls._codes[name] = code

    @classmethod
    def _add_builtin(cls, code: int, name: str) -> None:
        cls._names[code] = name
        cls._codes[name] = code

    @classmethod
    def from_name(cls, name: str) -> "CodeValue":
        ret = cls()
        ret.load_json_obj(name)
        return ret

    def set(self, code: int) -> "CodeValue":
        self.code = code
        return self

    def get(self) -> Optional[int]:
        return self.code

    def is_set(self) -> bool:
        return self.code is not None

    def valid(self) -> None:
        if self.code is None:
            raise ValueError(f"{self.kind} is unset")

    def to_cbor_obj(self) -> int:
        self.valid()
        return self.code  # type: ignore[return-value]

    def load_cbor_obj(self, obj: Any) -> None:
        if not cbor_utils.is_int(obj):
            raise ValueError(f"cannot unmarshal {self.kind}: expected integer, got {obj!r}")
        self.code = obj

    def to_json_obj(self) -> str:
        self.valid()
        if self.code not in self._names:
            raise ValueError(f"unknown {self.kind} {self.code}")
        return self._names[self.code]  # type: ignore[index]

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, str):
            raise ValueError(f"cannot unmarshal {self.kind}: expected string, got {obj!r}")
        if obj == "":
            raise ValueError(f"empty {self.kind}")
        if obj not in self._codes:
            raise ValueError(f"unknown {self.kind} '{obj}'")
        self.code = self._codes[obj]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, int) and not isinstance(other, bool):
            return self.code == other
        if not isinstance(other, CodeValue):
            return NotImplemented
        return type(self) is type(other) and self.code == other.code

    def __hash__(self) -> int:
        return hash(self.code)

    def __str__(self) -> str:
        if self.code is None:
            return "unset"
        return self._names.get(self.code, f"{self.display_name}({self.code})")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r})"


class CodeList(list):
    """Non-empty list of codes of one kind."""

    code_type: type = CodeValue

    def add(self, *codes: Any) -> "CodeList":
        for code in codes:
            self.append(code if isinstance(code, CodeValue) else self.code_type(code))
        return self

    def valid(self) -> None:
        if len(self) == 0:
            raise ValueError(f"empty {self.code_type.kind}s")
        for item in self:
            item.valid()

    def to_cbor_obj(self) -> list[int]:
        return [item.to_cbor_obj() for item in self]

    def load_cbor_obj(self, obj: Any) -> None:
        if not isinstance(obj, list):
            raise ValueError(f"expected array of {self.code_type.kind}s, got {type(obj).__name__}")
        items = []
        for raw in obj:
            item = self.code_type()
            item.load_cbor_obj(raw)
            items.append(item)
        self[:] = items

    def to_json_obj(self) -> list[str]:
        return [item.to_json_obj() for item in self]

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, list):
            raise ValueError(f"expected array of {self.code_type.kind}s, got {type(obj).__name__}")
        if len(obj) == 0:
            raise ValueError(f"no {self.code_type.kind}s found")
        items = []
        for raw in obj:
            item = self.code_type()
            item.load_json_obj(raw)
            items.append(item)
        self[:] = items
