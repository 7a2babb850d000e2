"""Triples: statements binding an environment to measurements or keys.

Each triple is a two-element array in CBOR and a named object in JSON.
"""

from typing import Any, Optional

from .cryptokey import CryptoKeys
from .encoding import Field, MapStruct, ObjectCodec, Serializable
from .environment import Environment
from .extensions import (
    EXT_COND_ENDORSE_SERIES_VALUE,
    EXT_COND_ENDORSE_SERIES_VALUE_FLAGS,
    EXT_ENDORSED_VALUE,
    EXT_ENDORSED_VALUE_FLAGS,
    EXT_FLAGS,
    EXT_MVAL,
    EXT_REFERENCE_VALUE,
    EXT_REFERENCE_VALUE_FLAGS,
    EXT_TRIPLES,
    Collection,
    ExtensionMap,
    unexpected_point,
)
from .measurement import Measurement, Measurements


def _load_pair(obj: Any, what: str) -> tuple[Any, Any]:
    if not isinstance(obj, list) or len(obj) != 2:
        raise ValueError(f"expecting {what} array of two elements")
    return obj[0], obj[1]


def _load_object(obj: Any, what: str) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise ValueError(f"expecting {what} object, got {type(obj).__name__}")
    return obj


class ValueTriple(Serializable):
    """Environment plus the measurements that apply to it."""

    def __init__(
        self,
        environment: Optional[Environment] = None,
        measurements: Optional[list[Measurement]] = None,
    ):
        self.environment = environment if environment is not None else Environment()
        self.measurements = Measurements(measurements)

    def add_measurement(self, measurement: Measurement) -> "ValueTriple":
        self.measurements.add(measurement)
        return self

    def register_extensions(self, exts: ExtensionMap) -> None:
        self.measurements.register_extensions(exts)

    def get_extensions(self) -> ExtensionMap:
        return self.measurements.get_extensions()

    def valid(self) -> None:
        try:
            self.environment.valid()
        except ValueError as e:
            raise ValueError(f"environment validation failed: {e}") from e

        if self.measurements.is_empty():
            raise ValueError("measurements validation failed: no measurement entries")

        try:
            self.measurements.valid()
        except ValueError as e:
            raise ValueError(f"measurements validation failed: {e}") from e

    def to_cbor_obj(self) -> list[Any]:
        return [self.environment.to_cbor_obj(), self.measurements.to_cbor_obj()]

    def load_cbor_obj(self, obj: Any) -> None:
        env, measurements = _load_pair(obj, "value triple")
        self.environment.load_cbor_obj(env)
        self.measurements.load_cbor_obj(measurements)

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "environment": self.environment.to_json_obj(),
            "measurements": self.measurements.to_json_obj(),
        }

    def load_json_obj(self, obj: Any) -> None:
        obj = _load_object(obj, "value triple")
        self.environment.load_json_obj(obj.get("environment"))
        self.measurements.load_json_obj(obj.get("measurements"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValueTriple):
            return NotImplemented
        return (
            self.environment == other.environment
            and self.measurements == other.measurements
        )

    def __repr__(self) -> str:
        return f"ValueTriple({self.environment!r}, {self.measurements!r})"


class ValueTriples(Collection):
    item_type = ValueTriple


class KeyTriple(Serializable):
    """Environment plus the keys used to verify or identify it."""

    def __init__(
        self,
        environment: Optional[Environment] = None,
        keys: Optional[list] = None,
    ):
        self.environment = environment if environment is not None else Environment()
        self.verif_keys = CryptoKeys(keys or [])

    def valid(self) -> None:
        try:
            self.environment.valid()
        except ValueError as e:
            raise ValueError(f"environment validation failed: {e}") from e

        try:
            self.verif_keys.valid()
        except ValueError as e:
            raise ValueError(f"verification keys validation failed: {e}") from e

    def to_cbor_obj(self) -> list[Any]:
        return [self.environment.to_cbor_obj(), self.verif_keys.to_cbor_obj()]

    def load_cbor_obj(self, obj: Any) -> None:
        env, keys = _load_pair(obj, "key triple")
        self.environment.load_cbor_obj(env)
        self.verif_keys.load_cbor_obj(keys)

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "environment": self.environment.to_json_obj(),
            "verification-keys": self.verif_keys.to_json_obj(),
        }

    def load_json_obj(self, obj: Any) -> None:
        obj = _load_object(obj, "key triple")
        self.environment.load_json_obj(obj.get("environment"))
        self.verif_keys.load_json_obj(obj.get("verification-keys"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyTriple):
            return NotImplemented
        return self.environment == other.environment and self.verif_keys == other.verif_keys

    def __repr__(self) -> str:
        return f"KeyTriple({self.environment!r}, {self.verif_keys!r})"


class KeyTriples(Collection):
    item_type = KeyTriple


class CondEndorseSeriesRecord(Serializable):
    """Measurements to match (selection) and to endorse on a match (addition)."""

    def __init__(self) -> None:
        self.selection = Measurements()
        self.addition = Measurements()

    def register_extensions(self, exts: ExtensionMap) -> None:
        try:
            self.selection.register_extensions(exts)
        except ValueError as e:
            raise ValueError(f"selection: {e}") from e
        try:
            self.addition.register_extensions(exts)
        except ValueError as e:
            raise ValueError(f"addition: {e}") from e

    def valid(self) -> None:
        try:
            self.selection.valid()
        except ValueError as e:
            raise ValueError(f"selection validation failed: {e}") from e
        try:
            self.addition.valid()
        except ValueError as e:
            raise ValueError(f"addition validation failed: {e}") from e

    def to_cbor_obj(self) -> list[Any]:
        return [self.selection.to_cbor_obj(), self.addition.to_cbor_obj()]

    def load_cbor_obj(self, obj: Any) -> None:
        selection, addition = _load_pair(obj, "series record")
        self.selection.load_cbor_obj(selection)
        self.addition.load_cbor_obj(addition)

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "selection": self.selection.to_json_obj(),
            "addition": self.addition.to_json_obj(),
        }

    def load_json_obj(self, obj: Any) -> None:
        obj = _load_object(obj, "series record")
        self.selection.load_json_obj(obj.get("selection"))
        self.addition.load_json_obj(obj.get("addition"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CondEndorseSeriesRecord):
            return NotImplemented
        return self.selection == other.selection and self.addition == other.addition


class CondEndorseSeriesRecords(Collection):
    item_type = CondEndorseSeriesRecord


class CondEndorseSeriesTriple(Serializable):
    """A stateful environment followed by an ordered series of records."""

    def __init__(self, condition: Optional[ValueTriple] = None):
        self.condition = condition if condition is not None else ValueTriple()
        self.series = CondEndorseSeriesRecords()

    def add_record(self, record: CondEndorseSeriesRecord) -> "CondEndorseSeriesTriple":
        self.series.add(record)
        return self

    def register_extensions(self, exts: ExtensionMap) -> None:
        try:
            self.condition.register_extensions(exts)
        except ValueError as e:
            raise ValueError(f"condition: {e}") from e
        try:
            self.series.register_extensions(exts)
        except ValueError as e:
            raise ValueError(f"series: {e}") from e

    def valid(self) -> None:
        try:
            self.condition.valid()
        except ValueError as e:
            raise ValueError(f"stateful environment validation failed: {e}") from e
        try:
            self.series.valid()
        except ValueError as e:
            raise ValueError(f"conditional series validation failed: {e}") from e

    def to_cbor_obj(self) -> list[Any]:
        return [self.condition.to_cbor_obj(), self.series.to_cbor_obj()]

    def load_cbor_obj(self, obj: Any) -> None:
        condition, series = _load_pair(obj, "conditional endorsement series triple")
        self.condition.load_cbor_obj(condition)
        self.series.load_cbor_obj(series)

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "statefulenv": self.condition.to_json_obj(),
            "series": self.series.to_json_obj(),
        }

    def load_json_obj(self, obj: Any) -> None:
        obj = _load_object(obj, "conditional endorsement series triple")
        self.condition.load_json_obj(obj.get("statefulenv"))
        self.series.load_json_obj(obj.get("series"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CondEndorseSeriesTriple):
            return NotImplemented
        return self.condition == other.condition and self.series == other.series


class CondEndorseSeriesTriples(Collection):
    item_type = CondEndorseSeriesTriple


# extension point -> (triples attribute, point seen by the measurements)
_MEASUREMENT_POINTS = {
    EXT_REFERENCE_VALUE: (("reference_values",), EXT_MVAL),
    EXT_REFERENCE_VALUE_FLAGS: (("reference_values",), EXT_FLAGS),
    EXT_ENDORSED_VALUE: (("endorsed_values",), EXT_MVAL),
    EXT_ENDORSED_VALUE_FLAGS: (("endorsed_values",), EXT_FLAGS),
    EXT_COND_ENDORSE_SERIES_VALUE: (("cond_endorse_series",), EXT_MVAL),
    EXT_COND_ENDORSE_SERIES_VALUE_FLAGS: (("cond_endorse_series",), EXT_FLAGS),
    EXT_MVAL: (("reference_values", "endorsed_values", "cond_endorse_series"), EXT_MVAL),
    EXT_FLAGS: (("reference_values", "endorsed_values", "cond_endorse_series"), EXT_FLAGS),
}


class Triples(MapStruct):
    """Container of the triples carried by a CoMID."""

    FIELDS = (
        Field("reference_values", 0, "reference-values", ObjectCodec(ValueTriples, omit_empty=True)),
        Field("endorsed_values", 1, "endorsed-values", ObjectCodec(ValueTriples, omit_empty=True)),
        Field(
            "attest_verif_keys",
            2,
            "attester-verification-keys",
            ObjectCodec(KeyTriples, omit_empty=True),
        ),
        Field("dev_identity_keys", 3, "dev-identity-keys", ObjectCodec(KeyTriples, omit_empty=True)),
        Field(
            "cond_endorse_series",
            8,
            "cond-endorse-series",
            ObjectCodec(CondEndorseSeriesTriples, omit_empty=True),
        ),
    )
    EXTENSION_POINT = EXT_TRIPLES

    _COLLECTIONS = {
        "reference_values": ValueTriples,
        "endorsed_values": ValueTriples,
        "attest_verif_keys": KeyTriples,
        "dev_identity_keys": KeyTriples,
        "cond_endorse_series": CondEndorseSeriesTriples,
    }

    def _collection(self, attr: str) -> Collection:
        current = getattr(self, attr)
        if current is None:
            current = self._COLLECTIONS[attr]()
            setattr(self, attr, current)
        return current

    def register_extensions(self, exts: ExtensionMap) -> None:
        per_attr: dict[str, ExtensionMap] = {}
        for point, value in exts.items():
            if point == EXT_TRIPLES:
                self.extensions.register(value)
                continue
            if point not in _MEASUREMENT_POINTS:
                raise unexpected_point(point)
            attrs, inner_point = _MEASUREMENT_POINTS[point]
            for attr in attrs:
                per_attr.setdefault(attr, ExtensionMap()).add(inner_point, value)

        for attr, sub in per_attr.items():
            self._collection(attr).register_extensions(sub)

    def add_reference_value(self, triple: ValueTriple) -> "Triples":
        self._collection("reference_values").add(triple)
        return self

    def add_endorsed_value(self, triple: ValueTriple) -> "Triples":
        self._collection("endorsed_values").add(triple)
        return self

    def add_attest_verif_key(self, triple: KeyTriple) -> "Triples":
        self._collection("attest_verif_keys").add(triple)
        return self

    def add_dev_identity_key(self, triple: KeyTriple) -> "Triples":
        self._collection("dev_identity_keys").add(triple)
        return self

    def add_cond_endorse_series(self, triple: CondEndorseSeriesTriple) -> "Triples":
        self._collection("cond_endorse_series").add(triple)
        return self

    def is_empty(self) -> bool:
        return all(
            getattr(self, attr) is None or getattr(self, attr).is_empty()
            for attr in self._COLLECTIONS
        )

    def valid(self) -> None:
        if self.is_empty():
            raise ValueError("triples struct must not be empty")

        for attr, what in (
            ("reference_values", "reference value"),
            ("endorsed_values", "endorsed value"),
            ("attest_verif_keys", "attestation verification key"),
            ("dev_identity_keys", "device identity key"),
            ("cond_endorse_series", "conditional endorsement series"),
        ):
            collection = getattr(self, attr)
            if collection is None:
                continue
            for i, triple in enumerate(collection):
                try:
                    triple.valid()
                except ValueError as e:
                    raise ValueError(f"{what} at index {i}: {e}") from e

        self.extensions.call("validate_triples", self)
