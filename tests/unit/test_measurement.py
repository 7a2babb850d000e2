"""Unit tests for measurements, measurement values, flags and integrity registers."""

from dataclasses import dataclass, field
from typing import Optional

import pytest

from pycorim import cbor_utils
from pycorim.extensions import EXT_FLAGS, EXT_MVAL, ExtensionMap
from pycorim.flagsmap import Flag, FlagsMap
from pycorim.hashentry import SHA256, SHA384, HashEntry
from pycorim.integrity_registers import IntegrityRegisters
from pycorim.measurement import SCHEME_SEMVER, Measurement, Mval

FLAG_IS_FOO = 100


@dataclass
class FooFlags:
    """Flags extension adding one custom flag."""

    is_foo: Optional[bool] = field(default=None, metadata={"cbor": -1, "json": "is-foo"})

    def set_true(self, flag: int) -> None:
        if flag == FLAG_IS_FOO:
            self.is_foo = True

    def set_false(self, flag: int) -> None:
        if flag == FLAG_IS_FOO:
            self.is_foo = False

    def clear(self, flag: int) -> None:
        if flag == FLAG_IS_FOO:
            self.is_foo = None

    def get(self, flag: int) -> Optional[bool]:
        return self.is_foo if flag == FLAG_IS_FOO else None

    def any_set(self) -> bool:
        return self.is_foo is not None


@dataclass
class TimestampMval:
    """Measurement values extension carrying a timestamp."""

    timestamp: Optional[int] = field(default=None, metadata={"cbor": -1, "json": "timestamp"})

    def validate_mval(self, mval: Mval) -> None:
        if self.timestamp is not None and self.timestamp < 0:
            raise ValueError("negative timestamp")


def digest(fill: int, alg: int = SHA256) -> HashEntry:
    size = 48 if alg == SHA384 else 32
    return HashEntry(alg, bytes([fill]) * size)


class TestMval:
    """Measurement value map encoding and validation."""

    @pytest.mark.unit
    def test_empty_rejected(self):
        with pytest.raises(ValueError, match="no measurement value set"):
            Mval().valid()

    @pytest.mark.unit
    def test_keys(self):
        m = (
            Measurement()
            .set_version("1.2.3", SCHEME_SEMVER)
            .set_svn(2)
            .add_digest(SHA256, bytes(32))
            .set_flag_true(Flag.IS_SECURE)
            .set_raw_value_bytes(b"\x01\x02", b"\xff\x00")
            .set_mac_addr("00:11:22:33:44:55")
            .set_ip_addr("10.0.0.1")
            .set_serial_number("S/N 1")
            .set_ueid(b"\x02" + bytes(6))
            .set_uuid("31fb5abf-023e-4992-aa4e-95f9c1503bfa")
            .set_name("fw")
            .add_register_digest(0, digest(1))
        )
        m.valid()
        assert sorted(m.val.to_cbor_obj()) == [0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 14]

    @pytest.mark.unit
    def test_json_names(self):
        m = Measurement().set_mac_addr("00:11:22:33:44:55").set_version("1.0", SCHEME_SEMVER)
        obj = m.val.to_json_obj()
        assert obj["mac-addr"] == "00:11:22:33:44:55"
        assert obj["version"] == {"value": "1.0", "scheme": "semver"}

    @pytest.mark.unit
    def test_cbor_roundtrip(self):
        m = Measurement().set_key_string("BL").add_digest(SHA256, bytes(32)).set_min_svn(3)
        decoded = Measurement.from_cbor(m.to_cbor())
        assert decoded == m
        assert decoded.val.svn.type() == "min-value"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "measurement, message",
        [
            (Measurement().set_mac_addr(bytes(5)), "invalid MAC address length"),
            (Measurement().set_ip_addr(bytes(5)), "invalid IP address length"),
            (Measurement().set_version("", SCHEME_SEMVER), "empty version"),
            (Measurement().add_digest(SHA256, bytes(20)), "length mismatch"),
            (Measurement().set_ueid(b"\x02"), "length must be 7 bytes"),
        ],
    )
    def test_member_validation(self, measurement: Measurement, message: str):
        with pytest.raises(ValueError, match=message):
            measurement.valid()

    @pytest.mark.unit
    def test_invalid_key(self):
        m = Measurement().set_key_uint(1).set_name("x")
        m.key.value.value = -1
        with pytest.raises(ValueError, match="invalid measurement key: negative value"):
            m.valid()

    @pytest.mark.unit
    def test_mval_extension(self):
        m = Measurement()
        m.register_extensions(ExtensionMap({EXT_MVAL: TimestampMval}))
        m.set_name("fw")
        m.val.extensions.set("timestamp", 1700000000)

        obj = m.val.to_cbor_obj()
        assert obj[-1] == 1700000000
        assert m.val.to_json_obj()["timestamp"] == 1700000000

        decoded = Measurement()
        decoded.register_extensions(ExtensionMap({EXT_MVAL: TimestampMval}))
        decoded.load_cbor_obj(cbor_utils.decode(m.to_cbor()))
        assert decoded.val.extensions.get_int(-1) == 1700000000

        m.val.extensions.set("timestamp", -5)
        with pytest.raises(ValueError, match="negative timestamp"):
            m.valid()

    @pytest.mark.unit
    def test_extension_only_mval_is_not_empty(self):
        mval = Mval()
        mval.register_extensions(ExtensionMap({EXT_MVAL: TimestampMval(timestamp=1)}))
        mval.valid()

    @pytest.mark.unit
    def test_unknown_keys_ignored_without_extension(self):
        decoded = Measurement.from_cbor(cbor_utils.encode({1: {11: "fw", -70: "ignored"}}))
        assert decoded.val.name == "fw"

    @pytest.mark.unit
    def test_unexpected_point(self):
        with pytest.raises(ValueError, match="unexpected extension point: Comid"):
            Mval().register_extensions(ExtensionMap({"Comid": TimestampMval}))


class TestFlags:
    """Tri-state flags and the empty flags elision rule."""

    @pytest.mark.unit
    def test_tri_state(self):
        flags = FlagsMap()
        assert flags.get(Flag.IS_DEBUG) is None
        flags.set_false(Flag.IS_DEBUG)
        assert flags.get(Flag.IS_DEBUG) is False
        flags.set_true(Flag.IS_DEBUG)
        assert flags.get(Flag.IS_DEBUG) is True
        flags.clear(Flag.IS_DEBUG)
        assert not flags.any_set()

    @pytest.mark.unit
    def test_unset_extension_flags_elided(self):
        m = Measurement().set_name("fw")
        m.register_extensions(ExtensionMap({EXT_FLAGS: FooFlags}))
        assert m.val.flags is not None
        assert 3 not in m.val.to_cbor_obj()
        assert "flags" not in m.val.to_json_obj()

    @pytest.mark.unit
    def test_extension_flag_only(self):
        m = Measurement()
        m.register_extensions(ExtensionMap({EXT_FLAGS: FooFlags}))
        m.set_flag_true(FLAG_IS_FOO)
        m.valid()
        assert m.val.flags.get(FLAG_IS_FOO) is True
        assert m.val.to_cbor_obj()[3] == {-1: True}

        m.clear_flag(FLAG_IS_FOO)
        assert 3 not in m.val.to_cbor_obj()

    @pytest.mark.unit
    def test_flags_json(self):
        m = Measurement().set_flag_true(Flag.IS_CONFIGURED).set_flag_false(Flag.IS_RUNTIME_MEASURED)
        assert m.val.to_json_obj()["flags"] == {"is-configured": True, "is-runtime-meas": False}


class TestIntegrityRegisters:
    """Register sets keyed by integers and text labels."""

    @pytest.mark.unit
    def test_json_preserves_key_type(self):
        regs = IntegrityRegisters().add_digest(3, digest(1)).add_digest("PCR", digest(2))
        obj = regs.to_json_obj()
        assert obj["3"] == {"key-type": "uint", "value": [str(digest(1))]}
        assert obj["PCR"]["key-type"] == "text"

        decoded = IntegrityRegisters.from_json_obj(obj)
        assert set(decoded.registers) == {3, "PCR"}
        assert decoded == regs

    @pytest.mark.unit
    def test_cbor_mixed_keys(self):
        regs = IntegrityRegisters().add_digests(0, [digest(1), digest(2)])
        regs.add_digest("PCR", digest(3, SHA384))
        decoded = IntegrityRegisters.from_cbor(regs.to_cbor())
        assert decoded == regs
        assert decoded.get(0) == regs.get(0)

    @pytest.mark.unit
    def test_negative_json_key(self):
        obj = {"-1": {"key-type": "uint", "value": [str(digest(1))]}}
        with pytest.raises(ValueError, match="invalid negative integer key"):
            IntegrityRegisters.from_json_obj(obj)

    @pytest.mark.unit
    def test_unknown_key_type(self):
        obj = {"0": {"key-type": "bytes", "value": [str(digest(1))]}}
        with pytest.raises(ValueError, match="unexpected key type for index: bytes"):
            IntegrityRegisters.from_json_obj(obj)

    @pytest.mark.unit
    def test_equality_ignores_digest_order(self):
        a = IntegrityRegisters().add_digests(0, [digest(1), digest(2)])
        b = IntegrityRegisters().add_digests(0, [digest(2), digest(1)])
        assert a == b
        assert a != IntegrityRegisters().add_digests(1, [digest(1), digest(2)])

    @pytest.mark.unit
    def test_matches_reference(self):
        claim = IntegrityRegisters().add_digests(0, [digest(1), digest(2)])
        claim.add_digest(1, digest(3))
        assert claim.matches(IntegrityRegisters().add_digest(0, digest(2)))
        assert not claim.matches(IntegrityRegisters().add_digest(0, digest(4)))
        assert not claim.matches(IntegrityRegisters().add_digest(2, digest(1)))

    @pytest.mark.unit
    def test_add_nothing(self):
        with pytest.raises(ValueError, match="no digests to add"):
            IntegrityRegisters().add_digests(0, [])
