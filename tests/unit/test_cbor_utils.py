"""Unit tests for the shared CBOR configuration and tag registry."""

from datetime import datetime, timezone

import cbor2
import pytest

from pycorim import cbor_utils
from pycorim.typechoice import TypeChoiceValue


class TestCodecConfiguration:
    """Encode/decode discipline shared by every codec."""

    @pytest.mark.unit
    def test_definite_length_roundtrip(self):
        data = cbor_utils.encode({0: [1, 2, b"\x01"], 1: "text"})
        assert cbor_utils.decode(data) == {0: [1, 2, b"\x01"], 1: "text"}

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "hex_data",
        [
            "9f0102ff",  # indefinite array
            "bf0001ff",  # indefinite map
            "5f4101ff",  # indefinite byte string
            "a1009f01ff",  # nested indefinite array
        ],
    )
    def test_indefinite_length_rejected(self, hex_data: str):
        with pytest.raises(cbor_utils.CBORDecodeError, match="indefinite-length"):
            cbor_utils.decode(bytes.fromhex(hex_data))

    @pytest.mark.unit
    def test_time_is_tagged(self):
        data = cbor_utils.encode(datetime(2021, 12, 31, tzinfo=timezone.utc))
        # tag 1 (epoch time) followed by the integer timestamp
        assert data[0] == 0xC1
        assert cbor2.loads(data) == datetime(2021, 12, 31, tzinfo=timezone.utc)

    @pytest.mark.unit
    def test_raw_cbor_is_inlined(self):
        tag = bytes.fromhex("d901f944deadbeef")
        data = cbor_utils.encode([cbor_utils.RawCBOR(tag)])
        assert data == b"\x81" + tag

    @pytest.mark.unit
    def test_unsupported_type(self):
        with pytest.raises(cbor_utils.CBOREncodeError):
            cbor_utils.encode(object())

    @pytest.mark.unit
    def test_uuid_seen_as_tag(self):
        obj = cbor_utils.decode(bytes.fromhex("d8255031fb5abf023e4992aa4e95f9c1503bfa"))
        assert cbor_utils.is_tag(obj, cbor_utils.TAG_UUID)
        assert cbor_utils.as_tag(obj).value == bytes.fromhex("31fb5abf023e4992aa4e95f9c1503bfa")


class TestTagPrefixes:
    """Three-byte prefixes of the tags embedded in a CoRIM."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "prefix, tag",
        [
            (cbor_utils.COMID_TAG_PREFIX, cbor_utils.COMID_TAG),
            (cbor_utils.COSWID_TAG_PREFIX, cbor_utils.COSWID_TAG),
            (cbor_utils.COTS_TAG_PREFIX, cbor_utils.COTS_TAG),
        ],
    )
    def test_known_prefix(self, prefix: bytes, tag: int):
        assert cbor_utils.split_tag_prefix(prefix + b"\xa0") == (tag, b"\xa0")

    @pytest.mark.unit
    def test_unknown_prefix(self):
        data = bytes.fromhex("d903e7a0")
        assert cbor_utils.split_tag_prefix(data) == (None, data)

    @pytest.mark.unit
    def test_prefixes_match_encoder(self):
        assert cbor_utils.encode(cbor_utils.create_tag(506, 0))[:3] == cbor_utils.COMID_TAG_PREFIX
        assert cbor_utils.encode(cbor_utils.create_tag(501, 0))[:3] == (
            cbor_utils.UNSIGNED_CORIM_TAG_PREFIX
        )


class TestRegistry:
    """Process-wide tag registry and the registration phase."""

    @pytest.mark.unit
    def test_builtin_tags_registered(self):
        tags = cbor_utils.registered_tags()
        for tag in (32, 37, 111, 550, 552, 553, 560, 564, 600, 601, 602, 603, 604):
            assert tag in tags

    @pytest.mark.unit
    def test_duplicate_tag(self):
        with pytest.raises(ValueError, match="tag 37 is already registered"):
            cbor_utils.register_tag(cbor_utils.TAG_UUID, TypeChoiceValue)

    @pytest.mark.unit
    def test_freeze_closes_registration(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(cbor_utils, "_registries_frozen", False)
        cbor_utils.freeze_registries()
        assert cbor_utils.registries_frozen()
        with pytest.raises(ValueError, match="registration is closed"):
            cbor_utils.register_tag(65000, TypeChoiceValue)
        assert cbor_utils.lookup_tag(65000) is None


class TestRawSlices:
    """Exact input bytes of array items and map values."""

    @pytest.mark.unit
    def test_array_items(self):
        dated = bytes.fromhex("c074") + b"2024-01-01T00:00:00Z"
        data = bytes.fromhex("83") + dated + bytes.fromhex("d901f941ff") + b"\x01"
        assert cbor_utils.raw_array_items(data) == [dated, bytes.fromhex("d901f941ff"), b"\x01"]
        assert cbor_utils.raw_array_items(bytes.fromhex("d9ffff") + data)[2] == b"\x01"

    @pytest.mark.unit
    def test_map_values(self):
        data = cbor_utils.encode({0: "a", "k": [1, 2], b"x": 3})
        assert cbor_utils.raw_map_values(data) == {0: b"\x61a", "k": b"\x82\x01\x02"}

    @pytest.mark.unit
    def test_wrong_major_type(self):
        with pytest.raises(cbor_utils.CBORDecodeError, match="expecting CBOR array"):
            cbor_utils.raw_array_items(b"\xa0")
        with pytest.raises(cbor_utils.CBORDecodeError, match="expecting CBOR map"):
            cbor_utils.raw_map_values(b"\x80")
