"""Unit tests for the diagnostic notation helpers."""

import pytest

from pycorim import cbor_utils
from pycorim.corim import UnsignedCorim
from pycorim.edn_utils import cbor_to_diag, diag_to_cbor, object_to_diag


class TestDiagnosticNotation:
    """Rendering CoRIM structures as EDN."""

    @pytest.mark.unit
    def test_tags_rendered(self):
        edn = cbor_to_diag(bytes.fromhex("d901f944deadbeef"))
        assert "505(" in edn
        assert "deadbeef" in edn.lower()

    @pytest.mark.unit
    def test_minimal_corim(self, minimal_corim: UnsignedCorim):
        edn = cbor_to_diag(minimal_corim.to_cbor())
        assert edn.startswith("{")
        assert "505(" in edn

    @pytest.mark.unit
    def test_diag_to_cbor(self):
        data = diag_to_cbor('{0: "corim-1", 1: [506({})]}')
        obj = cbor_utils.decode(data)
        assert obj[0] == "corim-1"
        assert cbor_utils.is_tag(obj[1][0], cbor_utils.COMID_TAG)

    @pytest.mark.unit
    def test_object_to_diag(self):
        edn = object_to_diag({1: cbor_utils.create_tag(cbor_utils.TAG_URI, "https://acme.example")})
        assert '32("https://acme.example")' in edn
