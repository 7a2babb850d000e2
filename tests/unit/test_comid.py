"""Unit tests for CoMID documents, entities, linked tags and triples."""

import doctest
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from pycorim import cbor_utils
from pycorim import comid as comid_module
from pycorim.comid import Comid
from pycorim.cryptokey import CryptoKey
from pycorim.entity import ROLE_CREATOR, ROLE_TAG_CREATOR, Entity, Role
from pycorim.environment import Class, Environment
from pycorim.extensions import EXT_COMID, EXT_ENTITY, EXT_REFERENCE_VALUE, ExtensionMap
from pycorim.hashentry import SHA256
from pycorim.instance import Instance
from pycorim.linkedtag import REL_REPLACES, LinkedTag, Rel
from pycorim.measurement import Measurement
from pycorim.triples import CondEndorseSeriesRecord, CondEndorseSeriesTriple, KeyTriple, ValueTriple

# {1: {0: h'366d0a0a598845ed84882f2a544f6242'}}: identity only, no triples
NO_TRIPLES_COMID = "a101a10050366d0a0a598845ed84882f2a544f6242"

IMPL_ID = b"acme-implementation-id-000000001"


@dataclass
class ComidExtensions:
    """Adds a free-form comment to the CoMID map."""

    comment: Optional[str] = field(default=None, metadata={"cbor": -1, "json": "comment"})

    def validate_comid(self, comid: Comid) -> None:
        if self.comment == "":
            raise ValueError("empty comment")


@dataclass
class EntityExtensions:
    """Adds a postal address to every entity."""

    address: Optional[str] = field(default=None, metadata={"cbor": -1, "json": "address"})

    def validate_entity(self, entity: Entity) -> None:
        if self.address is not None and len(self.address) > 64:
            raise ValueError("address too long")


def minimal_comid() -> Comid:
    env = Environment(class_=Class.of(IMPL_ID, "psa.impl-id"))
    measurement = Measurement().set_key_string("BL").add_digest(SHA256, bytes(32))
    return (
        Comid()
        .set_tag_identity("my-ns:acme-roadrunner-supplement", 1)
        .add_entity("ACME Ltd.", "https://acme.example", ROLE_TAG_CREATOR, ROLE_CREATOR)
        .add_reference_value(ValueTriple(env, [measurement]))
    )


class TestValidation:
    """Validation failures and their message chains."""

    @pytest.mark.unit
    def test_empty_map(self):
        comid = Comid.from_cbor(bytes.fromhex("a0"))
        with pytest.raises(ValueError) as exc_info:
            comid.valid()
        assert str(exc_info.value) == "tag-identity validation failed: empty tag-id"

    @pytest.mark.unit
    def test_encode_reports_validation_error(self):
        with pytest.raises(ValueError, match="^tag-identity validation failed: empty tag-id$"):
            Comid().to_cbor()
        with pytest.raises(ValueError, match="^tag-identity validation failed: empty tag-id$"):
            Comid().to_json()

    @pytest.mark.unit
    def test_no_triples(self):
        comid = Comid.from_cbor(bytes.fromhex(NO_TRIPLES_COMID))
        assert comid.tag_identity.tag_id.is_uuid()
        with pytest.raises(ValueError) as exc_info:
            comid.valid()
        assert str(exc_info.value) == "triples validation failed: triples struct must not be empty"

    @pytest.mark.unit
    def test_empty_measurements(self):
        comid = minimal_comid()
        comid.triples.reference_values[0].measurements.clear()
        with pytest.raises(
            ValueError,
            match="triples validation failed: reference value at index 0: "
            "measurements validation failed: no measurement entries",
        ):
            comid.valid()

    @pytest.mark.unit
    def test_entity_without_roles(self):
        comid = minimal_comid()
        comid.entities[0].roles.clear()
        with pytest.raises(
            ValueError,
            match="entities validation failed: entity at index 0: invalid entity: empty roles",
        ):
            comid.valid()

    @pytest.mark.unit
    def test_relative_reg_id(self):
        entity = Entity("ACME Ltd.", None, [ROLE_CREATOR])
        entity.reg_id = "acme.example"
        with pytest.raises(ValueError, match="invalid entity: 'acme.example' is not an absolute URI"):
            entity.valid()

    @pytest.mark.unit
    def test_empty_environment(self):
        comid = minimal_comid()
        comid.add_attest_verif_key(KeyTriple(Environment(), []))
        with pytest.raises(
            ValueError,
            match="attestation verification key at index 0: "
            "environment validation failed: environment must not be empty",
        ):
            comid.valid()


class TestEncoding:
    """CBOR and JSON forms of a CoMID."""

    @pytest.mark.unit
    def test_psa_cbor_reencodes_identically(self, psa_comid: Comid):
        psa_comid.valid()
        data = psa_comid.to_cbor()

        decoded = Comid.from_cbor(data)
        decoded.valid()
        assert decoded.to_cbor() == data
        assert decoded == psa_comid

    @pytest.mark.unit
    def test_psa_key_order(self, psa_comid: Comid):
        data = psa_comid.to_cbor()
        obj = cbor_utils.decode(data)
        assert list(obj) == sorted(obj)

        # a producer emitting keys in another order is re-encoded sorted
        shuffled = cbor_utils.encode({k: obj[k] for k in reversed(list(obj))})
        assert Comid.from_cbor(shuffled).to_cbor() == data

    @pytest.mark.unit
    def test_psa_tags(self, psa_comid: Comid):
        data = psa_comid.to_cbor()
        assert bytes.fromhex("d90258") in data  # psa.impl-id
        assert bytes.fromhex("d90259") in data  # psa.refval-id

    @pytest.mark.unit
    def test_psa_json_roundtrip(self, psa_comid: Comid):
        obj = json.loads(psa_comid.to_json())
        assert obj["tag-identity"]["id"] == "43bbe37f-2e61-4b33-aed3-53cff1428b16"
        assert "version" not in obj["tag-identity"]
        digest = obj["triples"]["reference-values"][0]["measurements"][0]["value"]["digests"][0]
        assert digest == "sha-256;h0KPxSKAPTEGXnvOPPA/5HUJZjHl4Hu9eg/eYMTPJcc="
        assert Comid.from_json_obj(obj) == psa_comid

    @pytest.mark.unit
    def test_tag_version_kept(self):
        comid = minimal_comid()
        obj = cbor_utils.decode(comid.to_cbor())
        assert obj[1] == {0: "my-ns:acme-roadrunner-supplement", 1: 1}

    @pytest.mark.unit
    def test_empty_entities_elided(self):
        comid = minimal_comid()
        comid.entities.clear()
        assert 2 not in cbor_utils.decode(comid.to_cbor())
        assert "entities" not in comid.to_json_obj()

    @pytest.mark.unit
    def test_all_triple_kinds(self):
        comid = minimal_comid()
        env = Environment(instance=Instance().set_ueid(bytes.fromhex("02deadbeefdead")))
        comid.add_endorsed_value(ValueTriple(env, [Measurement().set_svn(3)]))
        key = CryptoKey.new("sha-256;h0KPxSKAPTEGXnvOPPA/5HUJZjHl4Hu9eg/eYMTPJcc=", "thumbprint")
        comid.add_dev_identity_key(KeyTriple(env, [key]))

        record = CondEndorseSeriesRecord()
        record.selection.add(Measurement().set_svn(1))
        record.addition.add(Measurement().set_name("patched"))
        condition = ValueTriple(env, [Measurement().set_name("fw")])
        comid.add_cond_endorse_series(CondEndorseSeriesTriple(condition).add_record(record))

        data = comid.to_cbor()
        assert sorted(cbor_utils.decode(data)[4]) == [0, 1, 3, 8]
        assert Comid.from_cbor(data) == comid
        assert Comid.from_json(comid.to_json()) == comid


class TestLinkedTagsAndRoles:
    """Extensible code registries."""

    @pytest.mark.unit
    def test_linked_tag(self):
        comid = minimal_comid().add_linked_tag("other-tag", REL_REPLACES)
        obj = comid.to_json_obj()
        assert obj["linked-tags"] == [{"target": "other-tag", "rel": "replaces"}]
        assert Comid.from_cbor(comid.to_cbor()) == comid

    @pytest.mark.unit
    def test_unknown_rel_name(self):
        with pytest.raises(ValueError, match="unknown rel 'foo'"):
            LinkedTag.from_json_obj({"target": "other-tag", "rel": "foo"})

    @pytest.mark.unit
    def test_unregistered_codes(self):
        assert str(Rel(7)) == "rel(7)"
        assert str(Role(9)) == "Role(9)"
        assert str(Rel()) == "unset"
        with pytest.raises(ValueError, match="unknown role 9"):
            Role(9).to_json_obj()

    @pytest.mark.unit
    def test_unknown_codes_accepted_in_cbor(self):
        tag = LinkedTag.from_cbor(cbor_utils.encode({0: "other-tag", 1: 7}))
        tag.valid()
        assert tag.rel == 7

    @pytest.mark.unit
    def test_unset_rel(self):
        with pytest.raises(ValueError, match="rel validation failed: rel is unset"):
            LinkedTag("other-tag").valid()


class TestExtensions:
    """Profile extensions attached to a CoMID."""

    @pytest.mark.unit
    def test_comid_extension(self):
        comid = minimal_comid()
        comid.register_extensions(ExtensionMap({EXT_COMID: ComidExtensions}))
        comid.extensions.set("comment", "hello")

        obj = cbor_utils.decode(comid.to_cbor())
        assert obj[-1] == "hello"

        decoded = Comid.from_cbor(comid.to_cbor(), ExtensionMap({EXT_COMID: ComidExtensions}))
        assert decoded.extensions.get_string("comment") == "hello"
        assert decoded == comid

        comid.extensions.set(-1, "")
        with pytest.raises(ValueError, match="empty comment"):
            comid.valid()

    @pytest.mark.unit
    def test_entity_extension_applies_to_later_entities(self):
        comid = Comid().set_tag_identity("t")
        comid.register_extensions(ExtensionMap({EXT_ENTITY: EntityExtensions}))
        comid.add_entity("ACME Ltd.", None, ROLE_CREATOR)
        entity = comid.entities[0]
        entity.extensions.set("address", "1 Road Runner Way")
        assert entity.to_json_obj()["address"] == "1 Road Runner Way"
        assert entity.to_cbor_obj()[-1] == "1 Road Runner Way"

        entity.extensions.set("address", "x" * 65)
        with pytest.raises(ValueError, match="address too long"):
            entity.valid()

    @pytest.mark.unit
    def test_extension_fields_decoded_from_json(self, psa_template: dict[str, Any]):
        psa_template["entities"][0]["address"] = "1 Road Runner Way"
        comid = Comid.from_json(
            json.dumps(psa_template), ExtensionMap({EXT_ENTITY: EntityExtensions})
        )
        assert comid.entities[0].extensions.get("address") == "1 Road Runner Way"

    @pytest.mark.unit
    def test_measurement_extension_routed_by_triples(self, psa_comid: Comid):
        @dataclass
        class Timestamp:
            timestamp: Optional[int] = field(default=None, metadata={"cbor": -1, "json": "timestamp"})

        psa_comid.register_extensions(ExtensionMap({EXT_REFERENCE_VALUE: Timestamp}))
        measurement = psa_comid.triples.reference_values[0].measurements[0]
        assert measurement.val.extensions.have_extensions()

    @pytest.mark.unit
    def test_unknown_point(self):
        with pytest.raises(ValueError, match="unexpected extension point: Signer"):
            Comid().register_extensions(ExtensionMap({"Signer": ComidExtensions}))


class TestDocExamples:
    """Examples in the module docstrings run as written."""

    @pytest.mark.unit
    def test_comid_examples(self):
        result = doctest.testmod(comid_module)
        assert result.attempted > 0
        assert result.failed == 0
