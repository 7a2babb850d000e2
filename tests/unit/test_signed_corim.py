"""Unit tests for COSE Sign1 wrapped CoRIMs and JWK key handling."""

from typing import Any

import pytest

from pycorim import cbor_utils, profiles
from pycorim.corim import UnsignedCorim
from pycorim.cose_sign1 import (
    ALG_ES256,
    ALG_ES384,
    cose_sign1_decode,
    cose_sign1_sign,
    cose_sign1_verify,
)
from pycorim.jwk import (
    alg_from_jwk,
    generate_jwk,
    jwk_to_cose_key,
    kid_from_jwk,
    load_jwk,
    new_signer_from_jwk,
    new_verifier_from_jwk,
    private_key_from_jwk,
    public_jwk,
)
from pycorim.meta import Meta
from pycorim.signed_corim import CONTENT_TYPE, HEADER_CORIM_META, SignedCorim


def make_signed(corim: UnsignedCorim, meta: Meta) -> SignedCorim:
    signed = SignedCorim()
    signed.unsigned_corim = corim
    signed.meta = meta
    return signed


def sign_raw(payload: bytes, jwk: dict[str, Any], **protected: Any) -> bytes:
    """Sign an arbitrary payload with hand-picked protected header members."""
    header = {1: ALG_ES256}
    header.update({int(k.lstrip("h")): v for k, v in protected.items()})
    return cose_sign1_sign(payload, new_signer_from_jwk(jwk), header)


class TestSignVerify:
    """Round trips through sign and verify."""

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_sign_then_verify(
        self,
        minimal_corim: UnsignedCorim,
        meta: Meta,
        ec_jwk: dict[str, Any],
        ec_public_jwk: dict[str, Any],
    ):
        data = make_signed(minimal_corim, meta).sign(new_signer_from_jwk(ec_jwk))
        assert data[0] == 0xD2  # tag 18

        decoded = SignedCorim().from_cose(data)
        decoded.verify(new_verifier_from_jwk(ec_public_jwk))
        assert decoded.unsigned_corim == minimal_corim
        assert decoded.meta == meta
        assert decoded.message.protected_header[3] == "application/rim+cbor"

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_signed_payload_is_plain_map(
        self, minimal_corim: UnsignedCorim, meta: Meta, ec_jwk: dict[str, Any]
    ):
        data = make_signed(minimal_corim, meta).sign(new_signer_from_jwk(ec_jwk))
        message = cose_sign1_decode(data)
        assert message.payload == minimal_corim.to_cbor()
        assert cbor_utils.decode(message.protected_header[HEADER_CORIM_META]) == (
            meta.to_cbor_obj()
        )

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_tagged_payload_accepted(self, minimal_corim: UnsignedCorim, meta: Meta, ec_jwk: dict[str, Any]):
        data = sign_raw(
            minimal_corim.to_tagged_cbor(), ec_jwk, h3=CONTENT_TYPE, h8=meta.to_cbor()
        )
        assert SignedCorim().from_cose(data).unsigned_corim == minimal_corim

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_embedded_tag_bytes_kept(self, meta: Meta, ec_jwk: dict[str, Any]):
        coswid = bytes.fromhex("d901f9a200617802c074") + b"2024-01-01T00:00:00Z"
        corim = UnsignedCorim().set_id("corim-1").add_tag(coswid)
        data = make_signed(corim, meta).sign(new_signer_from_jwk(ec_jwk))
        decoded = SignedCorim().from_cose(data)
        assert decoded.unsigned_corim.tags == [coswid]
        assert profiles.unmarshal_signed_corim_from_cbor(data).unsigned_corim.tags == [coswid]

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_wrong_key(self, minimal_corim: UnsignedCorim, meta: Meta, ec_jwk: dict[str, Any]):
        data = make_signed(minimal_corim, meta).sign(new_signer_from_jwk(ec_jwk))
        decoded = SignedCorim().from_cose(data)
        with pytest.raises(ValueError, match="^verification failed$"):
            decoded.verify(new_verifier_from_jwk(generate_jwk()))

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_es384(self, minimal_corim: UnsignedCorim, meta: Meta, ec_jwk: dict[str, Any]):
        key = generate_jwk("P-384", kid="p384")
        data = make_signed(minimal_corim, meta).sign(
            new_signer_from_jwk(key), kid=kid_from_jwk(key)
        )
        decoded = SignedCorim().from_cose(data)
        assert decoded.message.algorithm == ALG_ES384
        assert decoded.message.unprotected_header == {4: b"p384"}
        decoded.verify(new_verifier_from_jwk(public_jwk(key)))

        with pytest.raises(ValueError, match="algorithm mismatch"):
            decoded.verify(new_verifier_from_jwk(ec_jwk))

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_profile_aware_decode(self, minimal_corim: UnsignedCorim, meta: Meta, ec_jwk: dict[str, Any]):
        minimal_corim.add_profile("http://example.com/unregistered")
        data = make_signed(minimal_corim, meta).sign(new_signer_from_jwk(ec_jwk))
        decoded = profiles.unmarshal_signed_corim_from_cbor(data)
        assert str(decoded.unsigned_corim.get_profile()) == "http://example.com/unregistered"
        decoded.verify(new_verifier_from_jwk(ec_jwk))

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_tampered_signature(self, minimal_corim: UnsignedCorim, meta: Meta, ec_jwk: dict[str, Any]):
        data = bytearray(make_signed(minimal_corim, meta).sign(new_signer_from_jwk(ec_jwk)))
        data[-1] ^= 0x01
        ok, payload = cose_sign1_verify(bytes(data), new_verifier_from_jwk(ec_jwk))
        assert not ok
        assert payload is None


class TestSignErrors:
    """Failures detected before signing."""

    @pytest.mark.unit
    def test_nil_signer(self, minimal_corim: UnsignedCorim, meta: Meta):
        with pytest.raises(ValueError, match="^nil signer$"):
            make_signed(minimal_corim, meta).sign(None)

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_invalid_corim(self, meta: Meta, ec_jwk: dict[str, Any]):
        corim = UnsignedCorim().add_coswid(bytes.fromhex("44deadbeef"))
        with pytest.raises(ValueError) as exc_info:
            make_signed(corim, meta).sign(new_signer_from_jwk(ec_jwk))
        assert str(exc_info.value) == "failed validation of unsigned CoRIM: empty id"

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_invalid_meta(self, minimal_corim: UnsignedCorim, ec_jwk: dict[str, Any]):
        with pytest.raises(
            ValueError, match="failed CBOR encoding of CoRIM Meta: invalid meta: empty name"
        ):
            make_signed(minimal_corim, Meta()).sign(new_signer_from_jwk(ec_jwk))

    @pytest.mark.unit
    def test_verify_without_message(self, ec_jwk: dict[str, Any]):
        with pytest.raises(ValueError, match="no Sign1 message found"):
            SignedCorim().verify(new_verifier_from_jwk(ec_jwk))


class TestDecodeErrors:
    """Failures reported while decoding a signed CoRIM."""

    @pytest.mark.unit
    def test_not_cose(self):
        with pytest.raises(
            ValueError,
            match="failed CBOR decoding for COSE-Sign1 signed CoRIM: "
            "COSE Sign1 must be an array of four elements",
        ):
            SignedCorim().from_cose(b"\x00")

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_inner_corim_invalid(self, meta: Meta, ec_jwk: dict[str, Any]):
        payload = cbor_utils.encode({0: "corim-1"})
        data = sign_raw(payload, ec_jwk, h3=CONTENT_TYPE, h8=meta.to_cbor())
        with pytest.raises(ValueError) as exc_info:
            SignedCorim().from_cose(data)
        assert str(exc_info.value) == (
            "failed validation of unsigned CoRIM: tags validation failed: no tags"
        )

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_inner_corim_not_a_map(self, meta: Meta, ec_jwk: dict[str, Any]):
        data = sign_raw(b"\x01", ec_jwk, h3=CONTENT_TYPE, h8=meta.to_cbor())
        with pytest.raises(ValueError, match="^failed CBOR decoding of unsigned CoRIM: "):
            SignedCorim().from_cose(data)

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_wrong_content_type(self, minimal_corim: UnsignedCorim, meta: Meta, ec_jwk: dict[str, Any]):
        data = sign_raw(minimal_corim.to_cbor(), ec_jwk, h3="application/cbor", h8=meta.to_cbor())
        with pytest.raises(
            ValueError,
            match='processing COSE headers: expecting content type "application/rim\\+cbor", '
            'got "application/cbor" instead',
        ):
            SignedCorim().from_cose(data)

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    @pytest.mark.parametrize(
        "headers, message",
        [
            ({"h8": b"\xa0"}, "missing mandatory content type"),
            ({"h3": CONTENT_TYPE}, "missing mandatory corim.meta"),
            ({"h3": CONTENT_TYPE, "h8": "meta"}, "expecting CBOR-encoded CoRIM Meta, got str"),
            ({"h3": CONTENT_TYPE, "h8": b"\xff"}, "unable to decode CoRIM Meta"),
        ],
    )
    def test_bad_headers(
        self,
        minimal_corim: UnsignedCorim,
        ec_jwk: dict[str, Any],
        headers: dict[str, Any],
        message: str,
    ):
        data = sign_raw(minimal_corim.to_cbor(), ec_jwk, **headers)
        with pytest.raises(ValueError, match=f"^processing COSE headers: {message}"):
            SignedCorim().from_cose(data)


class TestJWK:
    """JWK parsing and COSE key conversion."""

    @pytest.mark.unit
    def test_cose_key(self, ec_public_jwk: dict[str, Any]):
        cose_key = jwk_to_cose_key(ec_public_jwk)
        assert cose_key[1] == 2  # EC2
        assert cose_key[3] == ALG_ES256
        assert cose_key[-1] == 1  # P-256
        assert cose_key[2] == b"1"
        assert len(cose_key[-2]) == 32

    @pytest.mark.unit
    def test_algorithm_from_curve(self, ec_jwk: dict[str, Any]):
        assert alg_from_jwk(ec_jwk) == ALG_ES256

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "jwk, message",
        [
            ({"kty": "RSA"}, "unsupported key type 'RSA'"),
            ({"kty": "EC", "crv": "P-999"}, "unknown elliptic curve P-999"),
        ],
    )
    def test_unsupported_keys(self, jwk: dict[str, Any], message: str):
        with pytest.raises(ValueError, match=message):
            alg_from_jwk(jwk)

    @pytest.mark.unit
    def test_not_an_object(self):
        with pytest.raises(ValueError, match="invalid JWK: expecting a JSON object"):
            load_jwk("[]")
        with pytest.raises(ValueError, match="invalid JWK"):
            load_jwk("{")

    @pytest.mark.unit
    def test_public_key_cannot_sign(self, ec_public_jwk: dict[str, Any]):
        with pytest.raises(ValueError, match="JWK does not contain a private key"):
            new_signer_from_jwk(ec_public_jwk)

    @pytest.mark.unit
    @pytest.mark.requires_crypto
    def test_mismatched_private_part(self, ec_jwk: dict[str, Any]):
        other = generate_jwk()
        mixed = dict(ec_jwk, d=other["d"])
        with pytest.raises(ValueError, match="do not match"):
            private_key_from_jwk(mixed)

    @pytest.mark.unit
    def test_short_coordinate(self, ec_public_jwk: dict[str, Any]):
        with pytest.raises(ValueError, match="EC coordinate must be 32 bytes"):
            jwk_to_cose_key(dict(ec_public_jwk, x="AAAA"))
