"""Signed CoRIM: an unsigned CoRIM wrapped in a COSE Sign1 envelope."""

from typing import Any, Optional

from . import cbor_utils
from .corim import UnsignedCorim
from .cose_sign1 import (
    HEADER_ALG,
    HEADER_CONTENT_TYPE,
    HEADER_KID,
    Sign1Message,
    Signer,
    Verifier,
    cose_sign1_decode,
    cose_sign1_sign,
)
from .extensions import EXT_CORIM_ENTITY, EXT_SIGNER, EXT_UNSIGNED_CORIM, ExtensionMap, unexpected_point
from .meta import Meta

CONTENT_TYPE = "application/rim+cbor"
HEADER_CORIM_META = 8


class SignedCorim:
    """Signs and verifies COSE Sign1 wrapped CoRIMs.

    The protected header carries the algorithm, the content type
    ``application/rim+cbor`` and the CBOR-encoded corim-meta map. The payload
    is the encoded unsigned CoRIM.
    """

    def __init__(self) -> None:
        self.unsigned_corim = UnsignedCorim()
        self.meta = Meta()
        self.message: Optional[Sign1Message] = None

    def register_extensions(self, exts: ExtensionMap) -> None:
        """Attach Signer extensions to the meta and the rest to the CoRIM."""
        corim_exts = ExtensionMap()
        for point, value in exts.items():
            if point == EXT_SIGNER:
                self.meta.register_extensions(ExtensionMap({EXT_SIGNER: value}))
            elif point in (EXT_UNSIGNED_CORIM, EXT_CORIM_ENTITY):
                corim_exts.add(point, value)
            else:
                raise unexpected_point(point)
        if corim_exts:
            self.unsigned_corim.register_extensions(corim_exts)

    def _process_headers(self, message: Sign1Message) -> None:
        hdr = message.protected_header
        if not hdr:
            raise ValueError("missing mandatory protected header")

        if HEADER_CONTENT_TYPE not in hdr:
            raise ValueError("missing mandatory content type")
        content_type = hdr[HEADER_CONTENT_TYPE]
        if content_type != CONTENT_TYPE:
            raise ValueError(
                f'expecting content type "{CONTENT_TYPE}", got "{content_type}" instead'
            )

        if HEADER_CORIM_META not in hdr:
            raise ValueError("missing mandatory corim.meta")
        meta_cbor = hdr[HEADER_CORIM_META]
        if not isinstance(meta_cbor, bytes):
            raise ValueError(
                f"expecting CBOR-encoded CoRIM Meta, got {type(meta_cbor).__name__} instead"
            )

        try:
            self.meta.load_cbor_obj(cbor_utils.decode(meta_cbor))
        except (ValueError, cbor_utils.CBORDecodeError) as e:
            raise ValueError(f"unable to decode CoRIM Meta: {e}") from e

    def from_cose(self, data: bytes) -> "SignedCorim":
        """Decode a signed CoRIM and check the embedded unsigned CoRIM.

        On success the unsigned CoRIM and the meta are available on the
        instance. The signature is not checked, see ``verify``.

        Raises:
            ValueError: If decoding or validation fails
        """
        try:
            message = cose_sign1_decode(data)
        except ValueError as e:
            raise ValueError(f"failed CBOR decoding for COSE-Sign1 signed CoRIM: {e}") from e

        try:
            self._process_headers(message)
        except ValueError as e:
            raise ValueError(f"processing COSE headers: {e}") from e

        try:
            self.unsigned_corim.load_cbor(message.payload)
        except (ValueError, cbor_utils.CBORDecodeError) as e:
            raise ValueError(f"failed CBOR decoding of unsigned CoRIM: {e}") from e

        try:
            self.unsigned_corim.valid()
        except ValueError as e:
            raise ValueError(f"failed validation of unsigned CoRIM: {e}") from e

        self.message = message
        return self

    @classmethod
    def from_cbor(cls, data: bytes, extensions: Optional[ExtensionMap] = None) -> "SignedCorim":
        ret = cls()
        if extensions:
            ret.register_extensions(extensions)
        return ret.from_cose(data)

    def sign(self, signer: Signer, kid: Optional[bytes] = None) -> bytes:
        """Sign the unsigned CoRIM and meta.

        Args:
            signer: A COSE Sign1 signer (see ``jwk.new_signer_from_jwk``)
            kid: Optional key identifier for the unprotected header

        Returns:
            CBOR-encoded COSE Sign1 message with tag 18

        Raises:
            ValueError: If the signer is missing or the CoRIM or meta are invalid
        """
        if signer is None:
            raise ValueError("nil signer")

        try:
            self.unsigned_corim.valid()
        except ValueError as e:
            raise ValueError(f"failed validation of unsigned CoRIM: {e}") from e

        payload = self.unsigned_corim.to_cbor()

        try:
            meta_cbor = self.meta.to_cbor()
        except ValueError as e:
            raise ValueError(f"failed CBOR encoding of CoRIM Meta: {e}") from e

        protected: dict[int, Any] = {
            HEADER_ALG: signer.algorithm,
            HEADER_CONTENT_TYPE: CONTENT_TYPE,
            HEADER_CORIM_META: meta_cbor,
        }
        unprotected: dict[int, Any] = {}
        if kid is not None:
            unprotected[HEADER_KID] = kid

        data = cose_sign1_sign(payload, signer, protected, unprotected)
        self.message = cose_sign1_decode(data)
        return data

    def verify(self, verifier: Verifier) -> None:
        """Check the signature of a decoded or freshly signed CoRIM.

        Raises:
            ValueError: If there is no message or the signature does not verify
        """
        if self.message is None:
            raise ValueError("no Sign1 message found")
        verifier_alg = getattr(verifier, "algorithm", None)
        if verifier_alg is not None and verifier_alg != self.message.algorithm:
            raise ValueError(
                f"algorithm mismatch: message uses {self.message.algorithm}, key is for {verifier_alg}"
            )
        if not self.message.verify(verifier):
            raise ValueError("verification failed")
