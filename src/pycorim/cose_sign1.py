"""COSE Sign1 implementation with pluggable signers and verifiers.

This module provides generic COSE Sign1 signing and verification functions
that accept signer and verifier objects, allowing keys to be managed
externally. ECDSA signers and verifiers for ES256, ES384 and ES512 are
included.
"""

from typing import Any, Optional, Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, utils

from . import cbor_utils

# COSE header labels (RFC 9052)
HEADER_ALG = 1
HEADER_CONTENT_TYPE = 3
HEADER_KID = 4

ALG_ES256 = -7
ALG_ES384 = -35
ALG_ES512 = -36

# COSE algorithm -> (curve, hash, coordinate size in bytes)
ECDSA_ALGORITHMS = {
    ALG_ES256: (ec.SECP256R1, hashes.SHA256, 32),
    ALG_ES384: (ec.SECP384R1, hashes.SHA384, 48),
    ALG_ES512: (ec.SECP521R1, hashes.SHA512, 66),
}

ALGORITHM_NAMES = {ALG_ES256: "ES256", ALG_ES384: "ES384", ALG_ES512: "ES512"}


class Signer(Protocol):
    """Protocol for COSE Sign1 signers."""

    def sign(self, message: bytes) -> bytes:
        """Sign a message and return the signature.

        Args:
            message: The message to sign

        Returns:
            The signature bytes
        """

    @property
    def algorithm(self) -> int:
        """Get the COSE algorithm identifier.

        Returns:
            COSE algorithm identifier (e.g., -7 for ES256)
        """


class Verifier(Protocol):
    """Protocol for COSE Sign1 verifiers."""

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Verify a signature on a message.

        Args:
            message: The message that was signed
            signature: The signature to verify

        Returns:
            True if signature is valid, False otherwise
        """


def _sig_structure(protected_header_bytes: bytes, external_aad: bytes, payload: bytes) -> bytes:
    return cbor_utils.encode(["Signature1", protected_header_bytes, external_aad, payload])


def cose_sign1_sign(
    payload: bytes,
    signer: Signer,
    protected_header: Optional[dict[int, Any]] = None,
    unprotected_header: Optional[dict[int, Any]] = None,
    external_aad: bytes = b"",
) -> bytes:
    """Create a COSE Sign1 message.

    Args:
        payload: The payload to sign
        signer: A signer object that implements the sign method
        protected_header: Protected header parameters (will be integrity protected)
        unprotected_header: Unprotected header parameters
        external_aad: External additional authenticated data

    Returns:
        CBOR-encoded COSE Sign1 message with tag 18
    """
    protected_header = dict(protected_header or {})
    if HEADER_ALG not in protected_header:
        protected_header[HEADER_ALG] = signer.algorithm

    protected_header_bytes = cbor_utils.encode(protected_header) if protected_header else b""

    if unprotected_header is None:
        unprotected_header = {}

    signature = signer.sign(_sig_structure(protected_header_bytes, external_aad, payload))

    cose_sign1 = [protected_header_bytes, unprotected_header, payload, signature]
    return cbor_utils.encode(cbor_utils.create_tag(cbor_utils.COSE_SIGN1_TAG, cose_sign1))


class Sign1Message:
    """A decoded (not yet verified) COSE Sign1 message."""

    def __init__(
        self,
        protected_header_bytes: bytes,
        protected_header: dict[Any, Any],
        unprotected_header: dict[Any, Any],
        payload: bytes,
        signature: bytes,
    ):
        self.protected_header_bytes = protected_header_bytes
        self.protected_header = protected_header
        self.unprotected_header = unprotected_header
        self.payload = payload
        self.signature = signature

    @property
    def algorithm(self) -> Optional[int]:
        return self.protected_header.get(HEADER_ALG)

    def verify(self, verifier: Verifier, external_aad: bytes = b"") -> bool:
        signing_input = _sig_structure(self.protected_header_bytes, external_aad, self.payload)
        return verifier.verify(signing_input, self.signature)


def cose_sign1_decode(cose_sign1_message: bytes) -> Sign1Message:
    """Parse a tagged or untagged COSE Sign1 message.

    Args:
        cose_sign1_message: CBOR-encoded COSE Sign1 message

    Returns:
        The decoded message

    Raises:
        ValueError: If the message is not a well-formed COSE Sign1
    """
    try:
        decoded = cbor_utils.decode(cose_sign1_message)
    except cbor_utils.CBORDecodeError as e:
        raise ValueError(str(e)) from e

    if isinstance(decoded, cbor_utils.CBORTag):
        if decoded.tag != cbor_utils.COSE_SIGN1_TAG:
            raise ValueError(f"unexpected CBOR tag {decoded.tag}, expecting {cbor_utils.COSE_SIGN1_TAG}")
        decoded = decoded.value

    if not isinstance(decoded, list) or len(decoded) != 4:
        raise ValueError("COSE Sign1 must be an array of four elements")

    protected_header_bytes, unprotected_header, payload, signature = decoded
    if not isinstance(protected_header_bytes, bytes):
        raise ValueError("protected header must be a byte string")
    if not isinstance(unprotected_header, dict):
        raise ValueError("unprotected header must be a map")
    if not isinstance(payload, bytes):
        raise ValueError("detached or malformed payload")
    if not isinstance(signature, bytes):
        raise ValueError("signature must be a byte string")

    protected_header: dict[Any, Any] = {}
    if protected_header_bytes:
        try:
            protected_header = cbor_utils.decode(protected_header_bytes)
        except cbor_utils.CBORDecodeError as e:
            raise ValueError(f"protected header: {e}") from e
        if not isinstance(protected_header, dict):
            raise ValueError("protected header must encode a map")

    return Sign1Message(
        protected_header_bytes, protected_header, unprotected_header, payload, signature
    )


def cose_sign1_verify(
    cose_sign1_message: bytes,
    verifier: Verifier,
    external_aad: bytes = b"",
) -> tuple[bool, Optional[bytes]]:
    """Verify a COSE Sign1 message.

    Args:
        cose_sign1_message: CBOR-encoded COSE Sign1 message
        verifier: A verifier object that implements the verify method
        external_aad: External additional authenticated data used during signing

    Returns:
        Tuple of (verification_result, payload if verified successfully)
    """
    try:
        message = cose_sign1_decode(cose_sign1_message)
        if message.verify(verifier, external_aad):
            return True, message.payload
        return False, None
    except (ValueError, TypeError):
        return False, None


class ECDSASigner:
    """ECDSA signer for ES256, ES384 and ES512."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey, algorithm: int):
        """Initialize the signer.

        Args:
            private_key: EC private key on the curve matching the algorithm
            algorithm: COSE algorithm identifier

        Raises:
            ValueError: If the algorithm is unsupported or does not match the key
        """
        if algorithm not in ECDSA_ALGORITHMS:
            raise ValueError(f"unsupported algorithm {algorithm}")
        curve, _, _ = ECDSA_ALGORITHMS[algorithm]
        if not isinstance(private_key.curve, curve):
            raise ValueError(
                f"key curve {private_key.curve.name} does not match {ALGORITHM_NAMES[algorithm]}"
            )
        self.private_key = private_key
        self._algorithm = algorithm

    def sign(self, message: bytes) -> bytes:
        """Sign a message, returning the raw r||s signature."""
        _, hash_cls, size = ECDSA_ALGORITHMS[self._algorithm]
        signature_der = self.private_key.sign(message, ec.ECDSA(hash_cls()))

        # COSE uses the fixed-size r||s form
        r, s = utils.decode_dss_signature(signature_der)
        return r.to_bytes(size, byteorder="big") + s.to_bytes(size, byteorder="big")

    @property
    def algorithm(self) -> int:
        return self._algorithm


class ECDSAVerifier:
    """ECDSA verifier for ES256, ES384 and ES512."""

    def __init__(self, public_key: ec.EllipticCurvePublicKey, algorithm: int):
        if algorithm not in ECDSA_ALGORITHMS:
            raise ValueError(f"unsupported algorithm {algorithm}")
        self.public_key = public_key
        self.algorithm = algorithm

    @classmethod
    def from_coordinates(cls, x: bytes, y: bytes, algorithm: int) -> "ECDSAVerifier":
        """Build a verifier from the affine coordinates of the public key."""
        if algorithm not in ECDSA_ALGORITHMS:
            raise ValueError(f"unsupported algorithm {algorithm}")
        curve, _, _ = ECDSA_ALGORITHMS[algorithm]
        public_numbers = ec.EllipticCurvePublicNumbers(
            int.from_bytes(x, byteorder="big"),
            int.from_bytes(y, byteorder="big"),
            curve(),
        )
        return cls(public_numbers.public_key(), algorithm)

    def verify(self, message: bytes, signature: bytes) -> bool:
        _, hash_cls, size = ECDSA_ALGORITHMS[self.algorithm]
        if len(signature) != 2 * size:
            return False

        r = int.from_bytes(signature[:size], byteorder="big")
        s = int.from_bytes(signature[size:], byteorder="big")
        try:
            self.public_key.verify(
                utils.encode_dss_signature(r, s), message, ec.ECDSA(hash_cls())
            )
            return True
        except InvalidSignature:
            return False
