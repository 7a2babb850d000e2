"""JSON Web Keys for CoRIM signing and verification.

Only elliptic curve keys are supported. The curve selects the COSE
algorithm: P-256 -> ES256, P-384 -> ES384, P-521 -> ES512. Keys are moved
into ``fido2``'s COSE key model before use.
"""

import base64
import binascii
import json
from typing import Any, Optional, Union

from cryptography.hazmat.primitives.asymmetric import ec
from fido2.cose import CoseKey

from .cose_sign1 import ALG_ES256, ALG_ES384, ALG_ES512, ECDSA_ALGORITHMS, ECDSASigner, ECDSAVerifier

COSE_KTY_EC2 = 2

# JWK curve name -> (COSE algorithm, COSE curve id, cryptography curve)
JWK_CURVES = {
    "P-256": (ALG_ES256, 1, ec.SECP256R1),
    "P-384": (ALG_ES384, 2, ec.SECP384R1),
    "P-521": (ALG_ES512, 3, ec.SECP521R1),
}

JWKInput = Union[bytes, str, dict[str, Any]]


def _b64url_decode(value: Any, member: str) -> bytes:
    if not isinstance(value, str):
        raise ValueError(f"JWK member {member!r} must be a base64url string")
    try:
        return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"JWK member {member!r}: {e}") from e


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def load_jwk(data: JWKInput) -> dict[str, Any]:
    """Parse a JWK from JSON text/bytes or pass a dict through.

    Raises:
        ValueError: If the input is not a JSON object
    """
    if isinstance(data, dict):
        return data
    try:
        jwk = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JWK: {e}") from e
    if not isinstance(jwk, dict):
        raise ValueError("invalid JWK: expecting a JSON object")
    return jwk


def alg_from_jwk(data: JWKInput) -> int:
    """Return the COSE algorithm matching the key's curve.

    Raises:
        ValueError: If the key is not an EC key on a supported curve
    """
    jwk = load_jwk(data)
    if jwk.get("kty") != "EC":
        raise ValueError(f"unsupported key type {jwk.get('kty')!r}")
    crv = jwk.get("crv")
    if crv not in JWK_CURVES:
        raise ValueError(f"unknown elliptic curve {crv}")
    return JWK_CURVES[crv][0]


def jwk_to_cose_key(data: JWKInput, include_private: bool = False) -> CoseKey:
    """Convert an EC JWK into a COSE_Key.

    Args:
        data: The JWK
        include_private: Whether to carry the private scalar (-4)

    Returns:
        A fido2 CoseKey
    """
    jwk = load_jwk(data)
    alg = alg_from_jwk(jwk)
    _, crv_id, _ = JWK_CURVES[jwk["crv"]]
    size = ECDSA_ALGORITHMS[alg][2]

    cose_key: dict[int, Any] = {
        1: COSE_KTY_EC2,
        3: alg,
        -1: crv_id,
        -2: _b64url_decode(jwk.get("x"), "x"),
        -3: _b64url_decode(jwk.get("y"), "y"),
    }
    for label in (-2, -3):
        if len(cose_key[label]) != size:
            raise ValueError(f"EC coordinate must be {size} bytes, got {len(cose_key[label])}")
    if "kid" in jwk:
        cose_key[2] = str(jwk["kid"]).encode("utf-8")
    if include_private:
        if "d" not in jwk:
            raise ValueError("JWK does not contain a private key")
        cose_key[-4] = _b64url_decode(jwk["d"], "d")

    return CoseKey.parse(cose_key)


def private_key_from_jwk(data: JWKInput) -> ec.EllipticCurvePrivateKey:
    """Load the EC private key from a JWK.

    Raises:
        ValueError: If the key is malformed or carries no private part
    """
    jwk = load_jwk(data)
    alg_from_jwk(jwk)
    if "d" not in jwk:
        raise ValueError("JWK does not contain a private key")
    _, _, curve = JWK_CURVES[jwk["crv"]]
    private_value = int.from_bytes(_b64url_decode(jwk["d"], "d"), byteorder="big")
    private_key = ec.derive_private_key(private_value, curve())

    public = public_key_from_jwk(jwk)
    if private_key.public_key().public_numbers() != public.public_numbers():
        raise ValueError("JWK private and public parts do not match")
    return private_key


def public_key_from_jwk(data: JWKInput) -> ec.EllipticCurvePublicKey:
    """Load the EC public key from a JWK."""
    cose_key = jwk_to_cose_key(data)
    return ECDSAVerifier.from_coordinates(cose_key[-2], cose_key[-3], cose_key[3]).public_key


def new_signer_from_jwk(data: JWKInput) -> ECDSASigner:
    """Create a COSE Sign1 signer from a private JWK."""
    jwk = load_jwk(data)
    return ECDSASigner(private_key_from_jwk(jwk), alg_from_jwk(jwk))


def new_verifier_from_jwk(data: JWKInput) -> ECDSAVerifier:
    """Create a COSE Sign1 verifier from a (public or private) JWK."""
    cose_key = jwk_to_cose_key(data)
    return ECDSAVerifier.from_coordinates(cose_key[-2], cose_key[-3], cose_key[3])


def kid_from_jwk(data: JWKInput) -> Optional[bytes]:
    jwk = load_jwk(data)
    if "kid" not in jwk:
        return None
    return str(jwk["kid"]).encode("utf-8")


def generate_jwk(crv: str = "P-256", kid: Optional[str] = None) -> dict[str, Any]:
    """Generate a fresh EC key pair as a private JWK.

    Args:
        crv: JWK curve name (P-256, P-384 or P-521)
        kid: Optional key identifier

    Returns:
        The private JWK as a dict
    """
    if crv not in JWK_CURVES:
        raise ValueError(f"unknown elliptic curve {crv}")
    alg, _, curve = JWK_CURVES[crv]
    size = ECDSA_ALGORITHMS[alg][2]

    private_key = ec.generate_private_key(curve())
    private_value = private_key.private_numbers().private_value
    public_numbers = private_key.public_key().public_numbers()

    jwk = {
        "kty": "EC",
        "crv": crv,
        "x": _b64url_encode(public_numbers.x.to_bytes(size, byteorder="big")),
        "y": _b64url_encode(public_numbers.y.to_bytes(size, byteorder="big")),
        "d": _b64url_encode(private_value.to_bytes(size, byteorder="big")),
    }
    if kid is not None:
        jwk["kid"] = kid
    return jwk


def public_jwk(data: JWKInput) -> dict[str, Any]:
    """Strip the private part from a JWK."""
    return {k: v for k, v in load_jwk(data).items() if k != "d"}
