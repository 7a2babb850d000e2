"""Crypto key type-choice ($crypto-key-type-choice).

PEM-encoded keys and certificates are parsed with ``cryptography``; COSE keys
are checked with ``fido2``'s COSE key model. Thumbprint variants carry a hash
entry and cannot yield a public key.
"""

from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, ed448
from fido2.cose import CoseKey

from . import cbor_utils
from .encoding import b64decode, b64encode
from .hashentry import HashEntry
from .primitives import TaggedBytes
from .typechoice import TypeChoice, TypeChoiceValue

PEM_CERT_MARKER = b"-----BEGIN CERTIFICATE-----"

# COSE key parameters (RFC 9052/9053)
COSE_KEY_KTY = 1
COSE_KEY_ALG = 3
COSE_KEY_CRV = -1
COSE_KEY_X = -2
COSE_KEY_Y = -3
COSE_KEY_RSA_N = -1
COSE_KEY_RSA_E = -2
COSE_KEY_K = -1
COSE_KTY_OKP = 1
COSE_KTY_EC2 = 2
COSE_KTY_RSA = 3
COSE_KTY_SYMMETRIC = 4

EC2_CURVES = {1: ec.SECP256R1, 2: ec.SECP384R1, 3: ec.SECP521R1}


class _PEMValue(TypeChoiceValue):
    """Variant holding PEM text."""

    def __init__(self, value: Any = None):
        if value is None:
            self.pem = ""
        elif isinstance(value, _PEMValue):
            self.pem = value.pem
        elif isinstance(value, str):
            self.pem = value
        else:
            raise ValueError(f"value must be a string; found {type(value).__name__}")

    def valid(self) -> None:
        self.public_key()

    def public_key(self) -> Any:
        raise NotImplementedError

    def to_cbor_value(self) -> str:
        return self.pem

    @classmethod
    def from_cbor_value(cls, value: Any) -> "_PEMValue":
        if not isinstance(value, str):
            raise ValueError(f"value must be a string; found {type(value).__name__}")
        return cls(value)

    to_json_value = to_cbor_value
    from_json_value = from_cbor_value

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.pem == other.pem  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.pem))

    def __str__(self) -> str:
        return self.pem


class TaggedPKIXBase64Key(_PEMValue):
    """PEM-encoded SubjectPublicKeyInfo."""

    type_name = "pkix-base64-key"
    cbor_tag = cbor_utils.TAG_PKIX_BASE64_KEY

    def public_key(self) -> Any:
        if self.pem == "":
            raise ValueError("key value not set")
        try:
            return serialization.load_pem_public_key(self.pem.encode())
        except ValueError as e:
            raise ValueError(f"unable to parse public key: {e}") from e


class TaggedPKIXBase64Cert(_PEMValue):
    """PEM-encoded X.509 certificate."""

    type_name = "pkix-base64-cert"
    cbor_tag = cbor_utils.TAG_PKIX_BASE64_CERT

    def certificate(self) -> x509.Certificate:
        if self.pem == "":
            raise ValueError("cert value not set")
        try:
            return x509.load_pem_x509_certificate(self.pem.encode())
        except ValueError as e:
            raise ValueError(f"could not parse x509 cert: {e}") from e

    def public_key(self) -> Any:
        return self.certificate().public_key()


class TaggedPKIXBase64CertPath(_PEMValue):
    """Sequence of PEM-encoded X.509 certificates, leaf first."""

    type_name = "pkix-base64-cert-path"
    cbor_tag = cbor_utils.TAG_PKIX_BASE64_CERT_PATH

    def certificates(self) -> list[x509.Certificate]:
        if self.pem == "":
            raise ValueError("cert value not set")
        data = self.pem.encode()
        if PEM_CERT_MARKER not in data:
            raise ValueError("could not decode PEM block 0")
        try:
            return x509.load_pem_x509_certificates(data)
        except ValueError as e:
            raise ValueError(f"could not parse x509 cert path: {e}") from e

    def public_key(self) -> Any:
        certs = self.certificates()
        if not certs:
            raise ValueError("empty cert path")
        return certs[0].public_key()


def _cose_key_public_key(key: Any) -> Any:
    if not isinstance(key, dict):
        raise ValueError("COSE_Key must be a map")
    kty = key.get(COSE_KEY_KTY)
    if kty == COSE_KTY_EC2:
        curve = EC2_CURVES.get(key.get(COSE_KEY_CRV))
        if curve is None:
            raise ValueError(f"unsupported EC2 curve {key.get(COSE_KEY_CRV)}")
        x, y = key.get(COSE_KEY_X), key.get(COSE_KEY_Y)
        if not isinstance(x, bytes) or not isinstance(y, bytes):
            raise ValueError("EC2 key must carry x and y coordinates")
        numbers = ec.EllipticCurvePublicNumbers(
            int.from_bytes(x, byteorder="big"),
            int.from_bytes(y, byteorder="big"),
            curve(),
        )
        return numbers.public_key()
    if kty == COSE_KTY_OKP:
        crv, x = key.get(COSE_KEY_CRV), key.get(COSE_KEY_X)
        if not isinstance(x, bytes):
            raise ValueError("OKP key must carry an x coordinate")
        if crv == 6:
            return ed25519.Ed25519PublicKey.from_public_bytes(x)
        if crv == 7:
            return ed448.Ed448PublicKey.from_public_bytes(x)
        raise ValueError(f"unsupported OKP curve {crv}")
    raise ValueError(f"unsupported COSE key type {kty}")


def _check_key_params(key: dict) -> None:
    # without an alg there is no fido2 key class to parse with
    kty = key[COSE_KEY_KTY]
    if kty in (COSE_KTY_EC2, COSE_KTY_OKP):
        _cose_key_public_key(key)
    elif kty == COSE_KTY_RSA:
        for label, name in ((COSE_KEY_RSA_N, "n"), (COSE_KEY_RSA_E, "e")):
            if not isinstance(key.get(label), bytes) or not key[label]:
                raise ValueError(f"RSA key must carry {name}")
    elif not isinstance(key.get(COSE_KEY_K), bytes) or not key[COSE_KEY_K]:
        raise ValueError("symmetric key must carry k")


def _check_cose_key(key: Any) -> None:
    if not isinstance(key, dict):
        raise ValueError("COSE_Key must be a map")
    if key.get(COSE_KEY_KTY) not in (
        COSE_KTY_OKP,
        COSE_KTY_EC2,
        COSE_KTY_RSA,
        COSE_KTY_SYMMETRIC,
    ):
        raise ValueError(f"invalid COSE key type {key.get(COSE_KEY_KTY)!r}")
    try:
        if COSE_KEY_ALG in key:
            CoseKey.parse(key)
        else:
            _check_key_params(key)
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"invalid COSE_Key: {e}") from e


class TaggedCOSEKey(TypeChoiceValue):
    """CBOR-encoded COSE_Key or single-entry COSE_KeySet."""

    type_name = "cose-key"
    cbor_tag = cbor_utils.TAG_COSE_KEY

    def __init__(self, value: Any = None):
        if value is None:
            self.data = b""
        elif isinstance(value, TaggedCOSEKey):
            self.data = value.data
        elif isinstance(value, (bytes, bytearray)):
            self.data = bytes(value)
        elif isinstance(value, str):
            try:
                self.data = b64decode(value)
            except ValueError as e:
                raise ValueError(f"base64 decode error: {e}") from e
        elif isinstance(value, (dict, list)):
            self.data = cbor_utils.encode(value)
        else:
            raise ValueError(
                f"value must be a bytes or a string; found {type(value).__name__}"
            )

    def _decoded(self) -> Any:
        if not self.data:
            raise ValueError("empty COSE_Key bytes")
        try:
            return cbor_utils.decode(self.data)
        except cbor_utils.CBORDecodeError as e:
            raise ValueError(f"invalid COSE_Key: {e}") from e

    def valid(self) -> None:
        decoded = self._decoded()
        if isinstance(decoded, list):
            for key in decoded:
                _check_cose_key(key)
        else:
            _check_cose_key(decoded)

    def public_key(self) -> Any:
        decoded = self._decoded()
        if isinstance(decoded, list):
            if not decoded:
                raise ValueError("empty COSE_KeySet")
            if len(decoded) > 1:
                raise ValueError("COSE_KeySet contains more than one key")
            decoded = decoded[0]
        return _cose_key_public_key(decoded)

    def to_cbor_value(self) -> Any:
        return self._decoded()

    @classmethod
    def from_cbor_value(cls, value: Any) -> "TaggedCOSEKey":
        if not isinstance(value, (dict, list)):
            raise ValueError("COSE_Key must be a map or an array")
        return cls(value)

    def to_json_value(self) -> str:
        return b64encode(self.data)

    @classmethod
    def from_json_value(cls, value: Any) -> "TaggedCOSEKey":
        if not isinstance(value, str):
            raise ValueError(f"value must be a string; found {type(value).__name__}")
        return cls(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TaggedCOSEKey) and self.data == other.data

    def __hash__(self) -> int:
        return hash(self.data)

    def __str__(self) -> str:
        return b64encode(self.data)


class _ThumbprintValue(TypeChoiceValue):
    """Variant carrying a digest of the key or certificate(s)."""

    def __init__(self, value: Any = None):
        if value is None:
            self.entry = HashEntry()
        elif isinstance(value, _ThumbprintValue):
            self.entry = value.entry
        elif isinstance(value, HashEntry):
            self.entry = value
        elif isinstance(value, str):
            try:
                self.entry = HashEntry.from_string(value)
            except ValueError as e:
                raise ValueError(f"hash entry decode error: {e}") from e
        else:
            raise ValueError(
                f"value must be a HashEntry or a string; found {type(value).__name__}"
            )

    def valid(self) -> None:
        self.entry.valid()

    def public_key(self) -> Any:
        raise ValueError("cannot get PublicKey from a digest")

    def to_cbor_value(self) -> list[Any]:
        return self.entry.to_cbor_obj()

    @classmethod
    def from_cbor_value(cls, value: Any) -> "_ThumbprintValue":
        return cls(HashEntry.from_cbor_obj(value))

    def to_json_value(self) -> str:
        return str(self.entry)

    @classmethod
    def from_json_value(cls, value: Any) -> "_ThumbprintValue":
        if not isinstance(value, str):
            raise ValueError(f"value must be a string; found {type(value).__name__}")
        return cls(value)

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.entry == other.entry  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.entry))

    def __str__(self) -> str:
        return str(self.entry)


class TaggedThumbprint(_ThumbprintValue):
    type_name = "thumbprint"
    cbor_tag = cbor_utils.TAG_THUMBPRINT


class TaggedCertThumbprint(_ThumbprintValue):
    type_name = "cert-thumbprint"
    cbor_tag = cbor_utils.TAG_CERT_THUMBPRINT


class TaggedCertPathThumbprint(_ThumbprintValue):
    type_name = "cert-path-thumbprint"
    cbor_tag = cbor_utils.TAG_CERT_PATH_THUMBPRINT


class CryptoKey(TypeChoice):
    """A verification key, certificate, or a thumbprint of either."""

    choice_name = "crypto key"

    def public_key(self) -> Any:
        """Return the ``cryptography`` public key carried by this value.

        Raises:
            ValueError: If the variant does not carry key material
        """
        if self.value is None:
            raise ValueError("nil value")
        if isinstance(self.value, TaggedBytes):
            raise ValueError("cannot get PublicKey from bytes")
        return self.value.public_key()


class CryptoKeys(list):
    """Non-empty list of crypto keys (as used by key triples)."""

    def valid(self) -> None:
        if len(self) == 0:
            raise ValueError("no keys to validate")
        for i, key in enumerate(self):
            try:
                key.valid()
            except ValueError as e:
                raise ValueError(f"invalid key at index {i}: {e}") from e

    def to_cbor_obj(self) -> list[Any]:
        return [key.to_cbor_obj() for key in self]

    def load_cbor_obj(self, obj: Any) -> None:
        if not isinstance(obj, list):
            raise ValueError(f"expecting array of keys, got {type(obj).__name__}")
        self[:] = [CryptoKey.from_cbor_obj(item) for item in obj]

    def to_json_obj(self) -> list[Any]:
        return [key.to_json_obj() for key in self]

    def load_json_obj(self, obj: Any) -> None:
        if not isinstance(obj, list):
            raise ValueError(f"expecting array of keys, got {type(obj).__name__}")
        self[:] = [CryptoKey.from_json_obj(item) for item in obj]


for _tag, _cls in (
    (cbor_utils.TAG_PKIX_BASE64_KEY, TaggedPKIXBase64Key),
    (cbor_utils.TAG_PKIX_BASE64_CERT, TaggedPKIXBase64Cert),
    (cbor_utils.TAG_PKIX_BASE64_CERT_PATH, TaggedPKIXBase64CertPath),
    (cbor_utils.TAG_THUMBPRINT, TaggedThumbprint),
    (cbor_utils.TAG_COSE_KEY, TaggedCOSEKey),
    (cbor_utils.TAG_CERT_THUMBPRINT, TaggedCertThumbprint),
    (cbor_utils.TAG_CERT_PATH_THUMBPRINT, TaggedCertPathThumbprint),
):
    cbor_utils.register_tag(_tag, _cls)
    CryptoKey._add_variant(_cls, _tag)

CryptoKey._add_variant(TaggedBytes, cbor_utils.TAG_BYTES)
