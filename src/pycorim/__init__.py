"""pycorim: Concise Reference Integrity Manifest (CoRIM) and CoMID library."""

# Hide module imports
from . import comid, corim, cose_sign1, extensions, jwk, meta, profile_ids, profiles, signed_corim
from .classid import ClassID
from .comid import Comid
from .corim import (
    ROLE_MANIFEST_CREATOR,
    CorimEntity,
    Locator,
    Profile,
    UnsignedCorim,
    register_corim_role,
)
from .cots import ConciseTaStore, ConciseTaStores, EnvironmentGroup, TasAndCas, TrustAnchor
from .cose_sign1 import (
    ECDSASigner,
    ECDSAVerifier,
    Signer,
    Verifier,
    cose_sign1_sign,
    cose_sign1_verify,
)
from .cryptokey import CryptoKey
from .entity import Entity, register_role
from .environment import Class, Environment
from .extensions import (
    ALL_EXTENSION_POINTS,
    ExtensionMap,
    Extensions,
)
from .flagsmap import Flag, FlagsMap
from .hashentry import Digests, HashEntry
from .instance import Group, Instance
from .jwk import generate_jwk, new_signer_from_jwk, new_verifier_from_jwk
from .measurement import Measurement, Measurements, Mval, Version
from .meta import Meta, Validity
from .mkey import Mkey
from .profile_ids import CCAImplID, CCAPlatformConfigID, CCARefValID, PSAImplID, PSARefValID
from .profiles import (
    get_profile_manifest,
    register_profile,
    unmarshal_and_validate_signed_corim_from_cbor,
    unmarshal_and_validate_unsigned_corim_from_cbor,
    unmarshal_and_validate_unsigned_corim_from_json,
    unmarshal_comid_from_cbor,
    unmarshal_comid_from_json,
    unmarshal_signed_corim_from_cbor,
    unmarshal_unsigned_corim_from_cbor,
    unmarshal_unsigned_corim_from_json,
    unregister_profile,
)
from .signed_corim import SignedCorim
from .svn import SVN
from .tagidentity import TagID, TagIdentity
from .triples import CondEndorseSeriesTriple, KeyTriple, Triples, ValueTriple

del comid, corim, cose_sign1, extensions, jwk, meta, profile_ids, profiles, signed_corim

__version__ = "0.1.0"


__all__ = [
    "__version__",
    # Documents
    "Comid",
    "UnsignedCorim",
    "SignedCorim",
    "Meta",
    "Validity",
    "ConciseTaStore",
    "ConciseTaStores",
    # Identity and entities
    "TagID",
    "TagIdentity",
    "Entity",
    "CorimEntity",
    "Locator",
    "Profile",
    "ROLE_MANIFEST_CREATOR",
    "register_role",
    "register_corim_role",
    # Environments and measurements
    "Class",
    "ClassID",
    "Environment",
    "Instance",
    "Group",
    "Mkey",
    "Measurement",
    "Measurements",
    "Mval",
    "Version",
    "SVN",
    "Flag",
    "FlagsMap",
    "HashEntry",
    "Digests",
    "CryptoKey",
    # Trust anchor stores
    "EnvironmentGroup",
    "TasAndCas",
    "TrustAnchor",
    # Triples
    "Triples",
    "ValueTriple",
    "KeyTriple",
    "CondEndorseSeriesTriple",
    # Profile identifiers
    "PSAImplID",
    "PSARefValID",
    "CCAImplID",
    "CCARefValID",
    "CCAPlatformConfigID",
    # Extensions and profiles
    "ALL_EXTENSION_POINTS",
    "ExtensionMap",
    "Extensions",
    "register_profile",
    "unregister_profile",
    "get_profile_manifest",
    "unmarshal_comid_from_cbor",
    "unmarshal_comid_from_json",
    "unmarshal_unsigned_corim_from_cbor",
    "unmarshal_unsigned_corim_from_json",
    "unmarshal_and_validate_unsigned_corim_from_cbor",
    "unmarshal_and_validate_unsigned_corim_from_json",
    "unmarshal_signed_corim_from_cbor",
    "unmarshal_and_validate_signed_corim_from_cbor",
    # COSE Sign1
    "cose_sign1_sign",
    "cose_sign1_verify",
    "Signer",
    "Verifier",
    "ECDSASigner",
    "ECDSAVerifier",
    # JWK
    "generate_jwk",
    "new_signer_from_jwk",
    "new_verifier_from_jwk",
]
