"""Profile registry.

A profile identifies a set of extensions. Registering a profile lets the
unmarshal helpers below pick the right extensions from the ``profiles``
entry of a CoRIM before decoding the rest of it.
"""

import json
from typing import Any, Optional, Union

from . import cbor_utils
from .comid import Comid
from .corim import Profile, Profiles, UnsignedCorim
from .cose_sign1 import cose_sign1_decode
from .cots import ConciseTaStores
from .extensions import (
    ALL_EXTENSION_POINTS,
    COMID_EXTENSION_POINTS,
    EXT_CORIM_ENTITY,
    EXT_FLAGS,
    EXT_MVAL,
    EXT_SIGNER,
    EXT_UNSIGNED_CORIM,
    ExtensionMap,
    unexpected_point,
)
from .signed_corim import SignedCorim

# Mval and Flags are accepted at CoMID level and routed to every measurement
COMID_PROFILE_EXTENSION_POINTS = COMID_EXTENSION_POINTS + (EXT_MVAL, EXT_FLAGS)
UNSIGNED_CORIM_EXTENSION_POINTS = (EXT_UNSIGNED_CORIM, EXT_CORIM_ENTITY)
SIGNED_CORIM_EXTENSION_POINTS = (EXT_SIGNER, EXT_UNSIGNED_CORIM, EXT_CORIM_ENTITY)

ProfileID = Union[str, Profile]


class ProfileManifest:
    """Associates a profile identifier with a set of extensions."""

    def __init__(self, profile_id: Profile, extensions: ExtensionMap):
        self.id = profile_id
        self.extensions = extensions

    def get_comid(self) -> Comid:
        """Return a new CoMID with the profile's CoMID extensions registered."""
        ret = Comid()
        exts = self.extensions.subset(COMID_PROFILE_EXTENSION_POINTS)
        if exts:
            ret.register_extensions(exts)
        return ret

    def get_unsigned_corim(self) -> UnsignedCorim:
        ret = UnsignedCorim()
        ret.profiles = Profiles([self.id])
        exts = self.extensions.subset(UNSIGNED_CORIM_EXTENSION_POINTS)
        if exts:
            ret.register_extensions(exts)
        return ret

    def get_signed_corim(self) -> SignedCorim:
        ret = SignedCorim()
        ret.unsigned_corim.profiles = Profiles([self.id])
        exts = self.extensions.subset(SIGNED_CORIM_EXTENSION_POINTS)
        if exts:
            ret.register_extensions(exts)
        return ret

_profiles: dict[str, ProfileManifest] = {}


def _as_profile(profile_id: ProfileID) -> Profile:
    if isinstance(profile_id, Profile):
        return profile_id
    return Profile(profile_id)


def register_profile(profile_id: ProfileID, extensions: ExtensionMap) -> None:
    """Register the extensions that come with a profile.

    Args:
        profile_id: Profile URI, dotted OID or Profile
        extensions: Extension point name -> extension dataclass (or instance)

    Raises:
        ValueError: If the profile is already registered, a point is unknown,
            or registration has been closed
    """
    cbor_utils.ensure_registration_open()
    profile = _as_profile(profile_id)
    profile.valid()
    key = str(profile)
    if key in _profiles:
        raise ValueError(f'profile with id "{key}" already registered')
    for point in extensions:
        if point not in ALL_EXTENSION_POINTS:
            raise unexpected_point(point)
    _profiles[key] = ProfileManifest(profile, ExtensionMap(extensions))


def unregister_profile(profile_id: Optional[ProfileID]) -> bool:
    """Drop a profile registration.

    Returns:
        True if the profile was registered and has been removed
    """
    if profile_id is None:
        return False
    return _profiles.pop(str(_as_profile(profile_id)), None) is not None


def get_profile_manifest(profile_id: Optional[ProfileID]) -> Optional[ProfileManifest]:
    """Return the manifest registered for a profile, or None."""
    if profile_id is None:
        return None
    return _profiles.get(str(_as_profile(profile_id)))


def _first_profile(raw: Any, from_json: bool = False) -> Optional[Profile]:
    if raw is None:
        return None
    profiles = Profiles()
    try:
        if from_json:
            profiles.load_json_obj(raw)
        else:
            profiles.load_cbor_obj(raw)
    except ValueError:
        # reported again when the document itself is decoded
        return None
    return profiles[0] if profiles else None


def get_unsigned_corim(profile_id: Optional[ProfileID]) -> UnsignedCorim:
    """Return a new UnsignedCorim prepared for the profile.

    Unknown profiles yield a plain UnsignedCorim.
    """
    manifest = get_profile_manifest(profile_id)
    return manifest.get_unsigned_corim() if manifest else UnsignedCorim()


def get_signed_corim(profile_id: Optional[ProfileID]) -> SignedCorim:
    manifest = get_profile_manifest(profile_id)
    return manifest.get_signed_corim() if manifest else SignedCorim()


def unmarshal_comid_from_cbor(data: bytes, profile_id: Optional[ProfileID] = None) -> Comid:
    """Decode a CoMID, registering the profile's extensions first."""
    manifest = get_profile_manifest(profile_id)
    ret = manifest.get_comid() if manifest else Comid()
    ret.load_cbor_obj(cbor_utils.decode(data))
    return ret


def unmarshal_comid_from_json(data: Union[str, bytes], profile_id: Optional[ProfileID] = None) -> Comid:
    manifest = get_profile_manifest(profile_id)
    ret = manifest.get_comid() if manifest else Comid()
    try:
        ret.load_json_obj(json.loads(data))
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e}") from e
    return ret


def unmarshal_unsigned_corim_from_cbor(data: bytes) -> UnsignedCorim:
    """Decode an unsigned CoRIM (tagged 501 or bare map) for its profile."""
    obj = cbor_utils.decode(data)
    inner = obj.value if cbor_utils.is_tag(obj, cbor_utils.UNSIGNED_CORIM_TAG) else obj
    profile = _first_profile(inner.get(3)) if isinstance(inner, dict) else None
    ret = get_unsigned_corim(profile)
    ret.load_cbor(data)
    return ret


def unmarshal_unsigned_corim_from_json(data: Union[str, bytes]) -> UnsignedCorim:
    try:
        obj = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e}") from e
    profile = _first_profile(obj.get("profiles"), from_json=True) if isinstance(obj, dict) else None
    ret = get_unsigned_corim(profile)
    ret.load_json_obj(obj)
    return ret


def validate_unsigned_corim(corim: UnsignedCorim) -> None:
    """Validate a CoRIM and every CoMID and CoTS embedded in it.

    Raises:
        ValueError: On the first failure found
    """
    corim.valid()
    profile = corim.get_profile()
    for i, (tag, inner) in enumerate(corim.iter_tags()):
        if tag == cbor_utils.COMID_TAG:
            try:
                comid = unmarshal_comid_from_cbor(inner, profile)
                comid.valid()
            except (ValueError, cbor_utils.CBORDecodeError) as e:
                raise ValueError(f"CoMID tag at index {i}: {e}") from e
        elif tag == cbor_utils.COTS_TAG:
            try:
                ConciseTaStores.from_cbor(inner).valid()
            except (ValueError, cbor_utils.CBORDecodeError) as e:
                raise ValueError(f"CoTS tag at index {i}: {e}") from e


def unmarshal_and_validate_unsigned_corim_from_cbor(data: bytes) -> UnsignedCorim:
    ret = unmarshal_unsigned_corim_from_cbor(data)
    validate_unsigned_corim(ret)
    return ret


def unmarshal_and_validate_unsigned_corim_from_json(data: Union[str, bytes]) -> UnsignedCorim:
    ret = unmarshal_unsigned_corim_from_json(data)
    validate_unsigned_corim(ret)
    return ret


def unmarshal_signed_corim_from_cbor(data: bytes) -> SignedCorim:
    """Decode a signed CoRIM, picking extensions from the payload's profile."""
    try:
        message = cose_sign1_decode(data)
    except ValueError as e:
        raise ValueError(f"failed CBOR decoding for COSE-Sign1 signed CoRIM: {e}") from e

    profile = None
    try:
        payload = cbor_utils.decode(message.payload)
    except cbor_utils.CBORDecodeError:
        payload = None
    if isinstance(payload, dict):
        profile = _first_profile(payload.get(3))

    return get_signed_corim(profile).from_cose(data)


def unmarshal_and_validate_signed_corim_from_cbor(data: bytes) -> SignedCorim:
    ret = unmarshal_signed_corim_from_cbor(data)
    validate_unsigned_corim(ret.unsigned_corim)
    return ret
