"""Pytest configuration and shared fixtures for pycorim tests."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from pycorim.comid import Comid
from pycorim.corim import UnsignedCorim
from pycorim.meta import Meta

# UUID used as corim-id by the minimal CoRIM fixtures
CORIM_ID = "5c57e8f4-46cd-421b-91c9-08cf93e13cfc"

# tagged(505, h'deadbeef') embedded in a CoRIM identified by CORIM_ID
MINIMAL_CORIM_HEX = "a200505c57e8f446cd421b91c908cf93e13cfc0181d901f944deadbeef"

PSA_REFVAL_TEMPLATE: dict[str, Any] = {
    "lang": "en-GB",
    "tag-identity": {"id": "43BBE37F-2E61-4B33-AED3-53CFF1428B16", "version": 0},
    "entities": [
        {
            "name": "ACME Ltd.",
            "regid": "https://acme.example",
            "roles": ["tagCreator", "creator", "maintainer"],
        }
    ],
    "triples": {
        "reference-values": [
            {
                "environment": {
                    "class": {
                        "id": {
                            "type": "psa.impl-id",
                            "value": "YWNtZS1pbXBsZW1lbnRhdGlvbi1pZC0wMDAwMDAwMDE=",
                        },
                        "vendor": "ACME",
                        "model": "RoadRunner",
                    }
                },
                "measurements": [
                    {
                        "key": {
                            "type": "psa.refval-id",
                            "value": {
                                "label": "BL",
                                "version": "2.1.0",
                                "signer-id": "rLsRx+TaIXIFUjzkzhokWuGiOa48a/2eeHH35di66Gs=",
                            },
                        },
                        "value": {
                            "digests": ["sha-256:h0KPxSKAPTEGXnvOPPA/5HUJZjHl4Hu9eg/eYMTPJcc="]
                        },
                    }
                ],
            }
        ]
    },
}

# EC P-256 signing key shared with the cocli test vectors
EC_P256_JWK: dict[str, Any] = {
    "kty": "EC",
    "crv": "P-256",
    "x": "MKBCTNIcKUSDii11ySs3526iDZ8AiTo7Tu6KPAqv7D4",
    "y": "4Etl6SRW2YiLUrN5vfvVHuhp7x8PxltmWWlbbM4IFyM",
    "d": "870MB6gfuTJ4HtUnUvYMyJpr5eUZNP4Bk43bVdj3eAE",
    "use": "enc",
    "kid": "1",
}

META_TEMPLATE: dict[str, Any] = {
    "signer": {"name": "ACME Ltd signing key", "uri": "https://acme.example"},
    "validity": {
        "not-before": "2021-12-31T00:00:00Z",
        "not-after": "2025-12-31T00:00:00Z",
    },
}


@pytest.fixture(scope="session")
def ec_jwk() -> dict[str, Any]:
    """Return the private P-256 test JWK."""
    return dict(EC_P256_JWK)


@pytest.fixture(scope="session")
def ec_public_jwk() -> dict[str, Any]:
    """Return the public half of the P-256 test JWK."""
    return {k: v for k, v in EC_P256_JWK.items() if k != "d"}


@pytest.fixture
def psa_template() -> dict[str, Any]:
    """Provide a PSA reference value CoMID template (JSON object)."""
    return json.loads(json.dumps(PSA_REFVAL_TEMPLATE))


@pytest.fixture
def psa_comid(psa_template: dict[str, Any]) -> Comid:
    """Provide the PSA reference value CoMID, decoded from its template."""
    return Comid.from_json(json.dumps(psa_template))


@pytest.fixture
def minimal_corim() -> UnsignedCorim:
    """Provide an unsigned CoRIM holding a single CoSWID blob."""
    return UnsignedCorim().set_id(CORIM_ID).add_coswid(bytes.fromhex("44deadbeef"))


@pytest.fixture
def meta() -> Meta:
    """Provide a valid CoRIM Meta."""
    return Meta().set_signer("ACME Ltd signing key", "https://acme.example").set_validity(
        datetime(2025, 12, 31, tzinfo=timezone.utc),
        datetime(2021, 12, 31, tzinfo=timezone.utc),
    )


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Return a scratch directory for CLI inputs and outputs."""
    path = tmp_path / "work"
    path.mkdir()
    return path
