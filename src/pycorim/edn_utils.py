"""Diagnostic notation (EDN) helpers used when displaying CoMIDs and CoRIMs.

Wraps the cbor-diag library so the rest of the package does not depend on
its API directly.
"""

from typing import Any

import cbor_diag  # type: ignore[import-untyped]

from . import cbor_utils


def cbor_to_diag(cbor_data: bytes) -> str:
    """Convert CBOR data to diagnostic notation.

    Args:
        cbor_data: CBOR encoded bytes

    Returns:
        Diagnostic notation string
    """
    return cbor_diag.cbor2diag(cbor_data)  # type: ignore[no-any-return]


def diag_to_cbor(diag_str: str) -> bytes:
    """Convert diagnostic notation to CBOR data.

    Args:
        diag_str: Diagnostic notation string

    Returns:
        CBOR encoded bytes
    """
    return cbor_diag.diag2cbor(diag_str)  # type: ignore[no-any-return]


def object_to_diag(obj: Any) -> str:
    """Encode a decoded CBOR object and render it as diagnostic notation."""
    return cbor_to_diag(cbor_utils.encode(obj))
