"""COSE_Sign1 envelope parsing and Sig_structure reconstruction."""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

import cbor2

from .errors import MalformedEnvelope

logger = logging.getLogger(__name__)

# COSE header labels (RFC 9052)
HEADER_ALG = 1
HEADER_KID = 4

COSE_SIGN1_TAG = 18
SIG_CONTEXT = "Signature1"


@dataclass(frozen=True)
class SignedEnvelope:
    """A parsed COSE_Sign1 message. Payload and signature stay opaque."""

    key_id: bytes
    protected_header: bytes
    payload: bytes
    signature: bytes
    protected: Mapping[Any, Any] = field(default_factory=dict, compare=False)
    unprotected: Mapping[Any, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        # Header maps are read-only views over private copies.
        object.__setattr__(self, "protected", MappingProxyType(dict(self.protected)))
        object.__setattr__(self, "unprotected", MappingProxyType(dict(self.unprotected)))

    @property
    def algorithm(self) -> Optional[int]:
        """COSE algorithm label from the headers, protected first."""
        alg = self.protected.get(HEADER_ALG)
        if alg is None:
            alg = self.unprotected.get(HEADER_ALG)
        return alg


def unwrap_cbor_tags(data: Any) -> Any:
    """Recursively unwrap CBOR tags until we get to the actual data."""
    while isinstance(data, cbor2.CBORTag):
        logger.debug(f"Unwrapping CBOR Tag {data.tag}")
        data = data.value
    return data


def _loads(data: bytes, what: str) -> Any:
    try:
        return cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError, TypeError, OverflowError) as e:
        raise MalformedEnvelope(f"Invalid CBOR in {what}: {e}") from e


def parse_envelope(data: bytes) -> SignedEnvelope:
    """Parse a COSE_Sign1 structure into a SignedEnvelope."""
    cose = unwrap_cbor_tags(_loads(data, "COSE_Sign1"))

    if not isinstance(cose, list) or len(cose) != 4:
        raise MalformedEnvelope(
            f"Invalid COSE_Sign1 structure: expected 4-element list, got {type(cose).__name__}"
            f" with {len(cose) if isinstance(cose, list) else 'N/A'} elements"
        )

    protected_bstr, unprotected_map, payload_bstr, signature_bstr = cose

    if not isinstance(protected_bstr, bytes):
        raise MalformedEnvelope("Protected header must be a byte string")
    if unprotected_map is None:
        unprotected_map = {}
    if not isinstance(unprotected_map, dict):
        raise MalformedEnvelope("Unprotected header must be a map")
    if not isinstance(payload_bstr, bytes):
        raise MalformedEnvelope("Payload must be a byte string")
    if not isinstance(signature_bstr, bytes):
        raise MalformedEnvelope("Signature must be a byte string")

    protected = {}
    if protected_bstr:
        protected = _loads(protected_bstr, "protected header")
        if not isinstance(protected, dict):
            raise MalformedEnvelope("Protected header must decode to a map")

    # Protected header wins when both carry a kid.
    kid = protected.get(HEADER_KID)
    if kid is None:
        kid = unprotected_map.get(HEADER_KID)
    if kid is None:
        raise MalformedEnvelope("No key identifier (label 4) in COSE headers")
    if not isinstance(kid, bytes):
        raise MalformedEnvelope(f"Key identifier must be a byte string, got {type(kid).__name__}")

    return SignedEnvelope(
        key_id=kid,
        protected_header=protected_bstr,
        payload=payload_bstr,
        signature=signature_bstr,
        protected=protected,
        unprotected=unprotected_map,
    )


def build_sig_structure(envelope: SignedEnvelope) -> bytes:
    """Encode the Sig_structure that the issuer signed."""
    sig_structure = [SIG_CONTEXT, envelope.protected_header, b"", envelope.payload]
    return cbor2.dumps(sig_structure, canonical=True)
