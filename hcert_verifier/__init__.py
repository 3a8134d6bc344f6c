"""Decode and verify HC1 (HCERT) signed health certificates."""

from .envelope import SignedEnvelope, build_sig_structure, parse_envelope
from .payload import CertificateRecord, decode_payload
from .pipeline import TrustResult, TrustStatus, load_envelope, process_token, verify_envelope
from .reference import ReferenceData, load_reference_data
from .trustlist import TrustedSigner, TrustStore, load_trust_list
from .verify import Algorithm, identify_key_algorithm, verify_signature

__all__ = [
    "Algorithm",
    "CertificateRecord",
    "ReferenceData",
    "SignedEnvelope",
    "TrustResult",
    "TrustStatus",
    "TrustStore",
    "TrustedSigner",
    "build_sig_structure",
    "decode_payload",
    "identify_key_algorithm",
    "load_envelope",
    "load_reference_data",
    "load_trust_list",
    "parse_envelope",
    "process_token",
    "verify_envelope",
    "verify_signature",
]
