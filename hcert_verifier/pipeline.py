"""HC1 token pipeline: text -> Base45 -> zlib -> COSE -> record + trust."""

import enum
import logging
import zlib
from dataclasses import dataclass
from typing import Optional

from . import b45, config
from .envelope import SignedEnvelope, build_sig_structure, parse_envelope
from .errors import (
    DecodeError,
    DecompressionError,
    InvalidPrefix,
    SignatureInvalid,
    SignerNotFound,
    UnsupportedAlgorithm,
)
from .payload import CertificateRecord, decode_payload
from .reference import ReferenceData
from .trustlist import TrustedSigner, TrustStore
from .verify import verify_signature

logger = logging.getLogger(__name__)

PREFIX = "HC1:"


class TrustStatus(enum.Enum):
    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"
    SIGNATURE_INVALID = "signature_invalid"
    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"


@dataclass(frozen=True)
class TrustResult:
    status: TrustStatus
    key_id: bytes
    signer: Optional[TrustedSigner] = None
    detail: str = ""
    ambiguous: bool = False

    @property
    def valid(self) -> bool:
        return self.status is TrustStatus.TRUSTED


@dataclass(frozen=True)
class TokenReport:
    envelope: SignedEnvelope
    record: Optional[CertificateRecord]
    decode_error: Optional[DecodeError]
    trust: TrustResult


def strip_prefix(text: str) -> str:
    """Drop the trailing newline and the HC1: prefix."""
    text = text.rstrip("\r\n").strip()
    if not text.startswith(PREFIX):
        raise InvalidPrefix(PREFIX, text[:10])
    logger.debug("[hcert] HealthCertificate v1 prefix valid")
    return text[len(PREFIX):]


def decompress(data: bytes) -> bytes:
    try:
        return zlib.decompress(data)
    except zlib.error as e:
        raise DecompressionError(f"zlib decompress failed: {e}") from e


def load_envelope(text: str, byteorder: str = config.BASE45_BYTEORDER) -> SignedEnvelope:
    """Decode an HC1 token into its signed envelope."""
    compressed = b45.decode(strip_prefix(text), byteorder=byteorder)
    logger.debug(f"[hcert] Base45 decoded bytes={len(compressed)}")

    cbor_data = decompress(compressed)
    logger.debug(f"[hcert] zlib decompressed bytes={len(cbor_data)}")

    envelope = parse_envelope(cbor_data)
    logger.info(f"[hcert] Well-formed COSE certificate (kid={envelope.key_id.hex()})")
    return envelope


def verify_envelope(envelope: SignedEnvelope, trust_store: TrustStore) -> TrustResult:
    """Look up the envelope's signer and check the signature."""
    try:
        matches = trust_store.lookup(envelope.key_id)
    except SignerNotFound as e:
        logger.warning(f"[verify] {e}")
        return TrustResult(TrustStatus.UNTRUSTED, envelope.key_id,
                           detail="Did not find certificate with matching kid")

    signer = matches[0]
    ambiguous = len(matches) > 1
    if ambiguous:
        logger.warning(
            f"[verify] {len(matches)} trust list entries share kid {envelope.key_id.hex()}; "
            f"using the first ({signer.country}, {signer.thumbprint})"
        )

    try:
        verify_signature(envelope, signer, build_sig_structure(envelope))
    except UnsupportedAlgorithm as e:
        logger.warning(f"[verify] {e}")
        return TrustResult(TrustStatus.UNSUPPORTED_ALGORITHM, envelope.key_id, signer, str(e), ambiguous)
    except SignatureInvalid as e:
        logger.warning(f"[verify] {e}")
        return TrustResult(TrustStatus.SIGNATURE_INVALID, envelope.key_id, signer, str(e), ambiguous)

    return TrustResult(TrustStatus.TRUSTED, envelope.key_id, signer, "Signature valid", ambiguous)


def process_token(text: str, reference: ReferenceData,
                  byteorder: str = config.BASE45_BYTEORDER) -> TokenReport:
    """Decode and verify a token; decode and trust are reported separately."""
    envelope = load_envelope(text, byteorder)

    record = None
    decode_error = None
    try:
        record = decode_payload(envelope.payload, reference.value_sets)
        logger.info("[hcert] Well-formed Digital-Covid-Certificate")
    except DecodeError as e:
        logger.warning(f"[hcert] Payload decode failed: {e}")
        decode_error = e

    trust = verify_envelope(envelope, reference.trust_store)
    return TokenReport(envelope=envelope, record=record, decode_error=decode_error, trust=trust)
