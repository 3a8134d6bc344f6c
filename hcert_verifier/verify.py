"""COSE ES256 signature verification against trust list certificates."""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature
from cryptography.x509.oid import NameOID, PublicKeyAlgorithmOID

from .envelope import SignedEnvelope
from .errors import SignatureInvalid, UnsupportedAlgorithm
from .trustlist import TrustedSigner

logger = logging.getLogger(__name__)

# COSE algorithm label for ECDSA w/ SHA-256
COSE_ALG_ES256 = -7

PRIME256V1_OID = ec.EllipticCurveOID.SECP256R1.dotted_string
ES256_SIGNATURE_LENGTH = 64


class Algorithm(enum.Enum):
    ES256 = "id-ecPublicKey/prime256v1"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class KeyAlgorithm:
    """Algorithm declared by a certificate's SubjectPublicKeyInfo."""

    algorithm: Algorithm
    oid: str
    parameter: Optional[str] = None

    @property
    def supported(self) -> bool:
        return self.algorithm is not Algorithm.UNSUPPORTED


def identify_key_algorithm(certificate: x509.Certificate) -> KeyAlgorithm:
    """Classify the certificate's public key algorithm and curve."""
    oid = certificate.public_key_algorithm_oid.dotted_string
    if certificate.public_key_algorithm_oid != PublicKeyAlgorithmOID.EC_PUBLIC_KEY:
        return KeyAlgorithm(Algorithm.UNSUPPORTED, oid)

    try:
        public_key = certificate.public_key()
    except (CryptoUnsupportedAlgorithm, ValueError) as e:
        logger.warning(f"[verify] Cannot load EC public key: {e}")
        return KeyAlgorithm(Algorithm.UNSUPPORTED, oid)

    curve = public_key.curve.name
    if isinstance(public_key.curve, ec.SECP256R1):
        return KeyAlgorithm(Algorithm.ES256, oid, PRIME256V1_OID)
    return KeyAlgorithm(Algorithm.UNSUPPORTED, oid, curve)


def raw_to_der_signature(signature: bytes) -> bytes:
    """Convert a raw r||s ECDSA signature to DER."""
    if len(signature) != ES256_SIGNATURE_LENGTH:
        raise SignatureInvalid(f"Unexpected ECDSA signature length: {len(signature)}")
    half = len(signature) // 2
    r = int.from_bytes(signature[:half], "big")
    s = int.from_bytes(signature[half:], "big")
    return encode_dss_signature(r, s)


def verify_signature(envelope: SignedEnvelope, signer: TrustedSigner, to_be_signed: bytes) -> None:
    """Verify the envelope signature with the signer's key.

    Raises UnsupportedAlgorithm before any cryptographic work when the signer
    key or the header algorithm is not ES256, and SignatureInvalid when the
    signature does not match. Returns None on success.
    """
    try:
        certificate = signer.load_certificate()
    except ValueError as e:
        raise UnsupportedAlgorithm(f"Unreadable signer certificate: {e}") from e

    common_names = [attr.value for attr in certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)]
    logger.info(f"[verify] Signer certificate for kid {signer.kid_b64}: CN={', '.join(common_names) or '-'}")

    key_algorithm = identify_key_algorithm(certificate)
    logger.debug(f"[verify] Signer key algorithm: {key_algorithm}")
    if not key_algorithm.supported:
        raise UnsupportedAlgorithm(
            f"Unsupported signer key algorithm {key_algorithm.oid}"
            + (f" ({key_algorithm.parameter})" if key_algorithm.parameter else ""),
            oid=key_algorithm.oid,
            parameter=key_algorithm.parameter,
        )

    alg = envelope.algorithm
    if alg is not None and alg != COSE_ALG_ES256:
        raise UnsupportedAlgorithm(
            f"Algorithm {alg} not supported, expected {COSE_ALG_ES256} (ES256)",
            oid=key_algorithm.oid,
            parameter=key_algorithm.parameter,
        )

    der_sig = raw_to_der_signature(envelope.signature)
    try:
        certificate.public_key().verify(der_sig, to_be_signed, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature as e:
        raise SignatureInvalid("Signature verification failed") from e
    logger.info(f"[verify] Signature valid for kid {signer.kid_b64}")
