"""Trust list of document signer certificates, keyed by COSE key id."""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import requests
from cryptography import x509

from .errors import SignerNotFound

logger = logging.getLogger(__name__)

TRUSTLIST_TIMEOUT = 25


@dataclass(frozen=True)
class TrustedSigner:
    key_id: bytes
    country: str
    raw_certificate: bytes
    thumbprint: str
    timestamp: str
    certificate_type: str = "DSC"
    signature: str = ""

    @property
    def kid_b64(self) -> str:
        return base64.b64encode(self.key_id).decode("ascii")

    def load_certificate(self) -> x509.Certificate:
        """Parse the DER certificate of this signer."""
        return x509.load_der_x509_certificate(self.raw_certificate)

    @classmethod
    def from_json(cls, entry: Dict[str, Any]) -> "TrustedSigner":
        """Build a signer from one entry of the trust list JSON."""
        if not isinstance(entry, dict):
            raise ValueError(f"Trust list entry must be an object, got {type(entry).__name__}")
        try:
            key_id = base64.b64decode(entry["kid"], validate=True)
            raw_certificate = base64.b64decode(entry["rawData"], validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 in trust list entry: {e}") from e
        return cls(
            key_id=key_id,
            country=entry["country"],
            raw_certificate=raw_certificate,
            thumbprint=entry["thumbprint"],
            timestamp=entry["timestamp"],
            certificate_type=entry.get("certificateType", "DSC"),
            signature=entry.get("signature", ""),
        )


class TrustStore:
    """Read-only collection of trusted signers in load order."""

    def __init__(self, signers: Iterable[TrustedSigner] = ()):
        self._signers: Tuple[TrustedSigner, ...] = tuple(signers)

    def __len__(self) -> int:
        return len(self._signers)

    def __iter__(self) -> Iterator[TrustedSigner]:
        return iter(self._signers)

    def find_by_key_id(self, key_id: bytes) -> Optional[TrustedSigner]:
        """Return the first signer whose key id equals ``key_id``."""
        for signer in self._signers:
            if signer.key_id == key_id:
                return signer
        return None

    def find_all_by_key_id(self, key_id: bytes) -> List[TrustedSigner]:
        return [signer for signer in self._signers if signer.key_id == key_id]

    def lookup(self, key_id: bytes) -> List[TrustedSigner]:
        """Every signer for ``key_id``; raises SignerNotFound when there is none."""
        matches = self.find_all_by_key_id(key_id)
        if not matches:
            raise SignerNotFound(key_id)
        return matches

    @classmethod
    def from_json(cls, doc: Dict[str, Any]) -> "TrustStore":
        if not isinstance(doc, dict) or not isinstance(doc.get("certificates"), list):
            raise ValueError("Trust list must be an object with a 'certificates' list")
        return cls(TrustedSigner.from_json(entry) for entry in doc["certificates"])


def parse_trust_list(text: str) -> TrustStore:
    """Parse trust list text. A leading signature line is skipped."""
    text = text.strip()
    if text and not text.startswith("{"):
        # DSC list distribution format: first line carries the list signature
        _, _, text = text.partition("\n")
    return TrustStore.from_json(json.loads(text))


def fetch_trust_list_text(url: str) -> str:
    """Fetch trust list text over HTTP(S)."""
    r = requests.get(url, timeout=TRUSTLIST_TIMEOUT)
    r.raise_for_status()
    return r.text


def load_trust_list(source: str) -> TrustStore:
    """Load a trust list from a file path or URL; failures yield an empty store."""
    try:
        if source.startswith(("http://", "https://")):
            logger.info(f"[trustlist] Fetching trust list: {source}")
            text = fetch_trust_list_text(source)
        else:
            with open(source, "r", encoding="utf-8") as f:
                text = f.read()
        store = parse_trust_list(text)
    except (OSError, ValueError, KeyError, TypeError, requests.RequestException) as e:
        logger.error(f"[trustlist] Could not load trust list from {source}: {e}")
        return TrustStore()

    logger.info(f"[trustlist] Loaded {len(store)} trusted signer(s) from {source}")
    return store
