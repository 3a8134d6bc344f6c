"""Shared test fixtures for the HC1 decode and verify test suite.

Provides real P-256 key material, self-signed document signer
certificates, CWT payloads and complete signed HC1 tokens.
"""

from __future__ import annotations

import base64
import datetime
import zlib
from typing import Any, Callable, Dict, Optional

import cbor2
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from hcert_verifier import b45
from hcert_verifier.trustlist import TrustedSigner, TrustStore

KID = bytes.fromhex("d919375fc1e7b6b2")

SAMPLE_DCC: Dict[str, Any] = {
    "v": [{
        "tg": "840539006",
        "vp": "1119349007",
        "mp": "EU/1/20/1528",
        "ma": "ORG-100030215",
        "dn": 2,
        "sd": 2,
        "dt": "2021-05-29",
        "co": "AT",
        "is": "Ministry of Health, Austria",
        "ci": "URN:UVCI:01:AT:10807843F94AEE0EE5093FBC254BD813#B",
    }],
    "dob": "1998-02-26",
    "nam": {
        "fn": "Musterfrau-Gößinger",
        "gn": "Gabriele",
        "fnt": "MUSTERFRAU<GOESSINGER",
        "gnt": "GABRIELE",
    },
    "ver": "1.2.1",
}


def make_claims(**overrides: Any) -> Dict[Any, Any]:
    claims: Dict[Any, Any] = {
        1: "AT",
        4: 1700000000,
        6: 1690000000,
        -260: {1: SAMPLE_DCC},
    }
    claims.update(overrides)
    return claims


def make_certificate(private_key, algorithm=hashes.SHA256(), country: str = "AT") -> bytes:
    """Self-signed DER certificate for ``private_key``."""
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, country),
        x509.NameAttribute(NameOID.COMMON_NAME, f"DSC {country} test"),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=365))
        .sign(private_key, algorithm)
    )
    return cert.public_bytes(Encoding.DER)


def make_signer(private_key, key_id: bytes = KID, country: str = "AT", algorithm=hashes.SHA256()) -> TrustedSigner:
    raw = make_certificate(private_key, algorithm, country)
    return TrustedSigner(
        key_id=key_id,
        country=country,
        raw_certificate=raw,
        thumbprint=hashes_hex(raw),
        timestamp="2021-06-01T00:00:00Z",
    )


def hashes_hex(data: bytes) -> str:
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize().hex()


def sign_es256(private_key, protected: bytes, payload: bytes) -> bytes:
    """Raw r||s ES256 signature over the COSE Sig_structure."""
    to_be_signed = cbor2.dumps(["Signature1", protected, b"", payload])
    der = private_key.sign(to_be_signed, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    return r.to_bytes(32, "big") + s.to_bytes(32, "big")


def make_cose(private_key, claims: Optional[Dict[Any, Any]] = None, key_id: Optional[bytes] = KID,
              kid_location: str = "protected", alg: Optional[int] = -7, tagged: bool = True) -> bytes:
    """Build a signed COSE_Sign1 message."""
    protected_map: Dict[int, Any] = {}
    unprotected: Dict[int, Any] = {}
    if alg is not None:
        protected_map[1] = alg
    if key_id is not None:
        (protected_map if kid_location == "protected" else unprotected)[4] = key_id
    protected = cbor2.dumps(protected_map) if protected_map else b""
    payload = cbor2.dumps(claims if claims is not None else make_claims())
    signature = sign_es256(private_key, protected, payload)
    message: Any = [protected, unprotected, payload, signature]
    if tagged:
        message = cbor2.CBORTag(18, message)
    return cbor2.dumps(message)


def make_token(cose: bytes) -> str:
    return "HC1:" + b45.encode(zlib.compress(cose))


def trust_list_json(*signers: TrustedSigner) -> Dict[str, Any]:
    return {
        "certificates": [{
            "certificateType": signer.certificate_type,
            "country": signer.country,
            "kid": base64.b64encode(signer.key_id).decode("ascii"),
            "rawData": base64.b64encode(signer.raw_certificate).decode("ascii"),
            "signature": "",
            "thumbprint": signer.thumbprint,
            "timestamp": signer.timestamp,
        } for signer in signers]
    }


@pytest.fixture(scope="session")
def p256_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def signer(p256_key) -> TrustedSigner:
    return make_signer(p256_key)


@pytest.fixture
def trust_store(signer) -> TrustStore:
    return TrustStore([signer])


@pytest.fixture
def build_token(p256_key) -> Callable[..., str]:
    """Factory for complete HC1 tokens signed with ``p256_key``."""
    def _build(**kwargs: Any) -> str:
        return make_token(make_cose(p256_key, **kwargs))
    return _build


@pytest.fixture
def value_set_docs() -> Dict[str, Dict[str, Any]]:
    def doc(set_id: str, code: str, display: str) -> Dict[str, Any]:
        return {
            "valueSetId": set_id,
            "valueSetDate": "2021-04-27",
            "valueSetValues": {
                code: {
                    "display": display,
                    "lang": "en",
                    "active": True,
                    "version": "1",
                    "system": "http://snomed.info/sct",
                }
            },
        }
    return {
        "disease-agent-targeted": doc("disease-agent-targeted", "840539006", "COVID-19"),
        "vaccine-prophylaxis": doc("sct-vaccines-covid-19", "1119349007", "SARS-CoV-2 mRNA vaccine"),
        "vaccine-medicinal-product": doc("vaccines-covid-19-names", "EU/1/20/1528", "Comirnaty"),
        "vaccine-mah-manf": doc("vaccines-covid-19-auth-holders", "ORG-100030215", "Biontech Manufacturing GmbH"),
    }
