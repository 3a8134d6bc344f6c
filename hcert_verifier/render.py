"""JSON and text renderings of decoded certificates and trust results."""

import base64
from collections.abc import Mapping
from typing import Any, Dict, List

from .payload import CertificateRecord, DigitalCovidCertificate, PersonName, Vaccination
from .pipeline import TrustResult
from .valuesets import CodedValue


def bytes_to_json_safe(obj: Any) -> Any:
    """Convert bytes to base64url for JSON serialization."""
    if isinstance(obj, bytes):
        return {'_b64': base64.urlsafe_b64encode(obj).decode('ascii').rstrip('=')}
    elif isinstance(obj, Mapping):
        return {str(k): bytes_to_json_safe(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [bytes_to_json_safe(item) for item in obj]
    return obj


def _name_to_json(name: PersonName) -> Dict[str, str]:
    out = {}
    for key, value in (("fn", name.family_name), ("gn", name.given_name),
                       ("fnt", name.family_name_transliterated), ("gnt", name.given_name_transliterated)):
        if value is not None:
            out[key] = value
    return out


def _vaccination_to_json(v: Vaccination) -> Dict[str, Any]:
    return {
        "tg": v.disease_agent_targeted.code,
        "vp": v.vaccine_or_prophylaxis.code,
        "mp": v.medicinal_product.code,
        "ma": v.manufacturer.code,
        "dn": v.dose_number,
        "sd": v.series_dose_number,
        "dt": v.date.isoformat(),
        "co": v.country,
        "is": v.issuer,
        "ci": v.certificate_identifier,
    }


def certificate_to_json(cert: DigitalCovidCertificate) -> Dict[str, Any]:
    """The DCC with its wire keys; coded values appear as raw codes."""
    return {
        "v": [_vaccination_to_json(v) for v in cert.vaccinations],
        "dob": cert.date_of_birth,
        "nam": _name_to_json(cert.name),
        "ver": cert.version,
    }


def _coded_to_dict(value: CodedValue) -> Dict[str, Any]:
    out: Dict[str, Any] = {"code": value.code, "display": None}
    if value.metadata is not None:
        out.update(display=value.metadata.display, system=value.metadata.system,
                   version=value.metadata.version, active=value.metadata.active)
    return out


def record_to_dict(record: CertificateRecord) -> Dict[str, Any]:
    """Full record including resolved value set displays."""
    cert = record.health_claim.certificate
    vaccinations: List[Dict[str, Any]] = []
    for v in cert.vaccinations:
        vaccinations.append({
            "disease_agent_targeted": _coded_to_dict(v.disease_agent_targeted),
            "vaccine_or_prophylaxis": _coded_to_dict(v.vaccine_or_prophylaxis),
            "medicinal_product": _coded_to_dict(v.medicinal_product),
            "manufacturer": _coded_to_dict(v.manufacturer),
            "dose_number": v.dose_number,
            "series_dose_number": v.series_dose_number,
            "date": v.date.isoformat(),
            "country": v.country,
            "issuer": v.issuer,
            "certificate_identifier": v.certificate_identifier,
        })
    return {
        "issuer": record.issuer,
        "expiration_time": record.expiration_time.isoformat(),
        "issued_at": record.issued_at.isoformat(),
        "health_claim": {
            "version": cert.version,
            "name": _name_to_json(cert.name),
            "date_of_birth": cert.date_of_birth,
            "vaccinations": vaccinations,
        },
    }


def trust_to_dict(trust: TrustResult) -> Dict[str, Any]:
    out = {
        "valid": trust.valid,
        "status": trust.status.value,
        "kid_b64": base64.b64encode(trust.key_id).decode("ascii"),
        "kid_hex": trust.key_id.hex(),
        "message": trust.detail,
        "ambiguous_kid": trust.ambiguous,
    }
    if trust.signer is not None:
        out["signer"] = {
            "country": trust.signer.country,
            "thumbprint": trust.signer.thumbprint,
            "certificate_type": trust.signer.certificate_type,
        }
    return out


def _coded_text(value: CodedValue) -> str:
    if value.metadata is None:
        return value.code
    return f"{value.metadata.display} ({value.code})"


def render_text(record: CertificateRecord) -> str:
    """Indented, human-readable rendering of a certificate record."""
    cert = record.health_claim.certificate
    name = cert.name
    lines = [
        "CertificateRecord",
        f"  issuer:          {record.issuer}",
        f"  issued_at:       {record.issued_at.isoformat()}",
        f"  expiration_time: {record.expiration_time.isoformat()}",
        "  health_claim:",
        f"    version:       {cert.version}",
        f"    name:          {name.family_name or ''}, {name.given_name or ''}".rstrip(", "),
        f"    name (ICAO):   {name.family_name_transliterated}<<{name.given_name_transliterated or ''}",
        f"    date_of_birth: {cert.date_of_birth}",
    ]
    for index, v in enumerate(cert.vaccinations):
        lines.extend([
            f"    vaccination[{index}]:",
            f"      disease_agent_targeted: {_coded_text(v.disease_agent_targeted)}",
            f"      vaccine_or_prophylaxis: {_coded_text(v.vaccine_or_prophylaxis)}",
            f"      medicinal_product:      {_coded_text(v.medicinal_product)}",
            f"      manufacturer:           {_coded_text(v.manufacturer)}",
            f"      dose:                   {v.dose_number}/{v.series_dose_number}",
            f"      date:                   {v.date.isoformat()}",
            f"      country:                {v.country}",
            f"      issuer:                 {v.issuer}",
            f"      certificate_identifier: {v.certificate_identifier}",
        ])
    return "\n".join(lines)
