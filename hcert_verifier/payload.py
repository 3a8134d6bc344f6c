"""CWT / HCERT payload decoding into typed certificate records.

Each record has its own decode function which walks a ``MapCursor`` over the
CBOR map, fills optional slots for the keys it knows, skips the rest, and
finally promotes required slots (raising ``MissingField`` when one is
absent). Unknown keys are logged and ignored so that newer certificates keep
decoding with older code.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterator, List, Optional, Tuple

import cbor2

from .errors import MalformedField, MissingField
from .valuesets import (
    DISEASE_AGENT_TARGETED,
    VACCINE_MAH_MANF,
    VACCINE_MEDICINAL_PRODUCT,
    VACCINE_PROPHYLAXIS,
    CodedValue,
    ValueSets,
)

logger = logging.getLogger(__name__)

# CWT claim keys
CWT_ISS = 1
CWT_EXP = 4
CWT_IAT = 6
CWT_HCERT = -260

# HCERT container key holding the DCC
HCERT_DCC = 1

EMPTY_VALUE_SETS = ValueSets()

DOB_PATTERN = re.compile(r"^\d{4}(-\d{2}(-\d{2}([T ].*)?)?)?$")


@dataclass(frozen=True)
class PersonName:
    family_name_transliterated: str
    family_name: Optional[str] = None
    given_name: Optional[str] = None
    given_name_transliterated: Optional[str] = None


@dataclass(frozen=True)
class Vaccination:
    disease_agent_targeted: CodedValue
    vaccine_or_prophylaxis: CodedValue
    medicinal_product: CodedValue
    manufacturer: CodedValue
    dose_number: int
    series_dose_number: int
    date: date
    country: str
    issuer: str
    certificate_identifier: str


@dataclass(frozen=True)
class DigitalCovidCertificate:
    version: str
    name: PersonName
    date_of_birth: str
    vaccinations: Tuple[Vaccination, ...]

    @property
    def birth_date(self) -> Optional[date]:
        """Date of birth when it is a complete date, otherwise None."""
        try:
            return date.fromisoformat(self.date_of_birth[:10])
        except ValueError:
            return None


@dataclass(frozen=True)
class HealthClaim:
    certificate: DigitalCovidCertificate


@dataclass(frozen=True)
class CertificateRecord:
    issuer: str
    expiration_time: datetime
    issued_at: datetime
    health_claim: HealthClaim


class MapCursor:
    """Walks the key/value pairs of a decoded CBOR map.

    Iterating yields keys; ``next_value()`` returns the value that belongs to
    the key just yielded. Keys whose value is never requested are skipped.
    Keys whose exact type is not ``key_type`` are skipped without being
    yielded, so ``True`` or ``1.0`` never stand in for the integer key ``1``.
    """

    def __init__(self, data: Any, path: str, key_type: type):
        if not isinstance(data, dict):
            raise MalformedField(path, f"expected a map, got {type(data).__name__}")
        self.path = path
        self.key_type = key_type
        self._items = iter(data.items())
        self._value: Any = None

    def __iter__(self) -> Iterator[Any]:
        for key, value in self._items:
            if type(key) is not self.key_type:
                self.skip(key)
                continue
            self._value = value
            yield key

    def next_value(self) -> Any:
        return self._value

    def skip(self, key: Any) -> None:
        logger.info(f"[payload] Ignoring unknown field {key!r} in {self.path}")

    def field_path(self, name: str) -> str:
        return f"{self.path}.{name}" if self.path else name


def _require(value: Optional[Any], name: str) -> Any:
    if value is None:
        raise MissingField(name)
    return value


def _expect_str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise MalformedField(name, f"expected text, got {type(value).__name__}")
    return value


def _expect_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedField(name, f"expected an integer, got {type(value).__name__}")
    return value


def _expect_positive_int(value: Any, name: str) -> int:
    value = _expect_int(value, name)
    if value < 1:
        raise MalformedField(name, f"expected a positive integer, got {value}")
    return value


def _expect_timestamp(value: Any, name: str) -> datetime:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedField(name, f"expected seconds since epoch, got {type(value).__name__}")
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise MalformedField(name, f"timestamp {value} out of range") from e


def _expect_date(value: Any, name: str) -> date:
    # cbor2 decodes tag 1004 into a date already
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _expect_str(value, name)
    try:
        return date.fromisoformat(text[:10])
    except ValueError as e:
        raise MalformedField(name, f"invalid date {text!r}") from e


def _expect_date_of_birth(value: Any, name: str) -> str:
    if isinstance(value, date):
        return value.isoformat()
    text = _expect_str(value, name)
    # YYYY, YYYY-MM, YYYY-MM-DD or empty
    if text and not DOB_PATTERN.match(text):
        raise MalformedField(name, f"invalid date of birth {text!r}")
    if len(text) >= 10:
        _expect_date(text, name)
    return text


def _coded(value: Any, name: str, category: str, value_sets: ValueSets) -> CodedValue:
    return value_sets.resolve(category, _expect_str(value, name))


# -------- Record decoders --------

def decode_payload(payload: bytes, value_sets: Optional[ValueSets] = None) -> CertificateRecord:
    """Decode the CWT payload bytes of an envelope into a CertificateRecord."""
    try:
        data = cbor2.loads(payload)
    except (cbor2.CBORDecodeError, ValueError, TypeError, OverflowError) as e:
        raise MalformedField("payload", f"invalid CBOR: {e}") from e
    logger.debug("[payload] CBOR certificate payload decoding successful")
    return decode_cwt(data, value_sets or EMPTY_VALUE_SETS)


def decode_cwt(data: Any, value_sets: ValueSets) -> CertificateRecord:
    cursor = MapCursor(data, "payload", int)
    issuer = expiration_time = issued_at = health_claim = None

    for key in cursor:
        if key == CWT_ISS:
            issuer = _expect_str(cursor.next_value(), "issuer")
        elif key == CWT_EXP:
            expiration_time = _expect_timestamp(cursor.next_value(), "expiration_time")
        elif key == CWT_IAT:
            issued_at = _expect_timestamp(cursor.next_value(), "issued_at")
        elif key == CWT_HCERT:
            health_claim = decode_health_claim(cursor.next_value(), value_sets)
        else:
            cursor.skip(key)

    return CertificateRecord(
        issuer=_require(issuer, "issuer"),
        expiration_time=_require(expiration_time, "expiration_time"),
        issued_at=_require(issued_at, "issued_at"),
        health_claim=_require(health_claim, "health_claim"),
    )


def decode_health_claim(data: Any, value_sets: ValueSets) -> HealthClaim:
    cursor = MapCursor(data, "health_claim", int)
    certificate = None

    for key in cursor:
        if key == HCERT_DCC:
            certificate = decode_certificate(cursor.next_value(), value_sets)
        else:
            cursor.skip(key)

    return HealthClaim(certificate=_require(certificate, "health_claim.certificate"))


def decode_certificate(data: Any, value_sets: ValueSets) -> DigitalCovidCertificate:
    cursor = MapCursor(data, "health_claim.certificate", str)
    version = name = date_of_birth = vaccinations = None

    for key in cursor:
        if key == "ver":
            version = _expect_str(cursor.next_value(), cursor.field_path("ver"))
        elif key == "nam":
            name = decode_name(cursor.next_value(), cursor.field_path("nam"))
        elif key == "dob":
            date_of_birth = _expect_date_of_birth(cursor.next_value(), cursor.field_path("dob"))
        elif key == "v":
            vaccinations = decode_vaccinations(cursor.next_value(), cursor.field_path("v"), value_sets)
        else:
            cursor.skip(key)

    return DigitalCovidCertificate(
        version=_require(version, cursor.field_path("ver")),
        name=_require(name, cursor.field_path("nam")),
        date_of_birth=_require(date_of_birth, cursor.field_path("dob")),
        vaccinations=_require(vaccinations, cursor.field_path("v")),
    )


def decode_name(data: Any, path: str) -> PersonName:
    cursor = MapCursor(data, path, str)
    slots = {}
    fields = {
        "fn": "family_name",
        "gn": "given_name",
        "fnt": "family_name_transliterated",
        "gnt": "given_name_transliterated",
    }

    for key in cursor:
        if key in fields:
            value = cursor.next_value()
            # null is allowed for the optional name parts
            if value is not None:
                slots[fields[key]] = _expect_str(value, cursor.field_path(key))
        else:
            cursor.skip(key)

    _require(slots.get("family_name_transliterated"), cursor.field_path("fnt"))
    return PersonName(**slots)


def decode_vaccinations(data: Any, path: str, value_sets: ValueSets) -> Tuple[Vaccination, ...]:
    if not isinstance(data, list):
        raise MalformedField(path, f"expected a list, got {type(data).__name__}")
    if not data:
        raise MalformedField(path, "expected at least one vaccination entry")
    entries: List[Vaccination] = []
    for index, item in enumerate(data):
        entries.append(decode_vaccination(item, f"{path}[{index}]", value_sets))
    return tuple(entries)


def decode_vaccination(data: Any, path: str, value_sets: ValueSets) -> Vaccination:
    cursor = MapCursor(data, path, str)
    slots = {}

    for key in cursor:
        name = cursor.field_path(key)
        if key == "tg":
            slots["disease_agent_targeted"] = _coded(cursor.next_value(), name, DISEASE_AGENT_TARGETED, value_sets)
        elif key == "vp":
            slots["vaccine_or_prophylaxis"] = _coded(cursor.next_value(), name, VACCINE_PROPHYLAXIS, value_sets)
        elif key == "mp":
            slots["medicinal_product"] = _coded(cursor.next_value(), name, VACCINE_MEDICINAL_PRODUCT, value_sets)
        elif key == "ma":
            slots["manufacturer"] = _coded(cursor.next_value(), name, VACCINE_MAH_MANF, value_sets)
        elif key == "dn":
            slots["dose_number"] = _expect_positive_int(cursor.next_value(), name)
        elif key == "sd":
            slots["series_dose_number"] = _expect_positive_int(cursor.next_value(), name)
        elif key == "dt":
            slots["date"] = _expect_date(cursor.next_value(), name)
        elif key == "co":
            slots["country"] = _expect_str(cursor.next_value(), name)
        elif key == "is":
            slots["issuer"] = _expect_str(cursor.next_value(), name)
        elif key == "ci":
            slots["certificate_identifier"] = _expect_str(cursor.next_value(), name)
        else:
            cursor.skip(key)

    required = (
        ("tg", "disease_agent_targeted"),
        ("vp", "vaccine_or_prophylaxis"),
        ("mp", "medicinal_product"),
        ("ma", "manufacturer"),
        ("dn", "dose_number"),
        ("sd", "series_dose_number"),
        ("dt", "date"),
        ("co", "country"),
        ("is", "issuer"),
        ("ci", "certificate_identifier"),
    )
    for wire_key, slot in required:
        _require(slots.get(slot), cursor.field_path(wire_key))
    return Vaccination(**slots)
