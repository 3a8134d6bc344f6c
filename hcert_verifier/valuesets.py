"""eHN value sets used to resolve coded certificate fields."""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

DISEASE_AGENT_TARGETED = "disease-agent-targeted"
VACCINE_PROPHYLAXIS = "vaccine-prophylaxis"
VACCINE_MEDICINAL_PRODUCT = "vaccine-medicinal-product"
VACCINE_MAH_MANF = "vaccine-mah-manf"

CATEGORIES = (
    DISEASE_AGENT_TARGETED,
    VACCINE_PROPHYLAXIS,
    VACCINE_MEDICINAL_PRODUCT,
    VACCINE_MAH_MANF,
)


@dataclass(frozen=True)
class ValueSetValue:
    display: str
    lang: str = ""
    active: bool = True
    version: str = ""
    system: str = ""


@dataclass(frozen=True)
class ValueSet:
    value_set_id: str
    value_set_date: date
    values: Dict[str, ValueSetValue] = field(default_factory=dict)

    @classmethod
    def from_json(cls, doc: Dict[str, Any]) -> "ValueSet":
        """Build a value set from its eHN JSON document."""
        if not isinstance(doc, dict):
            raise ValueError("Value set document must be a JSON object")
        raw_values = doc["valueSetValues"]
        if not isinstance(raw_values, dict):
            raise ValueError("valueSetValues must be an object")

        values = {}
        for code, entry in raw_values.items():
            values[code] = ValueSetValue(
                display=entry["display"],
                lang=entry.get("lang", ""),
                active=bool(entry.get("active", True)),
                version=entry.get("version", ""),
                system=entry.get("system", ""),
            )
        return cls(
            value_set_id=doc["valueSetId"],
            value_set_date=date.fromisoformat(doc["valueSetDate"]),
            values=values,
        )

    def get(self, code: str) -> Optional[ValueSetValue]:
        return self.values.get(code)


@dataclass(frozen=True)
class CodedValue:
    """A raw code plus the metadata it resolved to, if any."""

    code: str
    metadata: Optional[ValueSetValue] = None

    @property
    def display(self) -> str:
        return self.metadata.display if self.metadata else self.code

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True)
class ValueSets:
    disease_agent_targeted: Optional[ValueSet] = None
    vaccine_prophylaxis: Optional[ValueSet] = None
    vaccine_medicinal_product: Optional[ValueSet] = None
    vaccine_mah_manf: Optional[ValueSet] = None

    def get_set(self, category: str) -> Optional[ValueSet]:
        return getattr(self, category.replace("-", "_"), None)

    def resolve(self, category: str, code: str) -> CodedValue:
        """Resolve a code; unknown sets or codes keep the raw code only."""
        value_set = self.get_set(category)
        if value_set is None:
            return CodedValue(code)
        metadata = value_set.get(code)
        if metadata is None:
            logger.debug(f"[valuesets] Code {code!r} not found in {category}")
        return CodedValue(code, metadata)


def load_value_set(path: Union[str, Path]) -> Optional[ValueSet]:
    """Load one value set file; on any failure log and return None."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            value_set = ValueSet.from_json(json.load(f))
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.error(f"[valuesets] Could not load {path}: {e}")
        return None
    logger.debug(f"[valuesets] Found '{path.name}' valueset ({len(value_set.values)} codes)")
    return value_set


def load_value_sets(directory: Union[str, Path]) -> ValueSets:
    """Load every known value set from ``directory``."""
    sets = {
        category.replace("-", "_"): load_value_set(os.path.join(directory, f"{category}.json"))
        for category in CATEGORIES
    }
    return ValueSets(**sets)
