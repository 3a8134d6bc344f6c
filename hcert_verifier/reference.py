"""Reference data loaded once at startup and shared read-only."""

import logging
from dataclasses import dataclass, field

from . import config
from .trustlist import TrustStore, load_trust_list
from .valuesets import ValueSets, load_value_sets

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceData:
    trust_store: TrustStore = field(default_factory=TrustStore)
    value_sets: ValueSets = field(default_factory=ValueSets)


def load_reference_data(trust_list: str = config.TRUST_LIST,
                        valuesets_dir: str = config.VALUESETS_DIR) -> ReferenceData:
    """Load trust list and value sets; missing pieces degrade to empty data."""
    reference = ReferenceData(
        trust_store=load_trust_list(trust_list),
        value_sets=load_value_sets(valuesets_dir),
    )
    logger.debug(f"[reference] {len(reference.trust_store)} signer(s), value sets from {valuesets_dir}")
    return reference
