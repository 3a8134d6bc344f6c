"""Runtime settings read from the environment."""

import logging
import os
from typing import Optional, Union

SERVICE_NAME = "HCERT Decoder & Signature Verifier"
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "0.1.0")

TRUST_LIST = os.getenv("HCERT_TRUST_LIST", "trustlist.json")
VALUESETS_DIR = os.getenv("HCERT_VALUESETS_DIR", "ehn-dcc-valuesets")
LOG_LEVEL = os.getenv("HCERT_LOG_LEVEL", "INFO")
# "little" or "big" (RFC 9285, as in published HC1 tokens)
BASE45_BYTEORDER = os.getenv("HCERT_BASE45_BYTEORDER", "little")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[Union[str, int]] = None) -> None:
    """Configure root logging once for the CLI and the service."""
    level = level or LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
