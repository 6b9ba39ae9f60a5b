"""
Defaults + configuration loading from .env / defaults.conf.

Implements:
- Internal defaults (used when no defaults file exists)
- defaults.conf overlay (KEY=VALUE, parsed with python-dotenv)
- SIGIL_<KEY> environment overrides
- save_defaults() for the subject fields (COUNTRY/STATE/LOCALITY/ORGANIZATION)
- build_request_config() -> validated, immutable CertificateRequestConfig
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import pydantic
from dotenv import dotenv_values, load_dotenv, set_key

from sigil.common.errors import ValidationError
from sigil.common.models import CertificateRequestConfig

logger = logging.getLogger(__name__)

load_dotenv()  # load .env variables

# -------- SETTINGS FROM .env ---------

ENV_PREFIX = "SIGIL_"
DEFAULTS_FILE = os.getenv("SIGIL_DEFAULTS_FILE", "defaults.conf")
PASSPHRASE_ENV = "SIGIL_KEY_PASSPHRASE"

INTERNAL_DEFAULTS = {
    "SSL_DIR": "ssl",
    "SERVER_CN": "example.com",
    "COUNTRY": "IN",
    "STATE": "Karnataka",
    "LOCALITY": "Bengaluru",
    "ORGANIZATION": "My Company Inc.",
    "JWT_DIR": "keys",
    "KEY_SIZE": "2048",
    "VALIDITY_DAYS": "3650",
}

SAVED_KEYS = ("COUNTRY", "STATE", "LOCALITY", "ORGANIZATION")


# ------------ LOAD / SAVE DEFAULTS ------------

def load_defaults(path: Optional[str] = None) -> dict[str, str]:
    """
    Merge internal defaults <- defaults file <- SIGIL_* environment.
    """
    values = dict(INTERNAL_DEFAULTS)

    defaults_path = Path(path or DEFAULTS_FILE)
    if defaults_path.is_file():
        logger.info("loading default values from %s", defaults_path)
        values.update({k: v for k, v in dotenv_values(defaults_path).items() if v is not None})
    else:
        logger.info("no defaults file at %s, using internal defaults", defaults_path)

    for key in INTERNAL_DEFAULTS:
        override = os.getenv(ENV_PREFIX + key)
        if override:
            values[key] = override

    return values


def save_defaults(config: CertificateRequestConfig, path: Optional[str] = None) -> Path:
    """Persist the certificate subject fields for the next run."""
    defaults_path = Path(path or DEFAULTS_FILE)
    defaults_path.parent.mkdir(parents=True, exist_ok=True)
    defaults_path.touch(exist_ok=True)

    subject = {
        "COUNTRY": config.country,
        "STATE": config.state,
        "LOCALITY": config.locality,
        "ORGANIZATION": config.organization,
    }
    for key in SAVED_KEYS:
        set_key(str(defaults_path), key, subject[key], quote_mode="always")

    logger.info("default values saved to %s", defaults_path)
    return defaults_path


# ------------ TYPED VALUES ------------

def _int_value(values: Mapping[str, str], key: str) -> int:
    raw = values.get(key, INTERNAL_DEFAULTS[key])
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer, got {raw!r}") from None


def key_size_default(values: Mapping[str, str]) -> int:
    return _int_value(values, "KEY_SIZE")


def read_passphrase(env_name: str = PASSPHRASE_ENV) -> Optional[bytes]:
    """
    Passphrase for ca.key / server.key, or None to write them unencrypted.
    """
    value = os.getenv(env_name)
    return value.encode() if value else None


def build_request_config(values: Mapping[str, str], **overrides) -> CertificateRequestConfig:
    """
    Build the immutable request config from merged defaults.
    `overrides` uses CertificateRequestConfig field names.
    """
    fields = {
        "common_name": values.get("SERVER_CN", ""),
        "country": values.get("COUNTRY", ""),
        "state": values.get("STATE", ""),
        "locality": values.get("LOCALITY", ""),
        "organization": values.get("ORGANIZATION", ""),
        "validity_days": _int_value(values, "VALIDITY_DAYS"),
    }
    fields.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return CertificateRequestConfig(**fields)
    except pydantic.ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ValidationError(f"invalid certificate configuration: {problems}") from exc
