"""
Protocol tunables for PQID.

All knobs live on a frozen ProtocolConfig. Callers construct one at startup
(usually via ProtocolConfig.from_env()) and pass it into protocol and
verification calls; DEFAULT_CONFIG is used when nothing is passed.

Environment variables:
- PQID_SPEC_VERSION
- PQID_FRESHNESS_WINDOW_SECONDS
- PQID_CREDENTIAL_VALIDITY_SECONDS
- PQID_DID_NAMESPACE
- PQID_AUDIENCE
- PQID_ALGORITHM
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional

from .crypto import ED25519_ALGO

# Bumped from pqid-auth-0.1.1 when canonicalization switched to sorted keys.
SPEC_VERSION = "pqid-auth-0.2.0"

FRESHNESS_WINDOW = timedelta(minutes=2)
CREDENTIAL_VALIDITY = timedelta(hours=24)

DID_NAMESPACE = "pqid"
DEFAULT_AUDIENCE = "http://localhost"


@dataclass(frozen=True)
class ProtocolConfig:
    spec_version: str = SPEC_VERSION
    freshness_window: timedelta = field(default=FRESHNESS_WINDOW)
    credential_validity: timedelta = field(default=CREDENTIAL_VALIDITY)
    did_namespace: str = DID_NAMESPACE
    default_audience: str = DEFAULT_AUDIENCE
    algorithm: str = ED25519_ALGO

    def __post_init__(self) -> None:
        if not self.spec_version:
            raise ValueError("spec_version must be non-empty")
        if self.freshness_window <= timedelta(0):
            raise ValueError("freshness_window must be positive")
        if self.credential_validity <= timedelta(0):
            raise ValueError("credential_validity must be positive")
        if not self.did_namespace or ":" in self.did_namespace:
            raise ValueError("did_namespace must be non-empty and must not contain ':'")
        if not self.algorithm:
            raise ValueError("algorithm must be non-empty")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ProtocolConfig":
        """
        Build a config from PQID_* environment variables.

        Unset or blank variables keep their defaults. Malformed values raise
        ValueError so misconfiguration surfaces at startup.
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        spec_version = _env_str(env, "PQID_SPEC_VERSION")
        if spec_version is not None:
            kwargs["spec_version"] = spec_version

        freshness = _env_seconds(env, "PQID_FRESHNESS_WINDOW_SECONDS")
        if freshness is not None:
            kwargs["freshness_window"] = freshness

        validity = _env_seconds(env, "PQID_CREDENTIAL_VALIDITY_SECONDS")
        if validity is not None:
            kwargs["credential_validity"] = validity

        namespace = _env_str(env, "PQID_DID_NAMESPACE")
        if namespace is not None:
            kwargs["did_namespace"] = namespace

        audience = _env_str(env, "PQID_AUDIENCE")
        if audience is not None:
            kwargs["default_audience"] = audience

        algorithm = _env_str(env, "PQID_ALGORITHM")
        if algorithm is not None:
            kwargs["algorithm"] = algorithm

        return cls(**kwargs)


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    raw = env.get(name)
    if raw is None:
        return None
    s = raw.strip()
    return s or None


def _env_seconds(env: Mapping[str, str], name: str) -> Optional[timedelta]:
    raw = _env_str(env, name)
    if raw is None:
        return None
    try:
        seconds = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    return timedelta(seconds=seconds)


DEFAULT_CONFIG = ProtocolConfig()
