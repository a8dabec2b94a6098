"""
Relying-party verification of issued credentials.

Each credential is checked on its own; one bad credential does not hide the
others. A credential contributes its claim only after it passes every check:

0. structure (mapping with the credential fields and a proof)
1. issuer in the trusted set
2. subject equals the authenticated DID
3. issuer public key known
4. validUntil strictly after now
5. proof signature present
6. signature verifies over the canonical credential payload
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Collection, Dict, List, Mapping, Optional, Tuple, Union

from .canonical import canonicalize_credential_payload
from .crypto import AlgorithmRegistry, default_registry
from .issuer import IssuerPublicKey
from .models import Credential, CredentialVerificationError, CredentialVerificationResult
from .timeutil import ensure_utc, parse_timestamp

logger = logging.getLogger(__name__)

IssuerKeyLookup = Union[
    Callable[[str], Optional[IssuerPublicKey]],
    Mapping[str, IssuerPublicKey],
]

_REQUIRED_FIELDS = (
    "id",
    "issuer",
    "subject",
    "claim_type",
    "claim_value",
    "issuanceDate",
    "validUntil",
    "proof",
)


def check_credential_expiry(
    credential: Mapping[str, Any], now: Optional[datetime] = None
) -> Tuple[bool, Optional[str]]:
    """Return (True, None) while validUntil is after `now`, else (False, reason)."""
    try:
        valid_until = parse_timestamp(credential.get("validUntil"))
    except (ValueError, TypeError):
        return False, "invalid validUntil"
    if valid_until <= ensure_utc(now):
        return False, "credential expired"
    return True, None


def _lookup_issuer_key(issuer_keys: IssuerKeyLookup, issuer: str) -> Optional[IssuerPublicKey]:
    if isinstance(issuer_keys, Mapping):
        return issuer_keys.get(issuer)
    return issuer_keys(issuer)


def _is_well_formed(cred: Any) -> bool:
    if not isinstance(cred, Mapping):
        return False
    if any(name not in cred for name in _REQUIRED_FIELDS):
        return False
    if not isinstance(cred.get("issuer"), str) or not isinstance(cred.get("subject"), str):
        return False
    return isinstance(cred.get("proof"), Mapping)


def _claim_type_of(cred: Any) -> str:
    if isinstance(cred, Mapping) and isinstance(cred.get("claim_type"), str):
        return cred["claim_type"]
    return "unknown"


def _check_one(
    cred: Mapping[str, Any],
    *,
    trusted: Collection[str],
    expected_subject_did: str,
    issuer_keys: IssuerKeyLookup,
    registry: AlgorithmRegistry,
    now: datetime,
) -> Optional[str]:
    issuer = cred["issuer"]
    if issuer not in trusted:
        return f"issuer {issuer} is not trusted"

    subject = cred["subject"]
    if subject != expected_subject_did:
        return f"credential subject {subject} does not match expected DID {expected_subject_did}"

    issuer_key = _lookup_issuer_key(issuer_keys, issuer)
    if issuer_key is None:
        return f"no public key for issuer {issuer}"

    ok, reason = check_credential_expiry(cred, now)
    if not ok:
        return reason

    proof = cred["proof"]
    signature = proof.get("signatureBase64")
    if not isinstance(signature, str) or not signature:
        return "missing credential signature"

    if not registry.supports(issuer_key.algorithm):
        return f"unsupported credential algorithm {issuer_key.algorithm}"
    if proof.get("type") != issuer_key.algorithm:
        return "invalid credential signature"

    payload = canonicalize_credential_payload(cred)
    if not registry.verify(issuer_key.algorithm, issuer_key.public_key_base64, payload, signature):
        return "invalid credential signature"
    return None


def verify_credentials(
    credentials: Any,
    *,
    trusted_issuers: Collection[str],
    expected_subject_did: str,
    issuer_keys: IssuerKeyLookup,
    now: Optional[datetime] = None,
    registry: Optional[AlgorithmRegistry] = None,
) -> CredentialVerificationResult:
    """
    Verify a list of credentials (Credential objects or wire mappings).

    Returns the claims of every credential that passed and one
    CredentialVerificationError per credential that did not.
    """
    if not isinstance(credentials, (list, tuple)):
        return CredentialVerificationResult(
            ok=False,
            errors=[CredentialVerificationError("unknown", "credentials must be a list")],
        )

    reg = registry or default_registry()
    now_eff = ensure_utc(now)
    trusted = frozenset(trusted_issuers)

    claims: Dict[str, Any] = {}
    errors: List[CredentialVerificationError] = []

    for raw in credentials:
        cred = raw.to_dict() if isinstance(raw, Credential) else raw
        claim_type = _claim_type_of(cred)

        if not _is_well_formed(cred):
            reason: Optional[str] = "malformed credential"
        else:
            reason = _check_one(
                cred,
                trusted=trusted,
                expected_subject_did=expected_subject_did,
                issuer_keys=issuer_keys,
                registry=reg,
                now=now_eff,
            )

        if reason is not None:
            logger.debug("Credential %s rejected: %s", claim_type, reason)
            errors.append(CredentialVerificationError(claim_type, reason))
            continue

        claims[claim_type] = cred["claim_value"]

    return CredentialVerificationResult(ok=not errors, claims=claims, errors=errors)
