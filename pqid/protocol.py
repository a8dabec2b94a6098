"""
High-level PQID authentication flows.

Relying party:
    - build_auth_challenge(...)
    - server_verify_auth_response(...)

Wallet:
    - build_assertion(...)
    - request_auth(...)
    - respond_to_challenge(...)

request_auth() runs the whole wallet side in one call:

1. build the assertion (challenge, audience, timestamp, spec_version)
2. sign its canonical string with the wallet key
3. have the issuer mint one credential per requested claim type
4. package DID, DID document, assertion, signature and credentials
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Collection, Iterable, List, Optional, Union

from .config import DEFAULT_CONFIG, ProtocolConfig
from .crypto import AlgorithmRegistry
from .issuer import CredentialIssuer
from .models import (
    AuthAssertion,
    AuthChallenge,
    AuthResponseBundle,
    AuthVerificationResult,
    ClaimType,
    RequestedClaim,
)
from .timeutil import ensure_utc, format_timestamp
from .verify_assertion import verify_assertion
from .verify_credentials import IssuerKeyLookup, verify_credentials
from .wallet import WalletIdentity

logger = logging.getLogger(__name__)

ClaimRequest = Union[RequestedClaim, ClaimType, str]


def _new_nonce() -> str:
    return str(uuid.uuid4())


def _unique_claim_types(requested_claims: Iterable[Any]) -> List[str]:
    """Claim type names in first-seen order, duplicates dropped."""
    seen: List[str] = []
    for claim in requested_claims:
        name = RequestedClaim.coerce(claim).type
        if name not in seen:
            seen.append(name)
    return seen


# ---------------------------------------------------------------------------
# Relying party: challenge
# ---------------------------------------------------------------------------


def build_auth_challenge(
    audience: Optional[str] = None,
    requested_claims: Iterable[Any] = (),
    *,
    nonce: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[ProtocolConfig] = None,
) -> AuthChallenge:
    """
    Build the challenge a relying party hands to a wallet.

    Parameters
    ----------
    audience:
        Origin the assertion must be bound to (default: config.default_audience).
    requested_claims:
        Claim types (or RequestedClaim / {"type", "purpose"} mappings).
    nonce:
        Challenge value; a fresh UUID when omitted.
    """
    cfg = config or DEFAULT_CONFIG
    return AuthChallenge(
        nonce=nonce or _new_nonce(),
        audience=audience or cfg.default_audience,
        timestamp=format_timestamp(ensure_utc(now)),
        requested_claims=[RequestedClaim.coerce(c) for c in requested_claims],
    )


# ---------------------------------------------------------------------------
# Wallet: assertion + bundle
# ---------------------------------------------------------------------------


def build_assertion(
    challenge: Optional[str] = None,
    audience: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    config: Optional[ProtocolConfig] = None,
) -> AuthAssertion:
    """Unsigned assertion for `challenge` (fresh UUID when omitted), timestamped now."""
    cfg = config or DEFAULT_CONFIG
    return AuthAssertion(
        challenge=challenge or _new_nonce(),
        audience=audience or cfg.default_audience,
        timestamp=format_timestamp(ensure_utc(now)),
        spec_version=cfg.spec_version,
    )


def request_auth(
    wallet: WalletIdentity,
    issuer: CredentialIssuer,
    requested_claims: Iterable[ClaimRequest] = (),
    *,
    challenge: Optional[str] = None,
    audience: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[ProtocolConfig] = None,
) -> AuthResponseBundle:
    """
    Produce a signed AuthResponseBundle for the wallet's identity.

    Credentials are issued for the subject DID in the order the claim types
    were first requested. Signing or issuing errors propagate.
    """
    identity = wallet.get_identity()
    issued_at = ensure_utc(now)

    assertion = build_assertion(challenge, audience, now=issued_at, config=config)
    signature = wallet.sign_assertion_payload(assertion)

    credentials = [
        issuer.issue_credential(identity.did, claim_type, now=issued_at)
        for claim_type in _unique_claim_types(requested_claims)
    ]

    logger.info(
        "Built auth response for %s (audience=%s, credentials=%d)",
        identity.did,
        assertion.audience,
        len(credentials),
    )
    return AuthResponseBundle(
        did=identity.did,
        did_document=identity.did_document,
        assertion=assertion,
        assertion_signature_base64=signature,
        credentials=credentials,
    )


def respond_to_challenge(
    challenge: AuthChallenge,
    wallet: WalletIdentity,
    issuer: CredentialIssuer,
    *,
    now: Optional[datetime] = None,
    config: Optional[ProtocolConfig] = None,
) -> AuthResponseBundle:
    """Answer a relying party's AuthChallenge, echoing its nonce and audience."""
    return request_auth(
        wallet,
        issuer,
        challenge.requested_claims,
        challenge=challenge.nonce,
        audience=challenge.audience,
        now=now,
        config=config,
    )


# ---------------------------------------------------------------------------
# Relying party: verification
# ---------------------------------------------------------------------------


def server_verify_auth_response(
    challenge: AuthChallenge,
    bundle: Any,
    *,
    trusted_issuers: Collection[str],
    issuer_keys: IssuerKeyLookup,
    registry: Optional[AlgorithmRegistry] = None,
    config: Optional[ProtocolConfig] = None,
    now: Optional[datetime] = None,
) -> AuthVerificationResult:
    """
    Reference relying-party verification flow.

    This helper performs:
    - assertion verification (verify_assertion)
    - matching of challenge nonce + audience against the issued challenge
    - credential verification against the authenticated DID
    """
    data = bundle.to_dict() if isinstance(bundle, AuthResponseBundle) else bundle

    result = verify_assertion(data, registry=registry, config=config, now=now)
    if not result.ok:
        return AuthVerificationResult(ok=False, error=result.error)

    assertion = data["assertion"]
    if assertion.get("challenge") != challenge.nonce:
        logger.debug("Assertion rejected: challenge mismatch")
        return AuthVerificationResult(ok=False, did=result.did, error="challenge mismatch")
    if assertion.get("audience") != challenge.audience:
        logger.debug("Assertion rejected: audience mismatch")
        return AuthVerificationResult(ok=False, did=result.did, error="audience mismatch")

    creds = verify_credentials(
        data.get("credentials", []),
        trusted_issuers=trusted_issuers,
        expected_subject_did=result.did,
        issuer_keys=issuer_keys,
        now=now,
        registry=registry,
    )
    return AuthVerificationResult(
        ok=creds.ok,
        did=result.did,
        claims=creds.claims,
        errors=creds.errors,
    )
