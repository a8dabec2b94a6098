from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pqid.config import SPEC_VERSION, ProtocolConfig
from pqid.crypto import ML_DSA_ALGO, AlgorithmRegistry
from pqid.issuer import DEV_ISSUER_DID, CredentialIssuer
from pqid.models import AuthResponseBundle, ClaimType
from pqid.protocol import (
    build_assertion,
    build_auth_challenge,
    request_auth,
    respond_to_challenge,
    server_verify_auth_response,
)
from pqid.verify_assertion import verify_assertion
from pqid.verify_credentials import verify_credentials
from pqid.wallet import WalletIdentity

NOW = datetime(2026, 7, 4, 16, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def wallet(registry: AlgorithmRegistry) -> WalletIdentity:
    return WalletIdentity(registry)


@pytest.fixture
def issuer(registry: AlgorithmRegistry) -> CredentialIssuer:
    return CredentialIssuer(registry)


def test_build_assertion_defaults() -> None:
    a = build_assertion(now=NOW)
    assert a.challenge
    assert a.audience == "http://localhost"
    assert a.timestamp == "2026-07-04T16:20:00.000Z"
    assert a.spec_version == SPEC_VERSION
    assert build_assertion(now=NOW).challenge != a.challenge


def test_build_assertion_uses_config() -> None:
    cfg = ProtocolConfig(default_audience="https://rp.example", spec_version="pqid-auth-x")
    a = build_assertion("c", now=NOW, config=cfg)
    assert (a.challenge, a.audience, a.spec_version) == ("c", "https://rp.example", "pqid-auth-x")


def test_build_auth_challenge() -> None:
    ch = build_auth_challenge("https://rp.example", ["age_over_18", ClaimType.GOOD_STANDING], now=NOW)
    assert ch.nonce
    assert ch.audience == "https://rp.example"
    assert [c.type for c in ch.requested_claims] == ["age_over_18", "good_standing"]
    assert build_auth_challenge(nonce="fixed").nonce == "fixed"


def test_end_to_end_example(registry, wallet, issuer) -> None:
    bundle = request_auth(
        wallet,
        issuer,
        [ClaimType.AGE_OVER_18, ClaimType.GOOD_STANDING],
        audience="https://example.com",
        now=NOW,
    )

    assert bundle.did.startswith("did:pqid:")
    assert len(bundle.credentials) == 2

    assertion = verify_assertion(bundle, registry=registry, now=NOW + timedelta(seconds=5))
    assert assertion.ok is True

    creds = verify_credentials(
        bundle.to_dict()["credentials"],
        trusted_issuers=[DEV_ISSUER_DID],
        expected_subject_did=assertion.did,
        issuer_keys=issuer.get_issuer_public_key,
        now=NOW,
        registry=registry,
    )
    assert creds.ok is True
    assert creds.claims == {"age_over_18": True, "good_standing": True}


def test_claim_types_are_deduplicated_in_order(wallet, issuer) -> None:
    bundle = request_auth(
        wallet,
        issuer,
        ["good_standing", "age_over_18", ClaimType.GOOD_STANDING, {"type": "age_over_18"}],
        now=NOW,
    )
    assert [c.claim_type for c in bundle.credentials] == ["good_standing", "age_over_18"]


def test_credentials_are_bound_to_wallet_did(wallet, issuer) -> None:
    bundle = request_auth(wallet, issuer, ["human_user"], now=NOW)
    assert bundle.credentials[0].subject == wallet.did == bundle.did
    assert bundle.did_document.id == bundle.did


def test_bundle_survives_json_transport(registry, wallet, issuer) -> None:
    bundle = request_auth(wallet, issuer, ["age_over_18"], challenge="n", now=NOW)
    restored = AuthResponseBundle.from_json(bundle.to_json())
    assert verify_assertion(restored, registry=registry, now=NOW).ok is True


def test_challenge_response_flow(registry, wallet, issuer) -> None:
    challenge = build_auth_challenge("https://rp.example", ["age_over_18"], now=NOW)
    bundle = respond_to_challenge(challenge, wallet, issuer, now=NOW)

    assert bundle.assertion.challenge == challenge.nonce
    assert bundle.assertion.audience == challenge.audience

    result = server_verify_auth_response(
        challenge,
        bundle,
        trusted_issuers={DEV_ISSUER_DID},
        issuer_keys=issuer.get_issuer_public_key,
        registry=registry,
        now=NOW,
    )
    assert result.ok is True
    assert result.did == wallet.did
    assert result.claims == {"age_over_18": True}
    assert result.error is None


def test_server_rejects_response_to_other_challenge(registry, wallet, issuer) -> None:
    issued = build_auth_challenge("https://rp.example", now=NOW)
    other = build_auth_challenge("https://rp.example", now=NOW)
    bundle = respond_to_challenge(other, wallet, issuer, now=NOW)

    result = server_verify_auth_response(
        issued, bundle, trusted_issuers=[DEV_ISSUER_DID], issuer_keys={}, registry=registry, now=NOW
    )
    assert result.ok is False
    assert result.error == "challenge mismatch"


def test_server_rejects_audience_mismatch(registry, wallet, issuer) -> None:
    issued = build_auth_challenge("https://rp.example", nonce="n1", now=NOW)
    bundle = request_auth(wallet, issuer, [], challenge="n1", audience="https://evil.example", now=NOW)

    result = server_verify_auth_response(
        issued, bundle, trusted_issuers=[DEV_ISSUER_DID], issuer_keys={}, registry=registry, now=NOW
    )
    assert result.error == "audience mismatch"


def test_server_reports_assertion_error(registry, wallet, issuer) -> None:
    challenge = build_auth_challenge(now=NOW)
    bundle = respond_to_challenge(challenge, wallet, issuer, now=NOW)

    result = server_verify_auth_response(
        challenge,
        bundle,
        trusted_issuers=[DEV_ISSUER_DID],
        issuer_keys=issuer.get_issuer_public_key,
        registry=registry,
        now=NOW + timedelta(minutes=10),
    )
    assert result.ok is False
    assert result.error == "stale assertion"
    assert result.did is None


def test_server_reports_credential_errors(registry, wallet, issuer) -> None:
    challenge = build_auth_challenge(requested_claims=["age_over_18", "good_standing"], now=NOW)
    bundle = respond_to_challenge(challenge, wallet, issuer, now=NOW)

    result = server_verify_auth_response(
        challenge,
        bundle,
        trusted_issuers=["did:pqid-issuer:someone-else"],
        issuer_keys=issuer.get_issuer_public_key,
        registry=registry,
        now=NOW,
    )
    assert result.ok is False
    assert result.did == wallet.did
    assert result.claims == {}
    assert len(result.errors) == 2


def test_post_quantum_end_to_end(pqc_registry) -> None:
    wallet = WalletIdentity(pqc_registry, algorithm=ML_DSA_ALGO)
    issuer = CredentialIssuer(pqc_registry, algorithm=ML_DSA_ALGO)
    challenge = build_auth_challenge(requested_claims=["age_over_18"], now=NOW)

    result = server_verify_auth_response(
        challenge,
        respond_to_challenge(challenge, wallet, issuer, now=NOW),
        trusted_issuers=[DEV_ISSUER_DID],
        issuer_keys=issuer.get_issuer_public_key,
        registry=pqc_registry,
        now=NOW,
    )
    assert result.ok is True
    assert result.claims == {"age_over_18": True}
