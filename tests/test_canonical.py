from __future__ import annotations

import pytest

from pqid.canonical import (
    canonicalize,
    canonicalize_assertion,
    canonicalize_credential_payload,
    encode_component,
    scalar_text,
)
from pqid.models import AuthAssertion, Credential, CredentialProof


def test_fields_are_sorted_and_joined() -> None:
    assert canonicalize({"b": "2", "a": "1", "c": "3"}) == "a=1&b=2&c=3"


def test_insertion_order_does_not_matter() -> None:
    one = canonicalize({"x": "1", "y": "2"})
    two = canonicalize({"y": "2", "x": "1"})
    assert one == two


@pytest.mark.parametrize(
    "raw,encoded",
    [
        ("https://example.com", "https%3A%2F%2Fexample.com"),
        ("a b&c=d", "a%20b%26c%3Dd"),
        ("-_.!~*'()", "-_.!~*'()"),
        ("é", "%C3%A9"),
        ("a+b/c", "a%2Bb%2Fc"),
    ],
)
def test_encode_component_matches_uri_component_rules(raw: str, encoded: str) -> None:
    assert encode_component(raw) == encoded


def test_scalar_text_is_total() -> None:
    assert scalar_text(True) == "true"
    assert scalar_text(False) == "false"
    assert scalar_text(None) == "null"
    assert scalar_text(60) == "60"
    assert scalar_text(60.0) == "60"
    assert scalar_text(1.5) == "1.5"
    assert scalar_text(-0.0) == "0"


@pytest.mark.parametrize(
    "value,text",
    [
        (0.1, "0.1"),
        (-2.5, "-2.5"),
        (1e-6, "0.000001"),
        (1e-7, "1e-7"),
        (1.2345e-7, "1.2345e-7"),
        (1e16, "10000000000000000"),
        (1e20, "100000000000000000000"),
        (1e21, "1e+21"),
        (1.5e300, "1.5e+300"),
        (5e-324, "5e-324"),
        (float("inf"), "Infinity"),
        (float("-inf"), "-Infinity"),
        (float("nan"), "NaN"),
    ],
)
def test_float_text_follows_number_to_string(value: float, text: str) -> None:
    assert scalar_text(value) == text


def test_separator_characters_cannot_collide() -> None:
    a = canonicalize({"a": "1&b=2"})
    b = canonicalize({"a": "1", "b": "2"})
    assert a != b


def test_assertion_string_from_mapping_and_model_agree() -> None:
    fields = {
        "challenge": "abc",
        "audience": "https://rp.example",
        "timestamp": "2026-01-01T00:00:00.000Z",
        "spec_version": "pqid-auth-0.2.0",
    }
    expected = (
        "audience=https%3A%2F%2Frp.example"
        "&challenge=abc"
        "&spec_version=pqid-auth-0.2.0"
        "&timestamp=2026-01-01T00%3A00%3A00.000Z"
    )
    assert canonicalize_assertion(fields) == expected
    assert canonicalize_assertion(AuthAssertion(**fields)) == expected


def test_assertion_ignores_extra_fields() -> None:
    base = {"challenge": "c", "audience": "a", "timestamp": "t", "spec_version": "v"}
    assert canonicalize_assertion({**base, "extra": "x"}) == canonicalize_assertion(base)


def test_credential_payload_excludes_proof() -> None:
    cred = Credential(
        id="id-1",
        issuer="did:pqid-issuer:dev",
        subject="did:pqid:abc",
        claim_type="age_over_18",
        claim_value=True,
        issuance_date="2026-01-01T00:00:00.000Z",
        valid_until="2026-01-02T00:00:00.000Z",
        proof=CredentialProof(type="t", created="c", verification_method="vm", signature_base64="sig"),
    )
    text = canonicalize_credential_payload(cred)

    assert text.startswith("claim_type=age_over_18&claim_value=true&id=id-1&issuanceDate=")
    assert "validUntil=2026-01-02T00%3A00%3A00.000Z" in text
    assert "proof" not in text and "sig" not in text
    assert canonicalize_credential_payload(cred.to_dict()) == text
