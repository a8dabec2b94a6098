"""
Core data models for PQID.

These describe the objects exchanged between wallet, issuer and relying party:
- DID documents and their verification methods
- authentication challenges and signed assertions
- credentials and their detached proofs
- the AuthResponseBundle that carries all of them
- verification results

to_dict()/from_dict() use the wire JSON field names. from_dict() is for
trusted or already-verified data; verifiers work on raw mappings so that
malformed input turns into a result instead of an exception.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

DID_CONTEXT = "https://www.w3.org/ns/did/v1"

ClaimValue = Union[bool, str, int, float]


class ClaimType(str, Enum):
    AGE_OVER_18 = "age_over_18"
    GOOD_STANDING = "good_standing"
    ACCOUNT_AGE_DAYS_OVER_30 = "account_age_days_over_30"
    EMAIL_VERIFIED = "email_verified"
    GOOGLE_ACCOUNT_AGE_OVER_365 = "google_account_age_over_365"
    GITHUB_ACCOUNT_AGE_OVER_180 = "github_account_age_over_180"
    APPLE_USER = "apple_user"
    HUMAN_USER = "human_user"


def claim_type_name(claim_type: Union[ClaimType, str]) -> str:
    return claim_type.value if isinstance(claim_type, ClaimType) else str(claim_type)


# ---------------------------------------------------------------------------
# DID documents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerificationMethod:
    id: str
    type: str
    controller: str
    public_key_base64: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "controller": self.controller,
            "publicKeyBase64": self.public_key_base64,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerificationMethod":
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            controller=str(data["controller"]),
            public_key_base64=str(data["publicKeyBase64"]),
        )


@dataclass(frozen=True)
class DIDDocument:
    id: str
    verification_method: List[VerificationMethod] = field(default_factory=list)
    authentication: List[str] = field(default_factory=list)
    context: List[str] = field(default_factory=lambda: [DID_CONTEXT])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "@context": list(self.context),
            "id": self.id,
            "verificationMethod": [vm.to_dict() for vm in self.verification_method],
            "authentication": list(self.authentication),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DIDDocument":
        context = data.get("@context", [DID_CONTEXT])
        return cls(
            id=str(data["id"]),
            verification_method=[
                VerificationMethod.from_dict(vm) for vm in data.get("verificationMethod", [])
            ],
            authentication=[str(a) for a in data.get("authentication", [])],
            context=list(context) if isinstance(context, list) else [str(context)],
        )


# ---------------------------------------------------------------------------
# Challenge / assertion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequestedClaim:
    type: str
    purpose: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type}
        if self.purpose is not None:
            out["purpose"] = self.purpose
        return out

    @classmethod
    def coerce(cls, value: Union["RequestedClaim", ClaimType, str, Mapping[str, Any]]) -> "RequestedClaim":
        """Accept a RequestedClaim, a claim type, or a {"type": ..., "purpose": ...} mapping."""
        if isinstance(value, RequestedClaim):
            return value
        if isinstance(value, Mapping):
            purpose = value.get("purpose")
            return cls(type=str(value["type"]), purpose=None if purpose is None else str(purpose))
        return cls(type=claim_type_name(value))


@dataclass(frozen=True)
class AuthChallenge:
    """What a relying party hands to the wallet."""

    nonce: str
    audience: str
    timestamp: str
    requested_claims: List[RequestedClaim] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nonce": self.nonce,
            "audience": self.audience,
            "requested_claims": [c.to_dict() for c in self.requested_claims],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuthChallenge":
        return cls(
            nonce=str(data["nonce"]),
            audience=str(data["audience"]),
            timestamp=str(data["timestamp"]),
            requested_claims=[RequestedClaim.coerce(c) for c in data.get("requested_claims", [])],
        )


@dataclass(frozen=True)
class AuthAssertion:
    challenge: str
    audience: str
    timestamp: str
    spec_version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "challenge": self.challenge,
            "audience": self.audience,
            "timestamp": self.timestamp,
            "spec_version": self.spec_version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuthAssertion":
        return cls(
            challenge=str(data["challenge"]),
            audience=str(data["audience"]),
            timestamp=str(data["timestamp"]),
            spec_version=str(data["spec_version"]),
        )


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CredentialProof:
    type: str
    created: str
    verification_method: str
    signature_base64: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "created": self.created,
            "verificationMethod": self.verification_method,
            "signatureBase64": self.signature_base64,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CredentialProof":
        return cls(
            type=str(data["type"]),
            created=str(data["created"]),
            verification_method=str(data["verificationMethod"]),
            signature_base64=str(data.get("signatureBase64", "")),
        )


@dataclass(frozen=True)
class Credential:
    id: str
    issuer: str
    subject: str
    claim_type: str
    claim_value: ClaimValue
    issuance_date: str
    valid_until: str
    proof: CredentialProof

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "issuer": self.issuer,
            "subject": self.subject,
            "claim_type": self.claim_type,
            "claim_value": self.claim_value,
            "issuanceDate": self.issuance_date,
            "validUntil": self.valid_until,
            "proof": self.proof.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Credential":
        return cls(
            id=str(data["id"]),
            issuer=str(data["issuer"]),
            subject=str(data["subject"]),
            claim_type=str(data["claim_type"]),
            claim_value=data["claim_value"],
            issuance_date=str(data["issuanceDate"]),
            valid_until=str(data["validUntil"]),
            proof=CredentialProof.from_dict(data["proof"]),
        )


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthResponseBundle:
    did: str
    did_document: DIDDocument
    assertion: AuthAssertion
    assertion_signature_base64: str
    credentials: List[Credential] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "did": self.did,
            "did_document": self.did_document.to_dict(),
            "assertion": self.assertion.to_dict(),
            "assertion_signatureBase64": self.assertion_signature_base64,
            "credentials": [c.to_dict() for c in self.credentials],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuthResponseBundle":
        return cls(
            did=str(data["did"]),
            did_document=DIDDocument.from_dict(data["did_document"]),
            assertion=AuthAssertion.from_dict(data["assertion"]),
            assertion_signature_base64=str(data["assertion_signatureBase64"]),
            credentials=[Credential.from_dict(c) for c in data.get("credentials", [])],
        )

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "AuthResponseBundle":
        obj = json.loads(raw)
        if not isinstance(obj, dict):
            raise ValueError("AuthResponseBundle JSON must be an object")
        return cls.from_dict(obj)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssertionVerificationResult:
    ok: bool
    did: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, did: str) -> "AssertionVerificationResult":
        return cls(ok=True, did=did)

    @classmethod
    def failure(cls, error: str) -> "AssertionVerificationResult":
        return cls(ok=False, error=error)


@dataclass(frozen=True)
class CredentialVerificationError:
    claim_type: str
    reason: str


@dataclass(frozen=True)
class CredentialVerificationResult:
    ok: bool
    claims: Dict[str, Any] = field(default_factory=dict)
    errors: List[CredentialVerificationError] = field(default_factory=list)


@dataclass(frozen=True)
class AuthVerificationResult:
    """Combined relying-party outcome: assertion + challenge binding + credentials."""

    ok: bool
    did: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)
    errors: List[CredentialVerificationError] = field(default_factory=list)
    error: Optional[str] = None
