"""
Development credential issuer.

Mints signed claim credentials for a subject DID:

1. fresh UUID credential id
2. issuanceDate = now, validUntil = now + validity window
3. proof skeleton (issuer verification method + algorithm, empty signature)
4. sign the canonical credential payload and fill in signatureBase64

Claim values come from a replaceable policy table; the development issuer
does not check that a claim is actually true.

get_issuer_public_key() stands in for a trust directory: it only knows this
issuer's own DID.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Union

from .canonical import canonicalize_credential_payload
from .config import CREDENTIAL_VALIDITY, ProtocolConfig
from .crypto import ED25519_ALGO, AlgorithmRegistry, KeyPair
from .errors import UnsupportedAlgorithmError
from .models import ClaimType, ClaimValue, Credential, CredentialProof, claim_type_name
from .once import OnceCell
from .timeutil import ensure_utc, format_timestamp

logger = logging.getLogger(__name__)

DEV_ISSUER_DID = "did:pqid-issuer:dev"
SIGNING_KEY_FRAGMENT = "signing-key-1"

DEFAULT_CLAIM_VALUES: Dict[str, ClaimValue] = {
    ClaimType.AGE_OVER_18.value: True,
    ClaimType.GOOD_STANDING.value: True,
    ClaimType.ACCOUNT_AGE_DAYS_OVER_30.value: 60,
}


@dataclass(frozen=True)
class IssuerPublicKey:
    algorithm: str
    public_key_base64: str


class CredentialIssuer:
    """
    Signs claim credentials with a lazily created issuer key.

    Parameters
    ----------
    registry:
        Algorithm registry used for keygen and signing.
    did:
        Issuer DID written into every credential.
    algorithm:
        Signing algorithm tag (must be registered).
    validity:
        Lifetime of issued credentials.
    claim_values:
        Claim type -> value policy; unknown types default to True.
    """

    def __init__(
        self,
        registry: AlgorithmRegistry,
        *,
        did: str = DEV_ISSUER_DID,
        algorithm: str = ED25519_ALGO,
        validity: timedelta = CREDENTIAL_VALIDITY,
        claim_values: Optional[Mapping[str, ClaimValue]] = None,
    ) -> None:
        if not registry.supports(algorithm):
            raise UnsupportedAlgorithmError(f"Algorithm not registered: {algorithm!r}")
        if validity <= timedelta(0):
            raise ValueError("validity must be positive")

        self._registry = registry
        self._did = did
        self._algorithm = algorithm
        self._validity = validity
        self._claim_values: Dict[str, ClaimValue] = dict(
            DEFAULT_CLAIM_VALUES if claim_values is None else claim_values
        )
        self._key_pair: OnceCell[KeyPair] = OnceCell(self._create_key_pair)

    @classmethod
    def from_config(
        cls, config: ProtocolConfig, registry: AlgorithmRegistry, **kwargs: Any
    ) -> "CredentialIssuer":
        return cls(registry, validity=config.credential_validity, **kwargs)

    @property
    def did(self) -> str:
        return self._did

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def verification_method_id(self) -> str:
        return f"{self._did}#{SIGNING_KEY_FRAGMENT}"

    def _create_key_pair(self) -> KeyPair:
        key_pair = self._registry.keygen(self._algorithm)
        logger.info("Created issuer key for %s (%s)", self._did, self._algorithm)
        return key_pair

    def default_claim_value(self, claim_type: Union[ClaimType, str]) -> ClaimValue:
        return self._claim_values.get(claim_type_name(claim_type), True)

    def issue_credential(
        self,
        subject_did: str,
        claim_type: Union[ClaimType, str],
        value: Optional[ClaimValue] = None,
        *,
        now: Optional[datetime] = None,
    ) -> Credential:
        """Issue a signed credential; `value` defaults to the claim-value policy."""
        if not subject_did:
            raise ValueError("subject_did must be non-empty")

        claim = claim_type_name(claim_type)
        claim_value = self.default_claim_value(claim) if value is None else value
        key_pair = self._key_pair.get()

        issued_at = ensure_utc(now)
        issuance_date = format_timestamp(issued_at)

        unsigned = Credential(
            id=str(uuid.uuid4()),
            issuer=self._did,
            subject=subject_did,
            claim_type=claim,
            claim_value=claim_value,
            issuance_date=issuance_date,
            valid_until=format_timestamp(issued_at + self._validity),
            proof=CredentialProof(
                type=self._algorithm,
                created=issuance_date,
                verification_method=self.verification_method_id,
                signature_base64="",
            ),
        )

        signature = self._registry.sign(
            self._algorithm,
            key_pair.private_key,
            canonicalize_credential_payload(unsigned),
        )
        logger.debug("Issued %s credential %s for %s", claim, unsigned.id, subject_did)
        return replace(unsigned, proof=replace(unsigned.proof, signature_base64=signature))

    def get_issuer_public_key(self, issuer_did: str) -> Optional[IssuerPublicKey]:
        """Public key for `issuer_did`, or None when the DID is not this issuer."""
        if issuer_did != self._did:
            return None
        key_pair = self._key_pair.get()
        return IssuerPublicKey(
            algorithm=self._algorithm,
            public_key_base64=key_pair.public_key_encoded,
        )
