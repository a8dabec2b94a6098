"""
Simple end-to-end PQID authentication roundtrip example.

This simulates:

1. A relying party issuing a challenge that asks for two claims.
2. A wallet answering it with a signed assertion and issuer credentials.
3. The relying party verifying the assertion and the credentials.

Set PQID_PQC_BACKEND=liboqs (with the `pqc` extra installed) and
PQID_ALGORITHM=DilithiumSignature2025 to run the same flow with ML-DSA.
"""

import logging

from pqid.config import ProtocolConfig
from pqid.crypto import build_registry
from pqid.issuer import DEV_ISSUER_DID, CredentialIssuer
from pqid.models import ClaimType
from pqid.protocol import build_auth_challenge, respond_to_challenge, server_verify_auth_response
from pqid.wallet import WalletIdentity


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # 1. Startup: config + algorithm capability table
    config = ProtocolConfig.from_env()
    registry = build_registry()

    # 2. Wallet identity and development issuer
    wallet = WalletIdentity.from_config(config, registry)
    issuer = CredentialIssuer.from_config(config, registry, algorithm=config.algorithm)

    # 3. Relying party builds a challenge
    challenge = build_auth_challenge(
        "https://example.com",
        [ClaimType.AGE_OVER_18, ClaimType.GOOD_STANDING],
        config=config,
    )
    print("Challenge:")
    print(challenge.to_dict())
    print()

    # 4. Wallet side: sign and collect credentials
    bundle = respond_to_challenge(challenge, wallet, issuer, config=config)
    print("Auth response bundle:")
    print(bundle.to_json())
    print()

    # 5. Relying party side: verify
    result = server_verify_auth_response(
        challenge,
        bundle.to_dict(),
        trusted_issuers={DEV_ISSUER_DID},
        issuer_keys=issuer.get_issuer_public_key,
        registry=registry,
        config=config,
    )

    print("Verification result:", result.ok)
    if result.ok:
        print("Authenticated", result.did, "with claims", result.claims)
    else:
        print("Rejected:", result.error or [e.reason for e in result.errors])


if __name__ == "__main__":
    main()
