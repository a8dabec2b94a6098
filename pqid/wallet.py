"""
Wallet-side identity context.

A WalletIdentity owns exactly one key pair and the DID derived from it. The
caller constructs it once (wallet startup) and passes it to every protocol
call; there is no process-global wallet. Key material is created lazily on
first use, at most once, and the private key never leaves this object.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .canonical import canonicalize_assertion
from .config import DEFAULT_CONFIG, ProtocolConfig
from .crypto import ED25519_ALGO, AlgorithmRegistry, KeyPair
from .did import build_did_document, method_type_for_algorithm
from .errors import UnsupportedAlgorithmError
from .models import DIDDocument
from .once import OnceCell

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletState:
    did: str
    did_document: DIDDocument
    verification_method_id: str
    key_pair: KeyPair = field(repr=False)

    @property
    def public_key_base64url(self) -> str:
        return self.key_pair.public_key_base64url


class WalletIdentity:
    """
    Holder of one identity's signing key.

    Parameters
    ----------
    registry:
        Algorithm registry used for keygen and signing.
    algorithm:
        Signing algorithm tag. Must be registered and have a DID method type.
    namespace:
        DID method namespace, e.g. "pqid" -> did:pqid:<key>.
    """

    def __init__(
        self,
        registry: AlgorithmRegistry,
        *,
        algorithm: str = ED25519_ALGO,
        namespace: str = DEFAULT_CONFIG.did_namespace,
    ) -> None:
        if not registry.supports(algorithm):
            raise UnsupportedAlgorithmError(f"Algorithm not registered: {algorithm!r}")
        method_type_for_algorithm(algorithm)

        self._registry = registry
        self._algorithm = algorithm
        self._namespace = namespace
        self._state: OnceCell[WalletState] = OnceCell(self._create_state)

    @classmethod
    def from_config(cls, config: ProtocolConfig, registry: AlgorithmRegistry) -> "WalletIdentity":
        return cls(registry, algorithm=config.algorithm, namespace=config.did_namespace)

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def _create_state(self) -> WalletState:
        key_pair = self._registry.keygen(self._algorithm)
        doc = build_did_document(key_pair, self._namespace)
        state = WalletState(
            did=doc.id,
            did_document=doc,
            verification_method_id=doc.authentication[0],
            key_pair=key_pair,
        )
        logger.info("Created wallet identity %s (%s)", state.did, self._algorithm)
        return state

    def get_identity(self) -> WalletState:
        return self._state.get()

    @property
    def did(self) -> str:
        return self.get_identity().did

    @property
    def did_document(self) -> DIDDocument:
        return self.get_identity().did_document

    @property
    def public_key_base64url(self) -> str:
        return self.get_identity().public_key_base64url

    def sign_assertion_payload(self, fields: Any) -> str:
        """
        Canonicalize assertion fields and sign them with the wallet key.

        `fields` is an AuthAssertion or a mapping with challenge, audience,
        timestamp and spec_version. Returns a standard base64 signature.
        """
        state = self.get_identity()
        message = canonicalize_assertion(fields)
        return self._registry.sign(self._algorithm, state.key_pair.private_key, message)
