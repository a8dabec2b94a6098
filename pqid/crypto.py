"""
Signature algorithm registry for PQID.

Every key and every proof carries an algorithm tag; signing and verification
dispatch on that tag through an AlgorithmRegistry built once at startup:

- "Ed25519Signature2020"   -> Ed25519 via the `cryptography` package
- "DilithiumSignature2025" -> ML-DSA-65 via python-oqs (opt-in, see pqc_backends)

Key material is wrapped in opaque handles so callers never see whether an
algorithm keeps raw bytes or a library key object.

Contract:
- keygen() always draws fresh randomness.
- sign() raises UnsupportedAlgorithmError / InvalidKeyMaterialError.
- verify() is a predicate: malformed keys, signatures or base64 return False.
  Only an unregistered tag raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from . import pqc_backends
from .encoding import b64decode, b64encode, b64url_encode
from .errors import InvalidKeyMaterialError, UnsupportedAlgorithmError
from .once import OnceCell

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Algorithms
# ---------------------------------------------------------------------------

ED25519_ALGO = "Ed25519Signature2020"
ML_DSA_ALGO = "DilithiumSignature2025"


# ---------------------------------------------------------------------------
# Key handles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PublicKeyHandle:
    algorithm: str
    raw: bytes = field(repr=False)

    @property
    def base64(self) -> str:
        return b64encode(self.raw)

    @property
    def base64url(self) -> str:
        return b64url_encode(self.raw)


@dataclass(frozen=True)
class PrivateKeyHandle:
    """
    Opaque private key. The material is whatever the backend needs
    (an Ed25519PrivateKey object, ML-DSA secret bytes, ...).
    """

    algorithm: str
    _material: Any = field(repr=False, compare=False)


@dataclass(frozen=True)
class KeyPair:
    algorithm: str
    public_key: PublicKeyHandle
    private_key: PrivateKeyHandle = field(repr=False)

    @property
    def public_key_encoded(self) -> str:
        """Standard base64 of the raw public key."""
        return self.public_key.base64

    @property
    def public_key_base64url(self) -> str:
        return self.public_key.base64url


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class SignatureBackend(Protocol):
    algorithm: str

    def keygen(self) -> Tuple[bytes, Any]:
        """Return (raw public key bytes, opaque private material)."""
        ...

    def sign(self, private_material: Any, message: bytes) -> bytes:
        ...

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        ...


class Ed25519Backend:
    algorithm = ED25519_ALGO

    def keygen(self) -> Tuple[bytes, Any]:
        private_key = Ed25519PrivateKey.generate()
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return public_bytes, private_key

    def sign(self, private_material: Any, message: bytes) -> bytes:
        if not isinstance(private_material, Ed25519PrivateKey):
            raise InvalidKeyMaterialError("Ed25519 signing requires an Ed25519 private key")
        return private_material.sign(message)

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        if len(public_key) != 32 or len(signature) != 64:
            return False
        try:
            key = Ed25519PublicKey.from_public_bytes(public_key)
            key.verify(signature, message)
        except (InvalidSignature, ValueError):
            return False
        return True


class MLDSABackend:
    """ML-DSA-65 through liboqs. The module must already be loaded (see build_registry)."""

    algorithm = ML_DSA_ALGO

    def __init__(self, oqs_alg: str = pqc_backends.ML_DSA_OQS_ALG) -> None:
        self.oqs_alg = oqs_alg

    def keygen(self) -> Tuple[bytes, Any]:
        return pqc_backends.liboqs_keygen(self.oqs_alg)

    def sign(self, private_material: Any, message: bytes) -> bytes:
        if not isinstance(private_material, (bytes, bytearray)) or not private_material:
            raise InvalidKeyMaterialError("ML-DSA signing requires secret key bytes")
        return pqc_backends.liboqs_sign(self.oqs_alg, message, bytes(private_material))

    def verify(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        if not public_key or not signature:
            return False
        try:
            return pqc_backends.liboqs_verify(self.oqs_alg, message, signature, public_key)
        except pqc_backends.PQCBackendError:
            return False


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PublicKeyLike = Union[PublicKeyHandle, bytes, str]


class AlgorithmRegistry:
    """Capability table mapping algorithm tags to signature backends."""

    def __init__(self, backends: Optional[List[SignatureBackend]] = None) -> None:
        self._backends: Dict[str, SignatureBackend] = {}
        for backend in backends or []:
            self.register(backend)

    def register(self, backend: SignatureBackend) -> None:
        self._backends[backend.algorithm] = backend

    def supports(self, algorithm: str) -> bool:
        return algorithm in self._backends

    def algorithms(self) -> List[str]:
        return sorted(self._backends)

    def _backend(self, algorithm: str) -> SignatureBackend:
        backend = self._backends.get(algorithm)
        if backend is None:
            raise UnsupportedAlgorithmError(f"Unsupported algorithm: {algorithm!r}")
        return backend

    def keygen(self, algorithm: str) -> KeyPair:
        backend = self._backend(algorithm)
        public_raw, private_material = backend.keygen()
        return KeyPair(
            algorithm=algorithm,
            public_key=PublicKeyHandle(algorithm=algorithm, raw=bytes(public_raw)),
            private_key=PrivateKeyHandle(algorithm=algorithm, _material=private_material),
        )

    def sign(self, algorithm: str, private_key: PrivateKeyHandle, message: str) -> str:
        """Sign the UTF-8 bytes of `message`; returns standard base64."""
        backend = self._backend(algorithm)
        if not isinstance(private_key, PrivateKeyHandle) or private_key.algorithm != algorithm:
            raise InvalidKeyMaterialError(
                f"Private key does not belong to algorithm {algorithm!r}"
            )
        sig = backend.sign(private_key._material, message.encode("utf-8"))
        return b64encode(sig)

    def verify(
        self,
        algorithm: str,
        public_key: PublicKeyLike,
        message: str,
        signature: str,
    ) -> bool:
        """
        Verify a base64 signature over the UTF-8 bytes of `message`.

        `public_key` may be a handle, raw bytes, or a standard base64 string.
        """
        backend = self._backend(algorithm)
        try:
            raw_key = _public_key_bytes(algorithm, public_key)
            sig = b64decode(signature)
            msg = message.encode("utf-8")
        except (ValueError, TypeError, AttributeError, UnicodeEncodeError):
            return False
        try:
            return bool(backend.verify(raw_key, msg, sig))
        except Exception:
            logger.debug("Backend %s raised during verify; failing closed", algorithm)
            return False


def _public_key_bytes(algorithm: str, public_key: PublicKeyLike) -> bytes:
    if isinstance(public_key, PublicKeyHandle):
        if public_key.algorithm != algorithm:
            raise ValueError("public key algorithm mismatch")
        return public_key.raw
    if isinstance(public_key, (bytes, bytearray)):
        return bytes(public_key)
    if isinstance(public_key, str):
        return b64decode(public_key)
    raise TypeError("unsupported public key type")


def build_registry(pqc_backend: Optional[str] = None) -> AlgorithmRegistry:
    """
    Build the startup capability table.

    Ed25519 is always available. ML-DSA is registered only when a PQC backend
    is selected (argument, else PQID_PQC_BACKEND); a selected backend that
    cannot load raises PQCBackendError here rather than at first use.
    """
    registry = AlgorithmRegistry([Ed25519Backend()])

    backend = pqc_backend if pqc_backend is not None else pqc_backends.selected_backend()
    if backend is None:
        logger.info("No PQC backend selected; registered %s", registry.algorithms())
        return registry

    pqc_backends.require_backend(backend.strip().lower())
    registry.register(MLDSABackend())
    logger.info("PQC backend %r selected; registered %s", backend, registry.algorithms())
    return registry


_DEFAULT_REGISTRY: OnceCell[AlgorithmRegistry] = OnceCell(build_registry)


def default_registry() -> AlgorithmRegistry:
    """Process-wide registry built from the environment on first use."""
    return _DEFAULT_REGISTRY.get()
