from __future__ import annotations

import hashlib
import hmac
import os
import types
from typing import Any, Iterable, Optional

import pytest

import pqid.pqc_backends as pb
from pqid.crypto import AlgorithmRegistry, Ed25519Backend, MLDSABackend


class FakeSignature:
    """
    Minimal stand-in for oqs.Signature.

    Signatures are sha256(pub || msg), so only the holder of the matching
    public key verifies. Enough to exercise the wiring without liboqs.
    """

    known = ("ML-DSA-65", "Dilithium3")

    def __init__(self, alg: str, secret_key: Optional[bytes] = None) -> None:
        if alg not in self.known:
            raise RuntimeError(f"{alg} is not supported by this build")
        self.alg = alg
        self._secret = secret_key
        self.freed = False

    def __enter__(self) -> "FakeSignature":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.free()

    def generate_keypair(self) -> bytes:
        pub = os.urandom(32)
        self._secret = b"sk" + pub
        return pub

    def export_secret_key(self) -> bytes:
        assert self._secret is not None
        return self._secret

    def sign(self, msg: bytes) -> bytes:
        assert self._secret is not None
        return hashlib.sha256(self._secret[2:] + msg).digest()

    def verify(self, msg: bytes, sig: bytes, pub: bytes) -> bool:
        return hmac.compare_digest(sig, hashlib.sha256(pub + msg).digest())

    def free(self) -> None:
        self.freed = True


def make_fake_oqs(known: Iterable[str] = FakeSignature.known) -> Any:
    names = tuple(known)

    class _Sig(FakeSignature):
        pass

    _Sig.known = names
    return types.SimpleNamespace(Signature=_Sig)


@pytest.fixture(autouse=True)
def _no_pqc_backend_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PQID_PQC_BACKEND", raising=False)


@pytest.fixture
def fake_oqs(monkeypatch: pytest.MonkeyPatch) -> Any:
    mod = make_fake_oqs()
    monkeypatch.setattr(pb, "oqs", mod)
    return mod


@pytest.fixture
def registry() -> AlgorithmRegistry:
    return AlgorithmRegistry([Ed25519Backend()])


@pytest.fixture
def pqc_registry(fake_oqs: Any) -> AlgorithmRegistry:
    return AlgorithmRegistry([Ed25519Backend(), MLDSABackend()])
