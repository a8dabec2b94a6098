"""
PQC backend selection + wiring for PQID.

Design goals:
- Opt-in: no pqc deps required unless the caller explicitly selects a backend.
- No silent fallback: a selected backend that cannot be loaded is a startup
  error (PQCBackendError), never a per-call downgrade.
- sign/keygen paths raise PQCBackendError on backend failures.
- verify paths fail closed (return False) on internal errors.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)

LIBOQS_BACKEND = "liboqs"

# ML-DSA-65 (FIPS 204). Older liboqs builds only expose the Dilithium3 name.
ML_DSA_OQS_ALG = "ML-DSA-65"
_OQS_ALG_CANDIDATES = {
    ML_DSA_OQS_ALG: [ML_DSA_OQS_ALG, "Dilithium3"],
}


class PQCBackendError(RuntimeError):
    """Raised when a PQC backend is selected but unusable."""


# Three states:
# - UNSET: import not attempted yet
# - None: explicitly disabled (tests monkeypatch pb.oqs = None)
# - module: cached python-oqs module (or a test fake)
class _OQSUnset:
    pass


_OQS_UNSET = _OQSUnset()
oqs: Any = _OQS_UNSET


def selected_backend() -> Optional[str]:
    """
    Return the normalized backend selected through PQID_PQC_BACKEND.

    None means no post-quantum backend; only classical algorithms are registered.
    """
    raw = os.getenv("PQID_PQC_BACKEND")
    if raw is None:
        return None
    s = raw.strip().lower()
    return s or None


def _validate_oqs_module(mod: Any) -> None:
    sig = getattr(mod, "Signature", None)
    if sig is None or not callable(sig):
        raise PQCBackendError("Invalid oqs backend object: missing callable Signature")


def _import_oqs() -> Any:
    """
    Import python-oqs (cached).

    - oqs explicitly set to None -> PQCBackendError
    - cached module/fake -> validated and returned without importing
    - import failure -> PQCBackendError (no exception context)
    """
    global oqs

    if oqs is None:
        raise PQCBackendError(
            "PQID_PQC_BACKEND=liboqs selected but 'oqs' module is not available."
        )

    if oqs is not _OQS_UNSET:
        _validate_oqs_module(oqs)
        return oqs

    try:
        import oqs as mod  # type: ignore
    except Exception:
        raise PQCBackendError(
            "PQID_PQC_BACKEND=liboqs selected but 'oqs' module is not available. "
            'Install optional deps: pip install -e ".[pqc]"'
        ) from None

    _validate_oqs_module(mod)
    oqs = mod
    logger.info("Loaded python-oqs backend")
    return mod


def require_backend(backend: Optional[str]) -> Any:
    """
    Resolve a backend name into a loaded backend module.

    Called once when the algorithm registry is built.
    """
    if backend != LIBOQS_BACKEND:
        raise PQCBackendError(f"Unknown PQID_PQC_BACKEND: {backend!r}")
    return _import_oqs()


def _candidates_for(oqs_alg: str) -> list[str]:
    if oqs_alg not in _OQS_ALG_CANDIDATES:
        raise ValueError(f"Unsupported algorithm for liboqs: {oqs_alg!r}")
    return list(_OQS_ALG_CANDIDATES[oqs_alg])


def _sig_ctx(mod: Any, alg: str, *, secret: Optional[bytes] = None) -> Any:
    """Create a Signature object, importing a secret key when one is given."""
    Sig = getattr(mod, "Signature")
    if secret is None:
        return Sig(alg)

    try:
        return Sig(alg, secret_key=secret)
    except TypeError:
        pass

    obj = Sig(alg)
    imp = getattr(obj, "import_secret_key", None)
    if not callable(imp):
        raise PQCBackendError("liboqs backend does not support supplying a secret key")
    imp(secret)
    return obj


def _free(obj: Any) -> None:
    free = getattr(obj, "free", None)
    if callable(free):
        free()


def _mechanism_for(mod: Any, oqs_alg: str) -> str:
    """
    First liboqs mechanism name this build accepts for `oqs_alg`.

    keygen, sign and verify all go through here, so a key is only ever used
    with one parameter set.
    """
    last_exc: Optional[Exception] = None
    for cand in _candidates_for(oqs_alg):
        try:
            signer = _sig_ctx(mod, cand)
        except Exception as e:
            # liboqs raises when it does not know this mechanism name.
            last_exc = e
            continue
        _free(signer)
        return cand
    raise PQCBackendError(f"liboqs could not create a signer for {oqs_alg}") from last_exc


def liboqs_keygen(oqs_alg: str) -> Tuple[bytes, bytes]:
    """Return (public_key, secret_key) freshly generated by liboqs."""
    mod = _import_oqs()
    signer = _sig_ctx(mod, _mechanism_for(mod, oqs_alg))
    try:
        pub = signer.generate_keypair()
        sec = signer.export_secret_key()
        return bytes(pub), bytes(sec)
    except Exception as e:
        raise PQCBackendError("liboqs key generation failed") from e
    finally:
        _free(signer)


def liboqs_sign(oqs_alg: str, msg: bytes, priv: bytes) -> bytes:
    """
    Sign using python-oqs.

    - Unsupported alg -> ValueError (before importing oqs)
    - Any internal oqs failure -> PQCBackendError
    """
    _candidates_for(oqs_alg)
    mod = _import_oqs()
    mechanism = _mechanism_for(mod, oqs_alg)

    try:
        signer = _sig_ctx(mod, mechanism, secret=priv)
    except PQCBackendError:
        raise
    except Exception:
        raise PQCBackendError("liboqs signing failed") from None
    try:
        return bytes(signer.sign(msg))
    except Exception:
        raise PQCBackendError("liboqs signing failed") from None
    finally:
        _free(signer)


def liboqs_verify(oqs_alg: str, msg: bytes, sig: bytes, pub: bytes) -> bool:
    """
    Verify using python-oqs.

    - Unsupported alg -> ValueError
    - Internal verifier error -> False (fail-closed)
    """
    _candidates_for(oqs_alg)
    mod = _import_oqs()

    try:
        verifier = _sig_ctx(mod, _mechanism_for(mod, oqs_alg))
    except Exception:
        return False
    try:
        return bool(verifier.verify(msg, sig, pub))
    except Exception:
        return False
    finally:
        _free(verifier)
