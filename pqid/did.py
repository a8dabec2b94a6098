"""
DID derivation and DID document construction.

A PQID DID embeds its public key:

    did:<namespace>:<base64url(public key bytes), unpadded>

so the key can always be re-derived from the identifier and compared with
what the DID document claims. The verification method type is fixed by the
signing algorithm; the mapping is total over supported algorithms and unknown
entries are rejected rather than defaulted.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .crypto import ED25519_ALGO, ML_DSA_ALGO, KeyPair
from .encoding import b64decode, b64url_decode, b64url_encode, b64encode
from .errors import UnsupportedAlgorithmError
from .models import DIDDocument, VerificationMethod

METHOD_TYPE_BY_ALGORITHM: Dict[str, str] = {
    ED25519_ALGO: "Ed25519VerificationKey2020",
    ML_DSA_ALGO: "DilithiumKey2025",
}

ALGORITHM_BY_METHOD_TYPE: Dict[str, str] = {v: k for k, v in METHOD_TYPE_BY_ALGORITHM.items()}

AUTH_KEY_FRAGMENT = "key-1"


def method_type_for_algorithm(algorithm: str) -> str:
    try:
        return METHOD_TYPE_BY_ALGORITHM[algorithm]
    except KeyError:
        raise UnsupportedAlgorithmError(
            f"No verification method type for algorithm {algorithm!r}"
        ) from None


def algorithm_for_method_type(method_type: str) -> str:
    try:
        return ALGORITHM_BY_METHOD_TYPE[method_type]
    except (KeyError, TypeError):
        raise UnsupportedAlgorithmError(
            f"Unsupported verification method type: {method_type!r}"
        ) from None


def derive_did(public_key: bytes, namespace: str) -> str:
    if not public_key:
        raise ValueError("public key must be non-empty")
    if not namespace or ":" in namespace:
        raise ValueError("namespace must be non-empty and must not contain ':'")
    return f"did:{namespace}:{b64url_encode(public_key)}"


def did_key_segment(did: str) -> str:
    """Return the key-derived suffix of a DID. Raises ValueError if malformed."""
    if not isinstance(did, str):
        raise ValueError("DID must be a string")
    parts = did.split(":")
    if len(parts) < 3 or parts[0] != "did" or not parts[1] or not parts[-1]:
        raise ValueError(f"invalid DID: {did!r}")
    return parts[-1]


def public_key_from_did(did: str) -> bytes:
    return b64url_decode(did_key_segment(did))


def build_did_document(key_pair: KeyPair, namespace: str) -> DIDDocument:
    """Synthesize the DID document for a freshly generated key pair."""
    method_type = method_type_for_algorithm(key_pair.algorithm)
    did = derive_did(key_pair.public_key.raw, namespace)
    vm_id = f"{did}#{AUTH_KEY_FRAGMENT}"

    method = VerificationMethod(
        id=vm_id,
        type=method_type,
        controller=did,
        public_key_base64=b64encode(key_pair.public_key.raw),
    )
    doc = DIDDocument(id=did, verification_method=[method], authentication=[vm_id])
    validate_did_document(doc)
    return doc


def validate_did_document(doc: DIDDocument) -> None:
    """
    Raise ValueError unless:
    - every authentication id resolves to a verification method
    - every method's publicKeyBase64 matches the key segment of the DID
    """
    did_key = public_key_from_did(doc.id)
    by_id = {vm.id: vm for vm in doc.verification_method}

    for auth_id in doc.authentication:
        if auth_id not in by_id:
            raise ValueError(f"authentication id {auth_id!r} does not resolve")

    for vm in doc.verification_method:
        if b64decode(vm.public_key_base64) != did_key:
            raise ValueError(f"verification method {vm.id!r} key does not match DID")


def resolve_authentication_method(doc: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    """
    Pick the method used to authenticate (raw wire mapping).

    authentication[0] is preferred and must resolve; with no preferred id the
    first verification method is used. None when nothing resolves.
    """
    methods = doc.get("verificationMethod")
    if not isinstance(methods, list) or not methods:
        return None

    auth = doc.get("authentication")
    preferred = auth[0] if isinstance(auth, list) and auth else None
    if preferred:
        for method in methods:
            if isinstance(method, Mapping) and method.get("id") == preferred:
                return method
        return None

    first = methods[0]
    return first if isinstance(first, Mapping) else None
