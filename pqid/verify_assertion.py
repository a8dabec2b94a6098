"""
Server-side verification of an AuthResponseBundle's assertion.

Checks run in a fixed order and stop at the first failure; the result carries
a single reason string. Nothing here raises on untrusted input.

1. bundle, did, did_document, assertion present
2. challenge + audience non-empty
3. spec_version equals the verifier's version
4. timestamp parses and is within the freshness window (both directions)
5. did_document.id == did
6. assertion signature present
7. authentication method resolves
8. method type maps to a registered algorithm
9. DID key segment matches the method's publicKeyBase64
10. signature verifies over the canonical assertion
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from .canonical import canonicalize_assertion
from .config import DEFAULT_CONFIG, ProtocolConfig
from .crypto import AlgorithmRegistry, default_registry
from .did import algorithm_for_method_type, public_key_from_did, resolve_authentication_method
from .encoding import b64decode
from .errors import UnsupportedAlgorithmError
from .models import AssertionVerificationResult, AuthResponseBundle
from .timeutil import ensure_utc, parse_timestamp

logger = logging.getLogger(__name__)


def _as_mapping(bundle: Any) -> Any:
    if isinstance(bundle, AuthResponseBundle):
        return bundle.to_dict()
    return bundle


def _fail(error: str) -> AssertionVerificationResult:
    logger.debug("Assertion rejected: %s", error)
    return AssertionVerificationResult.failure(error)


def _non_empty_str(x: Any) -> bool:
    return isinstance(x, str) and x != ""


def verify_assertion(
    bundle: Any,
    *,
    registry: Optional[AlgorithmRegistry] = None,
    config: Optional[ProtocolConfig] = None,
    now: Optional[datetime] = None,
) -> AssertionVerificationResult:
    """
    Verify the assertion in `bundle` (AuthResponseBundle or wire mapping).

    Returns AssertionVerificationResult(ok=True, did=...) only when the
    signature verifies against the key bound into the DID.
    """
    cfg = config or DEFAULT_CONFIG
    reg = registry or default_registry()

    data = _as_mapping(bundle)
    if not isinstance(data, Mapping) or not data:
        return _fail("missing bundle")

    did = data.get("did")
    if not _non_empty_str(did):
        return _fail("missing did")

    doc = data.get("did_document")
    if not isinstance(doc, Mapping) or not doc:
        return _fail("missing did document")

    assertion = data.get("assertion")
    if not isinstance(assertion, Mapping) or not assertion:
        return _fail("missing assertion")

    if not _non_empty_str(assertion.get("challenge")) or not _non_empty_str(
        assertion.get("audience")
    ):
        return _fail("invalid assertion fields")

    if assertion.get("spec_version") != cfg.spec_version:
        return _fail("unsupported assertion version")

    try:
        issued_at = parse_timestamp(assertion.get("timestamp"))
    except (ValueError, TypeError):
        return _fail("invalid assertion timestamp")

    now_eff = ensure_utc(now)
    if abs(now_eff - issued_at) > cfg.freshness_window:
        return _fail("stale assertion")

    if doc.get("id") != did:
        return _fail("did mismatch")

    signature = data.get("assertion_signatureBase64")
    if not _non_empty_str(signature):
        return _fail("missing assertion signature")

    method = resolve_authentication_method(doc)
    if method is None:
        return _fail("missing verification method")

    try:
        algorithm = algorithm_for_method_type(method.get("type"))
    except UnsupportedAlgorithmError:
        return _fail("unsupported verification method")
    if not reg.supports(algorithm):
        return _fail("unsupported verification method")

    try:
        did_key = public_key_from_did(did)
    except ValueError:
        return _fail("invalid did")

    try:
        method_key = b64decode(method.get("publicKeyBase64"))
    except ValueError:
        return _fail("did document key mismatch")
    if method_key != did_key:
        return _fail("did document key mismatch")

    canonical = canonicalize_assertion(assertion)
    if not reg.verify(algorithm, did_key, canonical, signature):
        return _fail("invalid assertion signature")

    return AssertionVerificationResult.success(did)
