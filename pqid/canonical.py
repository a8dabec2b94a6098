"""
Canonical signing strings for PQID.

The signed message for an assertion or a credential is NOT its JSON. It is a
flat `key=value` string:

    audience=https%3A%2F%2Fexample.com&challenge=abc&spec_version=...&timestamp=...

Rules (wire-format contract, tied to spec_version pqid-auth-0.2.0):
- field names sorted lexicographically (code-point order)
- values percent-encoded the way ECMAScript encodeURIComponent does
- pairs joined with '&'

Changing any of these rules invalidates every signature already issued, so a
change requires a new spec_version.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence
from urllib.parse import quote

ASSERTION_FIELDS = ("audience", "challenge", "spec_version", "timestamp")

CREDENTIAL_FIELDS = (
    "claim_type",
    "claim_value",
    "id",
    "issuanceDate",
    "issuer",
    "subject",
    "validUntil",
)

# encodeURIComponent leaves these unescaped besides ASCII letters and digits.
_URI_COMPONENT_SAFE = "-_.!~*'()"

# Model attribute names that differ from the wire field names.
_ATTRIBUTE_BY_FIELD = {
    "issuanceDate": "issuance_date",
    "validUntil": "valid_until",
}


def _number_text(value: float) -> str:
    """ECMAScript Number::toString for a float (shortest round-trip digits)."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value < 0:
        return "-" + _number_text(-value)

    # repr() gives the shortest digits that round-trip, as JS does.
    mantissa, _, exp_part = repr(value).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    raw_digits = int_part + frac_part
    digits = raw_digits.lstrip("0")
    point = len(int_part) - (len(raw_digits) - len(digits)) + int(exp_part or 0)
    digits = digits.rstrip("0")
    k = len(digits)

    if k <= point <= 21:
        return digits + "0" * (point - k)
    if 0 < point <= 21:
        return digits[:point] + "." + digits[point:]
    if -6 < point <= 0:
        return "0." + "0" * (-point) + digits

    exponent = point - 1
    sign = "+" if exponent >= 0 else "-"
    head = digits[0] if k == 1 else digits[0] + "." + digits[1:]
    return f"{head}e{sign}{abs(exponent)}"


def scalar_text(value: Any) -> str:
    """Total string conversion for field values (matches JS String(value))."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _number_text(value)
    return str(value)


def encode_component(value: Any) -> str:
    return quote(scalar_text(value), safe=_URI_COMPONENT_SAFE)


def canonicalize(fields: Mapping[str, Any]) -> str:
    """Encode a field set into its canonical signing string."""
    return "&".join(f"{key}={encode_component(fields[key])}" for key in sorted(fields))


def _select(source: Any, names: Sequence[str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in names:
        if isinstance(source, Mapping):
            value = source.get(name, "")
        else:
            value = getattr(source, _ATTRIBUTE_BY_FIELD.get(name, name), "")
        out[name] = value
    return out


def canonicalize_assertion(assertion: Any) -> str:
    """Canonical string over the assertion fields (mapping or AuthAssertion)."""
    return canonicalize(_select(assertion, ASSERTION_FIELDS))


def canonicalize_credential_payload(credential: Any) -> str:
    """Canonical string over the signable credential fields; the proof is excluded."""
    return canonicalize(_select(credential, CREDENTIAL_FIELDS))
