"""
Exception types for PQID.

Only signing-side programming and configuration mistakes raise. Verification
of untrusted bundles and credentials never raises; it returns result objects
(see pqid.models).
"""

from __future__ import annotations


class PQIDError(Exception):
    """Base class for all PQID errors."""


class UnsupportedAlgorithmError(PQIDError, ValueError):
    """Algorithm tag (or verification method type) is not registered or not mapped."""


class InvalidKeyMaterialError(PQIDError, ValueError):
    """Key handle does not have the shape the selected algorithm expects."""
