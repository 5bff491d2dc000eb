"""Fingerprint and family hash derivation.

Both identifiers are BLAKE3 hex digests. The fingerprint hashes the sorted
feature vector twice; the family hash hashes either the canonical string
(default) or a raw composite behind a short human-readable label.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from blake3 import blake3

from .canonical import canonicalize
from .features import build_features

if TYPE_CHECKING:
    from .user_agent import AttributeRecord

FEATURE_SEPARATOR = "&%&"
MAX_PREFIXED_LENGTH = 100
LABEL_WIDTH = 2
UNKNOWN_BROWSER = "unk"
UNKNOWN_OS = "unk"
GENERIC_DEVICE = "gen"


class FamilyHashPolicy(str, Enum):
    """How the family hash is derived.

    ``CANONICAL`` hashes the canonical string. ``PREFIXED`` hashes the raw
    agent with the OS and device names and prepends a ``browser-os-device``
    label.
    """

    CANONICAL = "canonical"
    PREFIXED = "prefixed"

    @classmethod
    def parse(cls, value: str) -> FamilyHashPolicy:
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            choices = ", ".join(policy.value for policy in cls)
            raise ValueError(
                f"Unknown family hash policy {value!r} (expected one of: {choices})"
            ) from e


def hex_digest(data: bytes) -> str:
    return blake3(data).hexdigest()


def fingerprint(record: AttributeRecord) -> str | None:
    """Double BLAKE3 hash of the sorted feature vector.

    The second round hashes the hex text of the first digest.

    Returns
    -------
    str | None
        64-character hex string, or ``None`` without a raw User-Agent.
    """
    if not record.raw_agent:
        return None
    features = FEATURE_SEPARATOR.join(build_features(record))
    primary = hex_digest(features.encode("utf-8"))
    return hex_digest(primary.encode("utf-8"))


def truncate_identifier(value: str, limit: int = MAX_PREFIXED_LENGTH) -> str:
    return value if len(value) <= limit else value[:limit]


def family_label(record: AttributeRecord) -> str:
    """Short ``browser-os-device`` label, e.g. ``ch-wi-ge``."""
    parts = (
        record.product.name or UNKNOWN_BROWSER,
        record.os.name or UNKNOWN_OS,
        record.device.name or GENERIC_DEVICE,
    )
    return "-".join(part.lower()[:LABEL_WIDTH] for part in parts)


def _canonical_family_hash(canonical: str) -> str:
    return hex_digest(canonical.encode("utf-8"))


def _prefixed_family_hash(record: AttributeRecord, agent: str) -> str:
    hasher = blake3()
    hasher.update(agent.encode("utf-8"))
    if record.os.name is not None:
        hasher.update(record.os.name.encode("utf-8"))
    if record.device.name is not None:
        hasher.update(record.device.name.encode("utf-8"))
    return truncate_identifier(f"{family_label(record)}-{hasher.hexdigest()}")


def family_hash(
    record: AttributeRecord, policy: FamilyHashPolicy = FamilyHashPolicy.CANONICAL
) -> str | None:
    """Family identifier of a record under the given policy.

    Parameters
    ----------
    record : AttributeRecord
        Record to hash.
    policy : FamilyHashPolicy, optional
        Derivation policy (default: canonical string).

    Returns
    -------
    str | None
        Hex digest (canonical) or ``label-digest`` capped at 100 characters
        (prefixed); ``None`` without a raw User-Agent.
    """
    agent = record.raw_agent
    if not agent:
        return None
    if policy is FamilyHashPolicy.PREFIXED:
        return _prefixed_family_hash(record, agent)
    canonical = canonicalize(record)
    if canonical is None:
        return None
    return _canonical_family_hash(canonical)
