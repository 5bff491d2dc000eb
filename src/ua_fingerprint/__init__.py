"""Client fingerprints and family hashes from User-Agent strings.

Example
-------
>>> from ua_fingerprint import AgentParser, build
>>> parser = AgentParser.load()
>>> record = build("Mozilla/5.0 (X11; Linux x86_64) Firefox/118.0", "203.0.113.7", parser)
>>> record.product.name
'Firefox'
"""

from .utils import (
    AgentParser,
    AttributeRecord,
    FamilyHashPolicy,
    ParserInitError,
    build,
    build_features,
    canonicalize,
    default_parser,
    family_hash,
    fingerprint,
)

__all__ = [
    "AgentParser",
    "AttributeRecord",
    "FamilyHashPolicy",
    "ParserInitError",
    "build",
    "build_features",
    "canonicalize",
    "default_parser",
    "family_hash",
    "fingerprint",
]
