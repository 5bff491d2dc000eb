"""Parsing, canonicalization and hashing of User-Agent records."""

from .canonical import canonicalize
from .features import build_features
from .hashing import FamilyHashPolicy, family_hash, fingerprint
from .parser import AgentParser, ParsedAgent, ParserInitError, default_parser
from .user_agent import CPU, OS, AttributeRecord, Device, Engine, Product, build

__all__ = [
    "AgentParser",
    "AttributeRecord",
    "CPU",
    "Device",
    "Engine",
    "FamilyHashPolicy",
    "OS",
    "ParsedAgent",
    "ParserInitError",
    "Product",
    "build",
    "build_features",
    "canonicalize",
    "default_parser",
    "family_hash",
    "fingerprint",
]
