"""Parsed User-Agent record.

Holds the normalized product, OS, device, CPU and engine fields extracted from a
User-Agent string, together with the raw text and the client address. The two
derived identifiers (``fingerprint`` and ``family_hash``) are always computed
together by :meth:`AttributeRecord.finalized` or :func:`build`.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from typing import TYPE_CHECKING, Any

from loguru import logger

from .canonical import canonicalize
from .hashing import FamilyHashPolicy
from .hashing import family_hash as derive_family_hash
from .hashing import fingerprint as derive_fingerprint

if TYPE_CHECKING:
    from .parser import AgentParser


def clean(value: Any) -> str | None:
    """Normalize a parsed value: ``None`` and empty strings become ``None``."""
    if value is None:
        return None
    text = str(value)
    return text if text else None


@dataclass(frozen=True)
class Product:
    """Browser or application identity."""

    name: str | None = None
    major: str | None = None
    minor: str | None = None
    patch: str | None = None


@dataclass(frozen=True)
class OS:
    """Operating system identity."""

    name: str | None = None
    major: str | None = None
    minor: str | None = None
    patch: str | None = None
    patch_minor: str | None = None


@dataclass(frozen=True)
class Device:
    name: str | None = None
    brand: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class CPU:
    architecture: str | None = None


@dataclass(frozen=True)
class Engine:
    """Layout engine identity."""

    name: str | None = None
    major: str | None = None
    minor: str | None = None
    patch: str | None = None
    patch_minor: str | None = None


@dataclass(frozen=True)
class AttributeRecord:
    """Parsed and normalized view of a client request.

    Attributes
    ----------
    address : str | None
        Client source address (IPv4 or IPv6 text)
    product : Product
        Browser identity and version (e.g., Chrome 115.0)
    os : OS
        Operating system identity and version (e.g., Windows 10)
    device : Device
        Device family, brand and model (e.g., iPhone, Apple, iPhone)
    cpu : CPU
        CPU architecture (e.g., amd64)
    engine : Engine
        Layout engine identity and version (e.g., Blink 115.0)
    raw_agent : str | None
        Original User-Agent string
    fingerprint : str | None
        High-entropy client identifier, present only with ``raw_agent``
    family_hash : str | None
        Browser/OS/device family identifier, present only with ``raw_agent``
    """

    address: str | None = None
    product: Product = field(default_factory=Product)
    os: OS = field(default_factory=OS)
    device: Device = field(default_factory=Device)
    cpu: CPU = field(default_factory=CPU)
    engine: Engine = field(default_factory=Engine)
    raw_agent: str | None = None
    fingerprint: str | None = None
    family_hash: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", clean(self.address))
        object.__setattr__(self, "raw_agent", clean(self.raw_agent))
        # Identifiers only exist for a raw agent.
        if self.raw_agent is None:
            object.__setattr__(self, "fingerprint", None)
            object.__setattr__(self, "family_hash", None)

    def finalized(
        self, policy: FamilyHashPolicy = FamilyHashPolicy.CANONICAL
    ) -> AttributeRecord:
        """Return a copy with both derived identifiers recomputed.

        Parameters
        ----------
        policy : FamilyHashPolicy, optional
            Family hash policy (default: canonical string policy).

        Returns
        -------
        AttributeRecord
            New record; ``fingerprint`` and ``family_hash`` are ``None`` when
            ``raw_agent`` is absent.
        """
        return replace(
            self,
            fingerprint=derive_fingerprint(self),
            family_hash=derive_family_hash(self, policy),
        )

    def normalized_string(self) -> str | None:
        """Canonical string of this record, or ``None`` without a raw agent."""
        return canonicalize(self)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape (``ip``, ``hash``, ``user_agent``, ...)."""
        return {
            "ip": self.address,
            "fingerprint": self.fingerprint,
            "hash": self.family_hash,
            "product": asdict(self.product),
            "os": asdict(self.os),
            "device": asdict(self.device),
            "cpu": asdict(self.cpu),
            "engine": asdict(self.engine),
            "user_agent": self.raw_agent,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        policy: FamilyHashPolicy = FamilyHashPolicy.CANONICAL,
    ) -> AttributeRecord:
        """Rebuild a record from :meth:`to_dict` output.

        Missing groups and fields are treated as absent. The ``fingerprint``
        and ``hash`` values of ``data`` are ignored: both identifiers are
        recomputed from the restored fields under ``policy``.
        """

        def group(kind: type, key: str) -> Any:
            values = data.get(key) or {}
            return kind(
                **{name: clean(values.get(name)) for name in kind.__dataclass_fields__}
            )

        return cls(
            address=clean(data.get("ip")),
            product=group(Product, "product"),
            os=group(OS, "os"),
            device=group(Device, "device"),
            cpu=group(CPU, "cpu"),
            engine=group(Engine, "engine"),
            raw_agent=clean(data.get("user_agent")),
        ).finalized(policy)


def build(
    raw_agent: str | None,
    address: str | None,
    parser: AgentParser | None = None,
    policy: FamilyHashPolicy = FamilyHashPolicy.CANONICAL,
) -> AttributeRecord:
    """Parse a User-Agent string and address into a finalized record.

    Never fails on empty or garbage input: an empty agent yields a record with
    every parsed field absent and no derived identifiers.

    Parameters
    ----------
    raw_agent : str | None
        User-Agent header value
    address : str | None
        Client source address
    parser : AgentParser | None, optional
        Parser handle; the process-wide :func:`default_parser` when omitted
    policy : FamilyHashPolicy, optional
        Family hash policy

    Returns
    -------
    AttributeRecord
        Record with ``fingerprint`` and ``family_hash`` computed
    """
    agent = clean(raw_agent)
    record = AttributeRecord(address=clean(address), raw_agent=agent)
    if agent is None:
        return record

    if parser is None:
        from .parser import default_parser

        parser = default_parser()

    parsed = parser.parse(agent)
    record = replace(
        record,
        product=parsed.product,
        os=parsed.os,
        device=parsed.device,
        cpu=parsed.cpu,
        engine=parsed.engine,
    )
    finalized = record.finalized(policy)
    logger.debug(
        "built record product={} os={} fingerprint={}",
        finalized.product.name,
        finalized.os.name,
        finalized.fingerprint,
    )
    return finalized
