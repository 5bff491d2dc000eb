"""Engine and CPU rule tables.

uap-core rules (used by ``ua-parser``) only cover the browser, OS and device.
Layout engine and CPU architecture are matched here with patterns modeled on
UAParser.js. A rule file may replace either table through its
``engine_parsers`` and ``cpu_parsers`` sections.

Rule file entries::

    engine_parsers:
      - regex: 'webkit/537\\.36.+chrome/(?!27)([\\w.]+)'
        name_replacement: 'Blink'
    cpu_parsers:
      - regex: '((?:i[346]|x)86)[;)]'
        architecture_replacement: 'ia32'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from .user_agent import CPU, Engine, clean

VERSION_PARTS = 4


@dataclass(frozen=True)
class EngineRule:
    """Engine pattern.

    Without ``name_replacement`` the name is taken from group ``name_group``.
    The version comes from ``version_group`` and is split on dots.
    """

    pattern: re.Pattern[str]
    name_replacement: str | None = None
    name_group: int = 1
    version_group: int | None = 2

    def match(self, agent: str) -> Engine | None:
        found = self.pattern.search(agent)
        if found is None:
            return None
        name = self.name_replacement or _group(found, self.name_group)
        version = _group(found, self.version_group)
        major, minor, patch, patch_minor = split_version(version)
        return Engine(
            name=clean(name),
            major=major,
            minor=minor,
            patch=patch,
            patch_minor=patch_minor,
        )


@dataclass(frozen=True)
class CpuRule:
    """CPU pattern; ``architecture_replacement`` wins over group 1 lowercased."""

    pattern: re.Pattern[str]
    architecture_replacement: str | None = None

    def match(self, agent: str) -> CPU | None:
        found = self.pattern.search(agent)
        if found is None:
            return None
        if self.architecture_replacement is not None:
            return CPU(architecture=self.architecture_replacement)
        captured = _group(found, 1)
        return CPU(architecture=clean(captured.lower() if captured else None))


def _group(found: re.Match[str], index: int | None) -> str | None:
    if index is None or index > (found.re.groups or 0):
        return None
    return found.group(index)


def split_version(version: str | None) -> tuple[str | None, ...]:
    """Split ``"115.0.5790"`` into ``("115", "0", "5790", None)``."""
    parts: list[str | None] = []
    if version:
        parts = [part or None for part in version.split(".")[:VERSION_PARTS]]
    parts += [None] * (VERSION_PARTS - len(parts))
    return tuple(parts)


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


DEFAULT_ENGINE_RULES: tuple[EngineRule, ...] = (
    EngineRule(_compile(r"windows.+ edge/([\w.]+)"), "EdgeHTML", version_group=1),
    EngineRule(
        _compile(r"webkit/537\.36.+chrome/(?!27)([\w.]+)"), "Blink", version_group=1
    ),
    EngineRule(_compile(r"(presto)/([\w.]+)")),
    EngineRule(
        _compile(r"(webkit|trident|netfront|netsurf|amaya|lynx|w3m|goanna)/([\w.]+)")
    ),
    EngineRule(_compile(r"ekioh(flow)/([\w.]+)")),
    EngineRule(_compile(r"(khtml|tasman|links)[/ ]\(?([\w.]+)")),
    EngineRule(_compile(r"(icab)[/ ]([23]\.[\d.]+)")),
    EngineRule(_compile(r"rv:([\w.]{1,9})\b.+(gecko)"), name_group=2, version_group=1),
)

DEFAULT_CPU_RULES: tuple[CpuRule, ...] = (
    CpuRule(_compile(r"(?:(amd|x(?:(?:86|64)[-_])?|wow|win)64)[;)]"), "amd64"),
    CpuRule(_compile(r"(ia32(?=;))")),
    CpuRule(_compile(r"((?:i[346]|x)86)[;)]"), "ia32"),
    CpuRule(_compile(r"\b(aarch64|arm(v?8e?l?|_?64))\b"), "arm64"),
    CpuRule(_compile(r"\b(arm(?:v[67])?ht?n?[fl]p?)\b"), "armhf"),
    CpuRule(_compile(r"windows (ce|mobile); ppc;"), "arm"),
    CpuRule(_compile(r"(ppc64|powerpc64)(?: mac|;|\))"), "ppc64"),
    CpuRule(_compile(r"(ppc|powerpc)(?: mac|;|\))"), "ppc"),
    CpuRule(_compile(r"(sun4\w)[;)]"), "sparc"),
    CpuRule(
        _compile(
            r"((?:avr32|ia64(?=;))|68k(?=\))|\barm(?=v(?:[1-7]|[5-7]1)l?|;|eabi)"
            r"|(?:irix|mips|sparc)(?:64)?\b|pa-risc)"
        )
    ),
)


def engine_rules_from_yaml(entries: Iterable[dict[str, Any]]) -> tuple[EngineRule, ...]:
    """Build engine rules from ``engine_parsers`` entries.

    Each entry needs ``regex``; ``name_replacement`` is optional. With a
    replacement the version is group 1, otherwise name is group 1 and version
    group 2.
    """
    rules = []
    for entry in entries:
        replacement = entry.get("name_replacement")
        rules.append(
            EngineRule(
                _compile(entry["regex"]),
                replacement,
                version_group=1 if replacement else 2,
            )
        )
    return tuple(rules)


def cpu_rules_from_yaml(entries: Iterable[dict[str, Any]]) -> tuple[CpuRule, ...]:
    """Build CPU rules from ``cpu_parsers`` entries (``regex`` plus optional
    ``architecture_replacement``)."""
    return tuple(
        CpuRule(_compile(entry["regex"]), entry.get("architecture_replacement"))
        for entry in entries
    )


def match_first(rules: Iterable[EngineRule] | Iterable[CpuRule], agent: str) -> Any:
    """Result of the first matching rule, or ``None``."""
    for rule in rules:
        result = rule.match(agent)
        if result is not None:
            return result
    return None
