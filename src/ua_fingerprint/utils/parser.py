"""User-Agent parser adapter.

Wraps ``ua-parser`` (browser, OS and device) and the local engine/CPU rule
tables behind a single handle. A handle is built once, at process start, and
shared by every request path; parsing itself is read-only and thread-safe.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from ua_parser import BasicResolver, Parser
from ua_parser.loaders import load_builtins, load_yaml

from .rules import (
    DEFAULT_CPU_RULES,
    DEFAULT_ENGINE_RULES,
    CpuRule,
    EngineRule,
    cpu_rules_from_yaml,
    engine_rules_from_yaml,
    match_first,
)
from .user_agent import CPU, OS, Device, Engine, Product, clean


UNMATCHED_FAMILY = "Other"


class ParserInitError(RuntimeError):
    """The User-Agent rule file could not be loaded."""


def family(value: str | None) -> str | None:
    """uap-core family name; the ``Other`` fallback means no rule matched."""
    name = clean(value)
    return None if name == UNMATCHED_FAMILY else name


@dataclass(frozen=True)
class ParsedAgent:
    """Structured groups for one User-Agent string; missing matches are empty."""

    product: Product
    os: OS
    device: Device
    cpu: CPU
    engine: Engine


class AgentParser:
    """Parser handle.

    Parameters
    ----------
    parser : Parser
        ``ua-parser`` parser for browser, OS and device.
    engine_rules : tuple[EngineRule, ...], optional
        Engine rules, first match wins.
    cpu_rules : tuple[CpuRule, ...], optional
        CPU rules, first match wins.
    source : str, optional
        Where the rules came from, for logging.

    Examples
    --------
    >>> parser = AgentParser.load()
    >>> parser.parse("Mozilla/5.0 (Windows NT 10.0; Win64; x64)").cpu.architecture
    'amd64'
    """

    def __init__(
        self,
        parser: Parser,
        engine_rules: tuple[EngineRule, ...] = DEFAULT_ENGINE_RULES,
        cpu_rules: tuple[CpuRule, ...] = DEFAULT_CPU_RULES,
        source: str = "bundled",
    ):
        self._parser = parser
        self.engine_rules = engine_rules
        self.cpu_rules = cpu_rules
        self.source = source

    @classmethod
    def load(cls, rules_path: Path | None = None) -> AgentParser:
        """Load a parser from a rule file, or from the bundled uap-core rules.

        Parameters
        ----------
        rules_path : Path | None, optional
            uap-core style ``regexes.yaml``. It may also carry
            ``engine_parsers`` and ``cpu_parsers`` sections.

        Returns
        -------
        AgentParser
            Ready-to-use parser handle.

        Raises
        ------
        ParserInitError
            If the rule file cannot be read or parsed.
        """
        if rules_path is None:
            logger.info("Loading bundled User-Agent rules")
            return cls(Parser(BasicResolver(load_builtins())))

        logger.info("Loading User-Agent rules from {}", rules_path)
        try:
            with open(rules_path, "r", encoding="utf-8") as handle:
                document: Any = yaml.safe_load(handle)
            if not isinstance(document, dict):
                raise ValueError("rule file must contain a mapping")
            matchers = load_yaml(rules_path)
            engine_rules = (
                engine_rules_from_yaml(document["engine_parsers"])
                if document.get("engine_parsers")
                else DEFAULT_ENGINE_RULES
            )
            cpu_rules = (
                cpu_rules_from_yaml(document["cpu_parsers"])
                if document.get("cpu_parsers")
                else DEFAULT_CPU_RULES
            )
        except (OSError, yaml.YAMLError, ValueError, KeyError, TypeError, re.error) as e:
            raise ParserInitError(
                f"Failed to load User-Agent rules from {rules_path}: {e}"
            ) from e

        return cls(
            Parser(BasicResolver(matchers)),
            engine_rules=engine_rules,
            cpu_rules=cpu_rules,
            source=str(rules_path),
        )

    def parse(self, agent: str) -> ParsedAgent:
        """Parse a User-Agent string into structured groups.

        A group with no matching rule is returned with every field ``None``;
        a miss is never an error.
        """
        result = self._parser.parse(agent)

        browser = result.user_agent
        product = (
            Product(
                name=family(browser.family),
                major=clean(browser.major),
                minor=clean(browser.minor),
                patch=clean(browser.patch),
            )
            if browser is not None
            else Product()
        )

        os_info = result.os
        os_group = (
            OS(
                name=family(os_info.family),
                major=clean(os_info.major),
                minor=clean(os_info.minor),
                patch=clean(os_info.patch),
                patch_minor=clean(os_info.patch_minor),
            )
            if os_info is not None
            else OS()
        )

        device_info = result.device
        device = (
            Device(
                name=family(device_info.family),
                brand=clean(device_info.brand),
                model=clean(device_info.model),
            )
            if device_info is not None
            else Device()
        )

        return ParsedAgent(
            product=product,
            os=os_group,
            device=device,
            cpu=match_first(self.cpu_rules, agent) or CPU(),
            engine=match_first(self.engine_rules, agent) or Engine(),
        )


_default_parser: AgentParser | None = None
_default_error: ParserInitError | None = None
_default_lock = threading.Lock()


def default_parser() -> AgentParser:
    """Process-wide parser, loaded once on first use.

    The rule file location is read from the environment at that point
    (see :func:`ua_fingerprint.config.resolve_rules_path`).

    Raises
    ------
    ParserInitError
        If the configured rule file cannot be loaded. The failure is final:
        later calls raise the same error without reading the file again.
    """
    global _default_parser, _default_error
    if _default_parser is None:
        with _default_lock:
            if _default_error is not None:
                raise _default_error
            if _default_parser is None:
                from ..config import resolve_rules_path

                try:
                    _default_parser = AgentParser.load(resolve_rules_path())
                except ParserInitError as e:
                    logger.error("User-Agent parser unavailable: {}", e)
                    _default_error = e
                    raise
    return _default_parser
