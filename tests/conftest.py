"""Shared fixtures."""

from __future__ import annotations

import pytest

from ua_fingerprint.utils.parser import AgentParser, ParsedAgent
from ua_fingerprint.utils.user_agent import CPU, OS, Device, Engine, Product

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "Chrome/115.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_5 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.5 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/118.0"


class FakeParser:
    """Returns the same parsed groups for every agent."""

    def __init__(self, parsed: ParsedAgent):
        self.parsed = parsed
        self.calls: list[str] = []

    def parse(self, agent: str) -> ParsedAgent:
        self.calls.append(agent)
        return self.parsed


@pytest.fixture
def chrome_parsed() -> ParsedAgent:
    return ParsedAgent(
        product=Product(name="Chrome", major="115", minor="0"),
        os=OS(name="Windows", major="10"),
        device=Device(name="Other"),
        cpu=CPU(architecture="amd64"),
        engine=Engine(name="Blink", major="115", minor="0"),
    )


@pytest.fixture
def fake_parser(chrome_parsed: ParsedAgent) -> FakeParser:
    return FakeParser(chrome_parsed)


@pytest.fixture(scope="session")
def agent_parser() -> AgentParser:
    """Parser backed by the uap-core rules bundled with ua-parser."""
    return AgentParser.load()
