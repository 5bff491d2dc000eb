"""Environment-driven configuration.

Values come from the process environment, optionally seeded from a ``.env``
file via python-dotenv.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from loguru import logger

from .utils.hashing import FamilyHashPolicy

RULES_PATH_ENV = "USER_AGENT_PATH"
DEFAULT_RULES_PATH = Path("./assets/regexes.yaml")
DEFAULT_CACHE_SIZE = 65536
LOG_FORMAT = "{time:HH:mm:ss} | {level: <8} | {message}"


def configure_logging(verbose: bool, sink: Any = None) -> None:
    """Send loguru output to ``sink`` (stderr by default), INFO when verbose."""
    logger.remove()
    logger.add(
        sink if sink is not None else sys.stderr,
        level="INFO" if verbose else "WARNING",
        format=LOG_FORMAT,
    )


def env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    return Path(value).expanduser() if value else default


def env_int(name: str, default: int | None) -> int | None:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("{}={} is not an integer, using default {}", name, value, default)
        return default


def env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def env_str(name: str) -> str | None:
    value = os.getenv(name)
    return value.strip() if value else None


def resolve_rules_path() -> Path | None:
    """Rule file to load, or ``None`` for the rules bundled with ua-parser.

    ``USER_AGENT_PATH`` wins when set. Otherwise ``./assets/regexes.yaml`` is
    used if it exists.
    """
    configured = env_str(RULES_PATH_ENV)
    if configured:
        return Path(configured).expanduser()
    if DEFAULT_RULES_PATH.is_file():
        return DEFAULT_RULES_PATH
    return None


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the library and the batch pipeline."""

    rules_path: Path | None
    family_hash_policy: FamilyHashPolicy
    verbose: bool
    progress: bool
    input_path: Path
    output_path: Path
    agent_column: str
    address_column: str
    cache_size: int
    threads: int | None

    @classmethod
    def from_env(cls) -> Settings:
        """Read settings from the environment (after loading ``.env``).

        Raises
        ------
        ValueError
            If ``UA_FAMILY_HASH_POLICY`` names an unknown policy.
        """
        load_dotenv()
        policy = env_str("UA_FAMILY_HASH_POLICY")
        return cls(
            rules_path=resolve_rules_path(),
            family_hash_policy=(
                FamilyHashPolicy.parse(policy) if policy else FamilyHashPolicy.CANONICAL
            ),
            verbose=env_bool("UA_VERBOSE", False),
            progress=env_bool("UA_PROGRESS", False),
            input_path=env_path("UA_INPUT_FILE", Path("requests.tsv")),
            output_path=env_path("UA_OUTPUT_FILE", Path("fingerprints.tsv")),
            agent_column=env_str("UA_AGENT_COLUMN") or "user_agent",
            address_column=env_str("UA_ADDRESS_COLUMN") or "ip",
            cache_size=env_int("UA_CACHE_SIZE", DEFAULT_CACHE_SIZE) or DEFAULT_CACHE_SIZE,
            threads=env_int("UA_DUCKDB_THREADS", None),
        )
