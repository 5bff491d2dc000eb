"""Feature vector extraction for client fingerprints.

Each signal contributes one ``tag:value`` token. Tokens come from the parsed
attributes, from structural statistics of the raw User-Agent, from substring
flags and from the network prefix of the client address. The vector is sorted
so that construction order never affects the fingerprint.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .user_agent import AttributeRecord

# (token, substrings): token is emitted when any substring occurs.
CAPABILITY_FLAGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("fm:1", ("Mobile",)),
    ("faw:1", ("AppleWebKit",)),
    ("fg:1", ("Gecko",)),
    ("fc:1", ("Chrome",)),
    ("ff:1", ("Firefox",)),
    ("fe:1", ("Edge", "Edg/")),
    ("fi:1", ("MSIE", "Trident")),
)

# Evaluated in order; only the first matching platform is emitted.
PLATFORM_FLAGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("fow:1", ("Win",)),
    ("fom:1", ("Mac",)),
    ("fol:1", ("Linux",)),
    ("foa:1", ("Android",)),
    ("foi:1", ("iOS", "iPhone", "iPad")),
)

SAFARI_FLAG = "fs:1"

ASCII_DIGITS = frozenset("0123456789")

# Unicode White_Space property. str.split() would also split on U+001C-U+001F.
WHITESPACE = frozenset(
    "\t\n\x0b\x0c\r \x85\xa0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000"
)


def _contains_any(text: str, needles: Sequence[str]) -> bool:
    return any(needle in text for needle in needles)


def word_count(agent: str) -> int:
    """Number of maximal runs of non-whitespace characters."""
    count = 0
    in_word = False
    for ch in agent:
        if ch in WHITESPACE:
            in_word = False
        elif not in_word:
            in_word = True
            count += 1
    return count


def version_tokens(
    prefix: str, name: str | None, major: str | None, minor: str | None
) -> list[str]:
    """Emit ``<p>:name``, ``<p>v:major`` and ``<p>vm:major.minor`` with nested gating."""
    tokens: list[str] = []
    if name is None:
        return tokens
    tokens.append(f"{prefix}:{name}")
    if major is None:
        return tokens
    tokens.append(f"{prefix}v:{major}")
    if minor is not None:
        tokens.append(f"{prefix}vm:{major}.{minor}")
    return tokens


def attribute_tokens(record: AttributeRecord) -> list[str]:
    """Tokens derived from the parsed product, OS, device, CPU and engine."""
    tokens = version_tokens(
        "b", record.product.name, record.product.major, record.product.minor
    )
    tokens += version_tokens("o", record.os.name, record.os.major, record.os.minor)

    device = record.device
    if device.name is not None:
        tokens.append(f"d:{device.name}")
    if device.brand is not None:
        tokens.append(f"db:{device.brand}")
    if device.model is not None:
        tokens.append(f"dm:{device.model}")

    if record.cpu.architecture is not None:
        tokens.append(f"c:{record.cpu.architecture}")

    if record.engine.name is not None:
        tokens.append(f"e:{record.engine.name}")
        if record.engine.major is not None:
            tokens.append(f"ev:{record.engine.major}")
    return tokens


def structure_tokens(agent: str) -> list[str]:
    """Length, digit, symbol and word counts of the raw User-Agent.

    The digit count shares the ``d:`` tag with the device name token; both are
    emitted.
    """
    digits = sum(1 for ch in agent if ch in ASCII_DIGITS)
    symbols = sum(1 for ch in agent if not ch.isalnum())
    return [
        f"l:{len(agent)}",
        f"d:{digits}",
        f"s:{symbols}",
        f"w:{word_count(agent)}",
    ]


def flag_tokens(agent: str) -> list[str]:
    """Case-sensitive capability and platform flags."""
    tokens = [token for token, needles in CAPABILITY_FLAGS if _contains_any(agent, needles)]

    # Chrome agents also advertise Safari.
    if "Safari" in agent and "Chrome" not in agent:
        tokens.append(SAFARI_FLAG)

    for token, needles in PLATFORM_FLAGS:
        if _contains_any(agent, needles):
            tokens.append(token)
            break
    return tokens


def network_token(address: str | None) -> str | None:
    """Network prefix of an address: two IPv4 octets or four IPv6 groups.

    Examples
    --------
    >>> network_token("203.0.113.7")
    'ip4:203.0'
    >>> network_token("2001:db8:85a3:0:0:0:0:1")
    'ip6:2001:db8:85a3:0'
    >>> network_token("localhost") is None
    True
    """
    if address is None:
        return None
    if "." in address:
        parts = address.split(".")
        if len(parts) >= 2:
            return f"ip4:{parts[0]}.{parts[1]}"
    elif ":" in address:
        parts = address.split(":")
        if len(parts) >= 4:
            return "ip6:" + ":".join(parts[:4])
    return None


def build_features(record: AttributeRecord) -> list[str]:
    """Build the sorted feature vector of a record.

    Parameters
    ----------
    record : AttributeRecord
        Record with a raw User-Agent.

    Returns
    -------
    list[str]
        Lexicographically sorted ``tag:value`` tokens.

    Raises
    ------
    ValueError
        If the record has no raw User-Agent.
    """
    agent = record.raw_agent
    if not agent:
        raise ValueError("feature vector requires a raw User-Agent")

    tokens = attribute_tokens(record)
    tokens += structure_tokens(agent)
    tokens += flag_tokens(agent)

    network = network_token(record.address)
    if network is not None:
        tokens.append(network)

    tokens.sort()
    return tokens
