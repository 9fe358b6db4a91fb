"""
Element-Set Parsing

Parses NORAD three-line element text (name line followed by the two element
lines) and maps each group onto a tracked satellite through case-insensitive
alias patterns.
"""

import logging
import re
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Tuple

from pydantic import ValidationError

from frame_service.models import ElementSet

logger = logging.getLogger(__name__)


class ElementSetMode(Enum):
    """Where element sets come from."""

    STUB = "stub"
    LIVE = "live"

    @classmethod
    def from_flag(cls, use_live: bool) -> "ElementSetMode":
        return cls.LIVE if use_live else cls.STUB


def compile_aliases(patterns: Iterable[str]) -> List[Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


def name_to_satellite_id(name: str, aliases: Mapping[str, List[Pattern]]) -> Optional[str]:
    """
    Resolve a name line to a satellite identifier.

    Args:
        name: Element-set name line, e.g. ``"GOES 19"``
        aliases: Satellite id -> compiled alias patterns

    Returns:
        Matching satellite id, or None
    """
    for satellite_id, patterns in aliases.items():
        if any(p.search(name) for p in patterns):
            return satellite_id
    return None


def split_groups(text: str) -> List[Tuple[str, str, str]]:
    """Split element text into (name, line1, line2) groups, skipping junk lines."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    groups = []
    i = 0
    while i + 2 < len(lines):
        name, line1, line2 = lines[i], lines[i + 1], lines[i + 2]
        if line1.startswith("1 ") and line2.startswith("2 "):
            groups.append((name, line1, line2))
            i += 3
        else:
            i += 1
    return groups


def parse_element_sets(text: str,
                       aliases: Mapping[str, List[Pattern]]) -> Dict[str, ElementSet]:
    """
    Parse three-line element text into element sets for known satellites.

    The first group matching a satellite wins; unknown names are skipped.

    Args:
        text: Raw element-set text
        aliases: Satellite id -> compiled alias patterns

    Returns:
        Satellite id -> ElementSet for every satellite found
    """
    found: Dict[str, ElementSet] = {}
    for name, line1, line2 in split_groups(text):
        satellite_id = name_to_satellite_id(name, aliases)
        if satellite_id is None or satellite_id in found:
            continue
        try:
            found[satellite_id] = ElementSet(name=name, line1=line1, line2=line2)
        except ValidationError as e:
            logger.warning(f"Failed to parse element set for {name}: {e}")
    logger.debug(f"Parsed element sets for {sorted(found)}")
    return found
