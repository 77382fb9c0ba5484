"""
Capture keywords

Maps the words users type ("person:", "vocab:", "fix: idea") onto
destinations. Many keywords map onto one destination.
"""

import re
from typing import Optional, Tuple

from ..common.schemas import Destination

DESTINATION_KEYWORDS = {
    "person": Destination.PEOPLE,
    "people": Destination.PEOPLE,
    "project": Destination.PROJECTS,
    "projects": Destination.PROJECTS,
    "idea": Destination.IDEAS,
    "ideas": Destination.IDEAS,
    "admin": Destination.ADMIN,
    "task": Destination.ADMIN,
    "vocab": Destination.VOCABULARY,
    "vocabulary": Destination.VOCABULARY,
    "word": Destination.VOCABULARY,
}

DELETE_KEYWORD = "delete"

# Shown to users in clarification and error replies, one per destination
OVERRIDE_HINTS = ["person:", "project:", "idea:", "admin:", "vocab:"]

_PREFIX_RE = re.compile(
    r"^\s*(" + "|".join(sorted(DESTINATION_KEYWORDS, key=len, reverse=True)) + r")\s*:\s*",
    re.IGNORECASE,
)
_FIX_RE = re.compile(r"^\s*fix\s*:\s*(\S*)", re.IGNORECASE)


def resolve_destination(token: str) -> Optional[Destination]:
    """Resolve a keyword such as "Ideas" or "vocab" to a destination"""
    return DESTINATION_KEYWORDS.get((token or "").strip().lower())


def split_prefix(text: str) -> Tuple[Optional[Destination], str]:
    """
    Split a destination prefix off a capture.

    Returns:
        (destination, remaining text) when the text starts with a known
        keyword followed by a colon, else (None, text)
    """
    match = _PREFIX_RE.match(text or "")
    if not match:
        return None, text
    return DESTINATION_KEYWORDS[match.group(1).lower()], text[match.end():]


def parse_fix_command(text: str) -> Optional[str]:
    """
    Extract the target token of a correction reply ("fix: idea" -> "idea").

    Returns None when the text is not a correction command, and an empty
    string for a bare "fix:" with no target.
    """
    match = _FIX_RE.match(text or "")
    if not match:
        return None
    return match.group(1).strip().lower()


def valid_targets() -> str:
    """Comma-separated list of accepted correction targets"""
    return ", ".join([d.value for d in Destination] + [DELETE_KEYWORD])
