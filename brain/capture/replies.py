"""
Chat replies

Every message the bot posts back to Slack, in one place.
"""

from ..common.schemas import Destination
from .keywords import OVERRIDE_HINTS, valid_targets

_HINTS = " ".join(f"`{hint}`" for hint in OVERRIDE_HINTS)


def filed(destination: Destination, title: str, confidence: float) -> str:
    return (
        f"Filed to *{destination.value}*: {title} (confidence {confidence:.0%})\n"
        f"Wrong place? Reply in this thread with `fix: <destination>` "
        f"({valid_targets()})."
    )


def needs_review(destination: Destination, confidence: float) -> str:
    return (
        f"I'm not sure where this belongs (best guess: *{destination.value}*, "
        f"{confidence:.0%} confident), so it is waiting for review.\n"
        f"Repost it with a prefix to file it directly: {_HINTS}"
    )


def capture_failed() -> str:
    return "Sorry, something went wrong while processing that message. Please try again."


def original_not_found() -> str:
    return "I couldn't find the original message for this correction."


def unknown_target(token: str) -> str:
    if not token:
        return f"Tell me where it goes, e.g. `fix: ideas`. Valid options: {valid_targets()}."
    return f"Unknown destination `{token}`. Valid options: {valid_targets()}."


def already_deleted() -> str:
    return "This capture was deleted, so it can't be corrected anymore."


def deleted() -> str:
    return "Deleted. This capture is marked as removed in the inbox log."


def corrected(destination: Destination, title: str) -> str:
    return f"Fixed! Moved to *{destination.value}*: {title}"


def correction_failed() -> str:
    return "Sorry, I couldn't apply that correction. Please try again."


INSTRUCTIONS = """*Second Brain Quick Reference*

*How to capture thoughts:*
Just type your thought naturally - it will be classified automatically.

*Optional prefixes to force a category:*
• `person:` or `people:` → People
• `project:` or `projects:` → Projects
• `idea:` or `ideas:` → Ideas
• `admin:` or `task:` → Admin tasks
• `vocab:` or `word:` → Vocabulary

*Examples:*
```
person: Met Sarah at conference, works at Acme Corp
project: Build landing page - finish hero section first
idea: What if we added AI search to the app?
admin: Pick up dry cleaning Friday
vocab: Sonder - the realization that each passerby has a life as vivid as your own
Call John tomorrow about the proposal
```

*Corrections:*
If something gets filed wrong, reply in its thread with:
`fix: [correct destination]` (or `fix: delete` to discard it)

Example: `fix: idea` to reclassify as an idea"""
