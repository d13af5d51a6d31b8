"""@mention parsing for addressing specific tutors inside free text.

Two token forms are recognised:

- ``@simple-name`` matches an agent's ``name``
- ``@"Quoted Display Name"`` matches an agent's ``display_name``
"""

import re
from typing import List, Sequence

from .state import AgentProfile

# Quoted form first so `@"Socratic Guide"` is not read as a bare `@`.
# The lookbehind keeps e-mail addresses out.
MENTION_PATTERN = re.compile(r'(?<![\w.])@(?:"([^"]+)"|([A-Za-z0-9][\w\-.]*))')

# A token plus the spaces and tabs on either side of it
_MENTION_WITH_BLANKS = re.compile(r"[ \t]*" + MENTION_PATTERN.pattern + r"[ \t]*")


def parse_mentions(text: str, agents: Sequence[AgentProfile]) -> List[AgentProfile]:
    """
    Find the agents addressed in a message.

    Args:
        text: Raw user message
        agents: Known agents to match against

    Returns:
        Distinct matched agents in order of first appearance. Tokens that
        name no known agent are ignored.
    """
    if not text or "@" not in text:
        return []

    by_name = {agent.name.lower(): agent for agent in agents}
    by_display = {agent.display_name.lower(): agent for agent in agents}

    found: List[AgentProfile] = []
    seen = set()
    for match in MENTION_PATTERN.finditer(text):
        quoted, bare = match.group(1), match.group(2)
        if quoted is not None:
            agent = by_display.get(quoted.strip().lower())
        else:
            # Trailing punctuation such as "@beatrice," or "@laila-peer."
            agent = by_name.get(bare.rstrip(".-").lower())
        if agent is not None and agent.id not in seen:
            seen.add(agent.id)
            found.append(agent)

    return found


def _drop_token(match: "re.Match[str]") -> str:
    # A token at either end of a line takes its surrounding blanks with it;
    # mid-line it leaves a single space. Newlines and indentation survive.
    text, start, end = match.string, match.start(), match.end()
    at_line_start = start == 0 or text[start - 1] in "\r\n"
    at_line_end = end == len(text) or text[end] in "\r\n"
    return "" if at_line_start or at_line_end else " "


def strip_mentions(text: str) -> str:
    """Remove every mention token and the blanks around it, keeping line breaks."""
    if not text or "@" not in text:
        return text
    stripped, count = _MENTION_WITH_BLANKS.subn(_drop_token, text)
    if not count:
        return text
    return stripped.strip()
