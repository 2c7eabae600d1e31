"""
Reply Resolver

Responsibility: map one line of user text to one reply string.
Nothing more.

Does NOT:
- Keep session history (stateless, safe to call concurrently)
- Raise on unmatched input (always returns a string)
- Learn or adapt (rule tables are read-only after load)

Precedence:
1. Empty after normalization -> DIDNT_CATCH_REPLY
2. Exact trigger match
3. First trigger (declaration order) contained in the text
4. "time" / "date" -> current wall-clock value, locale formatted
5. Table default reply, else DEFAULT_REPLY
"""

from datetime import datetime
from typing import Callable

from simplebot.rules import RuleTable, normalize

DIDNT_CATCH_REPLY = "Sorry, I didn't catch that."
DEFAULT_REPLY = "Sorry, I am a simple bot. I did not understand what you mean."


def resolve(raw_text: str, rules: RuleTable, now: Callable[[], datetime] = datetime.now) -> str:
    norm = normalize(raw_text)
    if not norm:
        return DIDNT_CATCH_REPLY

    exact = rules.exact(norm)
    if exact is not None:
        return exact

    for rule in rules:
        if rule.trigger in norm:
            return rule.response

    # %X / %x follow LC_TIME; entry points adopt the user locale via configure_locale()
    if norm == "time":
        return f"Current time is {now().strftime('%X')}"
    if norm == "date":
        return f"Today's date is {now().strftime('%x')}"

    return rules.default_reply or DEFAULT_REPLY


class ReplyResolver:
    """Resolver bound to one rule table (one deployable profile)."""

    def __init__(self, rules: RuleTable, now: Callable[[], datetime] = datetime.now):
        self.rules = rules
        self._now = now

    def __call__(self, raw_text: str) -> str:
        return resolve(raw_text, self.rules, now=self._now)
