"""
Reply rule tables.

A rule table is an ordered tuple of (trigger, response) pairs. Declaration
order is match priority for substring matching, so it is fixed at load time
and never re-sorted. Triggers are stored normalized.

File format (JSON):
    {
      "default_reply": "optional fallback text",
      "rules": {"hello": "Hello! ...", "who are you": "..."}
    }

A bare object of trigger -> response pairs is also accepted.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Tuple, Union

logger = logging.getLogger("SIMPLEBOT.Rules")

# ASCII word characters only; accented letters are stripped like punctuation
_NON_WORD = re.compile(r"[^A-Za-z0-9_\s]")


class RuleTableError(Exception):
    """Rule table file could not be read or has the wrong shape."""


def normalize(text: str) -> str:
    """Lower-case, strip everything that is not an ASCII word char or whitespace, trim."""
    return _NON_WORD.sub("", text.lower()).strip()


@dataclass(frozen=True)
class Rule:
    trigger: str
    response: str


@dataclass(frozen=True)
class RuleTable:
    rules: Tuple[Rule, ...]
    default_reply: Optional[str] = None
    name: str = "rules"

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)

    def exact(self, normalized: str) -> Optional[str]:
        for rule in self.rules:
            if rule.trigger == normalized:
                return rule.response
        return None

    @property
    def triggers(self) -> Tuple[str, ...]:
        return tuple(r.trigger for r in self.rules)

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[Tuple[str, str]],
        default_reply: Optional[str] = None,
        name: str = "rules",
    ) -> "RuleTable":
        """
        Build a table from (trigger, response) pairs in declaration order.

        Triggers that collide after normalization keep the position of the
        first declaration and the response of the last one. Triggers that
        normalize to nothing are dropped.
        """
        ordered = {}
        for trigger, response in pairs:
            if not isinstance(trigger, str) or not isinstance(response, str):
                raise RuleTableError(f"[{name}] trigger and response must be strings: {trigger!r}")
            key = normalize(trigger)
            if not key:
                logger.warning(f"[{name}] Dropping trigger {trigger!r}: empty after normalization")
                continue
            if key in ordered:
                logger.warning(f"[{name}] Duplicate trigger {key!r}: later response wins")
            ordered[key] = response
        return cls(
            rules=tuple(Rule(k, v) for k, v in ordered.items()),
            default_reply=default_reply,
            name=name,
        )


def parse_rule_table(data: Union[Mapping, list], name: str = "rules") -> RuleTable:
    """Build a RuleTable from decoded JSON."""
    default_reply = None
    rules = data
    if isinstance(data, Mapping) and "rules" in data:
        rules = data["rules"]
        default_reply = data.get("default_reply")
        if default_reply is not None and not isinstance(default_reply, str):
            raise RuleTableError(f"[{name}] default_reply must be a string")

    if isinstance(rules, Mapping):
        pairs = list(rules.items())
    elif isinstance(rules, list):
        try:
            pairs = [(item[0], item[1]) for item in rules]
        except (TypeError, IndexError, KeyError):
            raise RuleTableError(f"[{name}] rule list entries must be [trigger, response] pairs")
    else:
        raise RuleTableError(f"[{name}] rules must be an object or a list of pairs")

    return RuleTable.from_pairs(pairs, default_reply=default_reply, name=name)


def load_rule_table(path: Union[str, Path]) -> RuleTable:
    """
    Load a rule table from disk. Called once at startup.

    Raises:
        RuleTableError: file missing, not JSON, or wrong shape
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise RuleTableError(f"Cannot load rule table {path}: {e}") from e

    table = parse_rule_table(data, name=path.stem)
    logger.info(f"[Rules] Loaded {len(table)} rules from {path.name}")
    return table
