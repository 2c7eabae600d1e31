import re
from datetime import datetime

from simplebot.config import CLIENT_RULES_PATH
from simplebot.resolver import DEFAULT_REPLY, DIDNT_CATCH_REPLY, ReplyResolver, resolve
from simplebot.rules import RuleTable, load_rule_table

TABLE = RuleTable.from_pairs([
    ("who are you", "identity"),
    ("hello", "greeting"),
    ("hi", "greeting"),
    ("hi there", "exact hi there"),
])


def test_blank_input_is_not_caught():
    assert resolve("", TABLE) == DIDNT_CATCH_REPLY
    assert resolve("   ", TABLE) == DIDNT_CATCH_REPLY
    assert resolve("!!?", TABLE) == DIDNT_CATCH_REPLY


def test_substring_match():
    assert resolve("oh hello friend", TABLE) == "greeting"
    assert resolve("who are you really", TABLE) == "identity"


def test_exact_match_beats_earlier_substring():
    # "hi" is declared first and is a substring, but the exact key wins
    assert resolve("Hi there!", TABLE) == "exact hi there"


def test_first_declared_substring_wins():
    table = RuleTable.from_pairs([("name", "A"), ("your name", "B")])
    assert resolve("what is your name", table) == "A"


def test_unmatched_returns_default():
    assert resolve("quantum chromodynamics", TABLE) == DEFAULT_REPLY


def test_table_default_reply_overrides_fixed_default():
    table = RuleTable.from_pairs([("hello", "hey")], default_reply="not trained")
    assert resolve("zzz", table) == "not trained"


def test_time_uses_current_clock():
    fixed = datetime(2026, 10, 19, 14, 3, 5)
    reply = resolve("Time?", TABLE, now=lambda: fixed)
    assert reply.startswith("Current time is ")
    assert re.search(r"\d{1,2}:\d{2}", reply)


def test_date_reply():
    reply = resolve("date", TABLE)
    assert reply.startswith("Today's date is ")
    assert re.search(r"\d", reply)


def test_time_is_not_cached():
    stamps = iter([datetime(2026, 1, 1, 9, 0, 0), datetime(2026, 1, 1, 10, 30, 0)])
    resolver = ReplyResolver(TABLE, now=lambda: next(stamps))
    assert resolver("time") != resolver("time")


def test_rule_for_time_shadows_dynamic_reply():
    table = RuleTable.from_pairs([("time", "static")])
    assert resolve("time", table) == "static"


def test_client_profile_examples():
    client = load_rule_table(CLIENT_RULES_PATH)
    assert resolve("hi there", client) == client.exact("hi")
    assert resolve("who are you really", client) == client.exact("who are you")
