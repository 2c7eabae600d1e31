"""SimpleBot: rule-based conversational session engine."""

from simplebot.version import CURRENT_VERSION as __version__  # noqa: F401
