"""SimpleBot version registry.

Single source of truth for runtime versioning.
"""

CURRENT_VERSION = "2.0.0"
