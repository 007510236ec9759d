"""Defaults for the generation pipeline.

These are the values the generation service falls back to when the
runtime configuration does not override them.

Environment Variables:
    ANTHROPIC_MODEL: Claude model used by the default provider.
        Defaults to "claude-sonnet-4-20250514".
"""

import os

# Default model - can be overridden via ANTHROPIC_MODEL env var
DEFAULT_MODEL = "claude-sonnet-4-20250514"

DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TEMPERATURE = 0.1

# Prior turns replayed as context when continuing without a previous statement
DEFAULT_HISTORY_TURNS = 3

# Markers that introduce the explanation line in model output
EXPLANATION_MARKERS = ("explanation", "note")


def get_model() -> str:
    """Get the Claude model to use for generation.

    Reads from ANTHROPIC_MODEL environment variable, falling back to
    the default Sonnet model if not set.

    Returns:
        Claude model identifier string.
    """
    return os.environ.get("ANTHROPIC_MODEL", DEFAULT_MODEL)
