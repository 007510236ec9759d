"""Deterministic extraction of a statement and explanation from model text.

Model output is untrusted free text. These functions never raise: when no
recognizable statement is present the statement is returned as an empty
string, which the validator always rejects.
"""

import re

from src.text2sql.models.generation import ParsedOutput
from src.text2sql.models.schema import DatabaseFamily, DatabaseType
from src.text2sql.nl_engine.config import EXPLANATION_MARKERS
from src.text2sql.nl_engine.dialects import (
    REDIS_READ_COMMAND_SET,
    REDIS_WRITE_COMMANDS,
    get_dialect,
)

__all__ = [
    "parse_relational_output",
    "parse_key_value_output",
    "parse_model_output",
    "extract_explanation",
]

FENCE = "```"

# "Explanation: ..." / "Note: ..." with ASCII or full-width colon
_MARKERS = "|".join(re.escape(marker) for marker in EXPLANATION_MARKERS)
_EXPLANATION_PATTERN = re.compile(rf"^(?:{_MARKERS})\s*[:：]\s*(.*)$", re.IGNORECASE)
_MARKER_PATTERN = re.compile(rf"^(?:{_MARKERS})\b", re.IGNORECASE)

_KNOWN_KEY_VALUE_COMMANDS = REDIS_READ_COMMAND_SET | REDIS_WRITE_COMMANDS


def _is_marker_line(line: str) -> bool:
    return bool(_MARKER_PATTERN.match(line))


def _fence_tag(line: str) -> tuple[str, str]:
    """Split an opening fence line into (tag, trailing content)."""
    rest = line[len(FENCE):].strip()
    if not rest:
        return "", ""
    tag, _, remainder = rest.partition(" ")
    return tag.lower(), remainder.strip()


def _collect_fenced(lines: list[str], start: int, first: str) -> list[str]:
    """Collect stripped lines after an opening fence up to the closing one."""
    collected = [first] if first and first != "`" else []
    for line in lines[start + 1:]:
        stripped = line.strip()
        if stripped.startswith(FENCE):
            break
        collected.append(stripped)
    return collected


def extract_explanation(text: str) -> str:
    """Return the text after the first explanation marker line, or ""."""
    for line in text.splitlines():
        match = _EXPLANATION_PATTERN.match(line.strip())
        if match:
            return match.group(1).strip()
    return ""


def _join(lines: list[str]) -> str:
    return "\n".join(line for line in lines if line).strip()


def parse_relational_output(
    text: str,
    fence_tags: tuple[str, ...] = ("sql",),
) -> ParsedOutput:
    """Extract a SQL statement from model output.

    A fenced block tagged with one of ``fence_tags`` wins. Otherwise the
    first line starting with SELECT is taken together with the following
    lines up to a blank line, a fence or an explanation marker. One
    trailing semicolon is stripped.

    Example:
        >>> parse_relational_output("SELECT * FROM users;\\nExplanation: all users")
        ParsedOutput(statement='SELECT * FROM users', explanation='all users')
    """
    text = text or ""
    lines = text.splitlines()
    tags = {tag.lower() for tag in fence_tags}

    collected: list[str] = []
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith(FENCE):
            tag, first = _fence_tag(stripped)
            if tag in tags:
                collected = _collect_fenced(lines, index, first)
                break

    if not collected:
        for line in lines:
            stripped = line.strip()
            if not collected:
                if stripped.upper().startswith("SELECT"):
                    collected.append(stripped)
                continue
            if not stripped or stripped.startswith(FENCE) or _is_marker_line(stripped):
                break
            collected.append(stripped)

    statement = _join(collected)
    if statement.endswith(";"):
        statement = statement[:-1].rstrip()
    return ParsedOutput(statement=statement, explanation=extract_explanation(text))


def _is_command_line(line: str) -> bool:
    parts = line.split()
    return bool(parts) and parts[0].upper() in _KNOWN_KEY_VALUE_COMMANDS


def parse_key_value_output(text: str) -> ParsedOutput:
    """Extract a block of key-value commands from model output.

    A fenced block tagged ``redis`` wins, then an untagged fence whose first
    line is a known command. Otherwise consecutive lines starting with a
    known command are collected, stopping at a blank line, a non-command
    line or an explanation marker.
    """
    text = text or ""
    lines = text.splitlines()

    collected: list[str] = []
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped.startswith(FENCE):
            continue
        tag, first = _fence_tag(stripped)
        if tag == "redis":
            collected = _collect_fenced(lines, index, first)
            break
        inline = stripped[len(FENCE):].strip()
        if tag and _is_command_line(inline):
            # Fence opened with the command on the same line
            collected = _collect_fenced(lines, index, inline)
            break
        if not tag:
            body = _collect_fenced(lines, index, "")
            non_empty = [entry for entry in body if entry]
            if non_empty and _is_command_line(non_empty[0]):
                collected = body
                break

    if not collected:
        for line in lines:
            stripped = line.strip()
            if not collected:
                if _is_command_line(stripped):
                    collected.append(stripped)
                continue
            if not stripped or _is_marker_line(stripped) or not _is_command_line(stripped):
                break
            collected.append(stripped)

    return ParsedOutput(statement=_join(collected), explanation=extract_explanation(text))


def parse_model_output(text: str, db_type: DatabaseType) -> ParsedOutput:
    """Dispatch to the parser for the backend's family."""
    rules = get_dialect(db_type)
    if rules.family is DatabaseFamily.KEY_VALUE:
        return parse_key_value_output(text)
    return parse_relational_output(text, fence_tags=rules.fence_tags)
