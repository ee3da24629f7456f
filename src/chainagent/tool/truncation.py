"""Output truncation: bound all tool output before it reaches the LLM."""

from __future__ import annotations

import re

MAX_LINES = 2000
MAX_BYTES = 50 * 1024  # 50KB

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")


def truncate_output(
    text: str,
    max_lines: int = MAX_LINES,
    max_bytes: int = MAX_BYTES,
) -> str:
    """Truncate tool output to fit within context budget.

    The tail is kept: errors tend to be at the end. A notice at the top says
    how much was dropped.

    Args:
        text: Raw tool output.
        max_lines: Maximum number of lines to keep.
        max_bytes: Maximum bytes to keep.

    Returns:
        Truncated output string.
    """
    if not text:
        return text

    lines = text.split("\n")
    byte_count = len(text.encode("utf-8", errors="replace"))

    if len(lines) <= max_lines and byte_count <= max_bytes:
        return text

    if len(lines) > max_lines:
        kept = lines[-max_lines:]
        skipped = len(lines) - max_lines
    else:
        kept = lines
        skipped = 0

    result = "\n".join(kept)
    result_bytes = result.encode("utf-8", errors="replace")
    if len(result_bytes) > max_bytes:
        # Cut at a safe UTF-8 boundary
        result = result_bytes[-max_bytes:].decode("utf-8", errors="ignore")
        skipped_bytes = byte_count - max_bytes
    else:
        skipped_bytes = 0

    notice_parts = []
    if skipped > 0:
        notice_parts.append(f"{skipped} lines skipped")
    if skipped_bytes > 0:
        notice_parts.append(f"{skipped_bytes} bytes skipped")

    notice = (
        f"[Output truncated: {', '.join(notice_parts)}. "
        f"Total: {len(lines)} lines, {byte_count} bytes]"
    )
    return f"{notice}\n{result}"


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)
