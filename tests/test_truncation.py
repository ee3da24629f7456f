"""Tests for chainagent.tool.truncation."""

from __future__ import annotations

from chainagent.tool.truncation import MAX_BYTES, MAX_LINES, strip_ansi, truncate_output


# ---------------------------------------------------------------------------
# truncate_output
# ---------------------------------------------------------------------------


class TestTruncateOutput:
    def test_empty_string(self) -> None:
        assert truncate_output("") == ""

    def test_within_limits(self) -> None:
        text = "hello\nworld\n"
        assert truncate_output(text) == text

    def test_over_line_limit_keeps_tail(self) -> None:
        lines = [f"line {i}" for i in range(MAX_LINES + 500)]
        result = truncate_output("\n".join(lines))
        assert result.startswith("[Output truncated: 500 lines skipped.")
        assert f"line {MAX_LINES + 499}" in result
        assert "line 499\n" not in result

    def test_over_byte_limit(self) -> None:
        text = "x" * (MAX_BYTES + 1000)
        result = truncate_output(text)
        assert "1000 bytes skipped" in result
        assert len(result.encode()) <= MAX_BYTES + 200

    def test_custom_limits(self) -> None:
        result = truncate_output("a\nb\nc\nd", max_lines=2)
        assert result.endswith("c\nd")
        assert "2 lines skipped" in result

    def test_exact_line_limit(self) -> None:
        """Exactly at the limit should NOT truncate."""
        text = "\n".join(f"line {i}" for i in range(MAX_LINES))
        assert truncate_output(text) == text


class TestStripAnsi:
    def test_removes_colors(self) -> None:
        assert strip_ansi("\x1b[31mred\x1b[0m plain") == "red plain"

    def test_plain_text_untouched(self) -> None:
        assert strip_ansi("nothing here") == "nothing here"
