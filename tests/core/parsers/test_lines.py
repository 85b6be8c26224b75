"""Tests for LineReassembler."""

import pytest

from conduit.core.parsers import LineReassembler

STREAM = '{"type": "system", "subtype": "init"}\n{"type": "result"}\n\n{"type": "assis'


def _reassemble(chunks):
    lines = LineReassembler()
    records = []
    for chunk in chunks:
        records.extend(lines.feed(chunk))
    return records, lines.flush()


class TestLineReassembler:
    """Tests for chunk to record reassembly."""

    def test_single_chunk(self):
        """Complete records come back without delimiters."""
        lines = LineReassembler()
        assert lines.feed('{"a": 1}\n{"b": 2}\n') == ['{"a": 1}', '{"b": 2}']
        assert lines.pending == ""

    def test_partial_record_is_buffered(self):
        """A record split across chunks is returned once complete."""
        lines = LineReassembler()
        assert lines.feed('{"type": "sys') == []
        assert lines.pending == '{"type": "sys'
        assert lines.feed('tem"}\n') == ['{"type": "system"}']
        assert lines.pending == ""

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 16, 1000])
    def test_chunking_does_not_change_records(self, size):
        """Any chunking of the same stream yields the same records."""
        expected, expected_tail = _reassemble([STREAM])
        chunks = [STREAM[i : i + size] for i in range(0, len(STREAM), size)]

        records, tail = _reassemble(chunks)

        assert records == expected
        assert tail == expected_tail == '{"type": "assis'

    def test_empty_lines_are_records(self):
        """Blank lines are kept; skipping them is the decoder's job."""
        lines = LineReassembler()
        assert lines.feed("a\n\nb\n") == ["a", "", "b"]

    def test_bytes_split_inside_multibyte_character(self):
        """UTF-8 sequences cut between chunks decode correctly."""
        data = '{"text": "café ✓"}\n'.encode()
        cut = data.index("✓".encode()) + 1
        lines = LineReassembler()

        assert lines.feed(data[:cut]) == []
        assert lines.feed(data[cut:]) == ['{"text": "café ✓"}']

    def test_flush_returns_trailing_record(self):
        """flush hands back an unterminated final record once."""
        lines = LineReassembler()
        lines.feed('{"type": "result"}')
        assert lines.flush() == '{"type": "result"}'
        assert lines.flush() is None

    def test_flush_empty(self):
        """flush on an empty buffer returns None."""
        assert LineReassembler().flush() is None

    def test_reset_drops_buffer(self):
        """reset discards the partial record."""
        lines = LineReassembler()
        lines.feed("partial")
        lines.reset()
        assert lines.pending == ""
        assert lines.feed("next\n") == ["next"]
