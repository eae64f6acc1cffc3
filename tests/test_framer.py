"""Tests for header block and line framing."""

import pytest

from pbxgate.protocol.framer import (
    GatewayFramer,
    HeaderBlock,
    MessageFramer,
    RawLine,
    find_block_end,
    parse_header_block,
)

GREETING = (
    b"agi_network_script: app300\n"
    b"agi_channel: SIP/100-00000001\n"
    b"agi_callerid: 100\n"
    b"\n"
)


class TestParseHeaderBlock:
    """Tests for parse_header_block."""

    def test_trims_key_and_value(self):
        """Test that whitespace around key and value is removed."""
        assert parse_header_block("Foo:   bar  ") == {"Foo": "bar"}

    def test_line_without_colon_is_dropped(self):
        """Test that colon-less lines contribute nothing."""
        assert parse_header_block("just noise\nKey: value") == {"Key": "value"}

    def test_empty_key_is_dropped(self):
        """Test that a key trimming to nothing is discarded."""
        assert parse_header_block("  : value\nA: b") == {"A": "b"}

    def test_splits_on_first_colon_only(self):
        """Test that values may contain colons."""
        assert parse_header_block("Channel: SIP/100:5060") == {"Channel": "SIP/100:5060"}

    def test_keys_are_case_sensitive(self):
        """Test that keys differing in case are distinct."""
        assert parse_header_block("Event: a\nevent: b") == {"Event": "a", "event": "b"}

    def test_crlf_lines(self):
        """Test that carriage returns are trimmed with the value."""
        assert parse_header_block("Response: Success\r\nActionID: 1\r") == {
            "Response": "Success",
            "ActionID": "1",
        }

    def test_empty_value(self):
        """Test that a key with no value maps to an empty string."""
        assert parse_header_block("Key:") == {"Key": ""}


class TestFindBlockEnd:
    """Tests for terminator search."""

    def test_no_terminator(self):
        assert find_block_end("A: b\n") == (-1, 0)

    def test_lf_terminator(self):
        assert find_block_end("A: b\n\nrest") == (4, 2)

    def test_crlf_terminator(self):
        assert find_block_end("A: b\r\n\r\nrest") == (4, 4)

    def test_earliest_terminator_wins(self):
        """Test that the first block ends at the earliest terminator of either kind."""
        assert find_block_end("A: b\r\n\r\nC: d\n\n") == (4, 4)


class TestMessageFramer:
    """Tests for the manager-mode framer."""

    @pytest.fixture
    def framer(self):
        return MessageFramer()

    def test_single_block(self, framer):
        """Test one complete block in one chunk."""
        blocks = framer.feed(b"Event: Shutdown\r\nShutdown: Cleanly\r\n\r\n")
        assert len(blocks) == 1
        assert blocks[0].fields == {"Event": "Shutdown", "Shutdown": "Cleanly"}

    def test_several_blocks_in_one_chunk(self, framer):
        """Test that every complete block is emitted before returning."""
        blocks = framer.feed(b"A: 1\r\n\r\nB: 2\n\nC: 3\r\n\r\n")
        assert [block.fields for block in blocks] == [{"A": "1"}, {"B": "2"}, {"C": "3"}]

    def test_partial_block_is_retained(self, framer):
        """Test that an unterminated block is kept for later."""
        assert framer.feed(b"A: 1\r\nB: 2\r\n") == []
        assert framer.pending == "A: 1\r\nB: 2\r\n"
        blocks = framer.feed(b"\r\n")
        assert blocks[0].fields == {"A": "1", "B": "2"}
        assert framer.pending == ""

    def test_empty_chunk_is_noop(self, framer):
        """Test that feeding nothing emits nothing."""
        assert framer.feed(b"") == []
        assert framer.pending == ""

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 7])
    def test_block_split_across_chunks(self, framer, size):
        """Test that arbitrary chunking, including inside the terminator, yields one block."""
        data = b"Response: Success\r\nActionID: abc\r\nMessage: Pong\r\n\r\n"
        blocks = []
        for offset in range(0, len(data), size):
            blocks.extend(framer.feed(data[offset:offset + size]))
        assert len(blocks) == 1
        assert blocks[0].fields == {"Response": "Success", "ActionID": "abc", "Message": "Pong"}

    def test_terminator_split_at_seam(self, framer):
        """Test a CRLF terminator split exactly in half."""
        assert framer.feed(b"Event: Reload\r\n\r") == []
        blocks = framer.feed(b"\n")
        assert len(blocks) == 1

    def test_utf8_split_across_chunks(self, framer):
        """Test that a multi-byte character split between chunks is decoded."""
        data = "CallerIDName: Zoë\r\n\r\n".encode("utf-8")
        split = data.index("ë".encode("utf-8")) + 1
        assert framer.feed(data[:split]) == []
        blocks = framer.feed(data[split:])
        assert blocks[0].fields == {"CallerIDName": "Zoë"}

    def test_block_without_fields(self, framer):
        """Test that a block of noise is still emitted, empty."""
        blocks = framer.feed(b"Asterisk Call Manager/5.0\r\nnoise\r\n\r\n")
        assert blocks == [HeaderBlock(fields={}, raw="Asterisk Call Manager/5.0\r\nnoise")]

    def test_deterministic(self):
        """Test that identical input gives identical events in fresh framers."""
        data = b"A: 1\r\n\r\nB: 2\n\nC: partial"
        assert MessageFramer().feed(data) == MessageFramer().feed(data)


class TestGatewayFramer:
    """Tests for the gateway-mode framer."""

    @pytest.fixture
    def framer(self):
        return GatewayFramer()

    def test_greeting_then_lines(self, framer):
        """Test that the first block is headers and the rest are lines."""
        events = framer.feed(GREETING + b"200 result=0\n200 result=49 (abc)\n")
        assert isinstance(events[0], HeaderBlock)
        assert events[0].fields["agi_network_script"] == "app300"
        assert events[1:] == [RawLine("200 result=0"), RawLine("200 result=49 (abc)")]
        assert framer.in_body

    def test_header_mode_only_once(self, framer):
        """Test that a blank line after the greeting is a line, not a second block."""
        events = framer.feed(GREETING + b"Key: value\n\n")
        assert [type(event) for event in events] == [HeaderBlock, RawLine, RawLine]
        assert events[1] == RawLine("Key: value")
        assert events[2] == RawLine("")

    def test_greeting_split_across_chunks(self, framer):
        """Test that a greeting split at every byte is emitted once."""
        events = []
        for index in range(len(GREETING)):
            events.extend(framer.feed(GREETING[index:index + 1]))
        assert len(events) == 1
        assert events[0].fields["agi_callerid"] == "100"

    def test_partial_line_is_retained(self, framer):
        """Test that an unterminated line waits for its newline."""
        framer.feed(GREETING)
        assert framer.feed(b"200 res") == []
        assert framer.feed(b"ult=0\n") == [RawLine("200 result=0")]

    def test_crlf_lines_are_stripped(self, framer):
        """Test that a trailing carriage return is removed from lines."""
        events = framer.feed(b"agi_request: test\r\n\r\nHANGUP\r\n")
        assert events[1] == RawLine("HANGUP")

    def test_lines_before_greeting_terminator_wait(self, framer):
        """Test that nothing is emitted before the greeting completes."""
        assert framer.feed(b"agi_request: test\n200 result=0\n") == []
        assert not framer.in_body

    def test_reset(self, framer):
        """Test that reset returns the framer to header mode."""
        framer.feed(GREETING)
        framer.reset()
        assert not framer.in_body
        assert framer.pending == ""
