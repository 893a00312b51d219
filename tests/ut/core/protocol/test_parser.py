import pytest

from respwire.core.errors import (
    DepthExceeded,
    InvalidInteger,
    InvalidLength,
    LengthTooLarge,
    MalformedLineTerminator,
    UnexpectedEof,
    UnknownTypeMarker,
)
from respwire.core.models.config import CodecConfig
from respwire.core.models.value import (
    NULL_ARRAY,
    NULL_BULK,
    Array,
    BulkString,
    Error,
    Integer,
    SimpleString,
)
from respwire.core.protocol.parser import NEED_MORE, Parser


def parse_all(data: bytes, parser: Parser | None = None):
    parser = parser or Parser()
    parser.feed(data)
    parser.feed_eof()
    return list(parser)


@pytest.mark.ut
@pytest.mark.parametrize(
    "data, expected",
    [
        (b"+OK\r\n", SimpleString("OK")),
        (b"+\r\n", SimpleString("")),
        (b"-ERR unknown command\r\n", Error("ERR unknown command")),
        (b":0\r\n", Integer(0)),
        (b":-42\r\n", Integer(-42)),
        (b":9223372036854775807\r\n", Integer(9223372036854775807)),
        (b"$5\r\nhello\r\n", BulkString(b"hello")),
        (b"$0\r\n\r\n", BulkString(b"")),
        (b"$-1\r\n", NULL_BULK),
        (b"*0\r\n", Array(())),
        (b"*-1\r\n", NULL_ARRAY),
        (b"*2\r\n+OK\r\n:12\r\n", Array((SimpleString("OK"), Integer(12)))),
    ],
)
def test_parses_each_kind(parser, data, expected):
    parser.feed(data)
    assert parser.get_value() == expected
    assert not parser.has_pending


@pytest.mark.ut
def test_bulk_string_is_binary_safe(parser):
    parser.feed(b"$6\r\na\r\nb\x00c\r\n")
    assert parser.get_value() == BulkString(b"a\r\nb\x00c")


@pytest.mark.ut
def test_null_bulk_and_empty_bulk_differ(parser):
    parser.feed(b"$-1\r\n$0\r\n\r\n")
    null, empty = parser.get_value(), parser.get_value()
    assert null == NULL_BULK
    assert empty == BulkString(b"")
    assert null != empty


@pytest.mark.ut
def test_nested_arrays(parser):
    parser.feed(b"*3\r\n:1\r\n*1\r\n+a\r\n$-1\r\n")
    assert parser.get_value() == Array((
        Integer(1),
        Array((SimpleString("a"),)),
        NULL_BULK,
    ))


@pytest.mark.ut
def test_arrays_closing_together(parser):
    parser.feed(b"*1\r\n*1\r\n*1\r\n:7\r\n")
    assert parser.get_value() == Array((Array((Array((Integer(7),)),)),))


@pytest.mark.ut
def test_empty_array_inside_array(parser):
    parser.feed(b"*2\r\n*0\r\n*-1\r\n")
    assert parser.get_value() == Array((Array(()), NULL_ARRAY))


@pytest.mark.ut
def test_non_utf8_simple_string_round_trips(parser):
    parser.feed(b"+caf\xe9\r\n")
    value = parser.get_value()
    assert isinstance(value, SimpleString)
    assert value.value.encode("utf-8", "surrogateescape") == b"caf\xe9"


@pytest.mark.ut
@pytest.mark.parametrize("data", [b":12a\r\n", b":\r\n", b":+1\r\n", b": 1\r\n", b":1.5\r\n"])
def test_invalid_integer(parser, data):
    parser.feed(data)
    with pytest.raises(InvalidInteger):
        parser.get_value()


@pytest.mark.ut
def test_integer_out_of_range(parser):
    parser.feed(b":9223372036854775808\r\n")
    with pytest.raises(InvalidInteger):
        parser.get_value()


@pytest.mark.ut
@pytest.mark.parametrize("data", [b"$x\r\n", b"*\r\n"])
def test_invalid_length_text(parser, data):
    parser.feed(data)
    with pytest.raises(InvalidInteger):
        parser.get_value()


@pytest.mark.ut
@pytest.mark.parametrize("data", [b"$-2\r\n", b"*-5\r\n"])
def test_negative_length_below_null(parser, data):
    parser.feed(data)
    with pytest.raises(InvalidLength):
        parser.get_value()


@pytest.mark.ut
def test_unknown_type_marker(parser):
    parser.feed(b"?abc\r\n")
    with pytest.raises(UnknownTypeMarker) as info:
        parser.get_value()
    assert info.value.offset == 0


@pytest.mark.ut
def test_unknown_marker_detected_without_terminator(parser):
    parser.feed(b"!")
    with pytest.raises(UnknownTypeMarker):
        parser.get_value()


@pytest.mark.ut
def test_unknown_marker_inside_array(parser):
    parser.feed(b"*2\r\n:1\r\n%1\r\n")
    with pytest.raises(UnknownTypeMarker) as info:
        parser.get_value()
    assert info.value.offset == 8


@pytest.mark.ut
@pytest.mark.parametrize("data", [b"+OK\n", b"+OK\rX", b":1\r1\r\n"])
def test_malformed_line_terminator(parser, data):
    parser.feed(data)
    with pytest.raises(MalformedLineTerminator):
        parser.get_value()


@pytest.mark.ut
def test_bulk_payload_longer_than_declared(parser):
    parser.feed(b"$3\r\nabcd\r\n")
    with pytest.raises(MalformedLineTerminator):
        parser.get_value()


@pytest.mark.ut
def test_lone_cr_then_eof_is_unexpected_eof(parser):
    parser.feed(b"+OK\r")
    assert parser.get_value() is NEED_MORE
    parser.feed_eof()
    with pytest.raises(UnexpectedEof):
        parser.get_value()


@pytest.mark.ut
def test_truncated_bulk_string(parser):
    parser.feed(b"$5\r\nabc")
    parser.feed_eof()
    with pytest.raises(UnexpectedEof) as info:
        parser.get_value()
    assert info.value.offset == 7


@pytest.mark.ut
def test_truncated_array(parser):
    parser.feed(b"*3\r\n:1\r\n:2\r\n")
    assert parser.get_value() is NEED_MORE
    parser.feed_eof()
    with pytest.raises(UnexpectedEof):
        parser.get_value()


@pytest.mark.ut
def test_clean_eof_between_values(parser):
    parser.feed(b":1\r\n")
    parser.feed_eof()
    assert parser.get_value() == Integer(1)
    assert parser.get_value() is NEED_MORE


@pytest.mark.ut
def test_need_more_is_not_an_error(parser):
    assert parser.get_value() is NEED_MORE
    parser.feed(b"$5\r\nhel")
    assert parser.get_value() is NEED_MORE
    assert parser.has_pending
    parser.feed(b"lo\r\n")
    assert parser.get_value() == BulkString(b"hello")
    assert not NEED_MORE


@pytest.mark.ut
def test_byte_by_byte_matches_whole_input():
    data = b"+OK\r\n"
    parser = Parser()
    results = []
    for i in range(len(data)):
        parser.feed(data[i:i + 1])
        results.append(parser.get_value())

    assert results[:-1] == [NEED_MORE] * (len(data) - 1)
    assert results[-1] == SimpleString("OK")
    assert results[-1] == parse_all(data)[0]


@pytest.mark.ut
def test_every_split_point_yields_same_values():
    data = (
        b"*4\r\n$3\r\nSET\r\n$3\r\nkey\r\n$5\r\nva\r\nl\r\n*2\r\n:-1\r\n$-1\r\n"
        b"-ERR oops\r\n+PONG\r\n"
    )
    expected = parse_all(data)
    assert len(expected) == 3

    for split in range(1, len(data)):
        parser = Parser()
        parser.feed(data[:split])
        got = list(parser)
        parser.feed(data[split:])
        got.extend(parser)
        assert got == expected, split


@pytest.mark.ut
def test_consumes_exactly_one_value(parser):
    parser.feed(b":1\r\n:2")
    assert parser.get_value() == Integer(1)
    assert parser.offset == 4
    assert parser.has_pending
    assert parser.get_value() is NEED_MORE
    parser.feed(b"\r\n")
    assert parser.get_value() == Integer(2)
    assert parser.offset == 8


@pytest.mark.ut
def test_iterates_pipelined_values(parser):
    parser.feed(b"+a\r\n+b\r\n+c\r\n+d")
    assert [v.value for v in parser] == ["a", "b", "c"]
    assert parser.has_pending


@pytest.mark.ut
def test_error_offsets_are_absolute_across_chunks(parser):
    parser.feed(b"+OK\r\n")
    assert parser.get_value() == SimpleString("OK")
    parser.feed(b":1x\r\n")
    with pytest.raises(InvalidInteger) as info:
        parser.get_value()
    assert info.value.offset == 5


@pytest.mark.ut
def test_parser_is_reset_after_error(parser):
    parser.feed(b"?bad\r\n")
    with pytest.raises(UnknownTypeMarker):
        parser.get_value()

    assert not parser.has_pending
    parser.feed(b"+OK\r\n")
    assert parser.get_value() == SimpleString("OK")


@pytest.mark.ut
def test_reset_discards_partial_state(parser):
    parser.feed(b"*2\r\n:1\r\n")
    assert parser.get_value() is NEED_MORE
    parser.reset()
    parser.feed(b":5\r\n")
    assert parser.get_value() == Integer(5)


@pytest.mark.ut
def test_bulk_length_over_limit(small_config):
    parser = Parser(small_config)
    parser.feed(b"$17\r\n")
    with pytest.raises(LengthTooLarge):
        parser.get_value()


@pytest.mark.ut
def test_bulk_length_at_limit(small_config):
    parser = Parser(small_config)
    parser.feed(b"$16\r\n" + b"x" * 16 + b"\r\n")
    assert parser.get_value() == BulkString(b"x" * 16)


@pytest.mark.ut
def test_huge_length_prefix_is_rejected_before_allocation(parser):
    parser.feed(b"$9223372036854775807\r\n")
    with pytest.raises(LengthTooLarge):
        parser.get_value()


@pytest.mark.ut
def test_array_length_over_limit(small_config):
    parser = Parser(small_config)
    parser.feed(b"*5\r\n")
    with pytest.raises(LengthTooLarge):
        parser.get_value()


@pytest.mark.ut
def test_line_over_limit_without_terminator(small_config):
    parser = Parser(small_config)
    parser.feed(b"+" + b"a" * 9)
    with pytest.raises(LengthTooLarge):
        parser.get_value()


@pytest.mark.ut
def test_line_over_limit_with_terminator(small_config):
    parser = Parser(small_config)
    parser.feed(b"+" + b"a" * 9 + b"\r\n")
    with pytest.raises(LengthTooLarge):
        parser.get_value()


@pytest.mark.ut
def test_buffer_over_limit(small_config):
    parser = Parser(small_config)
    with pytest.raises(LengthTooLarge):
        parser.feed(b"+" + b"a" * 64)


@pytest.mark.ut
def test_depth_at_limit(small_config):
    parser = Parser(small_config)
    parser.feed(b"*1\r\n*1\r\n*1\r\n:1\r\n")
    assert parser.get_value() == Array((Array((Array((Integer(1),)),)),))


@pytest.mark.ut
def test_depth_over_limit(small_config):
    parser = Parser(small_config)
    parser.feed(b"*1\r\n*1\r\n*1\r\n*0\r\n")
    with pytest.raises(DepthExceeded):
        parser.get_value()


@pytest.mark.ut
def test_deep_nesting_does_not_recurse():
    depth = 5000
    parser = Parser(CodecConfig(max_depth=depth))
    parser.feed(b"*1\r\n" * depth + b":1\r\n")
    value = parser.get_value()

    for _ in range(depth):
        assert isinstance(value, Array)
        value = value.items[0]
    assert value == Integer(1)


@pytest.mark.ut
def test_line_scan_resumes_where_it_stopped(parser):
    parser.feed(b"+" + b"a" * 1000)
    assert parser.get_value() is NEED_MORE
    assert parser._scan == 1001

    parser.feed(b"b" * 10)
    assert parser.get_value() is NEED_MORE
    assert parser._scan == 1011

    parser.feed(b"\r\n")
    assert parser.get_value() == SimpleString("a" * 1000 + "b" * 10)


@pytest.mark.ut
def test_line_at_limit_is_accepted_at_every_split_point(small_config):
    data = b"+" + b"a" * small_config.max_line_length + b"\r\n"

    for split in range(1, len(data)):
        parser = Parser(small_config)
        parser.feed(data[:split])
        assert parser.get_value() is NEED_MORE, split
        parser.feed(data[split:])
        assert parser.get_value() == SimpleString("a" * 8), split


@pytest.mark.ut
def test_line_over_limit_is_rejected_at_every_split_point(small_config):
    data = b"+" + b"a" * (small_config.max_line_length + 1) + b"\r\n"

    for split in range(1, len(data)):
        parser = Parser(small_config)
        with pytest.raises(LengthTooLarge):
            parser.feed(data[:split])
            parser.get_value()
            parser.feed(data[split:])
            parser.get_value()
