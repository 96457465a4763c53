import pytest

from fuelind.orchestration.utils import backoff_delay, bytes_to_hex, hex_to_bytes, iter_strides, parse_u64


def test_backoff_delay_doubles_and_caps() -> None:
    assert [backoff_delay(n, 1.0, 10.0) for n in range(0, 7)] == [0.0, 1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


def test_hex_round_trip_edges() -> None:
    assert hex_to_bytes("0xBEEF") == b"\xbe\xef"
    assert hex_to_bytes("beef") == b"\xbe\xef"
    assert hex_to_bytes("0x") == b""
    assert hex_to_bytes(None) is None
    assert bytes_to_hex(b"\x00\x01") == "0x0001"
    assert bytes_to_hex(None) is None


def test_parse_u64() -> None:
    assert parse_u64("12195664052085097644") == 12195664052085097644
    assert parse_u64("0x10") == 16
    assert parse_u64(7) == 7
    assert parse_u64(None) is None
    with pytest.raises(ValueError):
        parse_u64(str(2**64))
    with pytest.raises(ValueError):
        parse_u64(-1)


@pytest.mark.parametrize(
    "a,b,step,expected",
    [
        (0, 5, 2, [(0, 1), (2, 3), (4, 5)]),
        (10, 12, 5, [(10, 12)]),
        (3, 3, 1, [(3, 3)]),
        (5, 4, 3, []),
    ],
)
def test_iter_strides(a: int, b: int, step: int, expected: list) -> None:
    assert list(iter_strides(a, b, step)) == expected
