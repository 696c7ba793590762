import pytest
from logic.parser import format_coord, parse_coord

@pytest.mark.parametrize(
    "text,expected",
    [
        ("a1", (0, 0)),
        ("A1", (0, 0)),
        ("c4", (2, 3)),
        ("j10", (9, 9)),
        (" e 7 ", (4, 6)),
        ("2,3", (2, 3)),
        ("(9, 9)", (9, 9)),
        ("0 5", (0, 5)),
    ],
)
def test_parse_coord_valid(text, expected):
    assert parse_coord(text) == expected

@pytest.mark.parametrize("text", ["k1", "a0", "d11", "", "10,1", "1,10", "a"])
def test_parse_coord_invalid(text):
    assert parse_coord(text) is None

def test_format_round_trip():
    for coord in [(0, 0), (2, 3), (9, 9)]:
        assert parse_coord(format_coord(coord)) == coord
