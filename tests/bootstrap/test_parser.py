from datetime import date

import pytest

from indexkv.bootstrap.parser import ParseError, parse_key, parse_options, parse_value


@pytest.mark.parametrize(
    "text, expected",
    [
        ("42", 42),
        ("-5", -5),
        ("3.5", 3.5),
        ("apple", "apple"),
        ("'42'", "42"),
        ("2024-01-01", date(2024, 1, 1)),
        ("[user, 7]", ("user", 7)),
        ("[a, [b, 1]]", ("a", ("b", 1))),
        ("hello world", "hello world"),
    ]
)
def test_parse_key(text, expected):
    assert parse_key(text) == expected


@pytest.mark.parametrize("text", ["", "~", "null"])
def test_parse_key_requires_a_value(text):
    with pytest.raises(ParseError):
        parse_key(text)


def test_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_key("[unclosed")


def test_parse_value():
    assert parse_value("{name: apple, price: 3}") == {"name": "apple", "price": 3}
    assert parse_value("[1, 2]") == [1, 2]
    assert parse_value("false") is False

    with pytest.raises(ParseError):
        parse_value("null")


def test_parse_options():
    assert parse_options([], ("start", "end")) == {}
    assert parse_options(["--start", "1", "--end", "b"], ("start", "end")) == {
        "start": "1",
        "end": "b",
    }


@pytest.mark.parametrize(
    "tokens",
    [
        ["--start"],
        ["start", "1"],
        ["--limit", "3"],
        ["--start", "1", "extra"],
    ]
)
def test_parse_options_errors(tokens):
    with pytest.raises(ParseError):
        parse_options(tokens, ("start", "end"))
