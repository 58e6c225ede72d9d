from typing import Any

import yaml


class ParseError(ValueError):
    pass


def parse_literal(text: str) -> Any:
    """
    Parse a command-line literal as YAML: '42' is an int, '3.5' a float,
    '2024-01-01' a date, '[user, 7]' a sequence, anything else a string.
    """
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as ex:
        raise ParseError(f"Cannot parse '{text}': {ex}") from ex


def parse_key(text: str) -> Any:
    key = parse_literal(text)
    if key is None:
        raise ParseError("key is required")
    return _freeze(key)


def parse_value(text: str) -> Any:
    value = parse_literal(text)
    if value is None:
        raise ParseError("value is required")
    return value


def parse_options(tokens: list[str], names: tuple[str, ...]) -> dict[str, str]:
    """
    Parse '--name VALUE' pairs. Every name must be one of `names`.
    """
    options: dict[str, str] = {}
    it = iter(tokens)
    for token in it:
        name = token.removeprefix("--")
        if not token.startswith("--") or name not in names:
            raise ParseError(f"Unexpected argument '{token}'")
        try:
            options[name] = next(it)
        except StopIteration:
            raise ParseError(f"Option '{token}' requires a value") from None
    return options


def _freeze(key: Any) -> Any:
    if isinstance(key, list):
        return tuple(_freeze(item) for item in key)
    return key
