import logging

DEFAULT_STORE = "default"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)-8s [%(name)s:%(funcName)s] : %(message)s',
    )


def successor(key: bytes) -> bytes:
    """
    Smallest byte string strictly greater than `key` in lexicographic
    order. Used to resume a forward scan right after the last key seen.
    """
    return key + b"\x00"


def split_store_name(name: str) -> tuple[str, str]:
    """
    Split "<db>:<store>" into its parts. A bare "<db>" refers to the
    database's default store.
    """
    if not isinstance(name, str):
        raise TypeError("store `name` required")
    if not name:
        raise ValueError("Invalid store name: name is empty")

    db, sep, store = name.partition(":")
    if not db:
        raise ValueError(f"Invalid store name '{name}': database name is empty")
    if db in (".", "..") or "/" in db or "\\" in db:
        raise ValueError(f"Invalid store name '{name}': database name is not a plain name")
    if sep and not store:
        raise ValueError(f"Invalid store name '{name}': store name is empty")

    return db, store or DEFAULT_STORE
