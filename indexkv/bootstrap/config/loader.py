import argparse
import os
from functools import lru_cache
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="indexctl",
        description=(
            "Inspect and edit an indexkv store.\n\n"
            "Keys and values are written as YAML scalars or flow sequences:\n"
            "  42, 3.5, apple, 2024-01-01, [user, 7]\n\n"
            "Without a command, an interactive shell is started."
        ),
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to an indexkv configuration file"
    )

    parser.add_argument(
        "-s", "--store",
        type=str,
        help=(
            "Store to operate on, as '<db>:<store>' or '<db>'.\n"
            "Overrides the 'store' setting of the configuration file."
        )
    )

    parser.add_argument(
        "-l", "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=(
            "Logging verbosity.\n"
            "Choose among: DEBUG, INFO, WARNING, ERROR, CRITICAL.\n\n"
            "Example:\n"
            "  --log-level DEBUG"
        ),
    )

    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help=(
            "get KEY | put KEY VALUE | del KEY | has KEY | count | clear\n"
            "range [--start KEY] [--end KEY] | drop [NAME]"
        )
    )

    return parser


@lru_cache
def get_cli_args() -> argparse.Namespace:
    return build_parser().parse_args()


@lru_cache
def get_configfile() -> Path | None:
    args = get_cli_args()

    # Priority: CLI > ENV > default file in current working directory
    raw = args.config or os.getenv("INDEXKVCONFIG")

    if raw is None:
        file = Path.cwd() / "indexkv.yaml"
        return file if file.is_file() else None

    file = Path(raw)
    if not file.is_file():
        raise SystemExit(
            f"[config] Configuration file not found: '{file}'.\n"
            "  - Use --config <file.yaml>\n"
            "  - Or set the INDEXKVCONFIG environment variable\n"
            "  - Or place an 'indexkv.yaml' file in the current working directory."
        )

    return file
