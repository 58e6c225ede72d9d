import io
from datetime import date

import pytest
import yaml

from indexkv.bootstrap.shell import StoreShell
from indexkv.infra.format_renderer import YamlRenderer
from indexkv.infra.memory_storage import MemoryStorageFactory
from indexkv.infra.msgpack_serializer import MsgPackSerializer


class ShellRunner:
    def __init__(self, shell: StoreShell, out: io.StringIO) -> None:
        self.shell = shell
        self.out = out

    def run(self, line: str) -> str:
        self.out.seek(0)
        self.out.truncate()
        self.shell.onecmd(line)
        return self.out.getvalue()

    def result(self, line: str):
        return yaml.safe_load(self.run(line))


@pytest.fixture
def runner():
    out = io.StringIO()
    shell = StoreShell(
        factory=MemoryStorageFactory(),
        serializer=MsgPackSerializer(),
        renderer=YamlRenderer(),
        store_name="app:notes",
        batch_size=2,
        stdout=out,
    )
    yield ShellRunner(shell, out)
    shell.close()


def test_put_get(runner):
    assert runner.result("put 1 hello") == {"key": 1, "status": "ok"}
    assert runner.result("get 1") == {"key": 1, "value": "hello"}
    assert runner.result("get 2") == {"key": 2, "value": None}


def test_tuple_keys_and_structured_values(runner):
    runner.run("put '[user, 7]' '{name: ada, langs: [py, c]}'")

    assert runner.result("get '[user, 7]'") == {
        "key": ["user", 7],
        "value": {"name": "ada", "langs": ["py", "c"]},
    }


def test_has_del_count_clear(runner):
    runner.run("put a 1")
    runner.run("put b 2")

    assert runner.result("has a") == {"key": "a", "exists": True}
    assert runner.result("count") == {"count": 2}

    assert runner.result("del a") == {"key": "a", "status": "ok"}
    assert runner.result("has a") == {"key": "a", "exists": False}

    assert runner.result("clear") == {"status": "cleared"}
    assert runner.result("count") == {"count": 0}


def test_range(runner):
    for key in ("banana", "3.5", "apple", "0", "-5", "2024-01-01"):
        runner.run(f"put {key} v")

    keys = [item["key"] for item in runner.result("range")]
    assert keys == [-5, 0, 3.5, "apple", "banana", date(2024, 1, 1)]

    keys = [item["key"] for item in runner.result("range --start 0 --end apple")]
    assert keys == [0, 3.5, "apple"]


def test_range_empty(runner):
    assert runner.result("range") == []


def test_drop_current_store(runner):
    runner.run("put a 1")

    assert runner.result("drop") == {"dropped": "app:notes"}
    assert runner.result("count") == {"count": 0}


def test_drop_named_database(runner):
    runner.run("put a 1")

    assert runner.result("drop app") == {"dropped": "app"}
    assert runner.result("get a") == {"key": "a", "value": None}


@pytest.mark.parametrize(
    "line, usage",
    [
        ("get", "Usage: get <key>"),
        ("put 1", "Usage: put <key> <value>"),
        ("del", "Usage: del <key>"),
        ("count extra", "Usage: count"),
        ("drop a b", "Usage: drop"),
    ]
)
def test_usage(runner, line, usage):
    assert runner.run(line).startswith(usage)


@pytest.mark.parametrize(
    "line",
    [
        "get null",
        "put 1 null",
        "get '[unclosed'",
        "range --limit 3",
        "put 1 \"unterminated",
        "drop :bad",
    ]
)
def test_errors_are_reported(runner, line):
    assert runner.run(line).startswith("error: ")


def test_exit_commands(runner):
    assert runner.shell.onecmd("exit") is True
    assert runner.shell.onecmd("quit") is True
    assert runner.shell.onecmd("") is False
    assert runner.shell.store_name == "app:notes"
