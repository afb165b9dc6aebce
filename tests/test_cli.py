"""
Tests for the command line front-end.

Commands run against an engine wired to the fake gateway.
"""

import json

from chatdrive.cli import EXIT_FAILED, EXIT_NOT_CONNECTED, EXIT_OK, _run, build_parser
from chatdrive.engine import Engine
from chatdrive.errors import BackendError
from chatdrive.models import FileEntry, Folder


def run_cli(engine, *argv):
    return _run(engine, build_parser().parse_args(list(argv)))


class TestCli:
    """Tests for CLI subcommands."""

    def test_requires_connection(self, gateway, store, runner, prompter, capsys):
        engine = Engine(store, gateway, runner, prompter)

        assert run_cli(engine, "ls") == EXIT_NOT_CONNECTED
        assert "login" in capsys.readouterr().out

    def test_login(self, gateway, store, runner, prompter, capsys):
        engine = Engine(store, gateway, runner, prompter)

        assert run_cli(engine, "login", "4242") == EXIT_OK
        assert gateway.calls_to("connect") == [(4242,)]

    def test_ls_json(self, gateway, signed_in_store, runner, prompter, capsys):
        gateway.listings[3] = [FileEntry(id=1, name="a.txt", size=10, folder_id=3)]
        engine = Engine(signed_in_store, gateway, runner, prompter)
        capsys.readouterr()

        assert run_cli(engine, "ls", "--folder", "3", "--json") == EXIT_OK

        rows = json.loads(capsys.readouterr().out)
        assert rows[0]["name"] == "a.txt"
        assert engine.active_folder() is None

    def test_ls_error_json(self, gateway, signed_in_store, runner, prompter, capsys):
        engine = Engine(signed_in_store, gateway, runner, prompter)
        gateway.failures["list_files"] = BackendError("nope", code="forbidden")
        capsys.readouterr()

        assert run_cli(engine, "ls", "--folder", "5", "--json") == EXIT_FAILED
        assert json.loads(capsys.readouterr().out) == {"error": {"code": "forbidden", "message": "nope"}}

    def test_folders(self, gateway, signed_in_store, runner, prompter, capsys):
        gateway.backend_folders = [Folder(8, "Music")]
        engine = Engine(signed_in_store, gateway, runner, prompter)
        run_cli(engine, "sync")
        capsys.readouterr()

        assert run_cli(engine, "folders", "--json") == EXIT_OK
        assert json.loads(capsys.readouterr().out) == [
            {"id": None, "name": "Saved Messages"},
            {"id": 8, "name": "Music"},
        ]

    def test_rm_many_reports_failure(self, gateway, signed_in_store, runner, prompter):
        gateway.failures["delete_file"] = lambda rid, _f: BackendError("locked") if rid == 2 else None
        engine = Engine(signed_in_store, gateway, runner, prompter)

        assert run_cli(engine, "rm", "1", "2", "3") == EXIT_FAILED
        assert len(gateway.calls_to("delete_file")) == 3
        assert len(engine.selection) == 0

    def test_mv(self, gateway, signed_in_store, runner, prompter):
        engine = Engine(signed_in_store, gateway, runner, prompter)

        assert run_cli(engine, "mv", "4", "5", "--to", "9") == EXIT_OK
        assert gateway.calls_to("move_files") == [([4, 5], None, 9)]

    def test_push(self, gateway, signed_in_store, runner, prompter, tmp_path, capsys):
        path = tmp_path / "doc.txt"
        path.write_text("hi", encoding="utf-8")
        engine = Engine(signed_in_store, gateway, runner, prompter)

        assert run_cli(engine, "push", str(path), "--folder", "root") == EXIT_OK
        assert gateway.calls_to("upload_file") == [(str(path), None)]
        assert engine.uploads.items == ()

    def test_push_missing_file(self, gateway, signed_in_store, runner, prompter, tmp_path):
        engine = Engine(signed_in_store, gateway, runner, prompter)

        assert run_cli(engine, "push", str(tmp_path / "missing.txt")) == EXIT_FAILED
        assert gateway.calls_to("upload_file") == []

    def test_search(self, gateway, signed_in_store, runner, prompter, capsys):
        gateway.search_results = [FileEntry(id=3, name="holiday.png", size=2048)]
        engine = Engine(signed_in_store, gateway, runner, prompter)
        capsys.readouterr()

        assert run_cli(engine, "search", "holiday") == EXIT_OK
        assert "holiday.png" in capsys.readouterr().out
