from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import pytest

from conftest import FakeStore, workbook_bytes
from slabstock.cli import main as cli_main

"""Exit code contract: 0 success, 2 import with errors, 1 fatal."""


@pytest.fixture()
def patched_store(monkeypatch, materials):
    store = FakeStore(materials=materials)

    @contextmanager
    def fake_open_store(cfg, user_id):
        yield store

    monkeypatch.setattr("slabstock.cli.__main__._open_store", fake_open_store)
    return store


def _stock_file(temp_workdir: Path, rows) -> str:
    path = temp_workdir / "data" / "stock.xlsx"
    path.write_bytes(workbook_bytes(rows))
    return str(path)


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    code = cli_main(["--config", "config/missing.yml", "import", "data/stock.xlsx"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_all_success(temp_workdir: Path, write_config, patched_store, capsys):
    src = _stock_file(temp_workdir, [["E1", "BLC", "Granit Blanc K2", "A1", 300, 150, 2, 1, None, None]])
    code = cli_main(["import", src])
    assert code == 0
    assert "SUMMARY rows=1 units=1 added=1 skipped=0 errors=0" in capsys.readouterr().out


def test_exit_code_success_when_everything_is_skipped(temp_workdir: Path, write_config, patched_store):
    src = _stock_file(temp_workdir, [["E1", "BLC", "Granit Blanc K2", "A1", 300, 150, 2, 1, None, None]])
    assert cli_main(["import", src]) == 0
    assert cli_main(["import", src]) == 0
    assert len(patched_store.slabs) == 1


def test_exit_code_partial_failure_on_batch_error(temp_workdir: Path, write_config, patched_store, capsys):
    patched_store.fail_when = lambda batch: any(r.position == "B1" for r in batch)
    rows = [["E1", "BLC", "Granit Blanc K2", "A1", 300, 150, 2, 200, None, None],
            ["E2", "BLC", "Granit Blanc K2", "B1", 300, 150, 2, 1, None, None]]
    src = _stock_file(temp_workdir, rows)
    code = cli_main(["import", src])
    out = capsys.readouterr().out
    assert code == 2
    assert "WARN batch 2: connection reset by peer" in out
    assert "added=200" in out


def test_exit_code_fatal_on_unreadable_workbook(temp_workdir: Path, write_config, patched_store, capsys):
    path = temp_workdir / "data" / "broken.xlsx"
    path.write_bytes(b"not a workbook")
    assert cli_main(["import", str(path)]) == 1
    assert "ERROR import:" in capsys.readouterr().out
