from pathlib import Path

import pytest

from scripts import export_sessions as script_module
from shottracker_core import DataStore


@pytest.fixture
def data_store(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> DataStore:
    data_store = DataStore(data_dir=tmp_path / "data")
    monkeypatch.setattr(script_module, "DataStore", lambda: data_store)
    return data_store


def test_writes_session_csv_to_stdout(data_store: DataStore, capsys: pytest.CaptureFixture[str]) -> None:
    data_store.create_session(
        "user-1",
        {
            "name": "Club prone",
            "date": "2025-08-09",
            "rifle": "Tikka T3x",
            "calibre": "6.5 Creedmoor",
            "bulletWeight": 140,
            "distance": 600,
            "shots": ["10"] * 12,
        },
    )

    assert script_module.main(["user-1", "--distance", "600"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("Date,Name")
    assert lines[1].startswith("2025-08-09,Club prone,Tikka T3x,6.5 Creedmoor,140,600,,,120,0,")


def test_writes_range_table_to_output_dir(data_store: DataStore, tmp_path: Path, capsys) -> None:
    card = data_store.create_dope_card("user-1", {"name": "Match", "rifle": "Tikka", "calibre": "6.5"})
    data_store.save_dope_range(card["id"], {"distance": 300, "elevation": 3.2})

    assert script_module.main(["user-1", "--card", card["id"], "--output-dir", str(tmp_path / "out")]) == 0

    target = tmp_path / "out" / "dope_Match___Tikka_6_5.txt"
    assert f"Wrote {target}" in capsys.readouterr().out
    assert target.read_text(encoding="utf-8").startswith("DOPE Card: Match - Tikka 6.5\n")


def test_unknown_card_reports_error(data_store: DataStore, capsys) -> None:
    assert script_module.main(["user-1", "--card", "missing"]) == 1

    assert "ERROR: DOPE card not found" in capsys.readouterr().err
