import json
from pathlib import Path

from posledger.application.container import build_container
from posledger.config import LedgerSettings, load_settings
from posledger.main import main


def test_container_wires_shared_confirmations(tmp_path: Path):
    container = build_container(tmp_path / "ledger.db", settings=LedgerSettings(confirmation_ttl_seconds=30))

    assert container.inventory.confirmations is container.confirmations
    assert container.sales.confirmations is container.confirmations
    assert container.confirmations.ttl.total_seconds() == 30


def test_load_settings_ignores_unknown_keys(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"low_stock_threshold": 5, "colour": "blue"}), encoding="utf-8")

    assert load_settings(path).low_stock_threshold == 5
    assert load_settings(tmp_path / "missing.json") == LedgerSettings()


def test_cli_sync_and_export(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("POSLEDGER_HOME", str(tmp_path / "home"))
    db = tmp_path / "ledger.db"
    container = build_container(db)
    container.sales.record_sale([{"product_id": 1, "quantity": 2}], "Employee", amount_paid=10, connectivity="offline")

    assert main(["--store", str(db), "sync"]) == 0
    assert "Synced 1 offline sale(s)." in capsys.readouterr().out

    out_csv = tmp_path / "sales.csv"
    assert main(["--store", str(db), "export-sales", str(out_csv)]) == 0
    assert len(out_csv.read_text(encoding="utf-8").strip().split("\n")) == 2


def test_cli_reports_app_errors(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("POSLEDGER_HOME", str(tmp_path / "home"))

    code = main(["--store", str(tmp_path / "ledger.db"), "export-sales", str(tmp_path / "x.csv"), "--month", "bad"])

    assert code == 1
    assert "Month must look like YYYY-MM" in capsys.readouterr().err
