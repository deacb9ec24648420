"""Smoke tests for the command-line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from pocketbudget.cli import main
from pocketbudget.models.period import Period


@pytest.fixture
def invoke(app_ctx):
    runner = CliRunner()

    def _invoke(*args, input=None):
        return runner.invoke(main, list(args), obj=app_ctx, input=input)

    return _invoke


def _stored(app_ctx) -> dict:
    return json.loads(app_ctx.document_repo.get(app_ctx.config.DOCUMENT_KEY))


def test_add_and_summary(invoke, app_ctx):
    result = invoke("add", "Grocery", "85", "--month", "March", "--year", "2025")

    assert result.exit_code == 0, result.output
    assert "Added expense 'Grocery' -85.00 (Household) to 2025-03" in result.output
    assert _stored(app_ctx)["transactions"][0]["amount"] == -85

    summary = invoke("summary")
    assert summary.exit_code == 0, summary.output
    assert "March 2025" in summary.output
    assert "Grocery" in summary.output


def test_add_negative_amount_after_separator(invoke, app_ctx):
    result = invoke("add", "-m", "3", "-y", "2025", "--", "Taxi", "-20")

    assert result.exit_code == 0, result.output
    assert app_ctx.state.transactions[0].amount == -20


def test_add_help_explains_amount_sign(invoke):
    result = invoke("add", "--help")

    assert result.exit_code == 0
    assert "magnitude" in result.output


def test_add_check_without_number_fails(invoke, app_ctx):
    result = invoke("add", "Plumber", "450", "-m", "3", "-y", "2025", "--payment", "check")

    assert result.exit_code != 0
    assert "check number" in result.output
    assert app_ctx.state.transactions == []


def test_unknown_month_is_rejected(invoke):
    result = invoke("add", "Taxi", "20", "--month", "Smarch")

    assert result.exit_code == 2
    assert "unknown month" in result.output


def test_import_csv_command(invoke, app_ctx, tmp_path):
    path = tmp_path / "march.csv"
    path.write_text("year,month,item,debit,credit\n2025,March,Taxi,30,\n", encoding="utf-8")

    first = invoke("import-csv", str(path), "-m", "March", "-y", "2025")
    second = invoke("import-csv", str(path), "-m", "March", "-y", "2025")

    assert first.exit_code == 0, first.output
    assert "1 transactions added" in first.output
    assert "1 duplicates skipped" in second.output
    assert len(_stored(app_ctx)["transactions"]) == 1


def test_import_csv_wrong_month_exits_nonzero(invoke, app_ctx, tmp_path):
    path = tmp_path / "march.csv"
    path.write_text("year,month,item,debit,credit\n2025,March,Taxi,30,\n", encoding="utf-8")

    result = invoke("import-csv", str(path), "-m", "April", "-y", "2025")

    assert result.exit_code == 1
    assert "Import failed" in result.output
    assert app_ctx.state.transactions == []


def test_import_csv_all_months_is_refused(invoke, tmp_path):
    path = tmp_path / "march.csv"
    path.write_text("year,month,item,debit,credit\n2025,March,Taxi,30,\n", encoding="utf-8")

    result = invoke("import-csv", str(path), "-m", "all")

    assert result.exit_code == 1
    assert "Select a specific month" in result.output


def test_set_balance_and_clear(invoke, app_ctx):
    result = invoke("set-balance", "1500", "-m", "3", "-y", "2025")

    assert result.exit_code == 0, result.output
    assert app_ctx.state.opening_balances[Period(2025, 3)] == 1500.0
    assert Period(2025, 3) in app_ctx.state.manual_opening_balances

    cleared = invoke("set-balance", "--clear", "-m", "3", "-y", "2025")
    assert cleared.exit_code == 0
    assert Period(2025, 3) not in app_ctx.state.opening_balances


def test_set_balance_requires_an_action(invoke):
    result = invoke("set-balance", "-m", "3", "-y", "2025")

    assert result.exit_code == 2


def test_mapping_delete_in_use(invoke, app_ctx):
    invoke("mapping", "set", "Electric Co", "Household")
    invoke("add", "Electric Co", "200", "-m", "3", "-y", "2025")

    result = invoke("mapping", "delete", "Electric Co")

    assert result.exit_code == 1
    assert "used by 1 transactions" in result.output
    assert "Electric Co" in app_ctx.state.mappings


def test_mapping_list_and_export_import(invoke, app_ctx, tmp_path):
    listing = invoke("mapping", "list")
    assert "Insurance -> Taxes & Insurance [not monthly]" in listing.output

    export_path = tmp_path / "mappings.json"
    assert invoke("mapping", "export", str(export_path)).exit_code == 0
    data = json.loads(export_path.read_text(encoding="utf-8"))
    assert data["mappings"]["Taxi"]["category"] == "Travel"

    import_path = tmp_path / "extra.json"
    import_path.write_text(json.dumps({"mappings": {"Vet": "Pets"}}), encoding="utf-8")
    result = invoke("mapping", "import", str(import_path))
    assert "1 mappings imported" in result.output
    assert app_ctx.state.mappings.get("Vet").category == "Pets"


def test_note_command(invoke, app_ctx):
    invoke("note", "Vacation", "-m", "7", "-y", "2025")

    assert app_ctx.state.monthly_notes == {Period(2025, 7): "Vacation"}


def test_export_and_import_data(invoke, app_ctx, tmp_path):
    invoke("add", "Taxi", "20", "-m", "3", "-y", "2025")
    path = tmp_path / "backup.json"

    assert invoke("export-data", str(path)).exit_code == 0
    invoke("add", "Grocery", "10", "-m", "3", "-y", "2025")
    result = invoke("import-data", str(path), "--yes")

    assert result.exit_code == 0, result.output
    assert [t["item"] for t in _stored(app_ctx)["transactions"]] == ["Taxi"]


def test_export_csv_command(invoke, tmp_path):
    invoke("add", "Taxi", "20", "-m", "3", "-y", "2025")
    path = tmp_path / "ledger.csv"

    result = invoke("export-csv", str(path))

    assert result.exit_code == 0, result.output
    assert "Taxi" in path.read_text(encoding="utf-8-sig")


def test_annual_command_writes_csv(invoke, tmp_path):
    invoke("add", "Taxi", "20", "-m", "3", "-y", "2025")
    path = tmp_path / "annual.csv"

    result = invoke("annual", "-y", "2025", "--csv", str(path))

    assert result.exit_code == 0, result.output
    assert "Travel" in path.read_text(encoding="utf-8-sig")


def test_sync_configure_and_upload(invoke, app_ctx, blob_store):
    result = invoke("sync", "configure", "--token", "abc", "--path", "/mine.json", "--auto")

    assert result.exit_code == 0, result.output
    assert "auto=on" in result.output
    stored = json.loads(app_ctx.document_repo.get(app_ctx.config.SYNC_SETTINGS_KEY))
    assert stored["accessToken"] == "abc"

    upload = invoke("sync", "upload")
    assert upload.exit_code == 0, upload.output
    assert "/mine.json" in blob_store.files


def test_sync_download_missing_remote(invoke):
    invoke("sync", "configure", "--token", "abc")

    result = invoke("sync", "download", "--yes")

    assert result.exit_code == 1
    assert "upload first" in result.output


def test_sync_watch_requires_bidirectional(invoke):
    result = invoke("sync", "watch")

    assert result.exit_code == 1
    assert "--bidirectional" in result.output
