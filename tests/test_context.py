"""Tests for the application context: startup, saving and remote replacement."""

from __future__ import annotations

import json

from pocketbudget.constants.categories import DEFAULT_CATEGORIES
from pocketbudget.context import create_app_context
from pocketbudget.infra.repositories import SQLModelDocumentRepository
from pocketbudget.models.period import Period
from pocketbudget.services import ledger_service, persistence
from pocketbudget.services.reconciler import import_csv_text


def test_first_start_saves_default_budget(app_ctx):
    stored = app_ctx.document_repo.get(app_ctx.config.DOCUMENT_KEY)

    assert stored is not None
    assert json.loads(stored)["categories"] == DEFAULT_CATEGORIES
    assert app_ctx.state.current_year == 2025


def test_run_saves_after_command(app_ctx, config, blob_store):
    app_ctx.run(ledger_service.add_transaction, period=Period(2025, 3), item="Taxi", amount=20)

    reopened = create_app_context(config, store_factory=lambda token: blob_store)

    assert [t.item for t in reopened.state.transactions] == ["Taxi"]
    assert reopened.last_load.migrations == []


def test_rejected_import_is_not_saved(app_ctx):
    before = app_ctx.document_repo.get(app_ctx.config.DOCUMENT_KEY)

    result = app_ctx.run(import_csv_text, "year,month,item\n", target=Period(2025, 3))

    assert not result.ok
    assert app_ctx.document_repo.get(app_ctx.config.DOCUMENT_KEY) == before


def test_legacy_document_is_upgraded_and_saved(config, blob_store, session_factory):
    repo = SQLModelDocumentRepository(session_factory)
    repo.put(
        config.DOCUMENT_KEY,
        json.dumps({"transactions": [{"id": 1, "month": "3", "item": "Taxi", "amount": -5}]}),
    )

    ctx = create_app_context(config, store_factory=lambda token: blob_store)

    assert "backfill_year" in ctx.last_load.migrations
    saved = json.loads(repo.get(config.DOCUMENT_KEY))
    assert saved["transactions"][0]["year"] == 2025
    assert saved["transactions"][0]["month"] == 3


def test_mappings_file_seeds_first_start(tmp_path, config, blob_store):
    mappings_file = tmp_path / "mappings.json"
    mappings_file.write_text(
        json.dumps({"mappings": {"Vet": "Pets"}, "categories": ["Pets"]}), encoding="utf-8"
    )
    config.MAPPINGS_FILE = mappings_file

    ctx = create_app_context(config, store_factory=lambda token: blob_store)

    assert ctx.state.mappings.get("Vet").category == "Pets"
    assert ctx.state.mappings.get("Vet").include_in_monthly_expenses is False
    assert "Pets" in ctx.state.categories


def test_env_token_seeds_sync_settings(config, blob_store):
    config.DROPBOX_ACCESS_TOKEN = "env-token"

    ctx = create_app_context(config, store_factory=lambda token: blob_store)

    assert ctx.sync.settings.access_token == "env-token"
    assert ctx.sync.settings.file_path == config.DROPBOX_FILE_PATH


def test_sync_settings_persist(app_ctx, config, blob_store):
    app_ctx.sync.settings.access_token = "abc"
    app_ctx.sync.settings.auto_sync_enabled = True
    app_ctx.save_sync_settings(app_ctx.sync.settings)

    reopened = create_app_context(config, store_factory=lambda token: blob_store)

    assert reopened.sync.settings.access_token == "abc"
    assert reopened.sync.settings.auto_sync_enabled is True


def test_auto_sync_uploads_after_save(app_ctx, blob_store):
    app_ctx.sync.settings.access_token = "abc"
    app_ctx.sync.settings.auto_sync_enabled = True

    app_ctx.run(ledger_service.add_transaction, period=Period(2025, 3), item="Taxi", amount=20)

    data, _ = blob_store.files[app_ctx.sync.settings.file_path]
    assert json.loads(data)["transactions"][0]["item"] == "Taxi"
    stored_settings = json.loads(app_ctx.document_repo.get(app_ctx.config.SYNC_SETTINGS_KEY))
    assert stored_settings["lastSyncTime"] is not None


def test_download_replaces_local_budget(app_ctx, blob_store):
    app_ctx.sync.settings.access_token = "abc"
    remote = persistence.default_state(2024)
    ledger_service.add_transaction(remote, period=Period(2024, 6), item="Remote item", amount=10)
    blob_store.put_remote(app_ctx.sync.settings.file_path, persistence.dumps_state(remote))
    app_ctx.run(ledger_service.add_transaction, period=Period(2025, 3), item="Local", amount=5)

    outcome = app_ctx.download_remote()

    assert outcome.ok
    assert [t.item for t in app_ctx.state.transactions] == ["Remote item"]
    assert app_ctx.state.current_year == 2024
    saved = json.loads(app_ctx.document_repo.get(app_ctx.config.DOCUMENT_KEY))
    assert saved["transactions"][0]["item"] == "Remote item"


def test_unreadable_remote_keeps_local_budget(app_ctx):
    app_ctx.run(ledger_service.add_transaction, period=Period(2025, 3), item="Local", amount=5)

    result = app_ctx.apply_remote_document("{broken")

    assert not result.ok
    assert [t.item for t in app_ctx.state.transactions] == ["Local"]


def test_poll_applies_newer_remote(app_ctx, blob_store):
    app_ctx.sync.settings.access_token = "abc"
    path = app_ctx.sync.settings.file_path
    blob_store.put_remote(path, persistence.dumps_state(persistence.default_state(2025)))
    assert app_ctx.poll_remote().message == "Recorded remote timestamp"

    remote = persistence.default_state(2025)
    ledger_service.add_transaction(remote, period=Period(2025, 4), item="From phone", amount=12)
    blob_store.put_remote(path, persistence.dumps_state(remote))

    outcome = app_ctx.poll_remote()

    assert outcome.message == "Downloaded"
    assert [t.item for t in app_ctx.state.transactions] == ["From phone"]


def test_upload_local(app_ctx, blob_store):
    app_ctx.sync.settings.access_token = "abc"

    outcome = app_ctx.upload_local()

    assert outcome.ok
    assert app_ctx.sync.settings.file_path in blob_store.files
