"""
Unit tests for the user_responses table creation script.
"""
import sys
from pathlib import Path

import pytest

from conftest import FakeCloudflareClient

# Add backend directory to path for script imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from app.core.config import Settings
from app.services.cloudflare import CloudflareAPIError
from scripts import create_user_responses_table as script


def _configured_settings() -> Settings:
    return Settings(
        together_api_key="k",
        cloudflare_api_key="k",
        account_id="acct",
        d1_database_id="db-1",
        email="ops@example.com",
    )


def test_ddl_declares_every_response_column():
    from app.services.catalog.responses import USER_RESPONSE_COLUMNS

    for column in USER_RESPONSE_COLUMNS:
        assert f"{column} TEXT" in script.CREATE_USER_RESPONSES_SQL


@pytest.mark.asyncio
async def test_create_table_executes_ddl(monkeypatch):
    client = FakeCloudflareClient()
    monkeypatch.setattr(script, "get_settings", _configured_settings)
    monkeypatch.setattr(script, "get_cloudflare_client", lambda: client)

    assert await script.create_table() is True
    assert client.database_calls == [
        {"database_id": "db-1", "sql": script.CREATE_USER_RESPONSES_SQL, "params": []}
    ]


@pytest.mark.asyncio
async def test_dry_run_makes_no_calls(monkeypatch, capsys):
    client = FakeCloudflareClient()
    monkeypatch.setattr(script, "get_settings", _configured_settings)
    monkeypatch.setattr(script, "get_cloudflare_client", lambda: client)

    assert await script.create_table(dry_run=True) is True
    assert client.database_calls == []
    assert "CREATE TABLE IF NOT EXISTS user_responses" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_missing_configuration_fails(monkeypatch):
    monkeypatch.setattr(script, "get_settings", lambda: Settings())
    monkeypatch.setattr(script, "get_cloudflare_client", lambda: None)

    assert await script.create_table() is False


@pytest.mark.asyncio
async def test_store_error_fails(monkeypatch):
    client = FakeCloudflareClient(error=CloudflareAPIError("not authorized", status_code=403))
    monkeypatch.setattr(script, "get_settings", _configured_settings)
    monkeypatch.setattr(script, "get_cloudflare_client", lambda: client)

    assert await script.create_table() is False
