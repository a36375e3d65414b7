"""Tests for the structlog processors."""

from stockledger.config import reset_settings
from stockledger.config.logging import (
    _use_json,
    add_app_context,
    enum_values,
    redact_secrets,
)
from stockledger.core.entities import MovementStatus, MovementType


def test_app_context_carries_store_backend(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "airtable")
    reset_settings()

    event = add_app_context(None, "info", {"event": "stock_upserted"})

    assert event["app"] == "Stock Ledger"
    assert event["store_backend"] == "airtable"


def test_app_context_keeps_explicit_fields():
    event = add_app_context(None, "info", {"event": "x", "environment": "override"})
    assert event["environment"] == "override"


def test_enum_values():
    event = enum_values(
        None,
        "info",
        {"event": "movement_approved", "status": MovementStatus.COMPLETED, "type": MovementType.SALE, "qty": 3},
    )
    assert event == {"event": "movement_approved", "status": "completed", "type": "sale", "qty": 3}


def test_redact_secrets():
    event = redact_secrets(None, "info", {"event": "store_configured", "api_key": "patXYZ", "base": "app1"})
    assert event["api_key"] == "***"
    assert event["base"] == "app1"


def test_renderer_choice():
    assert _use_json("auto", "production") is True
    assert _use_json("auto", "development") is False
    assert _use_json("json", "development") is True
    assert _use_json("console", "production") is False
