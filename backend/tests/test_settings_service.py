from decimal import Decimal

import pytest

from storefront.models import StoreSetting
from storefront.services import settings_service
from storefront.services.settings_service import StoreSettings, compute_totals
from storefront.validation import ValidationError


def test_compute_totals_gst_scenario():
    totals = compute_totals(1000000, StoreSettings(gst_enabled=True, gst_rate=Decimal("18")))
    assert totals.subtotal_cents == 1000000
    assert totals.tax_cents == 180000
    assert totals.shipping_cents == 0
    assert totals.total_cents == 1180000


def test_compute_totals_rounds_half_up():
    # 18% of 25 paise = 4.5 -> 5
    assert compute_totals(25, StoreSettings(gst_rate=Decimal("18"))).tax_cents == 5
    # 18% of 24 paise = 4.32 -> 4
    assert compute_totals(24, StoreSettings(gst_rate=Decimal("18"))).tax_cents == 4


def test_compute_totals_gst_disabled_and_shipping():
    settings = StoreSettings(gst_enabled=False, shipping_enabled=True, shipping_amount_cents=4900)
    totals = compute_totals(10000, settings)
    assert totals.tax_cents == 0
    assert totals.shipping_cents == 4900
    assert totals.total_cents == 14900


def test_shipping_amount_ignored_when_disabled():
    settings = StoreSettings(shipping_enabled=False, shipping_amount_cents=4900)
    assert compute_totals(10000, settings).shipping_cents == 0


def test_defaults_without_row(db_session):
    assert settings_service.get_store_settings() == settings_service.DEFAULT_SETTINGS


def test_update_creates_then_patches_row(db_session):
    settings_service.update_store_settings({"gst_rate": 12.5})
    updated = settings_service.update_store_settings({"shipping_enabled": True, "shipping_amount_cents": 5000})

    assert updated.gst_rate == Decimal("12.50")
    assert updated.shipping_enabled is True
    assert updated.shipping_amount_cents == 5000
    assert db_session.query(StoreSetting).count() == 1


@pytest.mark.parametrize("patch", [
    {"gst_rate": 101},
    {"gst_rate": -1},
    {"gst_rate": "abc"},
    {"gst_rate": True},
    {"shipping_amount_cents": -5},
    {"shipping_amount_cents": 10.5},
    {"gst_enabled": "yes"},
    {"currency": "USD"},
])
def test_update_rejects_invalid(db_session, patch):
    with pytest.raises(ValidationError):
        settings_service.update_store_settings(patch)
    assert db_session.query(StoreSetting).count() == 0


def test_settings_endpoints(client, admin_headers):
    resp = client.put("/api/settings", json={"gst_rate": 5}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["settings"]["gst_rate"] == 5.0

    resp = client.get("/api/settings")
    assert resp.get_json()["settings"]["gst_rate"] == 5.0

    resp = client.put("/api/settings", json={"gst_rate": 500}, headers=admin_headers)
    assert resp.status_code == 400
