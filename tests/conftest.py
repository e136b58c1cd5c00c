from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from kinbox_pix.api.app import create_app
from kinbox_pix.config.settings import get_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "FB_PIXEL_ID",
        "FB_CAPI_TOKEN",
        "FB_TEST_EVENT_CODE",
        "NOTIFICATION_WEBHOOK_URL",
        "NOTIFICATION_WEBHOOK_TOKEN",
        "ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FB_PIXEL_ID", "123456789")
    monkeypatch.setenv("FB_CAPI_TOKEN", "test-token")
    get_settings.cache_clear()
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
