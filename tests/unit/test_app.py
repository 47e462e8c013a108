"""Tests for the application lifecycle root."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from kubeapp.app import KubeAppApp
from kubeapp.models.config import KubeAppConfig
from tests.fakes import InMemoryObjectStore


class TestLifecycle:
    async def test_stop_without_start_is_noop(self) -> None:
        app = KubeAppApp()
        await app.stop()
        assert not app.running

    async def test_stop_component_errors_are_contained(self) -> None:
        app = KubeAppApp(config=KubeAppConfig())
        broken = MagicMock()
        broken.stop = AsyncMock(side_effect=RuntimeError("teardown failed"))
        await app._stop_component("driver", broken)
        broken.stop.assert_awaited_once()

    async def test_start_without_webhooks_wires_driver(self, monkeypatch) -> None:  # type: ignore[no-untyped-def]
        app = KubeAppApp(config=KubeAppConfig(), webhooks=False)
        api_client = MagicMock()
        api_client.close = AsyncMock()

        async def fake_client() -> None:
            app._api_client = api_client

        async def fake_store() -> None:
            app._store = InMemoryObjectStore()

        monkeypatch.setattr(app, "_start_k8s_client", fake_client)
        monkeypatch.setattr(app, "_start_store", fake_store)
        await app.start()
        try:
            assert app.running
            assert app._driver is not None and app._driver.running
            assert app._rest_server is None
        finally:
            await app.stop()
        assert not app.running
        api_client.close.assert_awaited_once()
