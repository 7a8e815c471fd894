"""Remote store adapter factory.

Provides get_api() / set_api() / reset_api() to swap implementations:
- FakeStoreApi for development and testing (default)
- HttpStoreApi for a real remote service (STOREFRONT_API_ADAPTER=http)
"""

from collections.abc import Callable

from storefront.api.port import StoreApi
from storefront.config import Settings, load_settings

_current_api: StoreApi | None = None


def build_api(settings: Settings, token_provider: Callable[[], str | None] | None = None) -> StoreApi:
    """Construct the adapter named by ``settings.api_adapter``."""
    if settings.api_adapter == "fake":
        from storefront.api.fake_adapter import FakeStoreApi

        return FakeStoreApi()
    if settings.api_adapter == "http":
        from storefront.api.http_adapter import HttpStoreApi

        return HttpStoreApi(
            base_url=settings.api_url,
            token_provider=token_provider,
            timeout=settings.api_timeout,
        )
    raise ValueError(f"Unknown store API adapter: {settings.api_adapter}")


def get_api() -> StoreApi:
    """Return the current store adapter, building one from the environment if needed."""
    global _current_api
    if _current_api is None:
        _current_api = build_api(load_settings())
    return _current_api


def set_api(api: StoreApi) -> None:
    """Override the active store adapter (useful for tests)."""
    global _current_api
    _current_api = api


def reset_api() -> None:
    """Reset to default adapter."""
    global _current_api
    _current_api = None
