import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def reset_store_api():
    """Never let an adapter chosen by one test leak into the next."""
    from storefront.api import reset_api

    reset_api()
    yield
    reset_api()


# ---------------------------------------------------------------------------
# Shared collaborators
# ---------------------------------------------------------------------------
@pytest.fixture
def storage():
    from storefront.storage import MemoryStorage

    return MemoryStorage()


@pytest.fixture
def user():
    from storefront.identity.session import UserRecord

    return UserRecord(id="7", email="jane@example.com", first_name="Jane", last_name="Doe")


@pytest.fixture
def session(storage):
    from storefront.identity.session import StoredSession

    return StoredSession(storage)


@pytest.fixture
def signed_in(session, user):
    session.sign_in(user, "token-123")
    return session


@pytest.fixture
def fake_api():
    from storefront.api.fake_adapter import FakeStoreApi

    return FakeStoreApi()


@pytest.fixture
def no_sleep():
    """Backoff sleep that records delays instead of waiting."""
    delays = []

    async def sleep(delay):
        delays.append(delay)

    sleep.delays = delays
    return sleep


@pytest.fixture
def mug():
    from storefront.cart.store import Product

    return Product(product_id="1", name="Mug", price=10.0, image_url="https://img.example.com/mug.png")


@pytest.fixture
def poster():
    from storefront.cart.store import Product

    return Product(product_id="2", name="Poster", price=25.0)
