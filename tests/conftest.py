from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from tripcost.core.config import Settings
from tripcost.db.dal import Database
from tripcost.db.migrate import apply_migrations
from tripcost.main import create_app
from tripcost.services.rates.base import RateProvider
from tripcost.services.rates.cache_service import ExchangeRateService

# Units of currency per 1 USD
TEST_USD_RATES = {"USD": 1.0, "EUR": 0.9, "JPY": 150.0, "GBP": 0.8}


class FakeRateProvider(RateProvider):
    """Deterministic provider that records every lookup."""

    name = "fake"

    def __init__(self, usd_rates: Optional[Dict[str, float]] = None):
        self.usd_rates = dict(usd_rates or TEST_USD_RATES)
        self.calls: List[Tuple[str, str]] = []

    def fetch_rate(self, from_currency: str, to_currency: str) -> Optional[float]:
        self.calls.append((from_currency, to_currency))
        src = self.usd_rates.get(from_currency)
        dst = self.usd_rates.get(to_currency)
        if not src or not dst:
            return None
        return dst / src


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings(
        db_path=tmp_path / "test.sqlite3",
        exchange_rate_provider="static",
        debug=False,
    )
    s.init_post_load()
    return s


@pytest.fixture
def db(settings) -> Database:
    apply_migrations(settings.db_path)
    return Database(settings.db_path)


@pytest.fixture
def provider_factory():
    return FakeRateProvider


@pytest.fixture
def fake_provider() -> FakeRateProvider:
    return FakeRateProvider()


@pytest.fixture
def rate_service(settings, db, fake_provider) -> ExchangeRateService:
    return ExchangeRateService(settings, db=db, provider=fake_provider)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def app_db(app) -> Database:
    return app.state.db
