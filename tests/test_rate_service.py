import http.client

import pytest

from tripcost.core.config import Settings
from tripcost.services.app_settings import (
    get_effective_rate_provider,
    get_rates_cache_ttl,
    set_rate_provider,
    set_rates_cache_ttl,
)
from tripcost.services import http_client
from tripcost.services.http_client import HttpError
from tripcost.services.rates import providers
from tripcost.services.rates.cache_service import ExchangeRateService
from tripcost.services.rates.providers import (
    StaticRateProvider,
    YahooRateProvider,
    _extract_price,
    make_rate_provider,
)


def test_get_rates_dedupes_and_skips_base(rate_service, fake_provider):
    snap = rate_service.get_rates("usd", ["eur", "EUR", "USD", " jpy ", ""])
    assert snap.base == "USD"
    assert snap.rates["USD"] == 1.0
    assert snap.rates["EUR"] == pytest.approx(0.9)
    assert snap.rates["JPY"] == pytest.approx(150.0)
    assert sorted(fake_provider.calls) == [("USD", "EUR"), ("USD", "JPY")]
    assert set(snap.as_of) == {"USD", "EUR", "JPY"}


def test_get_rates_uses_cache(rate_service, fake_provider):
    rate_service.get_rates("USD", ["EUR"])
    rate_service.get_rates("USD", ["EUR"])
    assert fake_provider.calls == [("USD", "EUR")]


def test_unresolvable_targets_are_omitted(rate_service):
    snap = rate_service.get_rates("USD", ["EUR", "XXX"])
    assert "EUR" in snap.rates
    assert "XXX" not in snap.rates


def test_override_wins_over_provider(rate_service, fake_provider):
    rate_service.set_override("usd", "eur", 0.5, 60)
    snap = rate_service.get_rates("USD", ["EUR"])
    assert snap.rates["EUR"] == 0.5
    assert fake_provider.calls == []
    assert "USD/EUR" in rate_service.list_overrides()
    assert rate_service.clear_override("USD", "EUR") is True
    assert rate_service.clear_override("USD", "EUR") is False


def test_override_rejects_bad_values(rate_service):
    with pytest.raises(ValueError):
        rate_service.set_override("USD", "EUR", 0, 60)
    with pytest.raises(ValueError):
        rate_service.set_override("USD", "EUR", 1.1, 0)


def test_get_exchange_rates_shape(rate_service):
    out = rate_service.get_exchange_rates("EUR", ["USD", "JPY"])
    assert out.base == "EUR"
    assert out.rates["USD"] == pytest.approx(1 / 0.9)
    assert out.rates["JPY"] == pytest.approx(150 / 0.9)


def test_static_provider():
    p = StaticRateProvider()
    assert p.fetch_rate("USD", "USD") == 1.0
    assert p.fetch_rate("EUR", "JPY") == pytest.approx(150.0 / 0.92)
    assert p.fetch_rate("USD", "ZZZ") is None


def test_extract_price():
    good = {"chart": {"result": [{"meta": {"regularMarketPrice": 1.0842}}]}}
    assert _extract_price(good) == 1.0842
    assert _extract_price({"chart": {"result": []}}) is None
    assert _extract_price({"chart": {"result": None}}) is None
    assert _extract_price({"chart": {"result": [{"meta": {"regularMarketPrice": 0}}]}}) is None


def test_yahoo_provider_degrades_network_failure(monkeypatch):
    def boom(url, **kwargs):
        raise HttpError("timed out")

    monkeypatch.setattr(providers, "get_json", boom)
    p = YahooRateProvider("https://quotes.example.test/chart", retries=0)
    assert p.fetch_rate("EUR", "USD") is None


def test_yahoo_provider_builds_symbol(monkeypatch):
    seen = {}

    def fake_get_json(url, **kwargs):
        seen["url"] = url
        return {"chart": {"result": [{"meta": {"regularMarketPrice": 157.3}}]}}

    monkeypatch.setattr(providers, "get_json", fake_get_json)
    p = YahooRateProvider("https://quotes.example.test/chart/")
    assert p.fetch_rate("usd", "jpy") == 157.3
    assert seen["url"] == "https://quotes.example.test/chart/USDJPY%3DX"


def test_make_rate_provider(settings):
    assert make_rate_provider("static", settings).name == "static"
    assert make_rate_provider("yahoo", settings).name == "yahoo"
    with pytest.raises(ValueError):
        make_rate_provider("carrier-pigeon", settings)


def test_runtime_provider_and_ttl_overrides(db, settings):
    assert get_effective_rate_provider(db, settings) == "static"
    set_rate_provider(db, "yahoo")
    assert get_effective_rate_provider(db, settings) == "yahoo"
    with pytest.raises(ValueError):
        set_rate_provider(db, "nope")

    assert get_rates_cache_ttl(db, settings) == settings.rates_cache_ttl_seconds
    set_rates_cache_ttl(db, 120)
    assert get_rates_cache_ttl(db, settings) == 120
    with pytest.raises(ValueError):
        set_rates_cache_ttl(db, 5)


def test_service_without_injected_provider_uses_settings(settings, db):
    svc = ExchangeRateService(settings, db=db)
    snap = svc.get_rates("USD", ["EUR"])
    assert snap.rates["EUR"] == pytest.approx(0.92)


def test_partial_failure_from_provider(provider_factory):
    provider = provider_factory({"USD": 1.0, "EUR": 0.9})
    svc = ExchangeRateService(Settings(db_path="unused.sqlite3"), provider=provider)
    snap = svc.get_rates("USD", ["EUR", "JPY"])
    assert set(snap.rates) == {"USD", "EUR"}
    assert ("USD", "JPY") in provider.calls


def _disconnect(request, timeout=None):
    raise http.client.RemoteDisconnected("Remote end closed connection without response")


def test_get_json_retries_dropped_connections(monkeypatch):
    calls = []

    def flaky(request, timeout=None):
        calls.append(request.full_url)
        _disconnect(request, timeout)

    monkeypatch.setattr(http_client.urllib.request, "urlopen", flaky)
    with pytest.raises(HttpError):
        http_client.get_json("https://quotes.example.test/x", retries=2, backoff=0)
    assert len(calls) == 3


def test_yahoo_provider_degrades_dropped_connection(monkeypatch):
    monkeypatch.setattr(http_client.urllib.request, "urlopen", _disconnect)
    p = YahooRateProvider("https://quotes.example.test/chart", retries=1, backoff=0)
    assert p.fetch_rate("EUR", "USD") is None


def test_provider_errors_leave_target_out_of_snapshot():
    class BrokenProvider(StaticRateProvider):
        name = "broken"

        def fetch_rate(self, from_currency, to_currency):
            if to_currency == "JPY":
                raise ConnectionResetError("connection reset by peer")
            return super().fetch_rate(from_currency, to_currency)

    svc = ExchangeRateService(Settings(db_path="unused.sqlite3"), provider=BrokenProvider())
    snap = svc.get_rates("USD", ["EUR", "JPY"])
    assert set(snap.rates) == {"USD", "EUR"}
