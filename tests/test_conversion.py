import pytest

from tripcost.core.errors import RateUnavailable
from tripcost.services.rates.conversion import RateSnapshot, convert, conversion_rate

SNAPSHOT = RateSnapshot(base="USD", rates={"USD": 1.0, "EUR": 0.9, "JPY": 150.0})


def test_identity_conversion():
    result = convert(42.5, "eur", "EUR", SNAPSHOT)
    assert result.rate == 1.0
    assert result.converted_amount == 42.5
    assert result.from_currency == "EUR"


def test_from_base_and_to_base():
    assert convert(100, "USD", "EUR", SNAPSHOT).converted_amount == pytest.approx(90.0)
    assert convert(90, "EUR", "USD", SNAPSHOT).converted_amount == pytest.approx(100.0)


def test_cross_rate_bridges_through_base():
    rate = conversion_rate("EUR", "JPY", SNAPSHOT)
    assert rate == pytest.approx((1 / 0.9) * 150.0)
    assert convert(9, "EUR", "JPY", SNAPSHOT).converted_amount == pytest.approx(1500.0)


def test_missing_rate_raises_with_pair():
    with pytest.raises(RateUnavailable) as exc:
        convert(10, "GBP", "EUR", SNAPSHOT)
    assert exc.value.from_currency == "GBP"
    assert exc.value.to_currency == "EUR"


def test_no_rounding_at_conversion_layer():
    result = convert(10, "EUR", "USD", SNAPSHOT)
    assert result.converted_amount == pytest.approx(11.111111, rel=1e-6)
    assert result.converted_amount != round(result.converted_amount, 2)


@pytest.mark.parametrize(
    "amount,src,dst",
    [(123.45, "EUR", "JPY"), (0.99, "JPY", "USD"), (5000, "USD", "EUR")],
)
def test_round_trip_within_tolerance(amount, src, dst):
    there = convert(amount, src, dst, SNAPSHOT).converted_amount
    back = convert(there, dst, src, SNAPSHOT).converted_amount
    assert abs(back - amount) <= amount * 0.0001


def test_snapshot_has():
    assert SNAPSHOT.has("jpy")
    assert not SNAPSHOT.has("GBP")
