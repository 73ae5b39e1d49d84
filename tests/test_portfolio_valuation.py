"""Tests for portfolio valuation."""

import pytest

from stockfolio.models import Currency, MarketType, PortfolioItem
from stockfolio.services.portfolio_valuation import (
    calc_holding_return,
    is_etf_holding,
    split_by_asset_type,
    summarize,
)

AAPL = PortfolioItem(
    id="1",
    symbol="AAPL",
    name="Apple Inc.",
    market=MarketType.NASDAQ,
    currency=Currency.USD,
    avg_price=100.0,
    quantity=10,
)
SAMSUNG = PortfolioItem(
    id="2",
    symbol="005930",
    name="삼성전자",
    market=MarketType.KRX,
    currency=Currency.KRW,
    avg_price=70000.0,
    quantity=5,
)
KODEX = PortfolioItem(
    id="3",
    symbol="069500",
    name="KODEX 200",
    market=MarketType.KRX,
    currency=Currency.KRW,
    avg_price=35000.0,
    quantity=2,
)


@pytest.fixture
def quotes(quote_factory):
    return {
        "AAPL": quote_factory(
            symbol="AAPL",
            name="Apple Inc.",
            market=MarketType.NASDAQ,
            currency=Currency.USD,
            current_price=110.0,
        ),
        "005930": quote_factory(current_price=75000.0),
    }


class TestCalcHoldingReturn:
    def test_usd_holding(self, quotes):
        h = calc_holding_return(AAPL, quotes["AAPL"], 1300.0)

        assert h.cost_basis == 1000.0
        assert h.market_value == 1100.0
        assert h.market_value_krw == 1_430_000.0
        assert h.return_amount == 100.0
        assert h.return_percent == pytest.approx(10.0)

    def test_missing_quote_uses_avg_price(self):
        h = calc_holding_return(SAMSUNG, None, 1300.0)

        assert h.current_price == 70000.0
        assert h.return_amount == 0
        assert h.return_percent == 0

    def test_zero_cost_basis(self):
        free = PortfolioItem("9", "X", "x", MarketType.NYSE, Currency.USD, 0.0, 1)
        assert calc_holding_return(free, None, 1300.0).return_percent == 0.0


class TestSummarize:
    def test_end_to_end_scenario(self, quotes):
        summary = summarize([AAPL, SAMSUNG], quotes, 1300.0)

        assert summary.total_market_value == pytest.approx(1_805_000.0)
        assert summary.total_cost_basis == pytest.approx(1_650_000.0)
        assert summary.total_return_amount == pytest.approx(155_000.0)
        assert summary.total_return_percent == pytest.approx(155_000 / 1_650_000 * 100)

        aapl, samsung = summary.holdings
        assert samsung.cost_basis == 350_000.0
        assert samsung.market_value == 375_000.0
        assert aapl.weight == pytest.approx(79.224, abs=1e-3)
        assert samsung.weight == pytest.approx(20.776, abs=1e-3)
        assert aapl.weight + samsung.weight == pytest.approx(100.0, abs=1e-6)

    def test_order_preserved(self, quotes):
        summary = summarize([SAMSUNG, KODEX, AAPL], quotes, 1300.0)
        assert [h.symbol for h in summary.holdings] == ["005930", "069500", "AAPL"]

    def test_idempotent(self, quotes):
        assert summarize([AAPL, SAMSUNG], quotes, 1300.0) == summarize(
            [AAPL, SAMSUNG], quotes, 1300.0
        )

    def test_empty_portfolio(self):
        summary = summarize([], {}, 1300.0)

        assert summary.total_market_value == 0
        assert summary.total_return_percent == 0
        assert summary.holdings == []

    def test_zero_total_market_value_gives_zero_weights(self):
        free = PortfolioItem("1", "X", "x", MarketType.NYSE, Currency.USD, 0.0, 3)

        summary = summarize([free], {}, 1300.0)

        assert summary.total_market_value == 0
        assert summary.holdings[0].weight == 0.0

    def test_single_holding_has_full_weight(self):
        summary = summarize([SAMSUNG], {}, 1300.0)
        assert summary.holdings[0].weight == pytest.approx(100.0)

    def test_lowercase_symbol_matches_quote(self, quotes):
        lower = PortfolioItem("1", "aapl", "Apple", MarketType.NASDAQ, Currency.USD, 100.0, 1)
        summary = summarize([lower], quotes, 1300.0)
        assert summary.holdings[0].current_price == 110.0

    def test_is_etf_flag_and_split(self, quotes):
        summary = summarize(
            [AAPL, SAMSUNG, KODEX],
            quotes,
            1300.0,
            is_etf=lambda item: is_etf_holding(item, lambda symbol: False),
        )

        stocks, etfs = split_by_asset_type(summary)

        assert [h.symbol for h in stocks] == ["AAPL", "005930"]
        assert [h.symbol for h in etfs] == ["069500"]


class TestIsEtfHolding:
    def test_reference_membership(self):
        assert is_etf_holding(SAMSUNG, lambda symbol: symbol == "005930") is True

    def test_brand_keyword_for_krx_only(self):
        assert is_etf_holding(KODEX, lambda symbol: False) is True
        ace_us = PortfolioItem("1", "AHCO", "ACE Hardware", MarketType.NYSE, Currency.USD, 1.0, 1)
        assert is_etf_holding(ace_us, lambda symbol: False) is False
