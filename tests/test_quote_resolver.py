"""Tests for the quote fallback chain."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from stockfolio.core.exceptions import (
    InvalidQuoteData,
    QuoteUnavailable,
    UpstreamUnavailable,
)
from stockfolio.models import Currency, MarketType
from stockfolio.services.kis import KISCredential
from stockfolio.services.quote_resolver import (
    KISQuoteStrategy,
    NaverMobileQuoteStrategy,
    OutcomeStatus,
    QuoteResolver,
    YahooKrxQuoteStrategy,
    YahooQuoteStrategy,
)
from stockfolio.services.yahoo import YahooFinanceClient

NAVER_COMPLETE_OHLC = {
    "stockName": "삼성전자",
    "closePrice": "75,000",
    "compareToPreviousClosePrice": "1,000",
    "fluctuationsRatio": "1.35",
    "openPrice": "74,500",
    "highPrice": "75,500",
    "lowPrice": "74,200",
}


def yahoo_chart(price, **meta):
    return {"meta": {"regularMarketPrice": price, **meta}}


@pytest.fixture
def yahoo():
    client = MagicMock()
    client.fetch_chart = AsyncMock()
    return client


@pytest.fixture
def naver():
    client = MagicMock()
    client.fetch_basic = AsyncMock()
    return client


@pytest.fixture
def history():
    service = MagicMock()
    service.get_history = AsyncMock(return_value=[])
    return service


@pytest.fixture
def resolver(yahoo, naver, history, memory_cache):
    return QuoteResolver(
        yahoo=yahoo,
        naver=naver,
        history=history,
        token_cache=memory_cache,
        name_lookup=lambda symbol: {"005930": "삼성전자"}.get(symbol),
    )


class TestBuildChain:
    def test_krx_without_credential(self, resolver):
        chain = resolver.build_chain("005930")
        assert [type(s) for s in chain] == [NaverMobileQuoteStrategy, YahooKrxQuoteStrategy]

    def test_krx_with_credential_is_kis_only(self, resolver):
        chain = resolver.build_chain("005930", credential=KISCredential("k", "s"))
        assert [type(s) for s in chain] == [KISQuoteStrategy]

    def test_non_krx_is_yahoo_only(self, resolver):
        chain = resolver.build_chain("AAPL", credential=KISCredential("k", "s"))
        assert [type(s) for s in chain] == [YahooQuoteStrategy]

    def test_explicit_market_overrides_heuristic(self, resolver):
        assert [type(s) for s in resolver.build_chain("005930", MarketType.NYSE)] == [
            YahooQuoteStrategy
        ]
        assert type(resolver.build_chain("ABC", MarketType.KRX)[0]) is NaverMobileQuoteStrategy


class TestKrxResolution:
    @pytest.mark.asyncio
    async def test_missing_52_week_triggers_backfill(self, resolver, naver, yahoo, history):
        naver.fetch_basic.return_value = NAVER_COMPLETE_OHLC

        quote = await resolver.get_quote("005930")

        # 모바일 basic에는 52주 값이 없음
        history.get_history.assert_awaited_once_with("005930", MarketType.KRX, "1y", "1d")
        yahoo.fetch_chart.assert_not_awaited()
        assert quote.current_price == 75000

    @pytest.mark.asyncio
    async def test_missing_ohlc_backfilled_exactly_once(
        self, resolver, naver, history, bar_factory
    ):
        naver.fetch_basic.return_value = {
            "closePrice": "75,000",
            "compareToPreviousClosePrice": "1,000",
            "fluctuationsRatio": "1.35",
        }
        history.get_history.return_value = [
            bar_factory(2, 70000, high=80000.0, low=65000.0),
            bar_factory(3, 0, open=0.0, high=0.0, low=0.0),  # 결측 봉
            bar_factory(4, 74000, open=73500.0, high=74800.0, low=73000.0),
        ]

        quote = await resolver.get_quote("005930")

        history.get_history.assert_awaited_once_with("005930", MarketType.KRX, "1y", "1d")
        assert (quote.open, quote.high, quote.low) == (73500.0, 74800.0, 73000.0)
        assert quote.high_52_week == 80000.0
        assert quote.low_52_week == 65000.0
        # 시세 값은 네이버 그대로
        assert quote.current_price == 75000
        assert quote.change == 1000
        assert quote.change_percent == 1.35
        assert quote.name == "삼성전자"

    @pytest.mark.asyncio
    async def test_backfill_only_fills_zero_fields(self, resolver, naver, history, bar_factory):
        naver.fetch_basic.return_value = NAVER_COMPLETE_OHLC
        history.get_history.return_value = [bar_factory(4, 74000, high=90000.0, low=50000.0)]

        quote = await resolver.get_quote("005930")

        assert (quote.open, quote.high, quote.low) == (74500, 75500, 74200)
        assert (quote.high_52_week, quote.low_52_week) == (90000.0, 50000.0)

    @pytest.mark.asyncio
    async def test_backfill_failure_returns_partial_quote(self, resolver, naver, history):
        naver.fetch_basic.return_value = {"closePrice": "75,000"}
        history.get_history.side_effect = UpstreamUnavailable("yahoo", "down")

        quote = await resolver.get_quote("005930")

        assert quote.current_price == 75000
        assert quote.open == 0

    @pytest.mark.asyncio
    async def test_naver_failure_falls_back_to_kosdaq_suffix(self, resolver, naver, yahoo, history):
        naver.fetch_basic.side_effect = UpstreamUnavailable("naver_mobile", "blocked")
        yahoo.fetch_chart.side_effect = [
            UpstreamUnavailable("yahoo", "not found"),
            yahoo_chart(45000, exchangeName="KOE", currency="KRW", shortName="Kakao"),
        ]

        quote = await resolver.get_quote("035720")

        assert [c.args[0] for c in yahoo.fetch_chart.await_args_list] == [
            "035720.KS",
            "035720.KQ",
        ]
        assert quote.symbol == "035720"
        assert quote.market == MarketType.KRX
        assert quote.currency == Currency.KRW
        history.get_history.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_naver_invalid_data_falls_back(self, resolver, naver, yahoo):
        naver.fetch_basic.return_value = {"closePrice": "0"}
        yahoo.fetch_chart.return_value = yahoo_chart(75000)

        quote = await resolver.get_quote("005930")

        assert quote.current_price == 75000
        assert quote.name == "삼성전자"

    @pytest.mark.asyncio
    async def test_all_sources_fail(self, resolver, naver, yahoo):
        naver.fetch_basic.side_effect = UpstreamUnavailable("naver_mobile", "blocked")
        last = UpstreamUnavailable("yahoo", "not found .KQ")
        yahoo.fetch_chart.side_effect = [UpstreamUnavailable("yahoo", "not found .KS"), last]

        with pytest.raises(QuoteUnavailable) as exc_info:
            await resolver.get_quote("005930")

        assert exc_info.value.cause is last
        assert exc_info.value.symbol == "005930"


class TestKisResolution:
    @pytest.mark.asyncio
    async def test_kis_success(self, yahoo, naver, history, memory_cache):
        kis_client = MagicMock()
        kis_client.inquire_price = AsyncMock(
            return_value={"stck_prpr": "75000", "stck_prdy_clpr": "74000", "hts_kor_isnm": "삼성전자"}
        )
        factory = MagicMock(return_value=kis_client)
        resolver = QuoteResolver(yahoo, naver, history, memory_cache, kis_client_factory=factory)
        credential = KISCredential("k", "s")

        quote = await resolver.get_quote("005930", credential=credential)

        factory.assert_called_once_with(credential, memory_cache)
        assert quote.current_price == 75000
        naver.fetch_basic.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_kis_failure_is_terminal(self, yahoo, naver, history, memory_cache):
        error = UpstreamUnavailable("kis", "EGW00123")
        kis_client = MagicMock()
        kis_client.inquire_price = AsyncMock(side_effect=error)
        resolver = QuoteResolver(
            yahoo, naver, history, memory_cache, kis_client_factory=lambda c, t: kis_client
        )

        with pytest.raises(QuoteUnavailable) as exc_info:
            await resolver.get_quote("005930", credential=KISCredential("k", "s"))

        assert exc_info.value.cause is error
        naver.fetch_basic.assert_not_awaited()
        yahoo.fetch_chart.assert_not_awaited()


class TestGlobalResolution:
    @pytest.mark.asyncio
    async def test_yahoo_single_attempt(self, resolver, yahoo):
        yahoo.fetch_chart.side_effect = UpstreamUnavailable("yahoo", "timeout")

        with pytest.raises(QuoteUnavailable):
            await resolver.get_quote("aapl")

        yahoo.fetch_chart.assert_awaited_once()
        assert yahoo.fetch_chart.await_args.args[0] == "AAPL"

    @pytest.mark.asyncio
    async def test_dot_symbol_converted_for_yahoo(self, resolver, yahoo):
        yahoo.fetch_chart.return_value = yahoo_chart(400, exchangeName="NYQ")

        quote = await resolver.get_quote("BRK.B", MarketType.NYSE)

        assert yahoo.fetch_chart.await_args.args[0] == "BRK-B"
        assert quote.symbol == "BRK.B"


class TestGetQuotes:
    @pytest.mark.asyncio
    async def test_partial_failure_does_not_abort(self, resolver, yahoo):
        async def fetch_chart(symbol, interval, range_):
            if symbol == "MSFT":
                raise UpstreamUnavailable("yahoo", "timeout")
            return yahoo_chart(180)

        yahoo.fetch_chart.side_effect = fetch_chart

        quotes, errors = await resolver.get_quotes(["AAPL", "MSFT", "AAPL"])

        assert list(quotes) == ["AAPL"]
        assert isinstance(errors["MSFT"], QuoteUnavailable)

    @pytest.mark.asyncio
    async def test_markets_passed_per_symbol(self, resolver, yahoo, naver):
        yahoo.fetch_chart.return_value = yahoo_chart(10)

        quotes, errors = await resolver.get_quotes(["ABC123"], {"ABC123": MarketType.NYSE})

        naver.fetch_basic.assert_not_awaited()
        assert "ABC123" in quotes and not errors


class TestStrategyOutcomes:
    @pytest.mark.asyncio
    async def test_naver_incomplete_outcome(self, naver):
        naver.fetch_basic.return_value = {"closePrice": "100"}
        outcome = await NaverMobileQuoteStrategy(naver).fetch("005930")
        assert outcome.status is OutcomeStatus.INCOMPLETE

    @pytest.mark.asyncio
    async def test_failed_outcome_carries_error(self, naver):
        naver.fetch_basic.return_value = {}
        outcome = await NaverMobileQuoteStrategy(naver).fetch("005930")
        assert outcome.status is OutcomeStatus.FAILED
        assert isinstance(outcome.error, InvalidQuoteData)


class TestMalformedUpstreamPayloads:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_body", [["oops"], {"chart": {"error": "Not Found"}}])
    async def test_bad_symbol_does_not_abort_batch(self, naver, history, memory_cache, bad_body):
        good_body = {"chart": {"result": [yahoo_chart(190, exchangeName="NMS")], "error": None}}

        def handler(request: httpx.Request):
            if request.url.path.endswith("/MSFT"):
                return httpx.Response(200, json=bad_body)
            return httpx.Response(200, json=good_body)

        yahoo_client = YahooFinanceClient(
            base_url="https://yahoo.test", transport=httpx.MockTransport(handler)
        )
        resolver = QuoteResolver(yahoo_client, naver, history, memory_cache)

        quotes, errors = await resolver.get_quotes(["AAPL", "MSFT"])

        assert quotes["AAPL"].current_price == 190
        assert isinstance(errors["MSFT"], QuoteUnavailable)
        assert isinstance(errors["MSFT"].cause, UpstreamUnavailable)

    @pytest.mark.asyncio
    async def test_unexpected_exception_recorded_per_symbol(self, resolver, yahoo):
        boom = AttributeError("'str' object has no attribute 'get'")

        async def fetch_chart(symbol, interval, range_):
            if symbol == "MSFT":
                raise boom
            return yahoo_chart(190)

        yahoo.fetch_chart.side_effect = fetch_chart

        quotes, errors = await resolver.get_quotes(["AAPL", "msft"])

        assert list(quotes) == ["AAPL"]
        assert isinstance(errors["msft"], QuoteUnavailable)
        assert errors["msft"].symbol == "MSFT"
        assert errors["msft"].cause is boom
