"""Tests for portfolio CSV import/export."""

import pytest

from stockfolio.models import Currency, MarketType
from stockfolio.schemas.portfolio import HoldingInput
from stockfolio.services.portfolio_csv import (
    BOM,
    export_portfolio_csv,
    parse_portfolio_csv,
)


@pytest.fixture
def holdings():
    return [
        HoldingInput(
            symbol="005930",
            name="삼성전자",
            market=MarketType.KRX,
            currency=Currency.KRW,
            avg_price=70000,
            quantity=5,
        ),
        HoldingInput(
            symbol="AAPL",
            name="Apple Inc., Class A",
            market=MarketType.NASDAQ,
            currency=Currency.USD,
            avg_price=182.5,
            quantity=3,
        ),
    ]


class TestExport:
    def test_format(self, holdings):
        text = export_portfolio_csv(holdings)

        assert text.startswith(BOM)
        lines = text.removeprefix(BOM).split("\r\n")
        assert lines[0] == "symbol,name,market,currency,avgPrice,quantity"
        assert lines[1] == "005930,삼성전자,KRX,KRW,70000,5"
        # 쉼표가 들어간 이름은 따옴표 처리
        assert lines[2] == 'AAPL,"Apple Inc., Class A",NASDAQ,USD,182.5,3'

    def test_export_then_import_preserves_holdings(self, holdings):
        result = parse_portfolio_csv(export_portfolio_csv(holdings))

        assert result.errors == []
        assert result.valid == holdings

    def test_empty_export_is_header_only(self):
        assert export_portfolio_csv([]) == BOM + "symbol,name,market,currency,avgPrice,quantity\r\n"


class TestImport:
    def test_without_header(self):
        result = parse_portfolio_csv("005930,삼성전자,KRX,KRW,70000,5\n")

        assert len(result.valid) == 1
        assert result.valid[0].avg_price == 70000

    def test_skips_blank_lines_and_strips_cells(self):
        text = "symbol,name,market,currency,avgPrice,quantity\r\n\r\n 005930 , 삼성전자 ,KRX,KRW, 70000 ,5\r\n\r\n"

        result = parse_portfolio_csv(text)

        assert [h.symbol for h in result.valid] == ["005930"]
        assert result.valid[0].name == "삼성전자"

    def test_row_errors_are_numbered_from_header(self):
        text = "\n".join(
            [
                "symbol,name,market,currency,avgPrice,quantity",
                "005930,삼성전자,KRX,KRW,70000,5",
                "AAPL,Apple,NASDAQ,USD,-1,3",
                "",
                "MSFT,Microsoft,LSE,USD,400,1",
                "TSLA,Tesla",
                "NVDA,NVIDIA,NASDAQ,USD,120,2",
            ]
        )

        result = parse_portfolio_csv(text)

        assert [h.symbol for h in result.valid] == ["005930", "NVDA"]
        assert [e.row for e in result.errors] == [3, 4, 5]
        assert result.errors[0].raw == "AAPL,Apple,NASDAQ,USD,-1,3"
        assert "avgPrice" in result.errors[0].message
        assert "market" in result.errors[1].message

    def test_invalid_symbol_characters(self):
        result = parse_portfolio_csv("삼성,삼성전자,KRX,KRW,70000,5")

        assert result.valid == []
        assert result.errors[0].row == 1
        assert "symbol" in result.errors[0].message

    def test_empty_text(self):
        result = parse_portfolio_csv(BOM)
        assert result.valid == [] and result.errors == []
