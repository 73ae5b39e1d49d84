"""
Portfolio CSV import/export

내보내기: UTF-8 BOM + CRLF, 헤더 symbol,name,market,currency,avgPrice,quantity
가져오기: BOM/줄바꿈 정규화, 빈 줄과 헤더 무시, 행마다 HoldingInput 검증
"""
import csv
import io
from collections.abc import Iterable
from dataclasses import dataclass, field

from pydantic import ValidationError

from stockfolio.schemas.portfolio import HoldingInput

CSV_HEADERS = ["symbol", "name", "market", "currency", "avgPrice", "quantity"]
BOM = "\ufeff"


@dataclass
class CsvRowError:
    row: int  # 1부터 (헤더 포함)
    raw: str
    message: str


@dataclass
class CsvParseResult:
    valid: list[HoldingInput] = field(default_factory=list)
    errors: list[CsvRowError] = field(default_factory=list)


def _format_number(value: float | int) -> str:
    # 70000.0 → "70000", 182.5 → "182.5"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def export_portfolio_csv(holdings: Iterable[HoldingInput]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(CSV_HEADERS)
    for h in holdings:
        writer.writerow(
            [
                h.symbol,
                h.name,
                h.market.value,
                h.currency.value,
                _format_number(h.avg_price),
                _format_number(h.quantity),
            ]
        )
    return BOM + buffer.getvalue()


def _error_message(exc: ValidationError) -> str:
    return ", ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'row'}: {err['msg']}"
        for err in exc.errors()
    )


def parse_portfolio_csv(text: str) -> CsvParseResult:
    """CSV 텍스트 → 유효한 행 + 행별 오류"""
    normalized = text.removeprefix(BOM).replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.strip() for line in normalized.split("\n")]
    lines = [line for line in lines if line]

    result = CsvParseResult()
    start = 1 if lines and lines[0].lower().startswith("symbol") else 0

    for i in range(start, len(lines)):
        line = lines[i]
        cols = [col.strip() for col in next(csv.reader([line]), [])]
        cols += [""] * (len(CSV_HEADERS) - len(cols))
        symbol, name, market, currency, avg_price, quantity = cols[: len(CSV_HEADERS)]

        try:
            holding = HoldingInput.model_validate(
                {
                    "symbol": symbol,
                    "name": name,
                    "market": market,
                    "currency": currency,
                    "avgPrice": avg_price,
                    "quantity": quantity,
                }
            )
        except ValidationError as e:
            result.errors.append(
                CsvRowError(row=i + 1, raw=line, message=_error_message(e))
            )
            continue
        result.valid.append(holding)

    return result
