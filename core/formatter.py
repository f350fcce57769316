"""
Display rounding and result rows.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from models.expression import DisplayRow, EvalResult, ExpressionMode
from models.market import CacheStatus, MarketOutput, decimal_to_string, quantize_places

_HUNDRED = Decimal(100)
_THOUSAND = Decimal(1000)


def decimal_places(value: Decimal) -> int:
    """2 places below 100, 1 below 1000, none from 1000 up."""
    magnitude = abs(value)
    if magnitude < _HUNDRED:
        return 2
    if magnitude < _THOUSAND:
        return 1
    return 0


def format_market_value(value: Decimal) -> str:
    """Round a full-precision value for display, half-up."""
    places = decimal_places(value)
    rounded = quantize_places(value, places, ROUND_HALF_UP)
    if rounded.is_zero():
        rounded = abs(rounded)
    return format(rounded, "f")


def format_plain_decimal(value: Decimal) -> str:
    return decimal_to_string(value)


def cache_status_label(status: CacheStatus) -> str:
    return status.value


def build_rows(result: EvalResult) -> List[DisplayRow]:
    """One row per unique asset unit price, then the total row."""
    if result.mode == ExpressionMode.NUMERIC:
        rendered = format_plain_decimal(result.total)
        return [DisplayRow(title=rendered, subtitle="Numeric result", arg=rendered)]

    fiat = result.target_fiat
    rows = []

    for line in result.assets:
        price = format_market_value(line.price.quote.unit_price)
        rows.append(DisplayRow(
            title=f"1 {line.symbol} = {price} {fiat}",
            subtitle=(
                f"provider: {line.price.quote.provider} · "
                f"freshness: {cache_status_label(line.price.status)}"
            ),
            arg=f"{price} {fiat}"
        ))

    total = format_market_value(result.total)
    rows.append(DisplayRow(
        title=f"Total = {total} {fiat}",
        subtitle=f"{asset_formula(result)} = {total} {fiat}",
        arg=f"{total} {fiat}"
    ))
    return rows


def asset_formula(result: EvalResult) -> str:
    """Human formula, e.g. 'Formula: 1*60000(BTC) + 3*3000(ETH)'."""
    pieces = []
    for index, term in enumerate(result.terms):
        unit_price = result.price_for(term.symbol).quote.unit_price
        piece = (
            f"{format_plain_decimal(term.signed_value)}"
            f"*{format_market_value(unit_price)}({term.symbol})"
        )
        if index > 0:
            piece = f"{result.operators[index - 1]} {piece}"
        pieces.append(piece)
    return "Formula: " + " ".join(pieces)


def rows_payload(rows: List[DisplayRow]) -> Dict:
    return {"items": [row.model_dump() for row in rows]}


def format_rows_human(rows: List[DisplayRow]) -> str:
    lines = []
    for row in rows:
        lines.append(f"{row.title} | {row.subtitle}" if row.subtitle else row.title)
    return "\n".join(lines)


def format_market_human(output: MarketOutput) -> str:
    """e.g. 'FX 100 USD -> 3125 JPY (price=31.25 provider=frankfurter cache=live)'"""
    return (
        f"{output.kind.value.upper()} {output.amount} {output.base} -> "
        f"{output.converted} {output.quote} "
        f"(price={output.unit_price} provider={output.provider} "
        f"cache={cache_status_label(output.cache.status)})"
    )
