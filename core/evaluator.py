"""
Mode resolution and evaluation of parsed expressions.
"""
import asyncio
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List
import structlog

from errors import DivisionByZeroError, ExpressionSyntaxError, MixedModesError
from models.expression import AssetLine, EvalResult, Expression, ExpressionMode, Term, TermKind
from models.market import CachedQuote

logger = structlog.get_logger()

PriceFn = Callable[[str, str], Awaitable[CachedQuote]]


def resolve_mode(expr: Expression) -> ExpressionMode:
    """Numeric if every term is a number, asset if every term is an asset."""
    kinds = {term.kind for term in expr.terms}

    if not kinds:
        raise ExpressionSyntaxError("expression must contain at least one term")
    if len(kinds) > 1:
        raise MixedModesError()
    if TermKind.ASSET in kinds:
        return ExpressionMode.ASSET
    return ExpressionMode.NUMERIC


async def evaluate(expr: Expression, price_fn: PriceFn) -> EvalResult:
    """
    Evaluate an expression.

    Asset mode asks `price_fn` once per unique symbol, in first-seen order,
    for its unit price in the target fiat.
    """
    mode = resolve_mode(expr)

    if mode == ExpressionMode.NUMERIC:
        return EvalResult(
            mode=mode,
            total=evaluate_numeric(expr.terms, expr.operators),
            target_fiat=expr.target_fiat,
            terms=expr.terms,
            operators=expr.operators
        )

    symbols = unique_symbols(expr.terms)
    logger.debug("Resolving asset prices", symbols=symbols, target=expr.target_fiat)

    prices = await gather_prices(price_fn, symbols, expr.target_fiat)
    by_symbol = dict(zip(symbols, prices))

    return EvalResult(
        mode=mode,
        total=combine_asset_terms(expr.terms, expr.operators, by_symbol),
        target_fiat=expr.target_fiat,
        terms=expr.terms,
        operators=expr.operators,
        assets=[AssetLine(symbol=symbol, price=by_symbol[symbol]) for symbol in symbols]
    )


async def gather_prices(
    price_fn: PriceFn,
    symbols: List[str],
    target_fiat: str
) -> List[CachedQuote]:
    """Look up all symbols concurrently; the first failure cancels the rest."""
    tasks = [asyncio.ensure_future(price_fn(symbol, target_fiat)) for symbol in symbols]

    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        # Wait for cancelled lookups so none outlives the failed evaluation
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def evaluate_numeric(terms: List[Term], operators: List[str]) -> Decimal:
    """Strict left-to-right evaluation, no operator precedence."""
    total = terms[0].signed_value

    for operator, term in zip(operators, terms[1:]):
        value = term.signed_value
        if operator == "+":
            total += value
        elif operator == "-":
            total -= value
        elif operator == "*":
            total *= value
        elif operator == "/":
            if value.is_zero():
                raise DivisionByZeroError()
            total /= value
        else:
            raise ExpressionSyntaxError(f"unsupported operator: {operator}")

    return total


def unique_symbols(terms: List[Term]) -> List[str]:
    seen: List[str] = []
    for term in terms:
        if term.symbol not in seen:
            seen.append(term.symbol)
    return seen


def combine_asset_terms(
    terms: List[Term],
    operators: List[str],
    prices: Dict[str, CachedQuote]
) -> Decimal:
    """Sum of value * unit price per term, signed by the joining operator."""
    first = terms[0]
    total = first.signed_value * prices[first.symbol].quote.unit_price

    for operator, term in zip(operators, terms[1:]):
        amount = term.signed_value * prices[term.symbol].quote.unit_price
        if operator == "+":
            total += amount
        elif operator == "-":
            total -= amount
        else:
            raise ExpressionSyntaxError(
                "unsupported operator in asset expression: only + and - are supported"
            )

    return total
