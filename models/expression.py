"""
Data models for parsed expressions and their results.
"""
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from models.market import CachedQuote


class TokenKind(str, Enum):
    NUMBER = "number"
    IDENTIFIER = "identifier"
    OPERATOR = "operator"
    KEYWORD = "keyword"


class Token(BaseModel):
    """Lexical token with its offset in the source text."""
    kind: TokenKind
    text: str
    position: int = 0
    # True when an identifier touches the preceding number ("1btc")
    attached: bool = False

    class Config:
        frozen = True


class TermKind(str, Enum):
    NUMERIC = "numeric"
    ASSET = "asset"


class Term(BaseModel):
    kind: TermKind
    signed_value: Decimal
    symbol: Optional[str] = None

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_symbol(self) -> "Term":
        if self.kind == TermKind.ASSET and not self.symbol:
            raise ValueError("asset terms require a symbol")
        if self.kind == TermKind.NUMERIC and self.symbol is not None:
            raise ValueError("numeric terms cannot carry a symbol")
        return self


class ExpressionMode(str, Enum):
    NUMERIC = "numeric"
    ASSET = "asset"


class Expression(BaseModel):
    """
    Parsed expression.

    `operators[i]` joins `terms[i]` and `terms[i + 1]`.
    """
    terms: List[Term]
    operators: List[str] = Field(default_factory=list)
    target_fiat: str = "USD"
    explicit_target: bool = False

    class Config:
        frozen = True


class AssetLine(BaseModel):
    """Unit price used for one unique asset."""
    symbol: str
    price: CachedQuote


class EvalResult(BaseModel):
    """Full-precision evaluation result; rounding happens in the formatter."""
    mode: ExpressionMode
    total: Decimal
    target_fiat: str
    terms: List[Term] = Field(default_factory=list)
    operators: List[str] = Field(default_factory=list)
    assets: List[AssetLine] = Field(default_factory=list)

    def price_for(self, symbol: str) -> CachedQuote:
        for line in self.assets:
            if line.symbol == symbol:
                return line.price
        raise KeyError(symbol)


class DisplayRow(BaseModel):
    """One rendered result row."""
    title: str
    subtitle: str = ""
    arg: str = ""
    valid: bool = True
