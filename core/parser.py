"""
Expression tokenizer and parser.

Grammar:

    expression   := asset_expr [target] | numeric_expr
    target       := "to" fiat
    asset_expr   := asset_term { ("+" | "-") asset_term }
    numeric_expr := number { ("+" | "-" | "*" | "/") number }
    asset_term   := number asset_symbol

Asset symbols are 2-10 alphanumerics. A symbol may follow its number
directly ("1btc"); in that compact form it is letters only, so input such
as "1e2" is rejected instead of being read as an asset.
"""
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from errors import ExpressionSyntaxError, UserInputError
from models.expression import Expression, Term, TermKind, Token, TokenKind
from models.market import normalize_fx_symbol

OPERATORS = "+-*/"
ASSET_OPERATORS = "+-"
TARGET_KEYWORD = "to"


def tokenize(text: str) -> List[Token]:
    """Split raw input into tokens."""
    tokens: List[Token] = []
    cursor = 0
    length = len(text)

    while cursor < length:
        char = text[cursor]

        if char.isspace():
            cursor += 1
            continue

        if char in OPERATORS:
            previous = tokens[-1] if tokens else None
            is_sign = (
                char in "+-"
                and _starts_number(text, cursor + 1)
                and (previous is None or previous.kind == TokenKind.OPERATOR)
            )
            if not is_sign:
                tokens.append(Token(kind=TokenKind.OPERATOR, text=char, position=cursor))
                cursor += 1
                continue

        if char in "+-" or char == "." or _is_digit(char):
            cursor = _read_number(text, cursor, tokens)
            continue

        if _is_alnum(char):
            end = _scan(text, cursor, _is_alnum)
            tokens.append(_word_token(text[cursor:end], cursor, attached=False))
            cursor = end
            continue

        raise ExpressionSyntaxError(f"invalid token near `{_fragment(text, cursor)}`")

    return tokens


def parse(text: str, default_fiat: str = "USD") -> Expression:
    """
    Parse expression text.

    Raises:
        ExpressionSyntaxError: malformed input
        UserInputError: invalid default fiat
    """
    if not text.strip():
        raise ExpressionSyntaxError("query must not be empty")

    tokens = tokenize(text)
    tokens, target = _split_target(tokens)

    terms, operators = _parse_terms(tokens)
    has_asset = any(term.kind == TermKind.ASSET for term in terms)

    if has_asset and any(op not in ASSET_OPERATORS for op in operators):
        raise ExpressionSyntaxError(
            "unsupported operator in asset expression: only + and - are supported"
        )
    if target is not None and not has_asset:
        raise ExpressionSyntaxError("to clause requires asset terms")

    if target is None:
        return Expression(
            terms=terms,
            operators=operators,
            target_fiat=normalize_fx_symbol(default_fiat, "default_fiat"),
            explicit_target=False
        )

    return Expression(
        terms=terms,
        operators=operators,
        target_fiat=target,
        explicit_target=True
    )


def _split_target(tokens: List[Token]) -> Tuple[List[Token], Optional[str]]:
    keywords = [i for i, token in enumerate(tokens) if token.kind == TokenKind.KEYWORD]
    if not keywords:
        return tokens, None
    if len(keywords) > 1:
        raise ExpressionSyntaxError("only one to clause is allowed")

    index = keywords[0]
    tail = tokens[index + 1:]
    if not tail:
        raise ExpressionSyntaxError("incomplete to clause: expected a 3-letter fiat code")
    if len(tail) > 1 or tail[0].kind != TokenKind.IDENTIFIER:
        raise ExpressionSyntaxError("invalid to clause: expected a single 3-letter fiat code")

    try:
        target = normalize_fx_symbol(tail[0].text, "target")
    except UserInputError as e:
        raise ExpressionSyntaxError(e.message)

    head = tokens[:index]
    if not head:
        raise ExpressionSyntaxError("expression must not be empty before to clause")
    return head, target


def _parse_terms(tokens: List[Token]) -> Tuple[List[Term], List[str]]:
    terms: List[Term] = []
    operators: List[str] = []
    cursor = 0

    while True:
        if cursor >= len(tokens):
            raise ExpressionSyntaxError("expression cannot end with an operator")

        token = tokens[cursor]
        if token.kind != TokenKind.NUMBER:
            raise ExpressionSyntaxError(f"invalid token near `{token.text}`")
        value = _to_decimal(token.text)
        cursor += 1

        if cursor < len(tokens) and tokens[cursor].kind == TokenKind.IDENTIFIER:
            symbol = _asset_symbol(tokens[cursor].text)
            terms.append(Term(kind=TermKind.ASSET, signed_value=value, symbol=symbol))
            cursor += 1
        else:
            terms.append(Term(kind=TermKind.NUMERIC, signed_value=value))

        if cursor >= len(tokens):
            return terms, operators

        token = tokens[cursor]
        if token.kind != TokenKind.OPERATOR:
            raise ExpressionSyntaxError(f"invalid token near `{token.text}`")
        operators.append(token.text)
        cursor += 1


def _read_number(text: str, start: int, tokens: List[Token]) -> int:
    """Read a number literal, plus any compact or spaced symbol that follows it."""
    cursor = start
    if text[cursor] in "+-":
        cursor += 1

    digits_end = _scan(text, cursor, _is_digit)
    integer_digits = digits_end - cursor
    cursor = digits_end

    fraction_digits = 0
    saw_dot = False
    if cursor < len(text) and text[cursor] == ".":
        saw_dot = True
        fraction_end = _scan(text, cursor + 1, _is_digit)
        fraction_digits = fraction_end - cursor - 1
        cursor = fraction_end

    if integer_digits == 0 and fraction_digits == 0:
        raise ExpressionSyntaxError(f"invalid number token near `{_fragment(text, start)}`")
    if saw_dot and fraction_digits == 0:
        raise ExpressionSyntaxError(
            "invalid number token: decimal point must be followed by digits"
        )

    tokens.append(Token(kind=TokenKind.NUMBER, text=text[start:cursor], position=start))

    # Compact form: letters glued to the number
    if cursor < len(text) and _is_letter(text[cursor]):
        letters_end = _scan(text, cursor, _is_letter)
        if letters_end < len(text) and _is_digit(text[letters_end]):
            word_end = _scan(text, letters_end, _is_alnum)
            raise ExpressionSyntaxError(f"invalid asset token: {text[cursor:word_end]}")
        tokens.append(_word_token(text[cursor:letters_end], cursor, attached=True))
        return letters_end

    # Spaced form: the symbol may contain digits ("10 1inch")
    symbol_start = _scan(text, cursor, str.isspace)
    if symbol_start > cursor and symbol_start < len(text) and _is_alnum(text[symbol_start]):
        symbol_end = _scan(text, symbol_start, _is_alnum)
        tokens.append(_word_token(text[symbol_start:symbol_end], symbol_start, attached=False))
        return symbol_end

    return cursor


def _word_token(word: str, position: int, attached: bool) -> Token:
    if word.lower() == TARGET_KEYWORD:
        return Token(kind=TokenKind.KEYWORD, text=TARGET_KEYWORD, position=position)
    return Token(kind=TokenKind.IDENTIFIER, text=word, position=position, attached=attached)


def _asset_symbol(raw: str) -> str:
    symbol = raw.upper()
    if not 2 <= len(symbol) <= 10 or not _is_alnum_word(symbol):
        raise ExpressionSyntaxError(f"invalid asset token: {raw}")
    return symbol


def _to_decimal(literal: str) -> Decimal:
    try:
        return Decimal(literal)
    except InvalidOperation:
        raise ExpressionSyntaxError(f"invalid number token: {literal}")


def _starts_number(text: str, index: int) -> bool:
    if index >= len(text):
        return False
    if _is_digit(text[index]):
        return True
    return text[index] == "." and index + 1 < len(text) and _is_digit(text[index + 1])


def _scan(text: str, start: int, predicate) -> int:
    end = start
    while end < len(text) and predicate(text[end]):
        end += 1
    return end


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def _is_letter(char: str) -> bool:
    return char.isascii() and char.isalpha()


def _is_alnum(char: str) -> bool:
    return char.isascii() and char.isalnum()


def _is_alnum_word(word: str) -> bool:
    return word.isascii() and word.isalnum()


def _fragment(text: str, cursor: int) -> str:
    return text[cursor:cursor + 16]
