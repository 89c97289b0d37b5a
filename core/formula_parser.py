from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from core.operator_config import OperatorConfig, load_operator_config
from core.prop import AndNode, FalseNode, IffNode, ImplicNode, NotNode, OrNode, Prop, SymbolNode, TrueNode

logger = logging.getLogger(__name__)


class FormulaParseError(ValueError):
    pass


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    pos: int


# Higher binds tighter. Equal precedence is never flushed, so binary operators are right-associative.
PRECEDENCE = {
    "NOT": 5,
    "AND": 4,
    "OR": 3,
    "IMPLIES": 2,
    "IFF": 1,
}

BINARY_NODES = {
    "AND": AndNode,
    "OR": OrNode,
    "IMPLIES": ImplicNode,
    "IFF": IffNode,
}

OPERAND_TYPES = {"SYMBOL", "TRUE", "FALSE"}

_WORD_RE = re.compile(r"\S+")


def _near(formula: str, pos: int, *, window: int = 40) -> str:
    start = max(0, pos - window)
    end = min(len(formula), pos + window)
    snippet = formula[start:end]
    return snippet.replace("\n", " ").replace("\r", " ").replace("\t", " ")


def _split_glued_parens(raw: str, pos: int, op_config: OperatorConfig) -> list[Token]:
    """Split `(p`, `q)`, `((p)` into paren tokens around the core token."""
    leading: list[Token] = []
    trailing: list[Token] = []
    start, end = 0, len(raw)

    matched = True
    while matched and start < end:
        matched = False
        for lparen in op_config.lparen_ops:
            if raw.startswith(lparen, start) and start + len(lparen) <= end:
                leading.append(Token("LPAREN", lparen, pos + start))
                start += len(lparen)
                matched = True
                break

    matched = True
    while matched and start < end:
        matched = False
        for rparen in op_config.rparen_ops:
            if raw.endswith(rparen, start, end) and end - len(rparen) >= start:
                end -= len(rparen)
                trailing.append(Token("RPAREN", rparen, pos + end))
                matched = True
                break

    tokens = leading
    core = raw[start:end]
    if core:
        tokens.append(Token(op_config.classify(core) or "SYMBOL", core, pos + start))
    tokens.extend(reversed(trailing))
    return tokens


def tokenize(
    formula: str,
    op_config: OperatorConfig | None = None,
    *,
    log_extra: dict[str, str] | None = None,
) -> list[Token]:
    """Tokenize a whitespace-delimited formula using the operator config.

    Parentheses glued to a token are split off. `True`/`False` become constants,
    every other non-operator token is a symbol name.

    Special logs:
    - TOKENIZE_START / TOKENIZE_OK
    """
    op_config = op_config or load_operator_config(log_extra=log_extra)

    if log_extra:
        logger.info("TOKENIZE_START: len=%d", len(formula), extra=log_extra)
    else:
        logger.info("TOKENIZE_START: len=%d", len(formula))

    tokens: list[Token] = []
    for match in _WORD_RE.finditer(formula):
        raw = match.group()
        kind = op_config.classify(raw)
        if kind is not None:
            tokens.append(Token(kind, raw, match.start()))
        else:
            tokens.extend(_split_glued_parens(raw, match.start(), op_config))

    if log_extra:
        logger.info("TOKENIZE_OK: tokens=%d", len(tokens), extra=log_extra)
    else:
        logger.info("TOKENIZE_OK: tokens=%d", len(tokens))

    return tokens


class Parser:
    """Shunting-yard parser: infix tokens -> postfix queue -> Prop."""

    def __init__(self, tokens: list[Token], formula: str):
        self.tokens = tokens
        self.formula = formula

    def _error(self, message: str, pos: int) -> FormulaParseError:
        near = _near(self.formula, pos)
        return FormulaParseError(f"PARSE_FAILED: {message} at pos={pos} near='{near}'")

    def to_postfix(self) -> list[Token]:
        output: list[Token] = []
        ops: list[Token] = []
        expect_operand = True

        for token in self.tokens:
            if token.type in OPERAND_TYPES:
                if not expect_operand:
                    raise self._error(f"missing operator before '{token.value}'", token.pos)
                output.append(token)
                expect_operand = False
            elif token.type in ("NOT", "LPAREN"):
                if not expect_operand:
                    raise self._error(f"missing operator before '{token.value}'", token.pos)
                ops.append(token)
            elif token.type == "RPAREN":
                if expect_operand:
                    raise self._error(f"missing operand before '{token.value}'", token.pos)
                while True:
                    if not ops:
                        raise self._error("unbalanced parentheses", token.pos)
                    op = ops.pop()
                    if op.type == "LPAREN":
                        break
                    output.append(op)
            elif token.type in BINARY_NODES:
                if expect_operand:
                    raise self._error(f"missing operand before '{token.value}'", token.pos)
                precedence = PRECEDENCE[token.type]
                while ops and ops[-1].type != "LPAREN" and PRECEDENCE[ops[-1].type] > precedence:
                    output.append(ops.pop())
                ops.append(token)
                expect_operand = True
            else:
                raise self._error(f"unexpected token '{token.value}'", token.pos)

        if expect_operand:
            raise self._error("missing operand at end of formula", len(self.formula))

        while ops:
            op = ops.pop()
            if op.type == "LPAREN":
                raise self._error("unbalanced parentheses", op.pos)
            output.append(op)
        return output

    def build(self, postfix: list[Token]) -> Prop:
        stack: list[Prop] = []
        for token in postfix:
            if token.type in BINARY_NODES:
                if len(stack) < 2:
                    raise self._error(f"operator '{token.value}' is missing an operand", token.pos)
                right = stack.pop()
                left = stack.pop()
                stack.append(BINARY_NODES[token.type](left, right))
            elif token.type == "NOT":
                if not stack:
                    raise self._error(f"operator '{token.value}' is missing an operand", token.pos)
                stack.append(NotNode(stack.pop()))
            elif token.type == "TRUE":
                stack.append(TrueNode())
            elif token.type == "FALSE":
                stack.append(FalseNode())
            else:
                stack.append(SymbolNode(token.value))

        if len(stack) != 1:
            raise self._error("malformed formula", len(self.formula))
        return stack[0]

    def parse(self) -> Prop:
        if not self.tokens:
            raise self._error("formula is empty", 0)
        return self.build(self.to_postfix())


def parse_formula(
    formula: str,
    op_config: OperatorConfig | None = None,
    *,
    log_extra: dict[str, str] | None = None,
) -> Prop:
    """Parse an infix formula such as `p & q => r`.

    Special logs:
    - PARSE_START / PARSE_OK / PARSE_FAILED
    """
    op_config = op_config or load_operator_config(log_extra=log_extra)

    if log_extra:
        logger.info("PARSE_START: len=%d", len(formula), extra=log_extra)
    else:
        logger.info("PARSE_START: len=%d", len(formula))

    tokens = tokenize(formula, op_config, log_extra=log_extra)
    parser = Parser(tokens, formula)
    try:
        node = parser.parse()
    except FormulaParseError as exc:
        token_dump = " ".join(f"{t.type}:{t.value}@{t.pos}" for t in tokens[:200])
        if len(tokens) > 200:
            token_dump += " ... (truncated)"
        if log_extra:
            logger.error("%s token_dump=%s", exc, token_dump, extra=log_extra)
        else:
            logger.error("%s token_dump=%s", exc, token_dump)
        raise

    if log_extra:
        logger.info("PARSE_OK: tokens=%d", len(tokens), extra=log_extra)
    else:
        logger.info("PARSE_OK: tokens=%d", len(tokens))

    return node
