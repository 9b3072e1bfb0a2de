"""Recursive-descent PromQL parser.

Builds the tree defined in ``ast.py`` from a query string. The parser checks
syntax only (grammar, function names and arities, modifier placement); it does
not type-check operands or evaluate anything.

Operator precedence, lowest first::

    or
    and unless
    == != <= < >= >      (optionally followed by ``bool``)
    + -
    * / % atan2
    ^                    (right associative)

Unary ``+``/``-`` bind tighter than everything except ``^``.
"""
from __future__ import annotations

import re

from ..utils.exceptions import PromQLSyntaxError
from .ast import (
    AggregateExpr,
    AtModifier,
    BinaryExpr,
    Call,
    Duration,
    LabelMatcher,
    MatchOp,
    MatrixSelector,
    Node,
    NumberLiteral,
    ParenExpr,
    StringLiteral,
    SubqueryExpr,
    UnaryExpr,
    VectorMatching,
    VectorSelector,
)
from .lexer import Token, TokenKind, parse_duration, tokenize


__all__ = [
    "AGGREGATORS",
    "FUNCTIONS",
    "Parser",
    "parse_expr",
]

AGGREGATORS = {
    "sum", "avg", "count", "min", "max", "group", "stddev", "stdvar",
    "topk", "bottomk", "count_values", "quantile", "limitk", "limit_ratio",
}
# aggregators whose first argument is a parameter rather than the vector
_PARAM_AGGREGATORS = {"topk", "bottomk", "count_values", "quantile", "limitk", "limit_ratio"}

# name -> (min args, max args); None means variadic
FUNCTIONS: dict[str, tuple[int, int | None]] = {
    "abs": (1, 1),
    "absent": (1, 1),
    "absent_over_time": (1, 1),
    "acos": (1, 1),
    "acosh": (1, 1),
    "asin": (1, 1),
    "asinh": (1, 1),
    "atan": (1, 1),
    "atanh": (1, 1),
    "avg_over_time": (1, 1),
    "ceil": (1, 1),
    "changes": (1, 1),
    "clamp": (3, 3),
    "clamp_max": (2, 2),
    "clamp_min": (2, 2),
    "cos": (1, 1),
    "cosh": (1, 1),
    "count_over_time": (1, 1),
    "day_of_month": (0, 1),
    "day_of_week": (0, 1),
    "day_of_year": (0, 1),
    "days_in_month": (0, 1),
    "deg": (1, 1),
    "delta": (1, 1),
    "deriv": (1, 1),
    "double_exponential_smoothing": (3, 3),
    "exp": (1, 1),
    "first_over_time": (1, 1),
    "floor": (1, 1),
    "histogram_avg": (1, 1),
    "histogram_count": (1, 1),
    "histogram_fraction": (3, 3),
    "histogram_quantile": (2, 2),
    "histogram_stddev": (1, 1),
    "histogram_stdvar": (1, 1),
    "histogram_sum": (1, 1),
    "holt_winters": (3, 3),
    "hour": (0, 1),
    "idelta": (1, 1),
    "increase": (1, 1),
    "info": (1, 2),
    "irate": (1, 1),
    "label_join": (3, None),
    "label_replace": (5, 5),
    "last_over_time": (1, 1),
    "ln": (1, 1),
    "log10": (1, 1),
    "log2": (1, 1),
    "mad_over_time": (1, 1),
    "max_over_time": (1, 1),
    "min_over_time": (1, 1),
    "minute": (0, 1),
    "month": (0, 1),
    "pi": (0, 0),
    "predict_linear": (2, 2),
    "present_over_time": (1, 1),
    "quantile_over_time": (2, 2),
    "rad": (1, 1),
    "rate": (1, 1),
    "resets": (1, 1),
    "round": (1, 2),
    "scalar": (1, 1),
    "sgn": (1, 1),
    "sin": (1, 1),
    "sinh": (1, 1),
    "sort": (1, 1),
    "sort_by_label": (1, None),
    "sort_by_label_desc": (1, None),
    "sort_desc": (1, 1),
    "sqrt": (1, 1),
    "stddev_over_time": (1, 1),
    "stdvar_over_time": (1, 1),
    "sum_over_time": (1, 1),
    "tan": (1, 1),
    "tanh": (1, 1),
    "time": (0, 0),
    "timestamp": (1, 1),
    "ts_of_last_over_time": (1, 1),
    "ts_of_max_over_time": (1, 1),
    "ts_of_min_over_time": (1, 1),
    "vector": (1, 1),
    "year": (0, 1),
}

_PRECEDENCE = {
    "or": 1,
    "and": 2, "unless": 2,
    "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3,
    "+": 4, "-": 4,
    "*": 5, "/": 5, "%": 5, "atan2": 5,
    "^": 6,
}
_COMPARISON_OPS = {"==", "!=", "<", "<=", ">", ">="}
_SET_OPS = {"and", "or", "unless"}
_WORD_OPS = {"and", "or", "unless", "atan2"}
_SYMBOL_OP_KINDS = {
    TokenKind.ADD, TokenKind.SUB, TokenKind.MUL, TokenKind.DIV, TokenKind.MOD, TokenKind.POW,
    TokenKind.EQLC, TokenKind.NEQ, TokenKind.LSS, TokenKind.LTE, TokenKind.GTR, TokenKind.GTE,
}
_MATCH_OPS = {
    TokenKind.ASSIGN: MatchOp.EQUAL,
    TokenKind.NEQ: MatchOp.NOT_EQUAL,
    TokenKind.EQL_REGEX: MatchOp.REGEX,
    TokenKind.NEQ_REGEX: MatchOp.NOT_REGEX,
}


def _parse_number(tok: Token) -> float:
    text = tok.text.lower()
    if text in ("inf", "nan"):
        return float(text)
    if text.startswith("0x"):
        return float(int(text, 16))
    return float(text)


def _matches_empty(m: LabelMatcher) -> bool:
    if m.op is MatchOp.EQUAL:
        return m.value == ""
    if m.op is MatchOp.NOT_EQUAL:
        return m.value != ""
    try:
        hit = re.fullmatch(m.value, "") is not None
    except re.error:
        return False
    return hit if m.op is MatchOp.REGEX else not hit


class Parser:
    """Parses a single PromQL expression. Use once per string."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def parse(self) -> Node:
        if self._peek().kind is TokenKind.EOF:
            raise self._error("no expression found in input", self._peek())
        expr = self._parse_expr(1)
        tok = self._peek()
        if tok.kind is not TokenKind.EOF:
            raise self._error(f"unexpected {tok.describe()}", tok)
        return expr

    # token helpers

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _next(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind is not TokenKind.EOF:
            self.pos += 1
        return tok

    def _expect(self, kind: TokenKind, context: str) -> Token:
        tok = self._next()
        if tok.kind is not kind:
            raise self._error(f'unexpected {tok.describe()} in {context}, expected "{kind.value}"', tok)
        return tok

    def _is_keyword(self, *words: str) -> bool:
        tok = self._peek()
        return tok.kind is TokenKind.IDENTIFIER and tok.text.lower() in words

    def _error(self, message: str, tok: Token) -> PromQLSyntaxError:
        return PromQLSyntaxError(message, self.text, tok.pos)

    def _duration(self, context: str) -> Duration:
        tok = self._next()
        if tok.kind is not TokenKind.DURATION:
            raise self._error(f"unexpected {tok.describe()} in {context}, expected duration", tok)
        return Duration(tok.text, parse_duration(tok.text, tok.pos, self.text))

    # expressions

    def _binary_op(self) -> str | None:
        tok = self._peek()
        if tok.kind is TokenKind.IDENTIFIER:
            word = tok.text.lower()
            return word if word in _WORD_OPS else None
        if tok.kind in _SYMBOL_OP_KINDS:
            return tok.text
        return None

    def _parse_expr(self, min_prec: int) -> Node:
        lhs = self._parse_unary()
        while True:
            op = self._binary_op()
            if op is None:
                break
            prec = _PRECEDENCE[op]
            if prec < min_prec:
                break
            op_tok = self._next()
            return_bool = False
            if self._is_keyword("bool"):
                if op not in _COMPARISON_OPS:
                    raise self._error("bool modifier can only be used on comparison operators", self._peek())
                self._next()
                return_bool = True
            matching = self._parse_vector_matching(op, op_tok)
            # ^ is right associative, everything else left
            rhs = self._parse_expr(prec if op == "^" else prec + 1)
            lhs = BinaryExpr(op=op, lhs=lhs, rhs=rhs, return_bool=return_bool, matching=matching)
        return lhs

    def _parse_vector_matching(self, op: str, op_tok: Token) -> VectorMatching | None:
        if not self._is_keyword("on", "ignoring"):
            if self._is_keyword("group_left", "group_right"):
                raise self._error("grouping modifier requires on(...) or ignoring(...)", self._peek())
            return None
        kw = self._next().text.lower()
        matching = VectorMatching(on=kw == "on", labels=self._parse_label_list("grouping opts"))
        if self._is_keyword("group_left", "group_right"):
            if op in _SET_OPS:
                raise self._error(f'no grouping allowed for "{op}" operation', op_tok)
            side = self._next().text.lower()
            matching.card = "many-to-one" if side == "group_left" else "one-to-many"
            if self._peek().kind is TokenKind.LEFT_PAREN:
                matching.include = self._parse_label_list("grouping opts")
        elif op in _SET_OPS:
            matching.card = "many-to-many"
        return matching

    def _parse_unary(self) -> Node:
        tok = self._peek()
        if tok.kind in (TokenKind.ADD, TokenKind.SUB):
            self._next()
            operand = self._parse_expr(_PRECEDENCE["^"])
            if isinstance(operand, NumberLiteral):
                return NumberLiteral(-operand.value if tok.kind is TokenKind.SUB else operand.value)
            return UnaryExpr(op=tok.text, expr=operand)
        return self._parse_postfix(self._parse_primary())

    def _parse_primary(self) -> Node:
        tok = self._peek()
        kind = tok.kind
        if kind is TokenKind.NUMBER:
            self._next()
            return NumberLiteral(_parse_number(tok))
        if kind is TokenKind.STRING:
            self._next()
            return StringLiteral(tok.value or "")
        if kind is TokenKind.LEFT_PAREN:
            self._next()
            inner = self._parse_expr(1)
            self._expect(TokenKind.RIGHT_PAREN, "parenthesized expression")
            return ParenExpr(inner)
        if kind is TokenKind.LEFT_BRACE:
            return self._parse_vector_selector("", tok)
        if kind is TokenKind.IDENTIFIER:
            self._next()
            word = tok.text
            if word.lower() in AGGREGATORS and (
                self._peek().kind is TokenKind.LEFT_PAREN or self._is_keyword("by", "without")
            ):
                return self._parse_aggregate(word.lower(), tok)
            if self._peek().kind is TokenKind.LEFT_PAREN:
                return self._parse_call(word, tok)
            return self._parse_vector_selector(word, tok)
        raise self._error(f"unexpected {tok.describe()}", tok)

    def _parse_label_list(self, context: str) -> list[str]:
        self._expect(TokenKind.LEFT_PAREN, context)
        labels: list[str] = []
        while self._peek().kind is not TokenKind.RIGHT_PAREN:
            tok = self._next()
            if tok.kind is TokenKind.IDENTIFIER:
                labels.append(tok.text)
            elif tok.kind is TokenKind.STRING:
                labels.append(tok.value or "")
            elif tok.kind is TokenKind.NUMBER and tok.text.lower() in ("inf", "nan"):
                labels.append(tok.text)
            else:
                raise self._error(f"unexpected {tok.describe()} in {context}, expected label", tok)
            if self._peek().kind is TokenKind.COMMA:
                self._next()
            elif self._peek().kind is not TokenKind.RIGHT_PAREN:
                nxt = self._peek()
                raise self._error(f'unexpected {nxt.describe()} in {context}, expected "," or ")"', nxt)
        self._next()
        return labels

    def _parse_args(self, context: str) -> list[Node]:
        args: list[Node] = []
        if self._peek().kind is TokenKind.RIGHT_PAREN:
            self._next()
            return args
        while True:
            args.append(self._parse_expr(1))
            tok = self._next()
            if tok.kind is TokenKind.RIGHT_PAREN:
                return args
            if tok.kind is not TokenKind.COMMA:
                raise self._error(f'unexpected {tok.describe()} in {context}, expected "," or ")"', tok)

    def _parse_aggregate(self, op: str, op_tok: Token) -> AggregateExpr:
        grouping: list[str] = []
        without = False
        grouped = False
        if self._is_keyword("by", "without"):
            without = self._next().text.lower() == "without"
            grouping = self._parse_label_list("grouping opts")
            grouped = True
        self._expect(TokenKind.LEFT_PAREN, "aggregation")
        args = self._parse_args("aggregation")
        if self._is_keyword("by", "without"):
            if grouped:
                raise self._error("aggregation grouping may only be given once", self._peek())
            without = self._next().text.lower() == "without"
            grouping = self._parse_label_list("grouping opts")
        expected = 2 if op in _PARAM_AGGREGATORS else 1
        if len(args) != expected:
            raise self._error(
                f"wrong number of arguments for aggregate expression provided, expected {expected}, got {len(args)}",
                op_tok,
            )
        if expected == 2:
            return AggregateExpr(op=op, expr=args[1], param=args[0], grouping=grouping, without=without)
        return AggregateExpr(op=op, expr=args[0], grouping=grouping, without=without)

    def _parse_call(self, name: str, name_tok: Token) -> Call:
        if name not in FUNCTIONS:
            raise self._error(f"unknown function with name {name!r}", name_tok)
        self._expect(TokenKind.LEFT_PAREN, "function call")
        args = self._parse_args("function call")
        lo, hi = FUNCTIONS[name]
        n = len(args)
        if n < lo or (hi is not None and n > hi):
            if lo == hi:
                want = f"{lo}"
            elif hi is None:
                want = f"at least {lo}"
            else:
                want = f"{lo} to {hi}"
            raise self._error(f'expected {want} argument(s) in call to "{name}", got {n}', name_tok)
        return Call(func=name, args=args)

    def _parse_vector_selector(self, name: str, start: Token) -> VectorSelector:
        matchers: list[LabelMatcher] = []
        if self._peek().kind is TokenKind.LEFT_BRACE:
            self._next()
            matchers, quoted_name = self._parse_matchers()
            if quoted_name:
                if name:
                    raise self._error("metric name must not be set twice", start)
                name = quoted_name
        if name:
            if any(m.name == "__name__" for m in matchers):
                raise self._error(f"metric name must not be set twice: {name!r}", start)
        elif all(_matches_empty(m) for m in matchers):
            raise self._error("vector selector must contain at least one non-empty matcher", start)
        return VectorSelector(name=name, matchers=matchers)

    def _parse_matchers(self) -> tuple[list[LabelMatcher], str]:
        matchers: list[LabelMatcher] = []
        quoted_name = ""
        while self._peek().kind is not TokenKind.RIGHT_BRACE:
            tok = self._next()
            if tok.kind is TokenKind.STRING and self._peek().kind in (TokenKind.COMMA, TokenKind.RIGHT_BRACE):
                # {"metric.name", label="x"}
                if quoted_name:
                    raise self._error("metric name must not be set twice", tok)
                quoted_name = tok.value or ""
            else:
                if tok.kind is TokenKind.IDENTIFIER:
                    label = tok.text
                elif tok.kind is TokenKind.STRING:
                    label = tok.value or ""
                else:
                    raise self._error(f"unexpected {tok.describe()} in label matching, expected label name", tok)
                op_tok = self._next()
                op = _MATCH_OPS.get(op_tok.kind)
                if op is None:
                    raise self._error(
                        f"unexpected {op_tok.describe()} in label matching, expected label matching operator",
                        op_tok,
                    )
                val = self._next()
                if val.kind is not TokenKind.STRING:
                    raise self._error(f"unexpected {val.describe()} in label matching, expected string", val)
                matchers.append(LabelMatcher(label, op, val.value or ""))
            nxt = self._peek()
            if nxt.kind is TokenKind.COMMA:
                self._next()
            elif nxt.kind is not TokenKind.RIGHT_BRACE:
                raise self._error(f'unexpected {nxt.describe()} in label matching, expected "," or "}}"', nxt)
        self._next()
        return matchers, quoted_name

    # postfix modifiers: [range], [range:step], offset, @

    def _parse_postfix(self, expr: Node) -> Node:
        while True:
            tok = self._peek()
            if tok.kind is TokenKind.LEFT_BRACKET:
                expr = self._parse_range(expr)
            elif self._is_keyword("offset"):
                expr = self._parse_offset(expr)
            elif tok.kind is TokenKind.AT:
                expr = self._parse_at(expr)
            else:
                return expr

    def _parse_range(self, expr: Node) -> Node:
        open_tok = self._next()
        rng = self._duration("range")
        if self._peek().kind is TokenKind.COLON:
            self._next()
            step = None
            if self._peek().kind is TokenKind.DURATION:
                step = self._duration("subquery step")
            self._expect(TokenKind.RIGHT_BRACKET, "subquery selector")
            if isinstance(expr, MatrixSelector):
                raise self._error("subquery is only allowed on instant vector, got range vector", open_tok)
            return SubqueryExpr(expr=expr, range=rng, step=step)
        self._expect(TokenKind.RIGHT_BRACKET, "matrix selector")
        if not isinstance(expr, VectorSelector):
            raise self._error("ranges only allowed for vector selectors", open_tok)
        if expr.offset is not None or expr.at is not None:
            raise self._error("no offset modifiers allowed before range", open_tok)
        return MatrixSelector(vector=expr, range=rng)

    @staticmethod
    def _modifier_target(expr: Node) -> VectorSelector | SubqueryExpr | None:
        if isinstance(expr, MatrixSelector):
            return expr.vector
        if isinstance(expr, (VectorSelector, SubqueryExpr)):
            return expr
        return None

    def _parse_offset(self, expr: Node) -> Node:
        kw = self._next()
        negative = False
        if self._peek().kind in (TokenKind.ADD, TokenKind.SUB):
            negative = self._next().kind is TokenKind.SUB
        offset = self._duration("offset")
        target = self._modifier_target(expr)
        if target is None:
            raise self._error(
                "offset modifier must be preceded by an instant vector selector or range vector selector or a subquery",
                kw,
            )
        if target.offset is not None:
            raise self._error("offset may not be set multiple times", kw)
        target.offset = offset
        target.negative_offset = negative
        return expr

    def _parse_at(self, expr: Node) -> Node:
        at_tok = self._next()
        tok = self._next()
        if tok.kind is TokenKind.IDENTIFIER and tok.text.lower() in ("start", "end"):
            self._expect(TokenKind.LEFT_PAREN, "@ modifier")
            self._expect(TokenKind.RIGHT_PAREN, "@ modifier")
            modifier = AtModifier(preprocessor=f"{tok.text.lower()}()")
        else:
            sign = 1.0
            if tok.kind in (TokenKind.ADD, TokenKind.SUB):
                sign = -1.0 if tok.kind is TokenKind.SUB else 1.0
                tok = self._next()
            if tok.kind is not TokenKind.NUMBER:
                raise self._error(f"unexpected {tok.describe()} in @, expected timestamp", tok)
            modifier = AtModifier(timestamp=sign * _parse_number(tok))
        target = self._modifier_target(expr)
        if target is None:
            raise self._error(
                "@ modifier must be preceded by an instant vector selector or range vector selector or a subquery",
                at_tok,
            )
        if target.at is not None:
            raise self._error("@ <timestamp> may not be set multiple times", at_tok)
        target.at = modifier
        return expr


def parse_expr(text: str) -> Node:
    """Parse ``text`` into a PromQL syntax tree.

    Raises PromQLSyntaxError when the grammar rejects the input, including
    input nested deeper than the interpreter stack allows.
    """
    try:
        return Parser(text).parse()
    except RecursionError:
        raise PromQLSyntaxError("expression nested too deeply", text) from None
