"""PromQL lexer, syntax tree and parser."""
from .ast import Node, VectorSelector, inspect
from .lexer import Token, TokenKind, tokenize
from .parser import AGGREGATORS, FUNCTIONS, parse_expr

__all__ = [
    "AGGREGATORS",
    "FUNCTIONS",
    "Node",
    "Token",
    "TokenKind",
    "VectorSelector",
    "inspect",
    "parse_expr",
    "tokenize",
]
