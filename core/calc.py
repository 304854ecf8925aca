"""
Arithmetic evaluator for ``calc``.

A tokenizer and a recursive-descent parser over a closed grammar; nothing
the user types is ever handed to the Python interpreter.

    expr   := term (('+' | '-') term)*
    term   := unary (('*' | '/') unary)*
    unary  := ('+' | '-') unary | atom
    atom   := NUMBER | '(' expr ')'
"""
import re

from core.errors import InvalidSyntax

# Anything outside this set is stripped before parsing.
_STRIP = re.compile(r"[^0-9+\-*/().]")
_NUMBER = re.compile(r"\d+\.?\d*|\.\d+")
_OPERATORS = "+-*/()"


class CalcError(InvalidSyntax):
    pass


class Token:
    def __init__(self, kind: str, value: str) -> None:
        # kind in { 'NUM', 'OP', 'END' }
        self.kind = kind
        self.value = value

    def __repr__(self) -> str:
        return f"Token({self.kind!r}, {self.value!r})"


def tokenize(text: str) -> list[Token]:
    tokens = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in _OPERATORS:
            tokens.append(Token("OP", ch))
            i += 1
            continue
        m = _NUMBER.match(text, i)
        if not m:
            raise CalcError("calc: invalid expression")
        tokens.append(Token("NUM", m.group()))
        i = m.end()
    tokens.append(Token("END", ""))
    return tokens


class Parser:
    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def take(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def expect(self, value: str) -> None:
        tok = self.take()
        if tok.kind != "OP" or tok.value != value:
            raise CalcError("calc: invalid expression")

    def parse(self) -> float:
        value = self.expr()
        if self.peek().kind != "END":
            raise CalcError("calc: invalid expression")
        return value

    def expr(self) -> float:
        value = self.term()
        while self.peek().kind == "OP" and self.peek().value in "+-":
            op = self.take().value
            rhs = self.term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def term(self) -> float:
        value = self.unary()
        while self.peek().kind == "OP" and self.peek().value in "*/":
            op = self.take().value
            rhs = self.unary()
            if op == "*":
                value = value * rhs
            else:
                if rhs == 0:
                    raise CalcError("calc: division by zero")
                value = value / rhs
        return value

    def unary(self) -> float:
        tok = self.peek()
        if tok.kind == "OP" and tok.value in "+-":
            self.take()
            operand = self.unary()
            return -operand if tok.value == "-" else operand
        return self.atom()

    def atom(self) -> float:
        tok = self.take()
        if tok.kind == "NUM":
            return float(tok.value)
        if tok.kind == "OP" and tok.value == "(":
            value = self.expr()
            self.expect(")")
            return value
        raise CalcError("calc: invalid expression")


def sanitize(expression: str) -> str:
    return _STRIP.sub("", expression)


def evaluate(expression: str) -> float:
    """Strip non-arithmetic characters, then parse and evaluate."""
    text = sanitize(expression)
    if not text:
        raise CalcError("calc: invalid expression")
    try:
        return Parser(tokenize(text)).parse()
    except RecursionError:
        raise CalcError("calc: invalid expression") from None


def format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)
