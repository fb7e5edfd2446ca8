"""Tokenizer for the restricted expression language."""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, List

from pyqt_formlogic.exceptions import ExpressionSyntaxError


class TokenType(Enum):
    NUMBER = auto()
    STRING = auto()
    IDENTIFIER = auto()
    KEYWORD = auto()
    OPERATOR = auto()
    EOF = auto()


KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}

# Longest first so that "===" wins over "==" and "?." over "?"
OPERATORS = (
    "===", "!==", "==", "!=", "<=", ">=", "&&", "||", "??", "?.",
    "<", ">", "+", "-", "*", "/", "%", "!", "?", ":", ".", ",",
    "(", ")", "[", "]",
)


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: Any
    position: int

    def is_op(self, *ops: str) -> bool:
        return self.type is TokenType.OPERATOR and self.value in ops


class Lexer:
    """Turns an expression string into a list of tokens ending with EOF."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        src = self.source
        while self.pos < len(src):
            ch = src[self.pos]
            if ch.isspace():
                self.pos += 1
            elif ch.isdigit() or (ch == "." and self.pos + 1 < len(src) and src[self.pos + 1].isdigit()):
                tokens.append(self._read_number())
            elif ch in "\"'":
                tokens.append(self._read_string(ch))
            elif ch.isalpha() or ch in "_$":
                tokens.append(self._read_identifier())
            else:
                tokens.append(self._read_operator())
        tokens.append(Token(TokenType.EOF, None, self.pos))
        return tokens

    def _read_number(self) -> Token:
        start = self.pos
        src = self.source
        seen_dot = False
        while self.pos < len(src) and (src[self.pos].isdigit() or (src[self.pos] == "." and not seen_dot)):
            if src[self.pos] == ".":
                # "1.toFixed" is not valid, but "a[1].x" must stop before the dot
                if self.pos + 1 >= len(src) or not src[self.pos + 1].isdigit():
                    break
                seen_dot = True
            self.pos += 1
        text = src[start:self.pos]
        value = float(text) if seen_dot else int(text)
        return Token(TokenType.NUMBER, value, start)

    def _read_string(self, quote: str) -> Token:
        start = self.pos
        self.pos += 1
        chars = []
        escapes = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch == "\\" and self.pos + 1 < len(self.source):
                nxt = self.source[self.pos + 1]
                chars.append(escapes.get(nxt, nxt))
                self.pos += 2
                continue
            if ch == quote:
                self.pos += 1
                return Token(TokenType.STRING, "".join(chars), start)
            chars.append(ch)
            self.pos += 1
        raise ExpressionSyntaxError("Unterminated string literal", start, self.source)

    def _read_identifier(self) -> Token:
        start = self.pos
        src = self.source
        while self.pos < len(src) and (src[self.pos].isalnum() or src[self.pos] in "_$"):
            self.pos += 1
        name = src[start:self.pos]
        if name in KEYWORDS:
            return Token(TokenType.KEYWORD, name, start)
        return Token(TokenType.IDENTIFIER, name, start)

    def _read_operator(self) -> Token:
        for op in OPERATORS:
            if self.source.startswith(op, self.pos):
                # "a ?.5 : b" is a ternary, not optional chaining
                if op == "?." and self.pos + 2 < len(self.source) and self.source[self.pos + 2].isdigit():
                    continue
                token = Token(TokenType.OPERATOR, op, self.pos)
                self.pos += len(op)
                return token
        raise ExpressionSyntaxError(f"Unexpected character {self.source[self.pos]!r}", self.pos, self.source)


def tokenize(source: str) -> List[Token]:
    return Lexer(source).tokenize()
