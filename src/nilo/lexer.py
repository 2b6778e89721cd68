"""
Tokenizer for Nilo source text.

Converts source text into a flat list of tokens with line/column positions.
Whitespace and newlines are insignificant; ``//`` starts a line comment.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List

from .errors import ParseError


class TokenType(Enum):
    IDENT = "identifier"
    NUMBER = "number"
    DIMENSION = "dimension"
    STRING = "string"
    SYMBOL = "symbol"
    EOF = "end of input"


@dataclass(frozen=True)
class Token:
    """
    A single token.

    Attributes:
        type: Token category.
        value: Token text; for strings the unescaped content, for
            dimensions the number (the suffix is in ``unit``).
        line: Line number (1-indexed).
        column: Column number (1-indexed).
        unit: Unit suffix for DIMENSION tokens.
    """

    type: TokenType
    value: str
    line: int
    column: int
    unit: str = ""

    def is_symbol(self, symbol: str) -> bool:
        return self.type == TokenType.SYMBOL and self.value == symbol

    def is_ident(self, name: str) -> bool:
        return self.type == TokenType.IDENT and self.value == name

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


# Longest symbols first so that "::" wins over ":" and "->" over "-".
SYMBOLS = (
    "::", "->", "=>", "==", "!=", "<=", ">=",
    "{", "}", "(", ")", "[", "]", ",", ":", ";", ".", "=", "!",
    "+", "-", "*", "/", "<", ">", "|", "?",
)

UNITS = ("px", "vw", "vh", "rem", "em", "%")

IDENT_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
UNIT_PATTERN = re.compile(r"(px|vw|vh|rem|em|%)(?![A-Za-z0-9_])")

ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\"}


class Lexer:
    """Converts source text into a stream of tokens."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """
        Tokenize the whole input.

        Returns:
            List of tokens ending with an EOF token.

        Raises:
            ParseError: On an unterminated string or an unexpected character.
        """
        while self.pos < len(self.text):
            char = self.text[self.pos]

            if char in " \t\r\n﻿":
                self._advance(1)
                continue

            if self.text.startswith("//", self.pos):
                end = self.text.find("\n", self.pos)
                self._advance((end if end != -1 else len(self.text)) - self.pos)
                continue

            if self.text.startswith('"""', self.pos):
                self._read_triple_string()
                continue

            if char == '"':
                self._read_string()
                continue

            if char.isdigit():
                self._read_number()
                continue

            match = IDENT_PATTERN.match(self.text, self.pos)
            if match:
                self._emit(TokenType.IDENT, match.group(0), len(match.group(0)))
                continue

            for symbol in SYMBOLS:
                if self.text.startswith(symbol, self.pos):
                    self._emit(TokenType.SYMBOL, symbol, len(symbol))
                    break
            else:
                raise ParseError(f"Unexpected character {char!r}", self.line, self.column)

        self.tokens.append(Token(TokenType.EOF, "", self.line, self.column))
        return self.tokens

    def _advance(self, count: int) -> None:
        for char in self.text[self.pos : self.pos + count]:
            if char == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        self.pos += count

    def _emit(self, token_type: TokenType, value: str, length: int, unit: str = "") -> None:
        self.tokens.append(Token(token_type, value, self.line, self.column, unit))
        self._advance(length)

    def _read_number(self) -> None:
        match = NUMBER_PATTERN.match(self.text, self.pos)
        number = match.group(0)
        unit_match = UNIT_PATTERN.match(self.text, self.pos + len(number))
        if unit_match:
            unit = unit_match.group(1)
            self._emit(TokenType.DIMENSION, number, len(number) + len(unit), unit)
        else:
            self._emit(TokenType.NUMBER, number, len(number))

    def _read_string(self) -> None:
        start_line, start_column = self.line, self.column
        chars = []
        index = self.pos + 1
        while index < len(self.text):
            char = self.text[index]
            if char == "\\" and index + 1 < len(self.text):
                chars.append(ESCAPES.get(self.text[index + 1], self.text[index + 1]))
                index += 2
                continue
            if char == '"':
                break
            if char == "\n":
                raise ParseError("Unterminated string literal", start_line, start_column)
            chars.append(char)
            index += 1
        else:
            raise ParseError("Unterminated string literal", start_line, start_column)

        self.tokens.append(Token(TokenType.STRING, "".join(chars), start_line, start_column))
        self._advance(index + 1 - self.pos)

    def _read_triple_string(self) -> None:
        start_line, start_column = self.line, self.column
        end = self.text.find('"""', self.pos + 3)
        if end == -1:
            raise ParseError("Unterminated triple-quoted string", start_line, start_column)
        content = self.text[self.pos + 3 : end]
        self.tokens.append(Token(TokenType.STRING, content, start_line, start_column))
        self._advance(end + 3 - self.pos)


def tokenize(text: str) -> List[Token]:
    """Convenience function to tokenize source text."""
    return Lexer(text).tokenize()
