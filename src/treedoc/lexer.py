from __future__ import annotations

from treedoc.exceptions import UnterminatedQuote


def tokenize(text: str) -> list[str]:
    """Split ``text`` into shell-like tokens.

    Single quotes make every character literal. Inside double quotes a
    backslash escapes the following character; outside quotes it does too,
    and a trailing backslash is kept as-is. Empty tokens are never emitted.
    """
    tokens: list[str] = []
    current: list[str] = []
    quote: str | None = None
    quote_column = 0
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if quote == "'":
            if char == "'":
                quote = None
            else:
                current.append(char)
        elif quote == '"':
            if char == '"':
                quote = None
            elif char == "\\" and index + 1 < length:
                index += 1
                current.append(text[index])
            else:
                current.append(char)
        elif char in ("'", '"'):
            quote = char
            quote_column = index + 1
        elif char == "\\":
            if index + 1 < length:
                index += 1
                current.append(text[index])
            else:
                current.append(char)
        elif char.isspace():
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(char)
        index += 1
    if quote is not None:
        raise UnterminatedQuote(quote, quote_column)
    if current:
        tokens.append("".join(current))
    return tokens
