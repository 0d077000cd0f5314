# Copyright: (c) 2023, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

from __future__ import annotations

import re
import typing as t

_WHITESPACE_PATTERN = re.compile(r"\s*")

# A token is either a parenthesis or $ list separator, a bare term or a single
# quoted string. A quote inside a quoted string is allowed as long as it isn't
# followed by whitespace or the closing paren, i.e. 'O'Reilly' is one token.
# Each repetition consumes a single character so an unterminated quote fails
# in linear time.
_TOKEN_PATTERN = re.compile(
    r"""
(?:
    (?P<delimiter>[()$])
    |
    (?P<term>[^'\s()$]+)
    |
    '(?P<quoted>(?:[^']|'(?=[^\s)]))*)'
)
""",
    re.VERBOSE,
)


class MalformedDescription(ValueError):
    """Exception used for schema description syntax errors.

    This exception is raised when a schema description string could not be
    split into tokens or the tokens do not follow the keyword/value layout of
    a description. When raised during a registry build the kind of schema
    element being loaded is also set.

    Args:
        msg: Details of the syntax error.
        value: The raw description string that failed to parse.
        kind: The subschema attribute the description came from, e.g.
            objectClasses, if known.
    """

    def __init__(
        self,
        msg: str,
        value: str,
        kind: t.Optional[str] = None,
    ) -> None:
        super().__init__(msg)
        self.msg = msg
        self.value = value
        self.kind = kind

    def __str__(self) -> str:
        if self.kind:
            return f"{self.msg} in {self.kind} value {self.value!r}"

        return self.msg


class QuotedToken(str):
    """A token that was enclosed in single quotes.

    Compares equal to the plain string value but allows a quoted ``'('``,
    ``')'`` or ``'$'`` to be told apart from the list delimiters.
    """


def is_delimiter(
    token: str,
    delimiter: str,
) -> bool:
    """Checks if the token is the unquoted delimiter specified."""
    return token == delimiter and not isinstance(token, QuotedToken)


def tokenize_description(
    value: str,
) -> t.List[str]:
    """Splits a schema description into tokens.

    Splits the raw description string, e.g.
    ``( 2.5.4.3 NAME 'cn' SUP name )``, into the list of tokens it contains.
    The outer parenthesis that wrap the description are removed but any inner
    parenthesis used to delimit a list of values are kept as their own token.
    Quoted strings are returned without their quotes as a
    :class:`QuotedToken` but are otherwise left as is, escape sequences are
    handled by the value decoder.

    Every parenthesis must be balanced, including the outer pair. A
    description missing its opening or closing outer parenthesis, e.g.
    ``1.0 NAME 'a' )``, is rejected rather than having the lone parenthesis
    dropped.

    Args:
        value: The description string to tokenize.

    Returns:
        List[str]: The tokens of the description.
    """
    tokens: t.List[str] = []

    offset = _WHITESPACE_PATTERN.match(value).end()  # type: ignore[union-attr]
    while offset < len(value):
        m = _TOKEN_PATTERN.match(value, offset)
        if not m:
            raise MalformedDescription(
                f"Invalid description syntax at offset {offset}: {value[offset:offset + 10]!r}",
                value=value,
            )

        if m.group("quoted") is not None:
            tokens.append(QuotedToken(m.group("quoted")))

        else:
            tokens.append(m.group(0))

        offset = _WHITESPACE_PATTERN.match(value, m.end()).end()  # type: ignore[union-attr]

    # Every '(' must be closed, including the outer one wrapping the whole
    # description. The outer pair is only dropped when they match each other.
    depth = 0
    outer_close: t.Optional[int] = None
    for idx, token in enumerate(tokens):
        if is_delimiter(token, "("):
            depth += 1

        elif is_delimiter(token, ")"):
            depth -= 1
            if depth < 0:
                raise MalformedDescription("Unbalanced closing ')' without a starting '('", value=value)

            if depth == 0 and outer_close is None:
                outer_close = idx

    if depth:
        raise MalformedDescription("Unbalanced starting '(' without a closing ')'", value=value)

    if tokens and is_delimiter(tokens[0], "(") and outer_close == len(tokens) - 1:
        tokens = tokens[1:-1]

    if not tokens:
        raise MalformedDescription("No tokens found in description", value=value)

    return tokens
