# Copyright: (c) 2023, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

from __future__ import annotations

import base64
import dataclasses
import re
import typing as t

from ._tokenizer import MalformedDescription, is_delimiter

FieldValue = t.Union[bool, str, t.List[str]]

# \27 - escaped representation of '
QQ = r"\\27"

# \5c or \5C - escaped representation of \
QS = r"\\5[Cc]"

_ESCAPE_PATTERN = re.compile(f"{QS}|{QQ}")

DEFAULT_FLAG_KEYWORDS = frozenset(
    [
        "single-value",
        "obsolete",
        "collective",
        "no-user-modification",
        "abstract",
        "structural",
        "auxiliary",
    ]
)

DEFAULT_MULTI_VALUE_KEYWORDS = frozenset(["must", "may", "sup"])


def decode_value(value: str) -> str:
    """Decodes a description value.

    Replaces the escape sequences a qdstring can contain, ``\\27`` for ``'``
    and ``\\5C`` for ``\\``, with the character they represent.

    Args:
        value: The raw token value.

    Returns:
        str: The decoded value.
    """

    def rplcr(matchobj: re.Match) -> str:
        return base64.b16decode(matchobj.group(0)[1:].upper()).decode()

    return _ESCAPE_PATTERN.sub(rplcr, value)


@dataclasses.dataclass(frozen=True)
class ParsingOptions:
    """Options used when parsing schema descriptions.

    Custom options used to control how the keywords of a description are
    parsed. Keywords are compared in lowercase.

    Args:
        flag_keywords: Keywords that have no value, their presence sets the
            field to True.
        multi_value_keywords: Keywords whose value is always stored as a list
            even if only a single value was provided.
        decoder: Callable used to decode each value before it is stored.
        string_encoding: The encoding used to decode description values
            provided as bytes. Defaults to utf-8.
    """

    flag_keywords: t.FrozenSet[str] = DEFAULT_FLAG_KEYWORDS
    multi_value_keywords: t.FrozenSet[str] = DEFAULT_MULTI_VALUE_KEYWORDS
    decoder: t.Callable[[str], str] = decode_value
    string_encoding: str = "utf-8"


def parse_fields(
    tokens: t.Sequence[str],
    options: ParsingOptions,
    value: str = "",
) -> t.Dict[str, FieldValue]:
    """Parses description tokens into fields.

    Parses the keyword/value tokens of a description, the oid must already
    have been removed from the tokens. The keywords are stored as they were
    spelled in the description. If a keyword is repeated the last value is
    kept.

    Args:
        tokens: The tokens to parse.
        options: The keyword classification and value decoder to use.
        value: The raw description, used for error messages.

    Returns:
        Dict[str, FieldValue]: The keywords and their values.
    """
    fields: t.Dict[str, FieldValue] = {}
    seen: t.Dict[str, str] = {}

    idx = 0
    while idx < len(tokens):
        keyword = tokens[idx]
        idx += 1

        if any(is_delimiter(keyword, d) for d in ["(", ")", "$"]):
            raise MalformedDescription(f"Expecting keyword but found '{keyword}'", value=value)

        lower_keyword = keyword.lower()
        previous = seen.pop(lower_keyword, None)
        if previous is not None:
            del fields[previous]
        seen[lower_keyword] = keyword

        if lower_keyword in options.flag_keywords:
            fields[keyword] = True
            continue

        if idx >= len(tokens):
            raise MalformedDescription(f"Keyword '{keyword}' has no value", value=value)

        field_value: FieldValue
        raw_value = tokens[idx]
        idx += 1

        if is_delimiter(raw_value, "("):
            entries: t.List[str] = []
            while True:
                if idx >= len(tokens):
                    raise MalformedDescription(f"List value for '{keyword}' has no closing ')'", value=value)

                entry = tokens[idx]
                idx += 1

                if is_delimiter(entry, ")"):
                    break

                elif is_delimiter(entry, "("):
                    raise MalformedDescription(f"Nested '(' in list value for '{keyword}'", value=value)

                elif not is_delimiter(entry, "$"):
                    entries.append(options.decoder(entry))

            field_value = entries

        elif is_delimiter(raw_value, ")") or is_delimiter(raw_value, "$"):
            raise MalformedDescription(f"Keyword '{keyword}' has no value", value=value)

        else:
            field_value = options.decoder(raw_value)

        if lower_keyword in options.multi_value_keywords and not isinstance(field_value, list):
            field_value = [field_value]

        fields[keyword] = field_value

    return fields
