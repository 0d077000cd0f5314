# Copyright: (c) 2023, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

from ._parser import (
    DEFAULT_FLAG_KEYWORDS,
    DEFAULT_MULTI_VALUE_KEYWORDS,
    FieldValue,
    ParsingOptions,
    decode_value,
    parse_fields,
)
from ._registry import (
    SchemaKind,
    SubschemaRegistry,
    build_name_index,
    resolve_inheritance,
)
from ._tokenizer import MalformedDescription, QuotedToken, tokenize_description
from .schema import (
    AttributeTypeDescription,
    AttributeTypeUsage,
    ExtensionValue,
    LDAPSyntaxDescription,
    MatchingRuleDescription,
    MatchingRuleUseDescription,
    ObjectClassDescription,
    ObjectClassKind,
    ensure_name,
)

__all__ = [
    "DEFAULT_FLAG_KEYWORDS",
    "DEFAULT_MULTI_VALUE_KEYWORDS",
    "AttributeTypeDescription",
    "AttributeTypeUsage",
    "ExtensionValue",
    "FieldValue",
    "LDAPSyntaxDescription",
    "MalformedDescription",
    "MatchingRuleDescription",
    "MatchingRuleUseDescription",
    "ObjectClassDescription",
    "ObjectClassKind",
    "ParsingOptions",
    "QuotedToken",
    "SchemaKind",
    "SubschemaRegistry",
    "build_name_index",
    "decode_value",
    "ensure_name",
    "parse_fields",
    "resolve_inheritance",
    "tokenize_description",
]
