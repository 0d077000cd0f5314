# Copyright: (c) 2023, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

from __future__ import annotations

import dataclasses
import enum
import re
import types
import typing as t

from ._parser import FieldValue, ParsingOptions, parse_fields
from ._tokenizer import MalformedDescription, is_delimiter, tokenize_description

NOIDLEN_MATCH = re.compile(r"^(?P<value>.+)\{(?P<len>[0-9]+)\}$")

# Values that can be written without quotes, anything else is a qdstring.
_BARE_VALUE = re.compile(r"^[^'\s()$\\]+$")

ExtensionValue = t.Union[bool, str, t.Tuple[str, ...]]

_KeywordTable = t.Dict[str, t.Tuple[str, t.Callable[[FieldValue], t.Any]]]


def _as_str(value: FieldValue) -> t.Optional[str]:
    if isinstance(value, bool):
        return None

    elif isinstance(value, list):
        return value[0] if value else None

    return value


def _as_list(value: FieldValue) -> t.List[str]:
    if isinstance(value, bool):
        return []

    elif isinstance(value, list):
        return value

    return [value]


def _as_bool(value: FieldValue) -> bool:
    return value is True


def _encode_oids(value: t.Sequence[str]) -> str:
    if len(value) == 1:
        return value[0]

    else:
        value_str = " $ ".join(value)
        return f"( {value_str} )"


def _encode_qdstring(value: str) -> str:
    def rplcr(matchobj: re.Match) -> str:
        return f"\\{ord(matchobj.group(0)):02x}"

    desc_str = re.sub(r"[\\']", rplcr, value)

    return f"'{desc_str}'"


def _encode_names(oid: str, name: str, aliases: t.Sequence[str]) -> str:
    if name == oid and not aliases:
        return ""

    elif not aliases:
        return f" NAME '{name}'"

    names_str = "' '".join([name, *aliases])
    return f" NAME ( '{names_str}' )"


def _encode_extensions(extensions: t.Mapping[str, ExtensionValue]) -> str:
    values = []
    for keyword, value in extensions.items():
        if isinstance(value, bool):
            if value:
                values.append(f" {keyword}")

        elif isinstance(value, (list, tuple)):
            values_str = " ".join([_encode_qdstring(v) for v in value])
            values.append(f" {keyword} ( {values_str} )")

        else:
            values.append(f" {keyword} {_encode_qdstring(value)}")

    return "".join(values)


def _encode_value(value: str) -> str:
    return value if _BARE_VALUE.match(value) else _encode_qdstring(value)


def ensure_name(
    oid: str,
    names: t.List[str],
) -> t.Tuple[str, t.List[str]]:
    """Picks the canonical name and aliases.

    The first name is the canonical name of the element and the remaining
    ones are aliases. An element without a name uses the oid as its name.

    Args:
        oid: The oid of the element.
        names: The NAME values of the element.

    Returns:
        Tuple[str, List[str]]: The canonical name and the aliases.
    """
    names = [n for n in names if n]
    if not names:
        return oid, []

    return names[0], names[1:]


def _parse_description(
    value: str,
    keywords: _KeywordTable,
    options: t.Optional[ParsingOptions],
) -> t.Tuple[str, t.Dict[str, t.Any], t.Dict[str, FieldValue]]:
    options = options or ParsingOptions()

    tokens = tokenize_description(value)
    oid = tokens[0]
    if any(is_delimiter(oid, d) for d in ["(", ")", "$"]):
        raise MalformedDescription(f"Expecting oid but found '{oid}'", value=value)

    kwargs: t.Dict[str, t.Any] = {}
    extensions: t.Dict[str, FieldValue] = {}
    for keyword, field_value in parse_fields(tokens[1:], options, value=value).items():
        known = keywords.get(keyword.lower(), None)
        if known:
            field_name, converter = known
            kwargs[field_name] = converter(field_value)

        else:
            extensions[keyword] = field_value

    return str(oid), kwargs, extensions


class _Description:
    extensions: t.Mapping[str, ExtensionValue]

    def __post_init__(self) -> None:
        # List fields are stored as tuples and the extensions as a read only
        # mapping.
        for field in dataclasses.fields(self):  # type: ignore[arg-type]
            value = getattr(self, field.name)
            if isinstance(value, list):
                object.__setattr__(self, field.name, tuple(value))

        extensions = {k: tuple(v) if isinstance(v, list) else v for k, v in self.extensions.items()}
        object.__setattr__(self, "extensions", types.MappingProxyType(extensions))


class _NamedDescription(_Description):
    oid: str
    name: str
    aliases: t.Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.name:
            object.__setattr__(self, "name", self.oid)

        super().__post_init__()

    @property
    def all_names(self) -> t.List[str]:
        """The canonical name followed by the aliases."""
        return [self.name, *self.aliases]


class ObjectClassKind(str, enum.Enum):
    ABSTRACT = "ABSTRACT"
    STRUCTURAL = "STRUCTURAL"
    AUXILIARY = "AUXILIARY"


_OBJECT_CLASS_KEYWORDS: _KeywordTable = {
    "name": ("names", _as_list),
    "desc": ("description", _as_str),
    "obsolete": ("obsolete", _as_bool),
    "sup": ("sup", _as_list),
    "abstract": ("kind", lambda v: ObjectClassKind.ABSTRACT),
    "structural": ("kind", lambda v: ObjectClassKind.STRUCTURAL),
    "auxiliary": ("kind", lambda v: ObjectClassKind.AUXILIARY),
    "must": ("must", _as_list),
    "may": ("may", _as_list),
}


@dataclasses.dataclass(frozen=True)
class ObjectClassDescription(_NamedDescription):
    """Object Class definition.

    Object is used to define object classes inside an LDAP database. This
    object is defined in `RFC 4512 4.1.1. Object Class Definitions`_.

    Args:
        oid: The object identifier for this object class.
        name: The canonical name of the object class, defaults to the oid.
        aliases: Other names identifying this object class.
        description: A short description of the object class.
        obsolete: Indicates the object class is not active.
        sup: The names of the direct superclasses of this object class.
        kind: The kind of object class.
        must: Required attribute types.
        may: Allowed attribute types.
        parents: The registry keys of the superclasses that were found when
            the object class was loaded into a registry.
        extensions: Any other keywords in the description.
        raw: The description string this was parsed from.

    .. _RFC 4512 4.1.1. Object Class Definitions:
        https://www.rfc-editor.org/rfc/rfc4512#section-4.1.1
    """

    oid: str
    name: str = ""
    aliases: t.Tuple[str, ...] = ()
    description: t.Optional[str] = None
    obsolete: bool = False
    sup: t.Tuple[str, ...] = ()
    kind: ObjectClassKind = ObjectClassKind.STRUCTURAL
    must: t.Tuple[str, ...] = ()
    may: t.Tuple[str, ...] = ()
    parents: t.Tuple[str, ...] = ()
    extensions: t.Mapping[str, ExtensionValue] = dataclasses.field(default_factory=dict)
    raw: t.Optional[str] = dataclasses.field(default=None, compare=False, repr=False)

    @property
    def superiors(self) -> t.List[str]:
        return list(self.sup)

    def __str__(self) -> str:
        values = [_encode_names(self.oid, self.name, self.aliases)]

        if self.description is not None:
            values.append(f" DESC {_encode_qdstring(self.description)}")

        if self.obsolete:
            values.append(" OBSOLETE")

        if self.sup:
            values.append(f" SUP {_encode_oids(self.sup)}")

        values.append(f" {self.kind.value}")

        if self.must:
            values.append(f" MUST {_encode_oids(self.must)}")

        if self.may:
            values.append(f" MAY {_encode_oids(self.may)}")

        values.append(_encode_extensions(self.extensions))

        return f"( {self.oid}{''.join(values)} )"

    @classmethod
    def from_string(
        cls,
        value: str,
        options: t.Optional[ParsingOptions] = None,
    ) -> ObjectClassDescription:
        oid, kwargs, extensions = _parse_description(value, _OBJECT_CLASS_KEYWORDS, options)
        name, aliases = ensure_name(oid, kwargs.pop("names", []))

        return ObjectClassDescription(
            oid=oid,
            name=name,
            aliases=aliases,
            extensions=extensions,
            raw=value,
            **kwargs,
        )


class AttributeTypeUsage(str, enum.Enum):
    USER_APPLICATIONS = "userApplications"
    DIRECTORY_OPERATION = "directoryOperation"
    DISTRIBUTED_OPERATION = "distributedOperation"
    DSA_OPERATION = "dSAOperation"


def _parse_usage(value: FieldValue) -> AttributeTypeUsage:
    raw_usage = (_as_str(value) or "").lower()
    return {
        AttributeTypeUsage.DIRECTORY_OPERATION.value.lower(): AttributeTypeUsage.DIRECTORY_OPERATION,
        AttributeTypeUsage.DISTRIBUTED_OPERATION.value.lower(): AttributeTypeUsage.DISTRIBUTED_OPERATION,
        AttributeTypeUsage.DSA_OPERATION.value.lower(): AttributeTypeUsage.DSA_OPERATION,
    }.get(raw_usage, AttributeTypeUsage.USER_APPLICATIONS)


_ATTRIBUTE_TYPE_KEYWORDS: _KeywordTable = {
    "name": ("names", _as_list),
    "desc": ("description", _as_str),
    "obsolete": ("obsolete", _as_bool),
    "sup": ("sup", _as_list),
    "equality": ("equality", _as_str),
    "ordering": ("ordering", _as_str),
    "substr": ("substr", _as_str),
    "syntax": ("syntax", _as_str),
    "single-value": ("single_value", _as_bool),
    "collective": ("collective", _as_bool),
    "no-user-modification": ("no_user_modification", _as_bool),
    "usage": ("usage", _parse_usage),
}


@dataclasses.dataclass(frozen=True)
class AttributeTypeDescription(_NamedDescription):
    """Attribute Type definition.

    Object is used to define attribute types inside an LDAP database. This
    object is defined in `RFC 4512 4.1.2. Attribute Types`_. Typically
    Microsoft Active Directory only defines the oid, single name entry, syntax,
    single_value, and no_user_modification elements of the definition.

    Args:
        oid: The object identifier for this attribute type.
        name: The canonical name of the attribute type, defaults to the oid.
        aliases: Other names identifying this attribute type.
        description: A short description of the attribute type.
        obsolete: Indicates the attribute type is not active.
        sup: The names of the super types of this type, RFC 4512 allows only
            one but every value given is kept.
        equality: The name or OID of the equality matching rule.
        ordering: The name or OID of the ordering matching rule.
        substr: The name or OID of the substrings matching rule.
        syntax: Identifies the value syntax type.
        max_length: Optional upper bound length of the syntax value.
        single_value: Indicates that the attribute is restricted to a single
            value or not.
        collective: Indicates the attribute type is collective.
        no_user_modification: Indicates the attribute type is not user
            modifiable.
        usage: The application of the attribute type. Can be set to
            userApplications, directoryOperation, distributedOperation, or
            dSAOperation.
        parents: The registry keys of the super types that were found when
            the attribute type was loaded into a registry.
        extensions: Any other keywords in the description.
        raw: The description string this was parsed from.

    .. _RFC 4512 4.1.2. Attribute Types:
        https://www.rfc-editor.org/rfc/rfc4512#section-4.1.2
    """

    oid: str
    name: str = ""
    aliases: t.Tuple[str, ...] = ()
    description: t.Optional[str] = None
    obsolete: bool = False
    sup: t.Tuple[str, ...] = ()
    equality: t.Optional[str] = None
    ordering: t.Optional[str] = None
    substr: t.Optional[str] = None
    syntax: t.Optional[str] = None
    max_length: t.Optional[int] = None
    single_value: bool = False
    collective: bool = False
    no_user_modification: bool = False
    usage: AttributeTypeUsage = AttributeTypeUsage.USER_APPLICATIONS
    parents: t.Tuple[str, ...] = ()
    extensions: t.Mapping[str, ExtensionValue] = dataclasses.field(default_factory=dict)
    raw: t.Optional[str] = dataclasses.field(default=None, compare=False, repr=False)

    @property
    def superiors(self) -> t.List[str]:
        return list(self.sup)

    def __str__(self) -> str:
        values = [_encode_names(self.oid, self.name, self.aliases)]

        if self.description is not None:
            values.append(f" DESC {_encode_qdstring(self.description)}")

        if self.obsolete:
            values.append(" OBSOLETE")

        if self.sup:
            values.append(f" SUP {_encode_oids(self.sup)}")

        if self.equality is not None:
            values.append(f" EQUALITY {self.equality}")

        if self.ordering is not None:
            values.append(f" ORDERING {self.ordering}")

        if self.substr is not None:
            values.append(f" SUBSTR {self.substr}")

        if self.syntax is not None:
            values.append(f" SYNTAX {_encode_value(self.syntax)}")
            if self.max_length is not None:
                values.append(f"{{{self.max_length}}}")

        if self.single_value:
            values.append(" SINGLE-VALUE")

        if self.collective:
            values.append(" COLLECTIVE")

        if self.no_user_modification:
            values.append(" NO-USER-MODIFICATION")

        if self.usage != AttributeTypeUsage.USER_APPLICATIONS:
            values.append(f" USAGE {self.usage.value}")

        values.append(_encode_extensions(self.extensions))

        return f"( {self.oid}{''.join(values)} )"

    @classmethod
    def from_string(
        cls,
        value: str,
        options: t.Optional[ParsingOptions] = None,
    ) -> AttributeTypeDescription:
        oid, kwargs, extensions = _parse_description(value, _ATTRIBUTE_TYPE_KEYWORDS, options)
        name, aliases = ensure_name(oid, kwargs.pop("names", []))

        syntax = kwargs.get("syntax", None)
        if syntax:
            len_match = NOIDLEN_MATCH.match(syntax)
            if len_match:
                kwargs["syntax"] = len_match.group("value")
                kwargs["max_length"] = int(len_match.group("len"))

        return AttributeTypeDescription(
            oid=oid,
            name=name,
            aliases=aliases,
            extensions=extensions,
            raw=value,
            **kwargs,
        )


_LDAP_SYNTAX_KEYWORDS: _KeywordTable = {
    "desc": ("description", _as_str),
}


@dataclasses.dataclass(frozen=True)
class LDAPSyntaxDescription(_Description):
    """LDAP Syntax definition.

    Object is used to define the syntaxes of attribute values. This object is
    defined in `RFC 4512 4.1.5. LDAP Syntaxes`_. Syntaxes have no name and are
    identified by their oid alone.

    Args:
        oid: The object identifier for this syntax.
        description: A short description of the syntax.
        extensions: Any other keywords in the description.
        raw: The description string this was parsed from.

    .. _RFC 4512 4.1.5. LDAP Syntaxes:
        https://www.rfc-editor.org/rfc/rfc4512#section-4.1.5
    """

    oid: str
    description: t.Optional[str] = None
    extensions: t.Mapping[str, ExtensionValue] = dataclasses.field(default_factory=dict)
    raw: t.Optional[str] = dataclasses.field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        values = []

        if self.description is not None:
            values.append(f" DESC {_encode_qdstring(self.description)}")

        values.append(_encode_extensions(self.extensions))

        return f"( {self.oid}{''.join(values)} )"

    @classmethod
    def from_string(
        cls,
        value: str,
        options: t.Optional[ParsingOptions] = None,
    ) -> LDAPSyntaxDescription:
        oid, kwargs, extensions = _parse_description(value, _LDAP_SYNTAX_KEYWORDS, options)

        return LDAPSyntaxDescription(
            oid=oid,
            extensions=extensions,
            raw=value,
            **kwargs,
        )


_MATCHING_RULE_KEYWORDS: _KeywordTable = {
    "name": ("names", _as_list),
    "desc": ("description", _as_str),
    "obsolete": ("obsolete", _as_bool),
    "syntax": ("syntax", _as_str),
}


@dataclasses.dataclass(frozen=True)
class MatchingRuleDescription(_NamedDescription):
    """Matching Rule definition.

    Defined in `RFC 4512 4.1.3. Matching Rules`_.

    Args:
        oid: The object identifier for this matching rule.
        name: The canonical name of the matching rule, defaults to the oid.
        aliases: Other names identifying this matching rule.
        description: A short description of the matching rule.
        obsolete: Indicates the matching rule is not active.
        syntax: The OID of the assertion syntax.
        extensions: Any other keywords in the description.
        raw: The description string this was parsed from.

    .. _RFC 4512 4.1.3. Matching Rules:
        https://www.rfc-editor.org/rfc/rfc4512#section-4.1.3
    """

    oid: str
    name: str = ""
    aliases: t.Tuple[str, ...] = ()
    description: t.Optional[str] = None
    obsolete: bool = False
    syntax: t.Optional[str] = None
    extensions: t.Mapping[str, ExtensionValue] = dataclasses.field(default_factory=dict)
    raw: t.Optional[str] = dataclasses.field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        values = [_encode_names(self.oid, self.name, self.aliases)]

        if self.description is not None:
            values.append(f" DESC {_encode_qdstring(self.description)}")

        if self.obsolete:
            values.append(" OBSOLETE")

        if self.syntax is not None:
            values.append(f" SYNTAX {_encode_value(self.syntax)}")

        values.append(_encode_extensions(self.extensions))

        return f"( {self.oid}{''.join(values)} )"

    @classmethod
    def from_string(
        cls,
        value: str,
        options: t.Optional[ParsingOptions] = None,
    ) -> MatchingRuleDescription:
        oid, kwargs, extensions = _parse_description(value, _MATCHING_RULE_KEYWORDS, options)
        name, aliases = ensure_name(oid, kwargs.pop("names", []))

        return MatchingRuleDescription(
            oid=oid,
            name=name,
            aliases=aliases,
            extensions=extensions,
            raw=value,
            **kwargs,
        )


_MATCHING_RULE_USE_KEYWORDS: _KeywordTable = {
    "name": ("names", _as_list),
    "desc": ("description", _as_str),
    "obsolete": ("obsolete", _as_bool),
    "applies": ("applies", _as_list),
}


@dataclasses.dataclass(frozen=True)
class MatchingRuleUseDescription(_NamedDescription):
    """Matching Rule Use definition.

    Lists the attribute types a matching rule can be used with in an
    extensibleMatch search filter. Defined in
    `RFC 4512 4.1.4. Matching Rule Uses`_, the oid is the oid of the matching
    rule it applies to.

    Args:
        oid: The object identifier of the matching rule.
        name: The canonical name of the matching rule use, defaults to the
            oid.
        aliases: Other names identifying this matching rule use.
        description: A short description of the matching rule use.
        obsolete: Indicates the matching rule use is not active.
        applies: The attribute types the matching rule applies to.
        extensions: Any other keywords in the description.
        raw: The description string this was parsed from.

    .. _RFC 4512 4.1.4. Matching Rule Uses:
        https://www.rfc-editor.org/rfc/rfc4512#section-4.1.4
    """

    oid: str
    name: str = ""
    aliases: t.Tuple[str, ...] = ()
    description: t.Optional[str] = None
    obsolete: bool = False
    applies: t.Tuple[str, ...] = ()
    extensions: t.Mapping[str, ExtensionValue] = dataclasses.field(default_factory=dict)
    raw: t.Optional[str] = dataclasses.field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        values = [_encode_names(self.oid, self.name, self.aliases)]

        if self.description is not None:
            values.append(f" DESC {_encode_qdstring(self.description)}")

        if self.obsolete:
            values.append(" OBSOLETE")

        if self.applies:
            values.append(f" APPLIES {_encode_oids(self.applies)}")

        values.append(_encode_extensions(self.extensions))

        return f"( {self.oid}{''.join(values)} )"

    @classmethod
    def from_string(
        cls,
        value: str,
        options: t.Optional[ParsingOptions] = None,
    ) -> MatchingRuleUseDescription:
        oid, kwargs, extensions = _parse_description(value, _MATCHING_RULE_USE_KEYWORDS, options)
        name, aliases = ensure_name(oid, kwargs.pop("names", []))

        return MatchingRuleUseDescription(
            oid=oid,
            name=name,
            aliases=aliases,
            extensions=extensions,
            raw=value,
            **kwargs,
        )


__all__ = [
    "AttributeTypeDescription",
    "AttributeTypeUsage",
    "ExtensionValue",
    "LDAPSyntaxDescription",
    "MatchingRuleDescription",
    "MatchingRuleUseDescription",
    "ObjectClassDescription",
    "ObjectClassKind",
    "ensure_name",
]
