# Copyright: (c) 2023, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

from __future__ import annotations

import collections
import dataclasses
import enum
import logging
import types
import typing as t

from ._parser import ParsingOptions
from ._tokenizer import MalformedDescription
from .schema import (
    AttributeTypeDescription,
    LDAPSyntaxDescription,
    MatchingRuleDescription,
    MatchingRuleUseDescription,
    ObjectClassDescription,
)

log = logging.getLogger(__name__)

SchemaDescription = t.Union[
    AttributeTypeDescription,
    LDAPSyntaxDescription,
    MatchingRuleDescription,
    MatchingRuleUseDescription,
    ObjectClassDescription,
]
InheritingDescription = t.TypeVar(
    "InheritingDescription",
    AttributeTypeDescription,
    ObjectClassDescription,
)
NamedDescription = t.Union[
    AttributeTypeDescription,
    MatchingRuleDescription,
    MatchingRuleUseDescription,
    ObjectClassDescription,
]
DescriptionValue = t.Union[str, bytes]


class SchemaKind(str, enum.Enum):
    """The subschema attributes that contain schema descriptions."""

    ATTRIBUTE_TYPES = "attributeTypes"
    LDAP_SYNTAXES = "ldapSyntaxes"
    MATCHING_RULES = "matchingRules"
    MATCHING_RULE_USE = "matchingRuleUse"
    OBJECT_CLASSES = "objectClasses"


def build_name_index(
    repository: t.Mapping[str, NamedDescription],
) -> t.Dict[str, str]:
    """Builds a lookup of names to registry keys.

    Every oid, name and alias of the elements in the repository is mapped in
    lowercase to the key the element is stored under. If two elements share
    a name the first one wins.

    Args:
        repository: The primary entries of a registry.

    Returns:
        Dict[str, str]: The lowercase name to registry key mapping.
    """
    index: t.Dict[str, str] = {}
    for key, element in repository.items():
        for name in [element.oid] + element.all_names:
            index.setdefault(name.lower(), key)

    return index


def resolve_inheritance(
    element: InheritingDescription,
    repository: t.Mapping[str, InheritingDescription],
    index: t.Optional[t.Mapping[str, str]] = None,
) -> InheritingDescription:
    """Resolves the superiors of an element.

    Looks up each superior the element declares in the repository of the same
    kind, by canonical name first and then by any name, alias or oid ignoring
    case. The keys of the superiors found are set as the parents of the
    returned element. Superiors that are not in the repository are skipped as
    they may be defined outside of the schema being loaded. Only the direct
    superiors are resolved, :meth:`SubschemaRegistry.ancestors` walks the
    full chain.

    Args:
        element: The attribute type or object class to resolve.
        repository: The primary entries of the registry the element belongs
            to.
        index: The name index of the repository, built from the repository
            if not provided.

    Returns:
        InheritingDescription: A copy of the element with the parents set.
    """
    if index is None:
        index = build_name_index(repository)

    parents: t.List[str] = []
    for superior in element.superiors:
        key = superior if superior in repository else index.get(superior.lower(), None)
        if key is None:
            log.debug("Superior '%s' of '%s' is not in the schema, skipping", superior, element.name)
            continue

        parents.append(key)

    return dataclasses.replace(element, parents=tuple(parents))


class SubschemaRegistry:
    """Subschema Registry.

    Contains the schema elements parsed from the description values of a
    subschema subentry. Each kind of element is stored in its own read only
    mapping sorted by key. Attribute types, object classes, matching rules and
    matching rule uses are keyed by their canonical name with each alias
    added as another key to the same object. LDAP syntaxes are keyed by their
    oid. Every key of an element maps to the same immutable record.

    The registry is built once when it is created. If any description fails
    to parse then the whole build fails with a
    :class:`MalformedDescription` that includes the subschema attribute and
    the value that failed.

    Args:
        attribute_types: The attributeTypes description values.
        object_classes: The objectClasses description values.
        ldap_syntaxes: The ldapSyntaxes description values.
        matching_rules: The matchingRules description values.
        matching_rule_use: The matchingRuleUse description values.
        options: Options used to parse the descriptions.
    """

    def __init__(
        self,
        attribute_types: t.Iterable[DescriptionValue] = (),
        object_classes: t.Iterable[DescriptionValue] = (),
        ldap_syntaxes: t.Iterable[DescriptionValue] = (),
        matching_rules: t.Iterable[DescriptionValue] = (),
        matching_rule_use: t.Iterable[DescriptionValue] = (),
        options: t.Optional[ParsingOptions] = None,
    ) -> None:
        self._options = options or ParsingOptions()

        self._attribute_types: t.Mapping[str, AttributeTypeDescription] = self._load(
            SchemaKind.ATTRIBUTE_TYPES,
            AttributeTypeDescription.from_string,
            attribute_types,
        )
        self._ldap_syntaxes: t.Mapping[str, LDAPSyntaxDescription] = self._load(
            SchemaKind.LDAP_SYNTAXES,
            LDAPSyntaxDescription.from_string,
            ldap_syntaxes,
        )
        self._matching_rules: t.Mapping[str, MatchingRuleDescription] = self._load(
            SchemaKind.MATCHING_RULES,
            MatchingRuleDescription.from_string,
            matching_rules,
        )
        self._matching_rule_use: t.Mapping[str, MatchingRuleUseDescription] = self._load(
            SchemaKind.MATCHING_RULE_USE,
            MatchingRuleUseDescription.from_string,
            matching_rule_use,
        )
        self._object_classes: t.Mapping[str, ObjectClassDescription] = self._load(
            SchemaKind.OBJECT_CLASSES,
            ObjectClassDescription.from_string,
            object_classes,
        )

    @classmethod
    def from_attributes(
        cls,
        attributes: t.Mapping[str, t.Iterable[DescriptionValue]],
        options: t.Optional[ParsingOptions] = None,
    ) -> SubschemaRegistry:
        """Builds the registry from a subschema entry.

        Builds the registry from the attributes of a subschema subentry, e.g.
        the attributes of the SearchResultEntry for ``cn=Subschema``. The
        attribute names are matched case insensitively and any attribute not
        present is treated as having no values.

        Args:
            attributes: The subschema entry attributes and their values.
            options: Options used to parse the descriptions.

        Returns:
            SubschemaRegistry: The registry built from the entry.
        """
        lowered = {name.lower(): values for name, values in attributes.items()}

        def get_values(kind: SchemaKind) -> t.Iterable[DescriptionValue]:
            return lowered.get(kind.value.lower(), ())

        return cls(
            attribute_types=get_values(SchemaKind.ATTRIBUTE_TYPES),
            object_classes=get_values(SchemaKind.OBJECT_CLASSES),
            ldap_syntaxes=get_values(SchemaKind.LDAP_SYNTAXES),
            matching_rules=get_values(SchemaKind.MATCHING_RULES),
            matching_rule_use=get_values(SchemaKind.MATCHING_RULE_USE),
            options=options,
        )

    @property
    def attribute_types(self) -> t.Mapping[str, AttributeTypeDescription]:
        """The attribute types by name and alias."""
        return self._attribute_types

    @property
    def object_classes(self) -> t.Mapping[str, ObjectClassDescription]:
        """The object classes by name and alias."""
        return self._object_classes

    @property
    def ldap_syntaxes(self) -> t.Mapping[str, LDAPSyntaxDescription]:
        """The LDAP syntaxes by oid."""
        return self._ldap_syntaxes

    @property
    def matching_rules(self) -> t.Mapping[str, MatchingRuleDescription]:
        """The matching rules by name and alias."""
        return self._matching_rules

    @property
    def matching_rule_use(self) -> t.Mapping[str, MatchingRuleUseDescription]:
        """The matching rule uses by name and alias."""
        return self._matching_rule_use

    def parents_of(
        self,
        element: InheritingDescription,
    ) -> t.List[InheritingDescription]:
        """Gets the direct superiors of an element.

        Args:
            element: The attribute type or object class to get the parents
                for.

        Returns:
            List[InheritingDescription]: The parent elements that were found
            when the registry was built.
        """
        repository = self._repository_for(element)
        return [repository[key] for key in element.parents if key in repository]

    def ancestors(
        self,
        element: InheritingDescription,
    ) -> t.List[InheritingDescription]:
        """Gets all the superiors of an element.

        Walks the parents of the element and their parents, breadth first.
        Each ancestor is only returned once, even if it is reachable through
        multiple parents or the superior chain loops back on itself.

        Args:
            element: The attribute type or object class to get the ancestors
                for.

        Returns:
            List[InheritingDescription]: The ancestors, closest first.
        """
        visited = {element.name}
        ancestors: t.List[InheritingDescription] = []

        queue = collections.deque(self.parents_of(element))
        while queue:
            parent = queue.popleft()
            if parent.name in visited:
                continue

            visited.add(parent.name)
            ancestors.append(parent)
            queue.extend(self.parents_of(parent))

        return ancestors

    def effective_must(
        self,
        element: ObjectClassDescription,
    ) -> t.List[str]:
        """The required attributes of an object class including inherited ones."""
        must = set(element.must)
        for ancestor in self.ancestors(element):
            must.update(ancestor.must)

        return sorted(must)

    def effective_may(
        self,
        element: ObjectClassDescription,
    ) -> t.List[str]:
        """The allowed attributes of an object class including inherited ones."""
        may = set(element.may)
        for ancestor in self.ancestors(element):
            may.update(ancestor.may)

        return sorted(may)

    def effective_syntax(
        self,
        element: AttributeTypeDescription,
    ) -> t.Optional[str]:
        """The syntax of the attribute type or the closest super type that defines one."""
        for candidate in [element] + self.ancestors(element):
            if candidate.syntax is not None:
                return candidate.syntax

        return None

    def effective_max_length(
        self,
        element: AttributeTypeDescription,
    ) -> t.Optional[int]:
        """The max length of the attribute type or the closest super type that defines one."""
        for candidate in [element] + self.ancestors(element):
            if candidate.max_length is not None:
                return candidate.max_length

        return None

    def _repository_for(
        self,
        element: SchemaDescription,
    ) -> t.Mapping[str, t.Any]:
        if isinstance(element, AttributeTypeDescription):
            return self._attribute_types

        elif isinstance(element, ObjectClassDescription):
            return self._object_classes

        raise TypeError(f"{type(element).__name__} does not support inheritance")

    def _load(
        self,
        kind: SchemaKind,
        parser: t.Callable[[str, ParsingOptions], t.Any],
        values: t.Iterable[DescriptionValue],
    ) -> t.Mapping[str, t.Any]:
        repository: t.Dict[str, t.Any] = {}
        for value in values:
            if isinstance(value, bytes):
                value = value.decode(self._options.string_encoding)

            try:
                element = parser(value, self._options)
            except MalformedDescription as e:
                raise MalformedDescription(e.msg, value=e.value, kind=kind.value) from e

            key = element.oid if isinstance(element, LDAPSyntaxDescription) else element.name
            if key in repository:
                log.warning("Duplicate %s entry '%s', replacing existing definition", kind.value, key)

            repository[key] = element

        # Superiors are resolved against the primary entries only, aliases are
        # added once the element they point to has its final parents set.
        primaries = dict(repository)
        resolves = kind in [SchemaKind.ATTRIBUTE_TYPES, SchemaKind.OBJECT_CLASSES]
        index = build_name_index(primaries) if resolves else {}

        for key, element in primaries.items():
            if resolves and element.superiors:
                element = resolve_inheritance(element, primaries, index=index)
                repository[key] = element

            for alias in getattr(element, "aliases", []):
                repository.setdefault(alias, element)

        log.debug("Loaded %d %s definitions with %d keys", len(primaries), kind.value, len(repository))

        return types.MappingProxyType(dict(sorted(repository.items())))
