# Copyright: (c) 2023, Jordan Borean (@jborean93) <jborean93@gmail.com>
# MIT License (see LICENSE or https://opensource.org/licenses/MIT)

from __future__ import annotations

import logging
import re
import typing as t

import pytest

import sansschema
import sansschema._registry as r
from sansschema.schema import AttributeTypeDescription, ObjectClassDescription


class TestResolveInheritance:
    def test_resolve_by_name(self) -> None:
        top = ObjectClassDescription.from_string("( 2.5.6.0 NAME 'top' ABSTRACT )")
        person = ObjectClassDescription.from_string("( 2.5.6.6 NAME 'person' SUP top )")
        repository = {"top": top, "person": person}

        actual = r.resolve_inheritance(person, repository)
        assert actual.parents == ("top",)
        assert actual.name == "person"
        assert person.parents == ()

    @pytest.mark.parametrize("superior", ["2.5.6.0", "TOP", "Root", "root"])
    def test_resolve_by_oid_alias_or_case(self, superior: str) -> None:
        top = ObjectClassDescription.from_string("( 2.5.6.0 NAME ( 'top' 'root' ) ABSTRACT )")
        child = ObjectClassDescription.from_string(f"( 1.1 NAME 'child' SUP {superior} )")
        repository = {"top": top, "child": child}

        actual = r.resolve_inheritance(child, repository)
        assert actual.parents == ("top",)

    def test_resolve_missing(self, caplog: pytest.LogCaptureFixture) -> None:
        child = ObjectClassDescription.from_string("( 1.1 NAME 'child' SUP ( missing $ other ) )")

        with caplog.at_level(logging.DEBUG, logger="sansschema._registry"):
            actual = r.resolve_inheritance(child, {"child": child})

        assert actual.parents == ()
        assert "Superior 'missing' of 'child' is not in the schema" in caplog.text

    def test_resolve_attribute_type(self) -> None:
        name = AttributeTypeDescription.from_string("( 2.5.4.41 NAME 'name' )")
        cn = AttributeTypeDescription.from_string("( 2.5.4.3 NAME ( 'cn' 'commonName' ) SUP name )")

        actual = r.resolve_inheritance(cn, {"name": name, "cn": cn})
        assert actual.parents == ("name",)

    def test_build_name_index(self) -> None:
        top = ObjectClassDescription.from_string("( 2.5.6.0 NAME ( 'top' 'Root' ) ABSTRACT )")

        actual = r.build_name_index({"top": top})
        assert actual == {"2.5.6.0": "top", "top": "top", "root": "top"}


class TestSubschemaRegistry:
    def test_empty(self) -> None:
        registry = r.SubschemaRegistry()

        assert registry.attribute_types == {}
        assert registry.object_classes == {}
        assert registry.ldap_syntaxes == {}
        assert registry.matching_rules == {}
        assert registry.matching_rule_use == {}

    @pytest.mark.parametrize("reverse", [False, True])
    def test_superior_order_independent(self, reverse: bool) -> None:
        values = [
            "( 1.1 NAME 'A' )",
            "( 1.2 NAME 'B' SUP A )",
        ]
        if reverse:
            values.reverse()

        registry = r.SubschemaRegistry(object_classes=values)

        a = registry.object_classes["A"]
        b = registry.object_classes["B"]
        assert a.parents == ()
        assert b.parents == ("A",)
        assert registry.parents_of(b) == [a]

    def test_unresolved_superior(self) -> None:
        registry = r.SubschemaRegistry(object_classes=["( 1.2 NAME 'B' SUP nonexistent )"])

        b = registry.object_classes["B"]
        assert b.sup == ("nonexistent",)
        assert b.parents == ()
        assert registry.parents_of(b) == []

    def test_aliases_share_element(self) -> None:
        registry = r.SubschemaRegistry(attribute_types=["( 1.1 NAME ( 'a' 'b' 'c' ) )"])

        assert list(registry.attribute_types.keys()) == ["a", "b", "c"]
        a = registry.attribute_types["a"]
        assert a.name == "a"
        assert a.aliases == ("b", "c")
        assert registry.attribute_types["b"] is a
        assert registry.attribute_types["c"] is a

    def test_alias_shares_resolved_element(self) -> None:
        registry = r.SubschemaRegistry(
            attribute_types=[
                "( 2.5.4.3 NAME ( 'cn' 'commonName' ) SUP name )",
                "( 2.5.4.41 NAME 'name' )",
            ]
        )

        cn = registry.attribute_types["cn"]
        assert cn.parents == ("name",)
        assert registry.attribute_types["commonName"] is cn

    def test_alias_does_not_replace_primary(self) -> None:
        registry = r.SubschemaRegistry(
            matching_rules=[
                "( 1.1 NAME 'first' )",
                "( 1.2 NAME ( 'second' 'first' ) )",
            ]
        )

        assert registry.matching_rules["first"].oid == "1.1"
        assert registry.matching_rules["second"].oid == "1.2"

    def test_no_name_keyed_by_oid(self) -> None:
        registry = r.SubschemaRegistry(matching_rule_use=["( 2.5.13.2 APPLIES cn )"])

        mru = registry.matching_rule_use["2.5.13.2"]
        assert mru.name == "2.5.13.2"
        assert mru.aliases == ()

    def test_keys_sorted(self) -> None:
        registry = r.SubschemaRegistry(
            attribute_types=[
                "( 1.3 NAME 'zeta' )",
                "( 1.1 NAME ( 'alpha' 'omega' ) )",
                "( 1.2 NAME 'Beta' )",
            ],
            ldap_syntaxes=[
                "( 1.3.6.1.4.1.1466.115.121.1.5 DESC 'Binary' )",
                "( 1.3.6.1.4.1.1466.115.121.1.15 DESC 'Directory String' )",
            ],
        )

        assert list(registry.attribute_types.keys()) == ["Beta", "alpha", "omega", "zeta"]
        assert list(registry.ldap_syntaxes.keys()) == [
            "1.3.6.1.4.1.1466.115.121.1.15",
            "1.3.6.1.4.1.1466.115.121.1.5",
        ]

    def test_attribute_type_multiple_superiors(self) -> None:
        registry = r.SubschemaRegistry(
            attribute_types=[
                "( 1.1 NAME 'a' )",
                "( 1.2 NAME 'b' SYNTAX 1.3.6.1.4.1.1466.115.121.1.15{64} )",
                "( 1.3 NAME 'c' SUP ( a $ b ) )",
            ]
        )

        c = registry.attribute_types["c"]
        assert c.sup == ("a", "b")
        assert c.parents == ("a", "b")
        assert [p.name for p in registry.parents_of(c)] == ["a", "b"]
        assert registry.effective_syntax(c) == "1.3.6.1.4.1.1466.115.121.1.15"
        assert registry.effective_max_length(c) == 64

    def test_shared_record_cannot_be_changed(self) -> None:
        registry = r.SubschemaRegistry(object_classes=["( 1.1 NAME ( 'a' 'b' ) MUST cn )"])

        a = registry.object_classes["a"]
        with pytest.raises(AttributeError):
            a.must.append("other")  # type: ignore[attr-defined]

        assert registry.object_classes["b"].must == ("cn",)
        assert registry.effective_must(registry.object_classes["b"]) == ["cn"]

    def test_registry_read_only(self) -> None:
        registry = r.SubschemaRegistry(attribute_types=["( 1.1 NAME 'a' )"])

        with pytest.raises(TypeError):
            registry.attribute_types["b"] = registry.attribute_types["a"]  # type: ignore[index]

    def test_duplicate_primary_key(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="sansschema._registry"):
            registry = r.SubschemaRegistry(
                object_classes=[
                    "( 1.1 NAME 'dup' )",
                    "( 1.2 NAME 'dup' )",
                ]
            )

        assert registry.object_classes["dup"].oid == "1.2"
        assert "Duplicate objectClasses entry 'dup'" in caplog.text

    def test_bytes_values(self) -> None:
        registry = r.SubschemaRegistry(
            ldap_syntaxes=["( 1.3.6.1.4.1.1466.115.121.1.15 DESC 'Directory String café' )".encode("utf-8")]
        )

        actual = registry.ldap_syntaxes["1.3.6.1.4.1.1466.115.121.1.15"]
        assert actual.description == "Directory String café"

    @pytest.mark.parametrize(
        "kwarg, kind",
        [
            ("attribute_types", "attributeTypes"),
            ("object_classes", "objectClasses"),
            ("ldap_syntaxes", "ldapSyntaxes"),
            ("matching_rules", "matchingRules"),
            ("matching_rule_use", "matchingRuleUse"),
        ],
    )
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("", "No tokens found in description"),
            ("( 1.1 NAME 'x' MUST ( cn $ sn )", "Unbalanced starting '(' without a closing ')'"),
        ],
    )
    def test_malformed_fails_load(self, kwarg: str, kind: str, value: str, expected: str) -> None:
        values = ["( 1.0 NAME 'valid' )", value]

        with pytest.raises(sansschema.MalformedDescription, match=re.escape(expected)) as exc:
            r.SubschemaRegistry(**{kwarg: values})

        assert exc.value.kind == kind
        assert exc.value.value == value
        assert isinstance(exc.value.__cause__, sansschema.MalformedDescription)

    def test_custom_options(self) -> None:
        options = sansschema.ParsingOptions(multi_value_keywords=frozenset(["must", "may", "sup", "applies"]))
        registry = r.SubschemaRegistry(
            matching_rule_use=["( 2.5.13.2 NAME 'mru' APPLIES cn X-FOO bar )"],
            options=options,
        )

        actual = registry.matching_rule_use["mru"]
        assert actual.applies == ("cn",)
        assert actual.extensions == {"X-FOO": "bar"}

    def test_not_inheriting_kind(self) -> None:
        registry = r.SubschemaRegistry(matching_rules=["( 1.1 NAME 'a' )"])

        with pytest.raises(TypeError, match="MatchingRuleDescription does not support inheritance"):
            registry.parents_of(registry.matching_rules["a"])  # type: ignore[type-var]


class TestSubschemaRegistryFromAttributes:
    def test_load(self, subschema_attributes: t.Dict[str, t.List[str]]) -> None:
        registry = r.SubschemaRegistry.from_attributes(subschema_attributes)

        assert list(registry.attribute_types.keys()) == [
            "cn",
            "commonName",
            "createTimestamp",
            "description",
            "mail",
            "name",
            "objectClass",
            "rfc822Mailbox",
            "sn",
            "surname",
        ]
        assert list(registry.object_classes.keys()) == [
            "LDAProotDSE",
            "OpenLDAProotDSE",
            "dcObject",
            "inetOrgPerson",
            "organizationalPerson",
            "person",
            "top",
        ]
        assert len(registry.ldap_syntaxes) == 5
        assert list(registry.matching_rules.keys()) == [
            "caseIgnoreIA5Match",
            "caseIgnoreMatch",
            "caseIgnoreSubstringsMatch",
            "objectIdentifierMatch",
        ]
        assert list(registry.matching_rule_use.keys()) == ["caseIgnoreIA5Match", "caseIgnoreMatch"]

        name = registry.attribute_types["name"]
        assert name.syntax == "1.3.6.1.4.1.1466.115.121.1.15"
        assert name.max_length == 32768

        cn = registry.attribute_types["commonName"]
        assert cn.name == "cn"
        assert cn.parents == ("name",)

        create = registry.attribute_types["createTimestamp"]
        assert create.usage == sansschema.AttributeTypeUsage.DIRECTORY_OPERATION
        assert create.single_value is True
        assert create.no_user_modification is True

        binary = registry.ldap_syntaxes["1.3.6.1.4.1.1466.115.121.1.5"]
        assert binary.extensions == {"X-NOT-HUMAN-READABLE": "TRUE"}

        root_dse = registry.object_classes["LDAProotDSE"]
        assert root_dse is registry.object_classes["OpenLDAProotDSE"]
        assert root_dse.parents == ("top",)

        dc_object = registry.object_classes["dcObject"]
        assert dc_object.kind == sansschema.ObjectClassKind.AUXILIARY

        assert registry.matching_rule_use["caseIgnoreMatch"].applies == ("cn", "sn", "name", "description")
        assert registry.matching_rule_use["caseIgnoreIA5Match"].applies == ("mail",)

    def test_case_insensitive_attributes(self) -> None:
        registry = r.SubschemaRegistry.from_attributes(
            {
                "ATTRIBUTETYPES": ["( 1.1 NAME 'a' )"],
                "objectclasses": ["( 1.2 NAME 'b' )"],
                "LdapSyntaxes": ["( 1.3 DESC 'c' )"],
                "matchingrules": ["( 1.4 NAME 'd' )"],
                "MatchingRuleUse": ["( 1.5 NAME 'e' )"],
                "cn": ["Subschema"],
            }
        )

        assert list(registry.attribute_types.keys()) == ["a"]
        assert list(registry.object_classes.keys()) == ["b"]
        assert list(registry.ldap_syntaxes.keys()) == ["1.3"]
        assert list(registry.matching_rules.keys()) == ["d"]
        assert list(registry.matching_rule_use.keys()) == ["e"]

    def test_missing_attributes(self) -> None:
        registry = r.SubschemaRegistry.from_attributes({"objectClasses": ["( 1.2 NAME 'b' )"]})

        assert registry.attribute_types == {}
        assert list(registry.object_classes.keys()) == ["b"]

    def test_load_twice_equal(self, subschema_attributes: t.Dict[str, t.List[str]]) -> None:
        first = r.SubschemaRegistry.from_attributes(subschema_attributes)
        second = r.SubschemaRegistry.from_attributes(subschema_attributes)

        assert dict(first.attribute_types) == dict(second.attribute_types)
        assert dict(first.object_classes) == dict(second.object_classes)
        assert dict(first.ldap_syntaxes) == dict(second.ldap_syntaxes)
        assert dict(first.matching_rules) == dict(second.matching_rules)
        assert dict(first.matching_rule_use) == dict(second.matching_rule_use)
        assert first.object_classes["person"] is not second.object_classes["person"]

    def test_load_order_independent(self, subschema_attributes: t.Dict[str, t.List[str]]) -> None:
        reversed_attributes = {k: list(reversed(v)) for k, v in subschema_attributes.items()}

        first = r.SubschemaRegistry.from_attributes(subschema_attributes)
        second = r.SubschemaRegistry.from_attributes(reversed_attributes)

        assert list(first.object_classes.items()) == list(second.object_classes.items())
        assert list(first.attribute_types.items()) == list(second.attribute_types.items())

    def test_load_logs(self, caplog: pytest.LogCaptureFixture, subschema_attributes: t.Dict[str, t.List[str]]) -> None:
        with caplog.at_level(logging.DEBUG, logger="sansschema._registry"):
            r.SubschemaRegistry.from_attributes(subschema_attributes)

        assert "Loaded 7 attributeTypes definitions with 10 keys" in caplog.text
        assert "Loaded 6 objectClasses definitions with 7 keys" in caplog.text


class TestInheritedLookups:
    @pytest.fixture
    def registry(self, subschema_attributes: t.Dict[str, t.List[str]]) -> r.SubschemaRegistry:
        return r.SubschemaRegistry.from_attributes(subschema_attributes)

    def test_ancestors(self, registry: r.SubschemaRegistry) -> None:
        inet_org_person = registry.object_classes["inetOrgPerson"]

        actual = registry.ancestors(inet_org_person)
        assert [a.name for a in actual] == ["organizationalPerson", "person", "top"]

    def test_ancestors_none(self, registry: r.SubschemaRegistry) -> None:
        assert registry.ancestors(registry.object_classes["top"]) == []

    def test_ancestors_multiple_parents(self) -> None:
        registry = r.SubschemaRegistry(
            object_classes=[
                "( 1.1 NAME 'top' ABSTRACT )",
                "( 1.2 NAME 'left' SUP top )",
                "( 1.3 NAME 'right' SUP top )",
                "( 1.4 NAME 'child' SUP ( left $ right ) )",
            ]
        )

        child = registry.object_classes["child"]
        assert child.parents == ("left", "right")
        assert [a.name for a in registry.ancestors(child)] == ["left", "right", "top"]

    def test_ancestors_cycle(self) -> None:
        registry = r.SubschemaRegistry(
            object_classes=[
                "( 1.1 NAME 'a' SUP b )",
                "( 1.2 NAME 'b' SUP c )",
                "( 1.3 NAME 'c' SUP a )",
            ]
        )

        a = registry.object_classes["a"]
        assert [x.name for x in registry.ancestors(a)] == ["b", "c"]

    def test_effective_must(self, registry: r.SubschemaRegistry) -> None:
        inet_org_person = registry.object_classes["inetOrgPerson"]

        assert inet_org_person.must == ()
        assert registry.effective_must(inet_org_person) == ["cn", "objectClass", "sn"]

    def test_effective_may(self, registry: r.SubschemaRegistry) -> None:
        organizational_person = registry.object_classes["organizationalPerson"]

        assert registry.effective_may(organizational_person) == [
            "description",
            "l",
            "ou",
            "seeAlso",
            "telephoneNumber",
            "title",
            "userPassword",
        ]

    def test_effective_syntax(self, registry: r.SubschemaRegistry) -> None:
        sn = registry.attribute_types["sn"]

        assert sn.syntax is None
        assert sn.max_length is None
        assert registry.effective_syntax(sn) == "1.3.6.1.4.1.1466.115.121.1.15"
        assert registry.effective_max_length(sn) == 32768

    def test_effective_own_values(self, registry: r.SubschemaRegistry) -> None:
        mail = registry.attribute_types["mail"]

        assert registry.effective_syntax(mail) == "1.3.6.1.4.1.1466.115.121.1.26"
        assert registry.effective_max_length(mail) == 256

    def test_effective_undefined(self) -> None:
        registry = r.SubschemaRegistry(attribute_types=["( 1.1 NAME 'a' )"])

        a = registry.attribute_types["a"]
        assert registry.effective_syntax(a) is None
        assert registry.effective_max_length(a) is None
