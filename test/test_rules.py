import re

import pytest

import refract
from refract.rules import (
    Rule,
    SubLanguage,
    SubRules,
    Tag,
    normalize_rule,
    normalize_rules,
    rule,
)


class TestRule:
    def test_compile(self):
        r = rule(r"\d+", "number")
        assert isinstance(r.pattern, re.Pattern)
        assert r.pattern.pattern == r"\d+"
        assert r.name == "number"
        assert r.subgroups == {}
        assert r.repeat is True

    def test_compiled_pattern(self):
        pattern = re.compile(r"\d+")
        assert rule(pattern, "number").pattern is pattern

    def test_flags(self):
        r = rule(r"select", "keyword", flags=re.IGNORECASE)
        assert r.pattern is not None
        assert r.pattern.search("SELECT")

    def test_flags_on_compiled_pattern(self):
        r = rule(re.compile(r"^x"), "x", flags=re.MULTILINE)
        assert r.pattern is not None
        assert r.pattern.flags & re.MULTILINE

    def test_no_pattern(self):
        assert rule(None, "x").pattern is None

    def test_invalid_regex(self):
        with pytest.raises(re.error):
            rule(r"(unclosed", "x")

    def test_invalid_pattern_type(self):
        with pytest.raises(refract.RuleError):
            rule(42, "x")  # type: ignore

    def test_subgroups(self):
        r = rule(
            r"(def)\s+(\w+)",
            "meta.function",
            {1: "keyword", 2: Tag("entity.name.function")},
        )
        assert r.subgroups == {1: Tag("keyword"), 2: Tag("entity.name.function")}

    def test_group_zero_is_name(self):
        r = rule(r"\d+", None, {0: "number"})
        assert r.name == "number"
        assert r.subgroups == {}

    def test_group_zero_does_not_override_name(self):
        r = rule(r"\d+", "number", {0: "other"})
        assert r.name == "number"
        assert r.subgroups == {}

    @pytest.mark.parametrize("index", [-1, 2, 10])
    def test_invalid_group_index(self, index):
        with pytest.raises(refract.RuleError):
            rule(r"(a)", "x", {index: "y"})

    def test_invalid_subgroup(self):
        with pytest.raises(refract.RuleError):
            rule(r"(a)", "x", {1: 42})
        with pytest.raises(refract.RuleError):
            Rule(re.compile(r"(a)"), "x", {1: "y"})  # type: ignore

    def test_rule_error_is_value_error(self):
        with pytest.raises(ValueError):
            rule(r"(a)", "x", {2: "y"})


class TestNormalize:
    def test_rule(self):
        r = rule(r"a", "x")
        assert normalize_rule(r) is r

    def test_tuple(self):
        r = normalize_rule((r"\d+", "number"))
        assert r.name == "number"
        assert r.pattern is not None and r.pattern.pattern == r"\d+"

        r = normalize_rule((r"(a)", "x", {1: "y"}))
        assert r.subgroups == {1: Tag("y")}

    @pytest.mark.parametrize("obj", [(r"a",), (r"a", "b", {}, "extra")])
    def test_tuple_wrong_length(self, obj):
        with pytest.raises(refract.RuleError):
            normalize_rule(obj)

    def test_mapping(self):
        r = normalize_rule(
            {
                "name": "string",
                "pattern": r"(\")(.*?)(\")",
                "matches": {"1": "quote", "3": "quote"},
                "global": False,
            }
        )
        assert r.name == "string"
        assert r.subgroups == {1: Tag("quote"), 3: Tag("quote")}
        assert r.repeat is False

    def test_mapping_flags(self):
        r = normalize_rule({"name": "x", "pattern": r"^a", "flags": re.MULTILINE})
        assert r.pattern is not None
        assert r.pattern.flags & re.MULTILINE

    def test_mapping_unknown_keys(self):
        with pytest.raises(refract.RuleError, match="unknown rule keys: nmae"):
            normalize_rule({"nmae": "x", "pattern": r"a"})

    def test_mapping_bad_matches(self):
        with pytest.raises(refract.RuleError):
            normalize_rule({"name": "x", "pattern": r"(a)", "matches": ["y"]})

    def test_mapping_group_zero(self):
        r = normalize_rule({"pattern": r"\d+", "matches": {0: "number"}})
        assert r.name == "number"

    @pytest.mark.parametrize("obj", [None, 42, "pattern", [r"a", "x"]])
    def test_unknown_shape(self, obj):
        with pytest.raises(refract.RuleError):
            normalize_rule(obj)

    def test_sub_language(self):
        r = normalize_rule(
            {
                "pattern": r"(style=\")(.*?)(\")",
                "matches": {2: {"language": "css"}},
            }
        )
        assert r.subgroups == {2: SubLanguage("css")}

    def test_sub_language_with_name(self):
        r = normalize_rule(
            {
                "pattern": r"(a)",
                "matches": {1: {"language": "css", "name": "embedded"}},
            }
        )
        assert r.subgroups == {1: SubLanguage("css", "embedded")}

    def test_sub_rule(self):
        r = normalize_rule(
            {
                "pattern": r"(\w+)",
                "matches": {1: {"name": "inner", "pattern": r"\d"}},
            }
        )
        subgroup = r.subgroups[1]
        assert isinstance(subgroup, SubRules)
        assert subgroup.name is None
        assert [s.name for s in subgroup.rules] == ["inner"]

    def test_sub_rules_with_name(self):
        r = normalize_rule(
            {
                "pattern": r"(\w+)",
                "matches": {
                    1: {
                        "name": "outer",
                        "matches": [
                            {"name": "digit", "pattern": r"\d"},
                            {"name": "letter", "pattern": r"[a-z]"},
                        ],
                    }
                },
            }
        )
        subgroup = r.subgroups[1]
        assert isinstance(subgroup, SubRules)
        assert subgroup.name == "outer"
        assert [s.name for s in subgroup.rules] == ["digit", "letter"]

    def test_sub_rules_list(self):
        r = rule(r"(\w+)", None, {1: [(r"\d", "digit"), rule(r"x", "x")]})
        subgroup = r.subgroups[1]
        assert isinstance(subgroup, SubRules)
        assert [s.name for s in subgroup.rules] == ["digit", "x"]

    def test_sub_rule_object(self):
        inner = rule(r"\d", "digit")
        r = rule(r"(\w+)", None, {1: inner})
        assert r.subgroups == {1: SubRules((inner,))}

    def test_invalid_subgroup_mapping(self):
        with pytest.raises(refract.RuleError, match="subgroup 1"):
            normalize_rule({"pattern": r"(a)", "matches": {1: {"foo": "bar"}}})

    def test_normalize_rules(self):
        rules = normalize_rules([(r"a", "x"), {"pattern": r"b", "name": "y"}])
        assert [r.name for r in rules] == ["x", "y"]

    def test_normalize_single_rule(self):
        assert [r.name for r in normalize_rules((r"a", "x"))] == ["x"]  # type: ignore
        assert [r.name for r in normalize_rules({"pattern": r"a", "name": "y"})] == [
            "y"
        ]
        assert [r.name for r in normalize_rules(rule(r"a", "z"))] == ["z"]  # type: ignore

    def test_normalize_empty(self):
        assert normalize_rules([]) == []
