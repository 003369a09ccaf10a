# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
Rules describe what the engine should look for, and how to mark it.

Let's describe a couple of tokens for a tiny language. We will need keywords
and numbers:

::

    >>> keyword = rule(r"\\b(if|return)\\b", "keyword")
    >>> number = rule(r"\\d+", "constant.numeric")

Each rule has a regular expression and a name. Dots in a name separate
CSS classes, so ``constant.numeric`` will become
``<span class="constant numeric">``.

Parts of a match can be marked separately. To do so, pass `subgroups`,
a mapping from a capturing group index to one of:

-   a plain string: the group is wrapped into a span with this name;
-   :class:`SubLanguage`: the group is annotated as a different language;
-   :class:`SubRules`: the group is annotated with nested rules.

For example, here's a rule for function definitions:

::

    >>> definition = rule(
    ...     r"(def)\\s+(\\w+)",
    ...     "meta.function",
    ...     {1: "keyword", 2: "entity.name.function"},
    ... )
    >>> definition.subgroups[2]
    Tag(name='entity.name.function')

Rules can also be written as plain dicts and tuples, which is handy when
rule tables are loaded from data files. Use :func:`normalize_rule`
to convert them:

::

    >>> normalize_rule({"name": "comment", "pattern": r"#.*$", "global": False})
    Rule(pattern=re.compile('#.*$'), name='comment', subgroups={}, repeat=False)


Rules
-----

.. autoclass:: Rule
    :members:

.. autofunction:: rule

.. autofunction:: normalize_rule

.. autofunction:: normalize_rules


Subgroups
---------

.. autoclass:: Tag

.. autoclass:: SubRules

.. autoclass:: SubLanguage

.. autodata:: Subgroup

.. autodata:: RuleLike

"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass

import refract
import refract._typing_ext as _tx
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import typing_extensions as _t
else:
    from refract import _typing as _t

__all__ = [
    "Rule",
    "RuleLike",
    "SubLanguage",
    "SubRules",
    "Subgroup",
    "Tag",
    "normalize_rule",
    "normalize_rules",
    "rule",
]


@dataclass(frozen=True, slots=True)
class Tag:
    """
    Wrap a capturing group into a span with the given name.

    """

    name: str


@dataclass(frozen=True, slots=True)
class SubRules:
    """
    Annotate a capturing group with nested rules. If `name` is given,
    the result is additionally wrapped into a span with this name.

    """

    rules: tuple[Rule, ...]
    name: str | None = None


@dataclass(frozen=True, slots=True)
class SubLanguage:
    """
    Annotate a capturing group as another language. If `name` is given,
    the result is additionally wrapped into a span with this name.

    """

    language: str
    name: str | None = None


Subgroup: _t.TypeAlias = Tag | SubRules | SubLanguage
"""
Describes how to process a single capturing group.

"""


@dataclass(frozen=True, slots=True)
class Rule:
    """
    A single matchable pattern.

    Use :func:`rule` to create rules from pattern strings.

    """

    #: Compiled regular expression. Rules without a pattern are skipped.
    pattern: _tx.StrRePattern | None

    #: Dotted name of the token, i.e. ``"keyword.operator"``. Rules without
    #: a name consume text without marking it.
    name: str | None = None

    #: Mapping from capturing group index (starting from 1) to a subgroup
    #: description.
    subgroups: _t.Mapping[int, Subgroup] = dataclasses.field(default_factory=dict)

    #: If :data:`False`, the rule stops after its first accepted match.
    repeat: bool = True

    def __post_init__(self):
        for index, subgroup in self.subgroups.items():
            if not isinstance(index, int) or index < 1:
                raise refract.RuleError(f"invalid subgroup index {index!r}")
            if self.pattern is not None and index > self.pattern.groups:
                raise refract.RuleError(
                    f"subgroup {index} refers to a missing group "
                    f"in {self.pattern.pattern!r}"
                )
            if not isinstance(subgroup, (Tag, SubRules, SubLanguage)):
                raise refract.RuleError(
                    f"invalid subgroup {index}: expected Tag, SubRules "
                    f"or SubLanguage, got {subgroup!r}"
                )


RuleLike: _t.TypeAlias = _t.Union[
    Rule,
    _t.Mapping[str, _t.Any],
    tuple[_t.Any, ...],
]
"""
Anything that :func:`normalize_rule` understands.

"""


def _compile(pattern: str | _tx.StrRePattern | None, flags: int):
    if pattern is None or isinstance(pattern, re.Pattern):
        if flags and pattern is not None:
            return re.compile(pattern.pattern, pattern.flags | flags)
        return pattern
    elif isinstance(pattern, str):
        return re.compile(pattern, flags)
    else:
        raise refract.RuleError(f"expected a regular expression, got {pattern!r}")


def rule(
    pattern: str | _tx.StrRePattern | None,
    name: str | None = None,
    subgroups: _t.Mapping[int, _t.Any] | None = None,
    *,
    flags: int = 0,
    repeat: bool = True,
) -> Rule:
    """
    Create a new rule.

    :param pattern:
        regular expression, either a string or a compiled pattern.
        Strings are compiled right away, so errors in regular expressions
        are reported here.
    :param name:
        dotted name of the token.
    :param subgroups:
        mapping from capturing group index to a subgroup description.
        Values can be anything :class:`Subgroup` or loose descriptions
        accepted by :func:`normalize_rule`.
    :param flags:
        flags for :func:`re.compile`. :data:`re.IGNORECASE`
        and :data:`re.MULTILINE` are the useful ones.
    :param repeat:
        if :data:`False`, the rule will only be applied once.

    """

    compiled = _compile(pattern, flags)
    groups = dict(subgroups or {})

    if 0 in groups and isinstance(groups[0], str):
        # Group #0 is the whole match, it works the same way as a name.
        zero = groups.pop(0)
        if name is None:
            name = zero

    return Rule(
        compiled,
        name,
        {index: _normalize_subgroup(index, value) for index, value in groups.items()},
        repeat,
    )


def normalize_rule(obj: RuleLike, /) -> Rule:
    """
    Convert a loose rule description into a :class:`Rule`.

    Accepts a :class:`Rule` (returned as is), a tuple
    ``(pattern, name[, subgroups])``, or a mapping with keys ``"pattern"``,
    ``"name"``, ``"matches"`` (subgroups) and ``"global"`` (repeat flag).

    :raises:
        :class:`~refract.RuleError` if description has an unexpected shape,
        :class:`re.error` if it contains an invalid regular expression.

    """

    if isinstance(obj, Rule):
        return obj
    elif isinstance(obj, tuple):
        if not 2 <= len(obj) <= 3:
            raise refract.RuleError(
                f"expected a tuple (pattern, name[, subgroups]), got {obj!r}"
            )
        return rule(*obj)
    elif isinstance(obj, _t.Mapping):
        unknown = set(obj) - {"pattern", "name", "matches", "global", "flags"}
        if unknown:
            raise refract.RuleError(f"unknown rule keys: {', '.join(sorted(unknown))}")
        matches = obj.get("matches")
        if matches is not None and not isinstance(matches, _t.Mapping):
            raise refract.RuleError(f"rule matches should be a mapping, got {matches!r}")
        return rule(
            obj.get("pattern"),
            obj.get("name"),
            {int(index): value for index, value in (matches or {}).items()},
            flags=obj.get("flags", 0),
            repeat=obj.get("global", True),
        )
    else:
        raise refract.RuleError(f"expected a rule description, got {obj!r}")


def normalize_rules(rules: _t.Iterable[RuleLike], /) -> list[Rule]:
    """
    Normalize every rule in a list.

    """

    if isinstance(rules, (Rule, _t.Mapping)) or (
        isinstance(rules, tuple) and rules and isinstance(rules[0], (str, re.Pattern))
    ):
        # A single rule rather than a list of them.
        rules = [rules]  # type: ignore
    return [normalize_rule(r) for r in rules]


def _normalize_subgroup(index: int, value: _t.Any) -> Subgroup:
    if isinstance(value, (Tag, SubRules, SubLanguage)):
        return value
    elif isinstance(value, str):
        return Tag(value)
    elif isinstance(value, Rule):
        return SubRules((value,))
    elif isinstance(value, list):
        return SubRules(tuple(normalize_rules(value)))
    elif isinstance(value, _t.Mapping):
        if "language" in value:
            return SubLanguage(value["language"], value.get("name"))
        elif "pattern" in value:
            return SubRules((normalize_rule(value),))
        elif "matches" in value:
            return SubRules(tuple(normalize_rules(value["matches"])), value.get("name"))
    raise refract.RuleError(f"invalid description for subgroup {index}: {value!r}")
