# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
The engine takes escaped source code and a list of rules, and wraps
every accepted match into a ``<span>``.

::

    >>> from refract.registry import Registry
    >>> registry = Registry()
    >>> registry.extend("toy", [
    ...     (r"\\b(if|return)\\b", "keyword"),
    ...     (r"\\d+", "number"),
    ... ])
    >>> print(annotate("if (x) { return 1; }", "toy", registry=registry))
    <span class="keyword">if</span> (x) { <span class="keyword">return</span> <span class="number">1</span>; }


How matching works
------------------

Rules are applied one by one, in order of the effective rule list
(see :meth:`~refract.registry.Registry.resolve`). Every rule scans the whole
escaped text, never text that was already modified by other rules.

When a new match overlaps with matches found earlier:

-   if it covers an earlier match entirely, the earlier match is dropped;
-   if it starts or ends inside an earlier match, the new match is dropped;
-   if it is exactly the same as an earlier match, the new match is dropped.

Matches of zero width end scanning for a rule.

Once all rules were applied, replacements are inserted into the text starting
from the last one, so that positions of the remaining ones stay valid.


Annotating code
---------------

.. autofunction:: annotate

.. autoclass:: Annotator
    :members:

"""

from __future__ import annotations

import refract
import refract._typing_ext as _tx
from refract.config import Options
from refract.registry import REGISTRY, Registry
from refract.rules import Rule, RuleLike, SubLanguage, Tag, normalize_rules
from refract.text import (
    escape_html,
    group_offset,
    intersects,
    overlaps_fully,
    positions_descending,
    replace_at,
)
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import typing_extensions as _t
else:
    from refract import _typing as _t

__all__ = [
    "Annotator",
    "annotate",
]


class Annotator:
    """
    Annotates code using rules from a registry.

    Annotator holds no state between calls, so a single instance can be
    used from several threads at once.

    :param options:
        annotation options, see :class:`~refract.config.Options`.
    :param registry:
        registry to look up languages in. Default is
        :data:`~refract.registry.REGISTRY`.

    """

    def __init__(
        self,
        options: Options | _t.Mapping[str, _t.Any] | None = None,
        *,
        registry: Registry | None = None,
    ):
        self._options = Options(options)
        self._registry = registry if registry is not None else REGISTRY

    @property
    def options(self) -> Options:
        return self._options

    @property
    def registry(self) -> Registry:
        return self._registry

    def annotate(
        self,
        code: str,
        language: str,
        /,
        rules: _t.Iterable[RuleLike] | None = None,
    ) -> str:
        """
        Escape the given code and annotate it.

        :param code:
            raw source code.
        :param language:
            name of the language, or its alias.
        :param rules:
            if given, these rules are used instead of language's rules.
            Language name is still used for nested rules.
        :returns:
            escaped code with ``<span>`` markers.

        """

        language = self._registry.canonical(language)
        if rules is None:
            resolved = self._registry.resolve(language)
            if not resolved:
                refract._logger.debug("no rules for language %r", language)
        else:
            resolved = normalize_rules(rules)
        return self._annotate_escaped(escape_html(code), language, resolved)

    def _annotate_escaped(self, code: str, language: str, rules: list[Rule]) -> str:
        session = _Session(self, code, language)
        for rule in rules:
            session.apply(rule)
        return session.render()

    def _wrap(self, name: str, code: str) -> str:
        class_name = name.replace(".", " ")
        if self._options.global_class:
            class_name += " " + self._options.global_class
        return f'<span class="{class_name}">{code}</span>'


class _Session:
    # State of a single `annotate` call. Nested annotations get their own session.

    def __init__(self, annotator: Annotator, code: str, language: str):
        self._annotator = annotator
        self._code = code
        self._language = language

        # Start position -> (matched text, replacement).
        self._replacements: dict[int, tuple[str, str]] = {}

        # Start position -> end position.
        self._positions: dict[int, int] = {}

    def apply(self, rule: Rule):
        if rule.pattern is None:
            return

        pos = 0
        while match := rule.pattern.search(self._code, pos):
            start, end = match.span()
            if start == end:
                # I.e. `\s*` matched nothing; there's nothing more to find.
                return

            if self._is_inside_other_match(start, end):
                pos = end
                continue

            self._replacements[start] = (match.group(), self._process(rule, match))
            self._positions[start] = end

            if not rule.repeat:
                return

            pos = end

    def _is_inside_other_match(self, start: int, end: int) -> bool:
        for other_start in sorted(self._positions):
            other_end = self._positions[other_start]
            if overlaps_fully(other_start, other_end, start, end):
                del self._positions[other_start]
                del self._replacements[other_start]
            elif intersects(other_start, other_end, start, end):
                return True
        return False

    def _process(self, rule: Rule, match: _tx.StrReMatch) -> str:
        replacement = match.group()

        # Go backwards, so that replacing a group doesn't shift groups before it.
        for index in positions_descending(rule.subgroups):
            block = match.group(index)
            if not block:
                continue

            subgroup = rule.subgroups[index]
            if isinstance(subgroup, Tag):
                local = block
            elif isinstance(subgroup, SubLanguage):
                registry = self._annotator.registry
                local = self._annotator._annotate_escaped(
                    block,
                    registry.canonical(subgroup.language),
                    registry.resolve(subgroup.language),
                )
            else:
                local = self._annotator._annotate_escaped(
                    block, self._language, list(subgroup.rules)
                )

            if subgroup.name:
                local = self._annotator._wrap(subgroup.name, local)

            replacement = replace_at(
                group_offset(match, index), block, local, replacement
            )

        if rule.name:
            replacement = self._annotator._wrap(rule.name, replacement)

        return replacement

    def render(self) -> str:
        code = self._code
        for position in positions_descending(self._replacements):
            replace, replace_with = self._replacements[position]
            code = replace_at(position, replace, replace_with, code)
        return code


def annotate(
    code: str,
    language: str,
    /,
    options: Options | _t.Mapping[str, _t.Any] | None = None,
    *,
    registry: Registry | None = None,
    rules: _t.Iterable[RuleLike] | None = None,
) -> str:
    """
    Escape the given code and annotate it as the given language.

    Unknown languages are not an error: their code is just escaped.

    :param code:
        raw source code.
    :param language:
        name of the language, or its alias.
    :param options:
        annotation options, see :class:`~refract.config.Options`.
    :param registry:
        registry to look up languages in. Default is
        :data:`~refract.registry.REGISTRY`.
    :param rules:
        if given, these rules are used instead of language's rules.
    :returns:
        escaped code with ``<span>`` markers.
    :example:
        ::

            >>> annotate("a < b", "unknown-language")
            'a &lt; b'

    """

    return Annotator(options, registry=registry).annotate(code, language, rules)
