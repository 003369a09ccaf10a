# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
Registry maps language names to their rules.

A language can inherit rules from a parent language. The effective rule list
of a language is its own rules, followed by effective rules of its parent:

::

    >>> registry = Registry()
    >>> registry.extend("generic", [(r"\\d+", "constant.numeric")])
    >>> registry.extend("javascript", [(r"\\bvar\\b", "storage")], "generic")
    >>> [r.name for r in registry.resolve("javascript")]
    ['storage', 'constant.numeric']

Extending a language again puts new rules before the existing ones,
so they take precedence:

::

    >>> registry.extend("javascript", [(r"\\bconsole\\b", "support")])
    >>> [r.name for r in registry.resolve("javascript")]
    ['support', 'storage', 'constant.numeric']

Aliases redirect short names to canonical ones:

::

    >>> registry.alias("js", "javascript")
    >>> registry.canonical("js")
    'javascript'


Registry
--------

.. autoclass:: Registry
    :members:


Default registry
----------------

Most applications need just one registry. Refract creates one
and provides shortcuts that work with it.

.. autodata:: REGISTRY

.. autofunction:: register_language

.. autofunction:: unregister_language

.. autofunction:: add_alias

.. autofunction:: get_rules

"""

from __future__ import annotations

import warnings

import refract
from refract.rules import Rule, RuleLike, normalize_rules
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import typing_extensions as _t
else:
    from refract import _typing as _t

__all__ = [
    "REGISTRY",
    "Registry",
    "add_alias",
    "get_rules",
    "register_language",
    "unregister_language",
]


class Registry:
    """
    Mapping from language names to their rules, parents and aliases.

    Registry is read without locking. If you annotate code on several threads,
    make sure that languages are registered before annotation starts.

    """

    def __init__(self):
        self._rules: dict[str, list[Rule]] = {}
        self._parents: dict[str, str] = {}
        self._aliases: dict[str, str] = {}

    def extend(
        self,
        language: str,
        rules: _t.Iterable[RuleLike],
        parent: str | None = None,
        /,
    ):
        """
        Add rules to a language.

        New rules are placed before rules that were registered earlier,
        so they have higher priority.

        :param language:
            name of the language.
        :param rules:
            list of rules, see :func:`~refract.rules.normalize_rule`
            for accepted formats.
        :param parent:
            language to inherit rules from. Parent is only set once, extending
            a language again without a parent keeps the original one.

        """

        normalized = normalize_rules(rules)

        if parent:
            current = self._parents.get(language)
            if current is None:
                self._parents[language] = parent
            elif current != parent:
                warnings.warn(
                    f"language {language!r} already inherits from {current!r}, "
                    f"ignoring new parent {parent!r}",
                    refract.RefractWarning,
                    stacklevel=2,
                )

        self._rules[language] = normalized + self._rules.get(language, [])

        refract._logger.debug(
            "registered %s rules for %s (parent: %s)",
            len(normalized),
            language,
            self._parents.get(language),
        )

    def remove(self, language: str, /):
        """
        Remove language's rules and its parent.

        Aliases that point to this language are kept, and languages
        that inherit from it simply lose these rules.

        """

        self._rules.pop(language, None)
        self._parents.pop(language, None)

    def alias(self, alias: str, language: str, /):
        """
        Make `alias` redirect to `language`.

        """

        self._aliases[alias] = language

    def canonical(self, language: str, /) -> str:
        """
        Follow an alias, if there is one.

        """

        return self._aliases.get(language) or language

    def parent(self, language: str, /) -> str | None:
        """
        Get language's parent, if there is one.

        """

        return self._parents.get(self.canonical(language))

    def resolve(self, language: str, /) -> list[Rule]:
        """
        Get effective rules for a language: its own rules, then rules
        of its parent, then rules of the parent's parent, and so on.

        Unknown languages have no rules.

        """

        language = self.canonical(language)
        rules = list(self._rules.get(language, []))
        while language in self._parents:
            language = self._parents[language]
            rules.extend(self._rules.get(language, []))
        return rules

    def languages(self) -> list[str]:
        """
        Names of all languages that have rules.

        """

        return sorted(self._rules)

    def __contains__(self, language: str) -> bool:
        return self.canonical(language) in self._rules

    def copy(self) -> Registry:
        """
        Make a shallow copy of the registry.

        Rules are immutable, so changing a copy never affects the original.

        """

        other = Registry()
        other._rules = {k: list(v) for k, v in self._rules.items()}
        other._parents = dict(self._parents)
        other._aliases = dict(self._aliases)
        return other

    def __repr__(self):
        return f"Registry({', '.join(self.languages())})"


REGISTRY = Registry()
"""
Process-wide registry used by default.

"""


def register_language(
    name: str, rules: _t.Iterable[RuleLike], parent: str | None = None, /
):
    """
    Add rules to a language in the default registry.

    See :meth:`Registry.extend`.

    """

    REGISTRY.extend(name, rules, parent)


def unregister_language(name: str, /):
    """
    Remove a language from the default registry.

    See :meth:`Registry.remove`.

    """

    REGISTRY.remove(name)


def add_alias(alias: str, language: str, /):
    """
    Add an alias to the default registry.

    See :meth:`Registry.alias`.

    """

    REGISTRY.alias(alias, language)


def get_rules(language: str, /) -> list[Rule]:
    """
    Get effective rules for a language from the default registry.

    See :meth:`Registry.resolve`.

    """

    return REGISTRY.resolve(language)
