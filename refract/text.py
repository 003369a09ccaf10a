# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
Small stateless helpers used by the engine.

All offsets handled by the engine are computed against escaped text, so
:func:`escape_html` must run exactly once, before any matching:

::

    >>> escape_html("a < b && c")
    'a &lt; b &amp;&amp; c'

Escaping is idempotent, entities that are already present are left alone:

::

    >>> escape_html(escape_html("<br> &copy; & more"))
    '&lt;br&gt; &copy; &amp; more'


Escaping
--------

.. autofunction:: escape_html

.. autofunction:: strip_spans


Intervals
---------

.. autofunction:: overlaps_fully

.. autofunction:: intersects


Replacing
---------

.. autofunction:: replace_at

.. autofunction:: group_offset

.. autofunction:: positions_descending

"""

from __future__ import annotations

import re as _re

import refract._typing_ext as _tx
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import typing_extensions as _t
else:
    from refract import _typing as _t

__all__ = [
    "escape_html",
    "group_offset",
    "intersects",
    "overlaps_fully",
    "positions_descending",
    "replace_at",
    "strip_spans",
]

_BARE_AMP_RE = _re.compile(r"&(?![\w#]+;)")
_SPAN_RE = _re.compile(r'<span class="[^"]*">|</span>')


def escape_html(code: str, /) -> str:
    """
    Replace ``<`` and ``>`` with entities, and escape every ``&`` that doesn't
    already start an entity like ``&amp;`` or ``&#160;``.

    """

    code = code.replace("<", "&lt;").replace(">", "&gt;")
    return _BARE_AMP_RE.sub("&amp;", code)


def strip_spans(annotated: str, /) -> str:
    """
    Remove every ``<span class="...">`` and ``</span>`` marker
    from an annotated string.

    ::

        >>> strip_spans('<span class="keyword">if</span> x')
        'if x'

    """

    return _SPAN_RE.sub("", annotated)


def overlaps_fully(start1: int, end1: int, start2: int, end2: int, /) -> bool:
    """
    Check if a new match ``[start2, end2)`` covers an existing match
    ``[start1, end1)`` entirely.

    Two identical intervals do not count: when a match is discovered
    for the second time, the first one should stay.

    ::

        >>> overlaps_fully(2, 10, 0, 12)
        True
        >>> overlaps_fully(2, 10, 2, 10)
        False

    """

    if start2 == start1 and end2 == end1:
        return False

    return start2 <= start1 and end2 >= end1


def intersects(start1: int, end1: int, start2: int, end2: int, /) -> bool:
    """
    Check if a new match ``[start2, end2)`` starts or ends strictly inside
    of an existing match ``[start1, end1)``.

    ::

        >>> intersects(0, 5, 3, 8)
        True
        >>> intersects(0, 5, 5, 8)
        False

    """

    if start1 <= start2 < end1:
        return True

    return start1 < end2 < end1


def replace_at(position: int, replace: str, replace_with: str, code: str, /) -> str:
    """
    Replace the first occurrence of `replace` that starts at or after
    `position` in `code`.

    Replacement text is inserted literally, so characters like ``$``
    or ``\\1`` have no special meaning.

    """

    return code[:position] + code[position:].replace(replace, replace_with, 1)


def group_offset(match: _tx.StrReMatch, group: int, /) -> int:
    """
    Approximate position of a capturing group within the matched text:
    the total length of all groups before it that have matched something.

    """

    offset = 0
    for i in range(1, group):
        if text := match.group(i):
            offset += len(text)
    return offset


def positions_descending(positions: _t.Iterable[int], /) -> list[int]:
    """
    Sort positions from the last one to the first one.

    Replacing text from the end of a string keeps all positions
    before the replaced part valid.

    """

    return sorted(positions, reverse=True)
