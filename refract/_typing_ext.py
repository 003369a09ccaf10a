# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

# pyright: reportDeprecated=false
# ruff: noqa: I002

from __future__ import annotations

import re as _re
import types as _types

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import typing_extensions as _t
else:
    from refract import _typing as _t


def is_union(origin):
    return origin is _t.Union or origin is _types.UnionType


if TYPE_CHECKING:
    StrRePattern: _t.TypeAlias = _re.Pattern[str]
    StrReMatch: _t.TypeAlias = _re.Match[str]

    #: Attributes of an HTML start tag, as reported by :mod:`html.parser`.
    HtmlAttrs: _t.TypeAlias = list[tuple[str, str | None]]

else:
    StrRePattern = _re.Pattern[str]
    StrReMatch = _re.Match[str]
    HtmlAttrs = list[tuple[str, _t.Optional[str]]]
