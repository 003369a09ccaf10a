# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
Rules for a handful of common languages.

Importing this module registers the following languages
in :data:`~refract.registry.REGISTRY`:

- ``generic``, basic rules shared by C-like languages,
- ``javascript`` (``js``), inherits ``generic``,
- ``python`` (``py``, ``python3``),
- ``css``,
- ``html``, with ``css`` in ``style`` attributes and ``<style>`` tags,
  and ``javascript`` in ``<script>`` tags,
- ``shell`` (``sh``, ``bash``, ``console``),
- ``json``,
- ``diff``.

::

    >>> from refract.engine import annotate
    >>> print(annotate("ls -la $HOME", "sh"))
    ls <span class="support flag">-la</span> <span class="variable">$HOME</span>

Note that rules run against escaped code, so they should look
for ``&lt;`` instead of ``<``, ``&gt;`` instead of ``>``,
and ``&amp;`` instead of ``&``.

.. autofunction:: install

"""

from __future__ import annotations

import re

from refract.registry import REGISTRY, Registry
from refract.rules import Rule, SubLanguage, SubRules, rule

__all__ = [
    "install",
]


GENERIC: list[Rule] = [
    rule(
        r"([\"'])(?:\\.|(?!\1)[^\\\n])*\1",
        "string",
    ),
    rule(
        r"/\*[\s\S]*?\*/",
        "comment",
    ),
    rule(
        r"//[^\n]*",
        "comment",
    ),
    rule(
        r"\b(?:0x[\da-fA-F]+|\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)\b",
        "constant.numeric",
    ),
    rule(
        r"\b(?:true|false|null)\b",
        "constant.language",
    ),
    rule(
        r"\b(\w+)(?=\()",
        "function.call",
    ),
    rule(
        r"&(?:lt|gt|amp);|[+\-*/%=!|^~?]",
        "keyword.operator",
    ),
]


JAVASCRIPT: list[Rule] = [
    rule(
        r"`(?:\\.|[^\\`])*`",
        "string.template",
    ),
    rule(
        r"\b(function)\s+(\w+)",
        "meta.function",
        {1: "keyword", 2: "entity.name.function"},
    ),
    rule(
        r"\b(class)\s+(\w+)(?:\s+(extends)\s+([\w.]+))?",
        "meta.class",
        {1: "keyword", 2: "entity.name.class", 3: "keyword", 4: "entity.name.class"},
    ),
    rule(
        r"\b(?:async|await|break|case|catch|const|continue|debugger|default|delete"
        r"|do|else|export|finally|for|from|if|import|in|instanceof|let|new|of"
        r"|return|super|switch|this|throw|try|typeof|var|void|while|with|yield)\b",
        "keyword",
    ),
    rule(
        r"\b(?:undefined|NaN|Infinity)\b",
        "constant.language",
    ),
    rule(
        r"\b(?:console|document|window|Math|JSON|Promise|Object|Array)\b",
        "support.class",
    ),
    rule(
        r"=&gt;",
        "keyword.operator.arrow",
    ),
]


_PY_ESCAPES: list[Rule] = [
    rule(
        r"\\(?:[\n'\"\\abfnrtv]|[0-7]{3}|x[0-9a-fA-F]{2}|u[0-9a-fA-F]{4}"
        r"|U[0-9a-fA-F]{8}|N\{[^}\n]+\})",
        "constant.character.escape",
    ),
]

PYTHON: list[Rule] = [
    rule(
        r"([rRbBuUfF]{0,2})(\"\"\"|''')((?:\\.|[^\\])*?)\2",
        "string",
        {1: "storage.modifier", 3: SubRules(tuple(_PY_ESCAPES))},
    ),
    rule(
        r"([rRbBuUfF]{0,2})([\"'])((?:\\.|(?!\2)[^\\\n])*)\2",
        "string",
        {1: "storage.modifier", 3: SubRules(tuple(_PY_ESCAPES))},
    ),
    rule(
        r"#.*$",
        "comment",
        flags=re.MULTILINE,
    ),
    rule(
        r"^(\s*)(@[\w.]+)",
        None,
        {2: "meta.decorator"},
        flags=re.MULTILINE,
    ),
    rule(
        r"\b(def)\s+(\w+)",
        "meta.function",
        {1: "keyword", 2: "entity.name.function"},
    ),
    rule(
        r"\b(class)\s+(\w+)",
        "meta.class",
        {1: "keyword", 2: "entity.name.class"},
    ),
    rule(
        r"\b(?:and|as|assert|async|await|break|class|continue|def|del|elif|else|except"
        r"|finally|for|from|global|if|import|in|is|lambda|nonlocal|not|or|pass|raise"
        r"|return|try|while|with|yield)\b",
        "keyword",
    ),
    rule(
        r"\b(?:None|True|False)\b",
        "constant.language",
    ),
    rule(
        r"(?<![\.\w])(?:0x[0-9a-fA-F]+|0o[0-7]+|0b[01]+"
        r"|\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)",
        "constant.numeric",
    ),
    rule(
        r"\b(?:str|int|float|complex|list|tuple|range|dict|set|frozenset|bool"
        r"|bytes|bytearray|memoryview|object|type)\b",
        "support.type",
    ),
    rule(
        r"\b(?:self|cls)\b",
        "variable.language",
    ),
]


_CSS_VALUES: list[Rule] = [
    rule(
        r"#[0-9a-fA-F]{3,8}\b",
        "constant.hex-color",
    ),
    rule(
        r"(?<![\w#-])(-?\d*\.?\d+)(px|em|rem|vh|vw|pt|ms|s|deg|%)?(?!\w)",
        None,
        {1: "constant.numeric", 2: "keyword.unit"},
    ),
    rule(
        r"!important",
        "keyword.important",
    ),
    rule(
        r"\b([\w-]+)(?=\()",
        "support.function",
    ),
]

CSS: list[Rule] = [
    rule(
        r"/\*[\s\S]*?\*/",
        "comment",
    ),
    rule(
        r"([\"'])(?:\\.|(?!\1)[^\\\n])*\1",
        "string",
    ),
    rule(
        r"([\w-]+)(\s*:\s*)([^;{}]+?)(?=\s*(?:;|\}|$))",
        None,
        {1: "support.css-property", 3: SubRules(tuple(_CSS_VALUES))},
    ),
    rule(
        r"(@[\w-]+)",
        "keyword.at-rule",
    ),
    rule(
        r"((?:&\w+;|[^{};\s/&@])(?:&\w+;|[^{};/&])*?)(\s*)(?=\{)",
        None,
        {1: "entity.name.selector"},
    ),
]


_HTML_ATTRIBUTES: list[Rule] = [
    rule(
        r"(style)(=)(\")([^\"]*)(\")",
        None,
        {1: "support.attribute", 3: "string.quote", 4: SubLanguage("css"), 5: "string.quote"},
    ),
    rule(
        r"([\w:-]+)(?:(=)(\"[^\"]*\"|'[^']*'|[^\s\"']+))?",
        None,
        {1: "support.attribute", 3: "string.quote"},
    ),
]

_HTML_TAG = rule(
    r"(&lt;/?)([\w-]+)((?:[^&]|&(?!gt;))*?)(/?&gt;)",
    None,
    {
        1: "support.tag.open",
        2: "entity.name.tag",
        3: SubRules(tuple(_HTML_ATTRIBUTES)),
        4: "support.tag.close",
    },
)

HTML: list[Rule] = [
    rule(
        r"&lt;!--[\s\S]*?--&gt;",
        "comment.html",
    ),
    rule(
        r"&lt;!DOCTYPE[^&]*&gt;",
        "meta.doctype",
        flags=re.IGNORECASE,
    ),
    rule(
        r"(&lt;style\b(?:[^&]|&(?!gt;))*&gt;)([\s\S]*?)(&lt;/style&gt;)",
        None,
        {1: _HTML_TAG, 2: SubLanguage("css"), 3: _HTML_TAG},
        flags=re.IGNORECASE,
    ),
    rule(
        r"(&lt;script\b(?:[^&]|&(?!gt;))*&gt;)([\s\S]*?)(&lt;/script&gt;)",
        None,
        {1: _HTML_TAG, 2: SubLanguage("javascript"), 3: _HTML_TAG},
        flags=re.IGNORECASE,
    ),
    _HTML_TAG,
    rule(
        r"&(?!(?:lt|gt);)(?:\w+|#\d+|#x[0-9a-fA-F]+);",
        "constant.character.entity",
    ),
]


SHELL: list[Rule] = [
    rule(
        r"'[^']*'",
        "string",
    ),
    rule(
        r"\"(?:\\.|[^\\\"])*\"",
        "string",
    ),
    rule(
        r"(?<![\w$&])#.*$",
        "comment",
        flags=re.MULTILINE,
    ),
    # Consumes entities that were already in the source,
    # so that `;` and `#` inside them stay unmarked.
    rule(
        r"&(?!(?:amp|lt|gt);)(?:\w+|#\d+|#x[0-9a-fA-F]+);",
        None,
    ),
    rule(
        r"^(\$)(\s*)([\w./~-]+)",
        None,
        {1: "punctuation.prompt", 3: "entity.name.command"},
        flags=re.MULTILINE,
    ),
    rule(
        r"\$(?:\{[^}\n]*\}|\w+|[?@#$!*-])",
        "variable",
    ),
    rule(
        r"\b(?:if|then|elif|else|fi|time|for|in|until|while|do|done|case"
        r"|esac|coproc|select|function)\b",
        "keyword",
    ),
    rule(
        r"(?<![\w-])--?[a-zA-Z0-9_][\w-]*",
        "support.flag",
    ),
    rule(
        r"\|\|?|&amp;&amp;|[12]?(?:&gt;){1,2}(?:&amp;[12])?|(?:&lt;){1,3}|&amp;"
        r"|(?<!&amp)(?<!&lt)(?<!&gt);",
        "keyword.operator",
    ),
]


JSON: list[Rule] = [
    rule(
        r"(\"(?:\\.|[^\\\"])*\")(\s*)(:)",
        None,
        {1: "string.key", 3: "punctuation"},
    ),
    rule(
        r"(\")((?:\\.|[^\\\"])*)(\")",
        "string",
        {
            2: SubRules(
                (
                    rule(
                        r"\\(?:[\\/\"bfnrt]|u[0-9a-fA-F]{4})",
                        "constant.character.escape",
                    ),
                )
            )
        },
    ),
    rule(
        r"\b(?:true|false|null)\b",
        "constant.language",
    ),
    rule(
        r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?",
        "constant.numeric",
    ),
    rule(
        r"[{}\[\],:]",
        "punctuation",
    ),
]


DIFF: list[Rule] = [
    rule(
        r"^(?:---|\+\+\+|@@)[^\n]*$",
        "meta.diff.header",
        flags=re.MULTILINE,
    ),
    rule(
        r"^\+[^\n]*$",
        "markup.inserted",
        flags=re.MULTILINE,
    ),
    rule(
        r"^-[^\n]*$",
        "markup.deleted",
        flags=re.MULTILINE,
    ),
]


def install(registry: Registry, /):
    """
    Register all languages from this module in the given registry.

    Rules are prepended to the existing ones, so calling this function twice
    for the same registry duplicates them.

    """

    registry.extend("generic", GENERIC)
    registry.extend("javascript", JAVASCRIPT, "generic")
    registry.extend("python", PYTHON)
    registry.extend("css", CSS)
    registry.extend("html", HTML)
    registry.extend("shell", SHELL)
    registry.extend("json", JSON)
    registry.extend("diff", DIFF)

    registry.alias("js", "javascript")
    registry.alias("py", "python")
    registry.alias("python3", "python")
    registry.alias("sh", "shell")
    registry.alias("bash", "shell")
    registry.alias("console", "shell")


install(REGISTRY)
