# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
Finds code blocks in an HTML document, annotates them, and writes
the results back.

A block is a ``<code>`` element, or a ``<pre>`` element that doesn't contain
``<code>``. Language of a block is taken from the ``data-language``
attribute, or from a ``lang-*`` or ``language-*`` class. If the block
itself doesn't specify a language, its parent is checked:

::

    >>> from refract.registry import Registry
    >>> registry = Registry()
    >>> registry.extend("toy", [(r"\\d+", "number")])
    >>> document = '<pre class="lang-toy"><code>x = 1</code></pre>'
    >>> print(highlight_document(document, registry=registry))
    <pre class="lang-toy" data-trimmed="true"><code class="refract">x = <span class="number">1</span></code></pre>

Processed blocks get the ``refract`` class, and are skipped next time.
Blocks can also override options through ``data-global-class``
and ``data-delay`` attributes.


Finding blocks
--------------

.. autofunction:: find_blocks

.. autofunction:: language_for_block

.. autoclass:: Block
    :members:


Highlighting documents
----------------------

.. autofunction:: highlight_document

.. autofunction:: color_document

"""

from __future__ import annotations

import html
import html.parser
import re
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field

import refract
import refract._typing_ext as _tx
from refract.config import Options
from refract.dispatch import Dispatcher, get_dispatcher
from refract.engine import Annotator
from refract.registry import Registry
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import typing_extensions as _t
else:
    from refract import _typing as _t

__all__ = [
    "Block",
    "color_document",
    "find_blocks",
    "highlight_document",
    "language_for_block",
]

PROCESSED_CLASS = "refract"

_LANG_CLASS_RE = re.compile(r"\blang(?:uage)?-(\w+)")


@dataclass(eq=False)
class _Element:
    tag: str
    attrs: _tx.HtmlAttrs
    parent: _Element | None
    start: int
    inner_start: int
    inner_end: int = -1
    end: int = -1
    has_code: bool = False

    def get(self, name: str) -> str | None:
        return _get_attr(self.attrs, name)


@dataclass(eq=False)
class Block:
    """
    A code block found in a document.

    """

    #: Tag name, either ``"code"`` or ``"pre"``.
    tag: str

    #: Attributes of the block's start tag.
    attrs: _tx.HtmlAttrs

    #: Tag name of the block's parent.
    parent_tag: str | None

    #: Attributes of the block's parent.
    parent_attrs: _tx.HtmlAttrs

    #: Position of the block's start tag in the document.
    start: int

    #: Position where block's contents start.
    inner_start: int

    #: Position where block's contents end.
    inner_end: int

    #: Language of the block, see :func:`language_for_block`.
    language: str | None = field(default=None)

    #: Block contents, as written in the document.
    text: str = field(default="")

    def get(self, name: str, /) -> str | None:
        """
        Get value of an attribute of the block.

        """

        return _get_attr(self.attrs, name)

    @property
    def classes(self) -> list[str]:
        """
        List of block's CSS classes.

        """

        return (self.get("class") or "").split()

    @property
    def options(self) -> dict[str, _t.Any]:
        """
        Options set through block's ``data-global-class``
        and ``data-delay`` attributes.

        """

        options: dict[str, _t.Any] = {}
        if global_class := self.get("data-global-class"):
            options["global_class"] = global_class
        if delay := self.get("data-delay"):
            try:
                options["delay"] = max(float(delay), 0.0)
            except ValueError:
                refract._logger.debug("ignoring invalid data-delay=%r", delay)
        return options


def _get_attr(attrs: _tx.HtmlAttrs, name: str) -> str | None:
    for key, value in attrs:
        if key == name:
            return value
    return None


class _BlockParser(html.parser.HTMLParser):
    def __init__(self, document: str):
        super().__init__(convert_charrefs=False)

        self._document = document
        self._line_starts = [0]
        for match in re.finditer(r"\n", document):
            self._line_starts.append(match.end())

        self._stack: list[_Element] = []
        self.elements: list[_Element] = []

    def _offset(self) -> int:
        line, col = self.getpos()
        return self._line_starts[line - 1] + col

    def handle_starttag(self, tag, attrs):
        start = self._offset()
        start_text = self.get_starttag_text() or ""
        element = _Element(
            tag,
            attrs,
            self._stack[-1] if self._stack else None,
            start,
            start + len(start_text),
        )
        if tag == "code":
            for parent in self._stack:
                if parent.tag == "pre":
                    parent.has_code = True
        self._stack.append(element)
        self.elements.append(element)

    def handle_startendtag(self, tag, attrs):
        pass

    def handle_endtag(self, tag):
        if not any(element.tag == tag for element in self._stack):
            return
        start = self._offset()
        end = self._document.find(">", start) + 1 or len(self._document)
        while self._stack:
            element = self._stack.pop()
            if element.tag == tag:
                element.inner_end = start
                element.end = end
                return


def find_blocks(document: str, /) -> list[Block]:
    """
    Find code blocks in the given document.

    Returns ``<code>`` blocks first, then ``<pre>`` blocks that don't have
    ``<code>`` inside. Unclosed elements and blocks nested into other blocks
    are ignored.

    """

    return _blocks_from(document, _parse(document))


def _parse(document: str) -> list[_Element]:
    parser = _BlockParser(document)
    parser.feed(document)
    parser.close()
    return parser.elements


def _blocks_from(document: str, elements: list[_Element]) -> list[Block]:
    closed = [element for element in elements if element.end >= 0]
    candidates = [element for element in closed if element.tag == "code"] + [
        element for element in closed if element.tag == "pre" and not element.has_code
    ]

    blocks: list[Block] = []
    for element in candidates:
        if any(
            other.inner_start <= element.start < other.inner_end
            for other in blocks
        ):
            continue
        parent = element.parent
        block = Block(
            element.tag,
            element.attrs,
            parent.tag if parent else None,
            parent.attrs if parent else [],
            element.start,
            element.inner_start,
            element.inner_end,
            text=document[element.inner_start : element.inner_end],
        )
        block.language = language_for_block(block)
        blocks.append(block)

    return blocks


def language_for_block(block: Block, /) -> str | None:
    """
    Detect language of a block.

    Checks ``data-language`` on the block and its parent, then classes
    like ``lang-python`` or ``language-python`` on the block and its parent.

    """

    language = block.get("data-language") or _get_attr(
        block.parent_attrs, "data-language"
    )

    if not language:
        match = _LANG_CLASS_RE.search(block.get("class") or "") or _LANG_CLASS_RE.search(
            _get_attr(block.parent_attrs, "class") or ""
        )
        if match:
            language = match.group(1)

    if language:
        return language.lower()

    return None


_TAG_NAME_RE = re.compile(r"<[^\s/>]+")
_TAG_ATTR_RE = re.compile(
    r"""(\s+)([^\s/>"'=]+)(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]*))?"""
)


def _set_attr(start_tag: str, name: str, value: str) -> str:
    # Edits the tag as written, so that case and quoting of everything else
    # survive. `name` must be lower case, as reported by the parser.
    quoted = f'"{html.escape(value, quote=True)}"'
    name_match = _TAG_NAME_RE.match(start_tag)
    pos = name_match.end() if name_match else 1
    while match := _TAG_ATTR_RE.match(start_tag, pos):
        if match.group(2).lower() == name:
            return f"{start_tag[: match.end(2)]}={quoted}{start_tag[match.end() :]}"
        pos = match.end()
    return f"{start_tag[:pos]} {name}={quoted}{start_tag[pos:]}"


def _collect(document: str) -> tuple[list[Block], list[tuple[int, int, str]]]:
    # Finds blocks that should be processed, and edits that trim whitespace
    # inside of `<pre>` elements that wrap `<code>`.
    elements = _parse(document)

    edits: list[tuple[int, int, str]] = []
    for element in elements:
        if element.tag != "pre" or not element.has_code or element.end < 0:
            continue
        if element.get("data-trimmed"):
            continue
        start_tag = _set_attr(
            document[element.start : element.inner_start], "data-trimmed", "true"
        )
        edits.append((element.start, element.inner_start, start_tag))
        inner = document[element.inner_start : element.inner_end]
        leading = len(inner) - len(inner.lstrip())
        trailing = len(inner) - len(inner.rstrip())
        if leading and leading < len(inner):
            edits.append((element.inner_start, element.inner_start + leading, ""))
        if trailing and trailing < len(inner):
            edits.append((element.inner_end - trailing, element.inner_end, ""))

    blocks = [
        block
        for block in _blocks_from(document, elements)
        if block.language and PROCESSED_CLASS not in block.classes
    ]

    return blocks, edits


def _write_back(
    document: str,
    blocks: list[Block],
    results: dict[int, str],
    edits: list[tuple[int, int, str]],
) -> str:
    edits = list(edits)
    for i, block in enumerate(blocks):
        if i not in results:
            continue
        classes = " ".join(block.classes + [PROCESSED_CLASS])
        start_tag = _set_attr(
            document[block.start : block.inner_start], "class", classes
        )
        edits.append((block.start, block.inner_start, start_tag))
        edits.append((block.inner_start, block.inner_end, results[i]))

    # Apply from the end, so that earlier positions stay valid.
    for start, end, text in sorted(edits, reverse=True):
        document = document[:start] + text + document[end:]
    return document


def highlight_document(
    document: str,
    /,
    *,
    registry: Registry | None = None,
    options: Options | _t.Mapping[str, _t.Any] | None = None,
    on_highlight: _t.Callable[[Block, str], None] | None = None,
) -> str:
    """
    Annotate all code blocks in a document on the calling thread.

    :param document:
        HTML document or its fragment.
    :param registry:
        registry to look up languages in.
    :param options:
        options for all blocks. Blocks can override them through
        ``data-*`` attributes.
    :param on_highlight:
        called with a block and its language after the block is annotated.
    :returns:
        updated document.

    """

    blocks, edits = _collect(document)

    results: dict[int, str] = {}
    for i, block in enumerate(blocks):
        assert block.language
        annotator = Annotator(Options(options, block.options), registry=registry)
        results[i] = annotator.annotate(block.text, block.language)
        if on_highlight is not None:
            on_highlight(block, block.language)

    return _write_back(document, blocks, results, edits)


def color_document(
    document: str,
    callback: _t.Callable[[str], None],
    /,
    *,
    dispatcher: Dispatcher | None = None,
    options: Options | _t.Mapping[str, _t.Any] | None = None,
    on_highlight: _t.Callable[[Block, str], None] | None = None,
) -> list[Future[str]]:
    """
    Annotate all code blocks in a document using a dispatcher.

    Blocks that fail to annotate are left unchanged.

    :param document:
        HTML document or its fragment.
    :param callback:
        called with the updated document once all blocks are done.
        If there's nothing to annotate, it is called right away.
    :param dispatcher:
        dispatcher to use. Default is :func:`~refract.dispatch.get_dispatcher`.
    :param options:
        options for all blocks. Blocks can override them through
        ``data-*`` attributes.
    :param on_highlight:
        called with a block and its language every time a block is annotated.
    :returns:
        futures for every block that was scheduled.

    """

    dispatcher = dispatcher or get_dispatcher()
    blocks, edits = _collect(document)

    if not blocks:
        callback(_write_back(document, blocks, {}, edits))
        return []

    results: dict[int, str] = {}
    lock = threading.Lock()
    waiting_on = [len(blocks)]

    def _make_handler(i: int, block: Block):
        def _handle(future: Future[str]):
            try:
                result = future.result()
            except refract.DispatchError:
                refract._logger.warning(
                    "failed to annotate %s block", block.language, exc_info=True
                )
            else:
                with lock:
                    results[i] = result
                if on_highlight is not None:
                    assert block.language
                    on_highlight(block, block.language)

            with lock:
                waiting_on[0] -= 1
                finished = waiting_on[0] == 0
            if finished:
                callback(_write_back(document, blocks, results, edits))

        return _handle

    futures = []
    for i, block in enumerate(blocks):
        assert block.language
        future = dispatcher.submit(
            block.text, block.language, Options(options, block.options)
        )
        future.add_done_callback(_make_handler(i, block))
        futures.append(future)

    return futures
