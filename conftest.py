from __future__ import annotations

from sybil import Sybil
from sybil.parsers.codeblock import PythonCodeBlockParser
from sybil.parsers.doctest import DocTestParser
from sybil.parsers.rest import SkipParser

# Built-in languages are used in doctests.
import refract.lang  # noqa: F401

pytest_collect_file = Sybil(
    parsers=[
        DocTestParser(),
        PythonCodeBlockParser(),
        SkipParser(),
    ],
    patterns=["refract/*.py"],
    excludes=["refract/_typing.py", "refract/_typing_ext.py"],
).pytest()
