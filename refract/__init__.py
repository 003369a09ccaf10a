# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
Refract is a regex-driven source code annotator. It takes a block of code and
a language name, and wraps keywords, strings, comments and other tokens
in ``<span class="...">`` markers, leaving every other character intact.

The library is split into several modules:

-   :mod:`refract.text` contains pure helpers for escaping and offset math;
-   :mod:`refract.rules` describes matchable rules;
-   :mod:`refract.registry` maps language names to their rules;
-   :mod:`refract.engine` runs the rules and produces annotated text;
-   :mod:`refract.dispatch` runs the engine on worker threads;
-   :mod:`refract.host` finds code blocks in HTML documents and writes results back;
-   :mod:`refract.config` holds options and settings;
-   :mod:`refract.lang` ships rule tables for a handful of languages.


Errors
------

.. autoclass:: RefractError

.. autoclass:: RuleError

.. autoclass:: ConfigError

.. autoclass:: DispatchError

.. autoclass:: RefractWarning


Internal logging
----------------

.. autofunction:: enable_internal_logging

"""

from __future__ import annotations

import logging as _logging
import os as _os
import sys as _sys
import warnings

__all__ = [
    "ConfigError",
    "DispatchError",
    "RefractError",
    "RefractWarning",
    "RuleError",
    "enable_internal_logging",
]

__version__ = "1.3.0"


class RefractError(Exception):
    """
    Base class for all errors raised by Refract.

    """


class RuleError(RefractError, ValueError):
    """
    Raised when a rule description has a shape that can't be understood.

    Note that invalid regular expressions are not wrapped into this error,
    :class:`re.error` propagates as is.

    """


class ConfigError(RefractError, ValueError):
    """
    Raised when a config can't be loaded from environment or a file.

    """


class DispatchError(RefractError):
    """
    Delivered to asynchronous callers when a request could not be completed.
    The original exception, if any, is available as ``__cause__``.

    """


class RefractWarning(RuntimeWarning):
    """
    Base class for all runtime warnings.

    """


_logger = _logging.getLogger("refract.internal")
_logger.propagate = False

__stderr_handler = _logging.StreamHandler(_sys.__stderr__)
__stderr_handler.setLevel("CRITICAL")
_logger.addHandler(__stderr_handler)


def enable_internal_logging(
    path: str | None = None, level: str | int | None = None, propagate=None
):  # pragma: no cover
    """
    Enable Refract's internal logging.

    This function enables :func:`logging.captureWarnings`, and enables printing
    of :class:`RefractWarning` messages, and sets up logging channels
    ``refract.internal`` and ``py.warning``.

    :param path:
        if given, adds handlers that output internal log messages to the given file.
    :param level:
        configures logging level for file handler. Default is ``DEBUG``.
    :param propagate:
        if given, enables or disables log message propagation from
        ``refract.internal`` and ``py.warning`` to the root logger.

    """

    if path:
        if level is None:
            level = _os.environ.get("REFRACT_DEBUG", "").strip().upper() or "DEBUG"
        if level in ["1", "Y", "YES", "TRUE"]:
            level = "DEBUG"
        file_handler = _logging.FileHandler(path, delay=True)
        file_handler.setFormatter(
            _logging.Formatter("%(filename)s:%(lineno)d: %(levelname)s: %(message)s")
        )
        file_handler.setLevel(level)
        _logger.setLevel(level)
        _logger.addHandler(file_handler)
        _logging.getLogger("py.warnings").addHandler(file_handler)

    _logging.captureWarnings(True)
    warnings.simplefilter("default", category=RefractWarning)

    if propagate is not None:
        _logging.getLogger("py.warnings").propagate = propagate
        _logger.propagate = propagate


_debug = "REFRACT_DEBUG" in _os.environ or "REFRACT_DEBUG_FILE" in _os.environ
if _debug:  # pragma: no cover
    enable_internal_logging(
        path=_os.environ.get("REFRACT_DEBUG_FILE") or "refract.log", propagate=False
    )
else:
    warnings.simplefilter("ignore", category=RefractWarning, append=True)
