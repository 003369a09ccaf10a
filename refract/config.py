# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
Annotation options, and a small base class for settings objects that
can be read from environment variables or ``.json`` files.

A settings class lists its fields as class annotations. Defaults are given
by assignment, or through :func:`field` when a field needs a custom
environment variable name::

    class ServerConfig(Config):
        #: number of worker threads
        workers: int = 4

        #: options for annotated code
        options: Options

Values from several sources are layered on top of each other, later sources
win::

    config = ServerConfig.load_from_json_file("~/.refract.json")
    config.update(ServerConfig.load_from_env(prefix="REFRACT"))


Config base class
-----------------

.. autoclass:: Config
    :members:

.. autofunction:: field

.. autodata:: MISSING


Environment variables
---------------------

A field is read from a variable named after it in upper case. With a prefix,
the prefix and an underscore go in front. A nested config passes its own
variable name down as the prefix, so ``Settings.options.global_class``
comes from ``REFRACT_OPTIONS_GLOBAL_CLASS``::

    settings = Settings.load_from_env(prefix="REFRACT")

A different name can be given through :func:`field`:

::

    >>> class ThemeConfig(Config):
    ...     css_class: str | None = field(default=None, env="CLASS")

Booleans are read from ``yes``, ``true``, ``1`` and ``no``, ``false``, ``0``
in any case. An empty variable resets an optional field to :data:`None`.


Annotation options
------------------

.. autoclass:: Options
    :members:

.. autoclass:: Settings
    :members:

"""

from __future__ import annotations

import enum
import inspect
import json
import os
import pathlib
import textwrap
import types
from dataclasses import dataclass

import refract
import refract._typing_ext as _tx
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import typing_extensions as _t
else:
    from refract import _typing as _t

__all__ = [
    "MISSING",
    "Config",
    "Options",
    "Settings",
    "field",
]


class _Missing(enum.Enum):
    MISSING = "missing"

    def __bool__(self) -> _t.Literal[False]:
        return False  # pragma: no cover

    def __repr__(self):
        return "refract.config.MISSING"  # pragma: no cover


MISSING: _t.Literal[_Missing.MISSING] = _Missing.MISSING
"""
Value of a field that was never set and has no default.

"""


@dataclass(frozen=True)
class _FieldSettings:
    default: _t.Any = MISSING
    env: str | None = None


def field(default: _t.Any = MISSING, *, env: str | None = None) -> _t.Any:
    """
    Declare a field with a custom environment variable name.

    :param default:
        value used when the field is not set.
    :param env:
        variable name without the prefix. An empty string reads the field
        from the prefix itself.

    """

    return _FieldSettings(default=default, env=env)


_TRUE = ("1", "y", "yes", "true", "on")
_FALSE = ("0", "n", "no", "false", "off")


@dataclass(frozen=True)
class _Field:
    name: str
    ty: _t.Any
    env: str
    optional: bool
    is_subconfig: bool

    @classmethod
    def make(cls, name: str, ty: _t.Any, settings: _FieldSettings) -> _Field:
        optional = False
        if _tx.is_union(_t.get_origin(ty)):
            args = [arg for arg in _t.get_args(ty) if arg is not types.NoneType]
            optional = len(args) < len(_t.get_args(ty))
            if len(args) != 1:
                raise TypeError(f"unsupported type for field {name}: {ty!r}")
            ty = args[0]
        is_subconfig = isinstance(ty, type) and issubclass(ty, Config)
        if not is_subconfig and ty not in (str, int, float, bool):
            raise TypeError(f"unsupported type for field {name}: {ty!r}")
        env = name.upper() if settings.env is None else settings.env
        return cls(name, ty, env, optional, is_subconfig)

    def parse_env(self, value: str) -> _t.Any:
        if self.optional and not value:
            return None
        if self.ty is bool:
            if value.lower() in _TRUE:
                return True
            elif value.lower() in _FALSE:
                return False
        else:
            try:
                return self.ty(value)
            except ValueError:
                pass
        raise refract.ConfigError(
            f"can't parse {self.name}: expected {self.ty.__name__}, got {value!r}"
        )

    def parse_config(self, value: object, prefix: str) -> _t.Any:
        if value is None and self.optional:
            return None
        if self.ty is float and type(value) is int:
            return float(value)
        if isinstance(value, self.ty) and not (
            self.ty is not bool and isinstance(value, bool)
        ):
            return value
        raise refract.ConfigError(
            f"can't parse {prefix}{self.name}: "
            f"expected {self.ty.__name__}, got {value!r}"
        )


def _wrap_file_error(path: object, error: Exception) -> refract.ConfigError:
    return refract.ConfigError(
        f"invalid config {path}:\n{textwrap.indent(str(error), '  ')}"
    )


@_t.dataclass_transform(
    eq_default=False,
    order_default=False,
    kw_only_default=True,
    frozen_default=False,
    field_specifiers=(field,),
)
class Config:
    """
    Base class for settings objects.

    The constructor layers its arguments in order: configs of the same
    type, dicts, and finally keyword arguments::

        Options(defaults, {"delay": 0.5}, global_class="hl")

    A field that was never set and has no default stays :data:`MISSING`,
    reading it raises :class:`AttributeError`.

    """

    __declared: dict[str, _t.Any] = {}
    __schema_cache: dict[str, _Field] | None = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        cls.__schema_cache = None
        cls.__declared = {
            name: cls.__dict__.get(name, MISSING)
            for name in inspect.get_annotations(cls)
            if not name.startswith("_")
        }
        for name, declared in cls.__declared.items():
            if isinstance(declared, _FieldSettings):
                setattr(cls, name, declared.default)
            else:
                setattr(cls, name, declared)

    @classmethod
    def __schema(cls) -> dict[str, _Field]:
        if cls.__schema_cache is None:
            schema: dict[str, _Field] = {}
            for base in reversed(cls.__mro__[1:]):
                if issubclass(base, Config):
                    schema.update(base.__schema())
            hints = _t.get_type_hints(cls)
            for name, declared in cls.__declared.items():
                if not isinstance(declared, _FieldSettings):
                    declared = _FieldSettings(default=declared)
                schema[name] = _Field.make(name, hints[name], declared)
            cls.__schema_cache = schema
        return cls.__schema_cache

    def __init__(self, *sources: _t.Self | _t.Mapping[str, _t.Any] | None, **values):
        for name, spec in self.__schema().items():
            if spec.is_subconfig:
                setattr(self, name, spec.ty())

        for source in (*sources, values):
            self.update(source)

    def update(self, other: _t.Self | _t.Mapping[str, _t.Any] | None, /):
        """
        Overwrite fields with the ones that are set in `other`.

        Works like :meth:`dict.update`, except that nested configs are merged
        field by field, and missing fields of `other` are skipped.

        """

        if not other:
            return

        schema = self.__schema()

        if isinstance(other, Config):
            if not (isinstance(other, type(self)) or isinstance(self, type(other))):
                raise TypeError(
                    f"can't update {type(self).__name__} "
                    f"from incompatible {type(other).__name__}"
                )
            values: _t.Mapping[str, _t.Any] = vars(other)
        elif isinstance(other, _t.Mapping):
            for name in other:
                if name not in schema:
                    raise TypeError(f"unknown field: {name}")
            values = other
        else:
            raise TypeError(f"can't update a config from {type(other).__name__}")

        for name, spec in schema.items():
            value = values.get(name, MISSING)
            if value is MISSING:
                continue
            if spec.is_subconfig:
                getattr(self, name).update(value)
            else:
                setattr(self, name, value)

    @classmethod
    def load_from_env(cls, prefix: str = "") -> _t.Self:
        """
        Read fields from environment variables and validate the result.

        :param prefix:
            prepended to every variable name, followed by an underscore.

        """

        config = cls(cls.__values_from_env(prefix))
        config.validate_config()
        return config

    @classmethod
    def __values_from_env(cls, prefix: str) -> dict[str, _t.Any]:
        values: dict[str, _t.Any] = {}
        for name, spec in cls.__schema().items():
            env = "_".join(part for part in (prefix, spec.env) if part)
            if spec.is_subconfig:
                values[name] = spec.ty.__values_from_env(env)
            elif env in os.environ:
                values[name] = spec.parse_env(os.environ[env])
        return values

    @classmethod
    def load_from_json_file(
        cls,
        path: str | pathlib.Path,
        /,
        *,
        ignore_unknown_fields: bool = False,
        ignore_missing_file: bool = False,
    ) -> _t.Self:
        """
        Read fields from a ``.json`` file and validate the result.

        :param path:
            file to read, ``~`` is expanded.
        :param ignore_unknown_fields:
            skip keys that don't name a field instead of failing.
        :param ignore_missing_file:
            return an empty config if the file doesn't exist.

        """

        path = pathlib.Path(path).expanduser()

        if ignore_missing_file and not path.exists():
            return cls()

        try:
            parsed = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            raise _wrap_file_error(path, e) from None

        return cls.load_from_parsed_file(
            parsed, ignore_unknown_fields=ignore_unknown_fields, path=path
        )

    @classmethod
    def load_from_parsed_file(
        cls,
        parsed: dict[str, object],
        /,
        *,
        ignore_unknown_fields: bool = False,
        path: str | pathlib.Path | None = None,
    ) -> _t.Self:
        """
        Build a config from already parsed file contents, and validate it.

        Values are type-checked, integers are accepted for float fields.

        :param parsed:
            decoded file contents.
        :param ignore_unknown_fields:
            skip keys that don't name a field instead of failing.
        :param path:
            file the data came from, mentioned in errors.

        """

        try:
            config = cls(cls.__values_from_data(parsed, ignore_unknown_fields, ""))
            config.validate_config()
        except refract.ConfigError as e:
            if path is None:
                raise
            raise _wrap_file_error(path, e) from None
        return config

    @classmethod
    def __values_from_data(
        cls, data: object, ignore_unknown_fields: bool, where: str
    ) -> dict[str, _t.Any]:
        if not isinstance(data, dict):
            raise refract.ConfigError(f"{where.rstrip('.') or 'config'} should be a dict")

        schema = cls.__schema()
        values: dict[str, _t.Any] = {}
        for name, value in data.items():
            spec = schema.get(name)
            if spec is None:
                if ignore_unknown_fields:
                    continue
                raise refract.ConfigError(f"unknown field {where}{name}")
            if spec.is_subconfig:
                values[name] = spec.ty.__values_from_data(
                    value, ignore_unknown_fields, f"{where}{name}."
                )
            else:
                values[name] = spec.parse_config(value, where)
        return values

    def __getattribute(self, name):
        value = super().__getattribute__(name)
        if value is MISSING:
            raise AttributeError(f"{name} is not configured")
        return value

    # Installed through `locals()` so that type checkers keep reporting
    # unknown attributes.
    locals()["__getattribute__"] = __getattribute

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return all(
            getattr(self, name, MISSING) == getattr(other, name, MISSING)
            for name in self.__schema()
        )

    __hash__ = None  # type: ignore

    def __repr__(self):
        return self.__format(0)

    def __format(self, depth: int) -> str:
        indent = "  " * depth
        lines = []
        for name in self.__schema():
            value = getattr(self, name, MISSING)
            if isinstance(value, Config):
                text = value.__format(depth + 1)
            else:
                text = repr(value)
            lines.append(f"{indent}  {name}={text}")
        if not lines:
            return f"{type(self).__name__}()"
        body = ",\n".join(lines)
        return f"{type(self).__name__}(\n{body}\n{indent})"

    def validate_config(self):
        """
        Check values after loading.

        Called by every ``load_from_*`` method. Override it to add checks.

        :raises:
            :class:`~refract.ConfigError`.

        """


class Options(Config):
    """
    Options that control how code is annotated.

    ::

        >>> Options({"global_class": "hl"}, delay=0.5)
        Options(
          global_class='hl',
          delay=0.5
        )

    """

    #: CSS class added to every span produced by the engine.
    global_class: str | None = None

    #: Delay in seconds before an asynchronous result is delivered.
    #: Presentation only, it doesn't affect the result.
    delay: float = 0.0

    def validate_config(self):
        if self.delay < 0:
            raise refract.ConfigError("delay can't be negative")


class Settings(Config):
    """
    Settings for the default dispatcher.

    """

    #: Default annotation options.
    options: Options

    #: Number of worker threads.
    workers: int = 1

    def validate_config(self):
        self.options.validate_config()
        if self.workers < 1:
            raise refract.ConfigError("workers should be at least 1")
