import os

import pytest

import refract.dispatch
import refract.lang
from refract import _typing as _t
from refract.dispatch import Dispatcher
from refract.registry import Registry
from refract.rules import Rule


@pytest.fixture
def save_env():
    env = dict(os.environ)
    try:
        yield
    finally:
        os.environ.clear()
        os.environ.update(env)


@pytest.fixture
def registry() -> Registry:
    """A registry with a couple of tiny languages."""

    registry = Registry()
    registry.extend(
        "toy",
        [
            (r"\b(if|return)\b", "keyword"),
            (r"\d+", "number"),
        ],
    )
    registry.alias("t", "toy")
    return registry


@pytest.fixture
def lang_registry() -> Registry:
    """A registry with all built-in languages."""

    registry = Registry()
    refract.lang.install(registry)
    return registry


@pytest.fixture
def dispatcher(registry: Registry) -> _t.Iterator[Dispatcher]:
    with Dispatcher(registry, workers=2) as dispatcher:
        yield dispatcher


class BrokenRegistry(Registry):
    """Registry that fails to resolve any language."""

    def resolve(self, language: str, /) -> list[Rule]:
        raise RuntimeError(f"can't resolve {language}")


@pytest.fixture
def broken_dispatcher() -> _t.Iterator[Dispatcher]:
    with Dispatcher(BrokenRegistry()) as dispatcher:
        yield dispatcher


@pytest.fixture
def default_dispatcher(save_env) -> _t.Iterator[Dispatcher]:
    """Fresh default dispatcher, closed after the test."""

    dispatcher = refract.dispatch.get_dispatcher()
    dispatcher.close()
    dispatcher = refract.dispatch.get_dispatcher()
    try:
        yield dispatcher
    finally:
        dispatcher.close()
