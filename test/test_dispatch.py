import os
import threading
import time

import pytest

import refract
import refract.dispatch
import refract.registry
from refract.config import Options, Settings
from refract.dispatch import Dispatcher, Request, Response

_TIMEOUT = 5


class TestRequests:
    def test_ids(self, dispatcher):
        r1 = dispatcher.request("1", "toy")
        r2 = dispatcher.request("2", "toy")
        r3 = Dispatcher().request("3", "toy")
        assert r1.id < r2.id < r3.id

    def test_canonical_language(self, dispatcher):
        assert dispatcher.request("1", "t").language == "toy"

    def test_options(self, registry):
        dispatcher = Dispatcher(registry, options={"global_class": "a"})
        request = dispatcher.request("1", "toy", {"delay": 1})
        assert request.options == Options(global_class="a", delay=1.0)

        request = dispatcher.request("1", "toy", Options(global_class="b"))
        assert request.options.global_class == "b"

    def test_process(self, dispatcher):
        request = dispatcher.request("1", "toy")
        response = dispatcher.process(request)
        assert response == Response(
            request.id, "toy", result='<span class="number">1</span>'
        )
        assert response.ok

    def test_process_error(self, broken_dispatcher):
        request = broken_dispatcher.request("1", "toy")
        response = broken_dispatcher.process(request)
        assert not response.ok
        assert response.id == request.id
        assert response.result is None
        assert isinstance(response.error, refract.DispatchError)
        assert isinstance(response.error.__cause__, RuntimeError)
        assert "can't resolve toy" in str(response.error)

    def test_request_is_frozen(self, dispatcher):
        request = dispatcher.request("1", "toy")
        assert isinstance(request, Request)
        with pytest.raises(AttributeError):
            request.code = "2"  # type: ignore


class TestSubmit:
    def test_submit(self, dispatcher):
        future = dispatcher.submit("x = 42", "toy")
        assert future.result(timeout=_TIMEOUT) == 'x = <span class="number">42</span>'

    def test_submit_with_options(self, dispatcher):
        future = dispatcher.submit("1", "t", {"global_class": "hl"})
        assert future.result(timeout=_TIMEOUT) == '<span class="number hl">1</span>'

    def test_callback(self, dispatcher):
        done = threading.Event()
        results = []

        def callback(result, language):
            results.append((result, language))
            done.set()

        dispatcher.submit("1", "t", callback=callback)
        assert done.wait(_TIMEOUT)
        assert results == [('<span class="number">1</span>', "toy")]

    def test_unknown_language(self, dispatcher):
        future = dispatcher.submit("a < b", "unknown")
        assert future.result(timeout=_TIMEOUT) == "a &lt; b"

    def test_error(self, broken_dispatcher):
        done = threading.Event()
        errors = []
        results = []

        def on_error(error, language):
            errors.append((error, language))
            done.set()

        future = broken_dispatcher.submit(
            "1", "toy", callback=lambda *args: results.append(args), on_error=on_error
        )
        with pytest.raises(refract.DispatchError):
            future.result(timeout=_TIMEOUT)
        assert done.wait(_TIMEOUT)

        assert results == []
        ((error, language),) = errors
        assert isinstance(error, refract.DispatchError)
        assert isinstance(error.__cause__, RuntimeError)
        assert language == "toy"

    def test_out_of_order(self, dispatcher):
        done = threading.Event()
        order = []

        def callback(result, language):
            order.append(result)
            if len(order) == 2:
                done.set()

        dispatcher.submit("1", "toy", {"delay": 0.5}, callback)
        dispatcher.submit("2", "toy", None, callback)
        assert done.wait(_TIMEOUT)
        assert order == [
            '<span class="number">2</span>',
            '<span class="number">1</span>',
        ]

    def test_delay(self, dispatcher):
        start = time.monotonic()
        future = dispatcher.submit("1", "toy", {"delay": 0.2})
        assert future.result(timeout=_TIMEOUT) == '<span class="number">1</span>'
        assert time.monotonic() - start >= 0.2

    def test_cancel_before_delivery(self, registry):
        results = []
        errors = []
        dispatcher = Dispatcher(registry)
        future = dispatcher.submit(
            "1",
            "toy",
            {"delay": 0.2},
            lambda *args: results.append(args),
            on_error=lambda *args: errors.append(args),
        )
        assert future.cancel()
        dispatcher.close()
        assert future.cancelled()
        assert results == []
        assert errors == []

    def test_cancel_after_delivery(self, dispatcher):
        future = dispatcher.submit("1", "toy")
        assert future.result(timeout=_TIMEOUT) == '<span class="number">1</span>'
        assert not future.cancel()
        assert not future.cancelled()

    def test_many_requests(self, dispatcher):
        futures = [dispatcher.submit(str(i), "toy") for i in range(50)]
        assert [f.result(timeout=_TIMEOUT) for f in futures] == [
            f'<span class="number">{i}</span>' for i in range(50)
        ]


class TestBatch:
    def test_batch(self, dispatcher):
        done = threading.Event()
        calls = []

        def callback():
            calls.append(None)
            done.set()

        futures = dispatcher.submit_batch(
            [("1", "toy"), ("if", "t", {"global_class": "g"}), ("x", "none", None)],
            callback,
        )
        assert done.wait(_TIMEOUT)
        assert [f.result(timeout=_TIMEOUT) for f in futures] == [
            '<span class="number">1</span>',
            '<span class="keyword g">if</span>',
            "x",
        ]
        assert len(calls) == 1

    def test_empty_batch(self, dispatcher):
        calls = []
        assert dispatcher.submit_batch([], lambda: calls.append(None)) == []
        assert calls == [None]

    def test_batch_without_callback(self, dispatcher):
        (future,) = dispatcher.submit_batch([("1", "toy")])
        assert future.result(timeout=_TIMEOUT) == '<span class="number">1</span>'

    def test_batch_with_errors(self, broken_dispatcher):
        done = threading.Event()
        futures = broken_dispatcher.submit_batch(
            [("1", "toy"), ("2", "toy")], done.set
        )
        assert done.wait(_TIMEOUT)
        for future in futures:
            assert isinstance(future.exception(timeout=_TIMEOUT), refract.DispatchError)


class TestClose:
    def test_close(self, registry):
        dispatcher = Dispatcher(registry)
        assert not dispatcher.closed
        future = dispatcher.submit("1", "toy", {"delay": 0.1})
        dispatcher.close()
        assert dispatcher.closed
        assert future.done()
        assert future.result() == '<span class="number">1</span>'

        dispatcher.close()

    def test_submit_after_close(self, registry):
        dispatcher = Dispatcher(registry)
        dispatcher.close()

        errors = []
        future = dispatcher.submit(
            "1", "toy", on_error=lambda e, lang: errors.append((e, lang))
        )
        assert future.done()
        with pytest.raises(refract.DispatchError, match="dispatcher is closed"):
            future.result()
        assert len(errors) == 1
        assert errors[0][1] == "toy"

    def test_annotate_after_close(self, registry):
        dispatcher = Dispatcher(registry)
        dispatcher.close()
        assert dispatcher.annotate("1", "t") == '<span class="number">1</span>'

    def test_context_manager(self, registry):
        with Dispatcher(registry) as dispatcher:
            future = dispatcher.submit("1", "toy")
        assert dispatcher.closed
        assert future.done()

    def test_close_without_requests(self, registry):
        dispatcher = Dispatcher(registry, workers=3)
        dispatcher.close()
        assert dispatcher.closed


class TestDispatcher:
    def test_annotate(self, dispatcher):
        assert dispatcher.annotate("1", "toy") == '<span class="number">1</span>'
        assert (
            dispatcher.annotate("1", "toy", {"global_class": "g"})
            == '<span class="number g">1</span>'
        )

    def test_annotate_propagates_errors(self, broken_dispatcher):
        with pytest.raises(RuntimeError):
            broken_dispatcher.annotate("1", "toy")

    def test_invalid_workers(self):
        with pytest.raises(ValueError):
            Dispatcher(workers=0)

    def test_from_config(self, registry):
        settings = Settings(workers=3, options={"global_class": "hl"})
        with Dispatcher.from_config(settings, registry) as dispatcher:
            assert dispatcher.registry is registry
            future = dispatcher.submit("1", "toy")
            assert future.result(timeout=_TIMEOUT) == '<span class="number hl">1</span>'

    def test_default_registry(self):
        with Dispatcher() as dispatcher:
            assert dispatcher.registry is refract.registry.REGISTRY


class TestDefaultDispatcher:
    def test_same_instance(self, default_dispatcher):
        assert refract.dispatch.get_dispatcher() is default_dispatcher

    def test_recreated_after_close(self, default_dispatcher):
        default_dispatcher.close()
        new_dispatcher = refract.dispatch.get_dispatcher()
        try:
            assert new_dispatcher is not default_dispatcher
            assert not new_dispatcher.closed
        finally:
            new_dispatcher.close()

    def test_annotate_sync(self, default_dispatcher):
        assert (
            refract.dispatch.annotate_sync("1", "json")
            == '<span class="constant numeric">1</span>'
        )

    def test_annotate_async(self, default_dispatcher):
        done = threading.Event()
        future = refract.dispatch.annotate_async(
            "1", "json", callback=lambda *_: done.set()
        )
        assert future.result(timeout=_TIMEOUT) == (
            '<span class="constant numeric">1</span>'
        )
        assert done.wait(_TIMEOUT)

    def test_settings_from_env(self, save_env):
        os.environ["REFRACT_OPTIONS_GLOBAL_CLASS"] = "hl"
        refract.dispatch.get_dispatcher().close()
        dispatcher = refract.dispatch.get_dispatcher()
        try:
            assert (
                dispatcher.annotate("1", "json")
                == '<span class="constant numeric hl">1</span>'
            )
        finally:
            dispatcher.close()
