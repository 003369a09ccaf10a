# Refract project, MIT license.
#
# You're free to copy this file to your project and edit it for your needs,
# just keep this copyright line please :3

"""
Dispatcher runs annotation off the calling thread.

Every request gets a unique id; worker threads pick requests from a queue,
run the engine, and post responses back. Responses are matched to their
requests by id, so they can complete in any order.

::

    >>> from refract.registry import Registry
    >>> registry = Registry()
    >>> registry.extend("toy", [(r"\\d+", "number")])
    >>> with Dispatcher(registry) as dispatcher:
    ...     future = dispatcher.submit("x = 42", "toy")
    ...     future.result(timeout=5)
    'x = <span class="number">42</span>'

Results can also be delivered through callbacks. A callback receives
annotated code and name of the language; errors go to a separate callback::

    def on_done(result: str, language: str):
        ...

    def on_error(error: refract.DispatchError, language: str):
        ...

    dispatcher.submit(code, "python", callback=on_done, on_error=on_error)

Callbacks are called from worker threads.


Dispatcher
----------

.. autoclass:: Dispatcher
    :members:

.. autoclass:: Request
    :members:

.. autoclass:: Response
    :members:


Default dispatcher
------------------

.. autofunction:: annotate_sync

.. autofunction:: annotate_async

.. autofunction:: get_dispatcher

"""

from __future__ import annotations

import atexit
import itertools
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass

import refract
from refract.config import Options, Settings
from refract.engine import Annotator
from refract.registry import REGISTRY, Registry
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import typing_extensions as _t
else:
    from refract import _typing as _t

__all__ = [
    "Callback",
    "Dispatcher",
    "ErrorCallback",
    "Request",
    "Response",
    "annotate_async",
    "annotate_sync",
    "get_dispatcher",
]


Callback: _t.TypeAlias = _t.Callable[[str, str], None]
"""
Called with annotated code and language name.

"""

ErrorCallback: _t.TypeAlias = _t.Callable[[refract.DispatchError, str], None]
"""
Called with an error and language name.

"""

_ID_LOCK = threading.Lock()
_IDS = itertools.count()


def _next_id() -> int:
    with _ID_LOCK:
        return next(_IDS)


@dataclass(frozen=True)
class Request:
    """
    A single annotation request.

    """

    #: Unique id of the request.
    id: int

    #: Raw source code.
    code: str

    #: Canonical name of the language.
    language: str

    #: Annotation options.
    options: Options


@dataclass(frozen=True)
class Response:
    """
    Reply for a :class:`Request` with the same id.

    """

    #: Id of the request.
    id: int

    #: Canonical name of the language.
    language: str

    #: Annotated code, or :data:`None` if request has failed.
    result: str | None = None

    #: Error that happened during processing.
    error: refract.DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _Pending:
    def __init__(
        self,
        future: Future[str],
        callback: Callback | None,
        on_error: ErrorCallback | None,
    ):
        self.future = future
        self.callback = callback
        self.on_error = on_error


_STOP = object()


class Dispatcher:
    """
    Runs annotation requests on a pool of worker threads.

    Workers are started on first request. Each request is processed
    independently, so requests can finish in any order.

    Registry is shared by all workers and is never locked. Don't change it
    while requests are in flight.

    :param registry:
        registry to look up languages in. Default is
        :data:`~refract.registry.REGISTRY`.
    :param workers:
        number of worker threads.
    :param options:
        default options, individual requests can override them.

    """

    def __init__(
        self,
        registry: Registry | None = None,
        *,
        workers: int = 1,
        options: Options | _t.Mapping[str, _t.Any] | None = None,
    ):
        if workers < 1:
            raise ValueError("workers should be at least 1")

        self._registry = registry if registry is not None else REGISTRY
        self._workers = workers
        self._options = Options(options)

        self._lock = threading.Lock()
        self._queue: queue.Queue[Request | object] = queue.Queue()
        self._pending: dict[int, _Pending] = {}
        self._threads: list[threading.Thread] = []
        self._timers: set[threading.Timer] = set()
        self._closed = False

    @classmethod
    def from_config(cls, settings: Settings, registry: Registry | None = None):
        """
        Create a dispatcher using the given settings.

        """

        return cls(registry, workers=settings.workers, options=settings.options)

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def closed(self) -> bool:
        return self._closed

    def request(
        self,
        code: str,
        language: str,
        options: Options | _t.Mapping[str, _t.Any] | None = None,
    ) -> Request:
        """
        Package code into a new request with a fresh id.

        """

        return Request(
            _next_id(),
            code,
            self._registry.canonical(language),
            Options(self._options, options),
        )

    def annotate(
        self,
        code: str,
        language: str,
        options: Options | _t.Mapping[str, _t.Any] | None = None,
    ) -> str:
        """
        Annotate code on the calling thread.

        This doesn't involve workers, so it works even after the dispatcher
        was closed.

        """

        request = self.request(code, language, options)
        return Annotator(request.options, registry=self._registry).annotate(
            request.code, request.language
        )

    def process(self, request: Request) -> Response:
        """
        Run a request on the calling thread and make a response.

        Exceptions from the engine are packed into the response.

        """

        try:
            result = Annotator(request.options, registry=self._registry).annotate(
                request.code, request.language
            )
        except Exception as e:
            refract._logger.debug(
                "request %s (%s) has failed", request.id, request.language, exc_info=True
            )
            error = refract.DispatchError(
                f"failed to annotate {request.language}: {e}"
            )
            error.__cause__ = e
            return Response(request.id, request.language, error=error)
        else:
            return Response(request.id, request.language, result=result)

    def submit(
        self,
        code: str,
        language: str,
        options: Options | _t.Mapping[str, _t.Any] | None = None,
        callback: Callback | None = None,
        *,
        on_error: ErrorCallback | None = None,
    ) -> Future[str]:
        """
        Schedule code for annotation.

        :param code:
            raw source code.
        :param language:
            name of the language, or its alias.
        :param options:
            annotation options. If `options.delay` is set, result is delivered
            after the given number of seconds.
        :param callback:
            called with annotated code and language name once it's ready.
        :param on_error:
            called with a :class:`~refract.DispatchError` and language name
            if the request fails.
        :returns:
            a future that resolves to the annotated code, or fails with
            :class:`~refract.DispatchError`.
            Cancelling it before the result is delivered drops the result
            without calling any callbacks.

        """

        return self.submit_request(
            self.request(code, language, options), callback, on_error=on_error
        )

    def submit_request(
        self,
        request: Request,
        callback: Callback | None = None,
        *,
        on_error: ErrorCallback | None = None,
    ) -> Future[str]:
        """
        Schedule a prepared request.

        See :meth:`~Dispatcher.submit`.

        """

        future: Future[str] = Future()
        pending = _Pending(future, callback, on_error)

        with self._lock:
            closed = self._closed
            if not closed:
                self._pending[request.id] = pending
                self._ensure_workers()
                self._queue.put(request)

        if closed:
            self._complete(
                pending,
                Response(
                    request.id,
                    request.language,
                    error=refract.DispatchError("dispatcher is closed"),
                ),
            )

        return future

    def submit_batch(
        self,
        items: _t.Iterable[
            tuple[str, str] | tuple[str, str, Options | _t.Mapping[str, _t.Any] | None]
        ],
        callback: _t.Callable[[], None] | None = None,
    ) -> list[Future[str]]:
        """
        Schedule several pieces of code at once.

        :param items:
            tuples of code, language and, optionally, options.
        :param callback:
            called once after every item has finished, successfully or not.
            If there are no items, it is called right away.
        :returns:
            futures for every item, in the same order.

        """

        futures = [self.submit(*item) for item in items]

        if callback is not None:
            if not futures:
                callback()
            else:
                waiting_on = [len(futures)]
                waiting_lock = threading.Lock()

                def _done(_: Future[str]):
                    with waiting_lock:
                        waiting_on[0] -= 1
                        finished = waiting_on[0] == 0
                    if finished:
                        callback()

                for future in futures:
                    future.add_done_callback(_done)

        return futures

    def close(self, wait: bool = True):
        """
        Stop worker threads.

        Requests that were already submitted are still processed.
        New requests will fail with :class:`~refract.DispatchError`.

        :param wait:
            if :data:`True`, wait for workers and delayed replies to finish.

        """

        with self._lock:
            if self._closed:
                return
            self._closed = True
            threads = list(self._threads)
            for _ in threads:
                self._queue.put(_STOP)

        if wait:
            for thread in threads:
                thread.join()
            for timer in list(self._timers):
                timer.join()

    def __enter__(self) -> _t.Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _ensure_workers(self):
        # Must be called with `self._lock` held.
        while len(self._threads) < self._workers:
            thread = threading.Thread(
                target=self._work,
                name=f"refract_worker_{len(self._threads)}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def _work(self):
        while True:
            request = self._queue.get()
            if request is _STOP:
                return
            assert isinstance(request, Request)
            try:
                response = self.process(request)
                if request.options.delay > 0:
                    self._deliver_later(response, request.options.delay)
                else:
                    self._deliver(response)
            except Exception:
                refract._logger.critical("exception in worker", exc_info=True)

    def _deliver_later(self, response: Response, delay: float):
        def _deliver():
            try:
                self._deliver(response)
            finally:
                with self._lock:
                    self._timers.discard(timer)

        timer = threading.Timer(delay, _deliver)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()

    def _deliver(self, response: Response):
        with self._lock:
            pending = self._pending.pop(response.id, None)
        if pending is None:
            refract._logger.debug("no one is waiting for response %s", response.id)
            return
        self._complete(pending, response)

    @staticmethod
    def _complete(pending: _Pending, response: Response):
        # Once running, the future can no longer be cancelled by the caller.
        if not pending.future.set_running_or_notify_cancel():
            return
        if response.error is not None:
            pending.future.set_exception(response.error)
            if pending.on_error is not None:
                pending.on_error(response.error, response.language)
        else:
            assert response.result is not None
            pending.future.set_result(response.result)
            if pending.callback is not None:
                pending.callback(response.result, response.language)


_DEFAULT_DISPATCHER: Dispatcher | None = None
_DEFAULT_DISPATCHER_LOCK = threading.Lock()


def get_dispatcher() -> Dispatcher:
    """
    Get the default dispatcher, creating it if needed.

    The default dispatcher uses :data:`~refract.registry.REGISTRY`,
    and is configured from environment variables with prefix ``REFRACT``,
    see :class:`~refract.config.Settings`.

    """

    global _DEFAULT_DISPATCHER

    with _DEFAULT_DISPATCHER_LOCK:
        if _DEFAULT_DISPATCHER is None or _DEFAULT_DISPATCHER.closed:
            settings = Settings.load_from_env(prefix="REFRACT")
            _DEFAULT_DISPATCHER = Dispatcher.from_config(settings)
            atexit.register(_DEFAULT_DISPATCHER.close, wait=False)
        return _DEFAULT_DISPATCHER


def annotate_sync(
    code: str,
    language: str,
    /,
    options: Options | _t.Mapping[str, _t.Any] | None = None,
) -> str:
    """
    Annotate code on the calling thread, using the default registry.

    """

    return get_dispatcher().annotate(code, language, options)


def annotate_async(
    code: str,
    language: str,
    /,
    options: Options | _t.Mapping[str, _t.Any] | None = None,
    callback: Callback | None = None,
    *,
    on_error: ErrorCallback | None = None,
) -> Future[str]:
    """
    Annotate code on the default dispatcher.

    See :meth:`Dispatcher.submit`.

    """

    return get_dispatcher().submit(
        code, language, options, callback, on_error=on_error
    )
