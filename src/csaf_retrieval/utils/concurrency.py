"""Bounded fan-out/fan-in over a thread pool."""

from __future__ import annotations

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from csaf_retrieval.result import Result

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Iterable

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CHANNEL_CAPACITY = 256

# how often a producer waiting for a free slot checks whether the consumer went away
_POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class _ProducerDone:
    submitted: int


@dataclass(frozen=True)
class _ProducerFailed:
    error: BaseException


def fan_out(
    fn: Callable[[T], R],
    items: Iterable[T],
    capacity: int = DEFAULT_CHANNEL_CAPACITY,
    name: str = "fan-out",
) -> Generator[tuple[T, Result[R]], None, None]:
    """
    Apply `fn` to every item concurrently and yield `(item, Result)` pairs as they complete.

    Every input item produces exactly one output pair; exceptions raised by `fn` are captured in the
    Result rather than raised. At most `capacity` items are running or waiting to be consumed at any
    time: the producer stalls until the consumer takes a result. `items` is consumed lazily on a
    background thread, so it may itself be the output of another fan_out.

    Closing the returned generator (or abandoning it) cancels queued work, stops the producer and
    closes `items` if it is a generator.
    """
    if capacity < 1:
        raise ValueError(f"capacity must be at least 1, got {capacity}")

    slots = threading.BoundedSemaphore(capacity)
    done: queue.Queue[Any] = queue.Queue()
    cancelled = threading.Event()
    executor = ThreadPoolExecutor(max_workers=capacity, thread_name_prefix=name)

    def run(item: T) -> None:
        if cancelled.is_set():
            return
        done.put((item, Result.of(fn, item)))

    def produce() -> None:
        iterator = iter(items)
        submitted = 0
        try:
            for item in iterator:
                while not slots.acquire(timeout=_POLL_INTERVAL):
                    if cancelled.is_set():
                        return
                if cancelled.is_set():
                    return
                executor.submit(run, item)
                submitted += 1
            done.put(_ProducerDone(submitted))
        except BaseException as e:  # noqa: BLE001 - reported to the consumer below
            done.put(_ProducerFailed(e))
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

    producer = threading.Thread(target=produce, name=f"{name}-producer", daemon=True)

    try:
        producer.start()
        expected: int | None = None
        received = 0
        while expected is None or received < expected:
            msg = done.get()
            if isinstance(msg, _ProducerDone):
                expected = msg.submitted
                continue
            if isinstance(msg, _ProducerFailed):
                raise msg.error
            received += 1
            slots.release()
            yield msg
    finally:
        cancelled.set()
        executor.shutdown(wait=False, cancel_futures=True)


def _offer(channel: queue.Queue[Any], msg: Any, cancelled: threading.Event) -> bool:
    while True:
        try:
            channel.put(msg, timeout=_POLL_INTERVAL)
            return True
        except queue.Full:
            if cancelled.is_set():
                return False


def merge(
    *sources: Iterable[T],
    capacity: int = DEFAULT_CHANNEL_CAPACITY,
    name: str = "merge",
) -> Generator[T, None, None]:
    """
    Interleave several iterables into one stream, each drained concurrently on its own thread.

    Items of one source keep their relative order; across sources they appear in arrival order.
    At most `capacity` items are buffered. Closing the returned generator stops every source.
    """
    if capacity < 1:
        raise ValueError(f"capacity must be at least 1, got {capacity}")

    channel: queue.Queue[Any] = queue.Queue(maxsize=capacity)
    cancelled = threading.Event()

    def drain(source: Iterable[T]) -> None:
        iterator = iter(source)
        try:
            for item in iterator:
                if not _offer(channel, item, cancelled):
                    return
            _offer(channel, _ProducerDone(0), cancelled)
        except BaseException as e:  # noqa: BLE001 - reported to the consumer below
            _offer(channel, _ProducerFailed(e), cancelled)
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

    threads = [threading.Thread(target=drain, args=(s,), name=f"{name}-{i}", daemon=True) for i, s in enumerate(sources)]

    try:
        for t in threads:
            t.start()
        finished = 0
        while finished < len(threads):
            msg = channel.get()
            if isinstance(msg, _ProducerDone):
                finished += 1
                continue
            if isinstance(msg, _ProducerFailed):
                raise msg.error
            yield msg
    finally:
        cancelled.set()
