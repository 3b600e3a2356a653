import threading

import pytest

from starslice.errors import RemoteLookupError, RemoteLookupTimeout
from starslice.lookup_queue import RateLimitedLookupQueue, make_queue_factory


def test_requests_are_sequential_in_input_order(no_sleep):
    seen = []
    active = []

    def lookup(ident):
        active.append(ident)
        assert len(active) == 1
        seen.append(ident)
        active.pop()
        return {"id": ident}

    outcome = RateLimitedLookupQueue(lookup, delay_sec=0.5, sleep=no_sleep).run([3, 1, 2])
    assert seen == [3, 1, 2]
    assert list(outcome.results) == [3, 1, 2]
    assert not outcome.failures
    assert not outcome.cancelled


def test_delay_only_between_requests(no_sleep):
    RateLimitedLookupQueue(lambda i: {}, delay_sec=0.5, sleep=no_sleep).run(["a", "b", "c"])
    assert no_sleep.calls == [0.5, 0.5]


def test_zero_delay_never_sleeps(no_sleep):
    RateLimitedLookupQueue(lambda i: {}, delay_sec=0.0, sleep=no_sleep).run(["a", "b"])
    assert no_sleep.calls == []


def test_not_found_and_timeout_do_not_stop_the_batch(no_sleep):
    def lookup(ident):
        if ident == "slow":
            raise RemoteLookupTimeout("too slow")
        return None if ident == "missing" else {"id": ident}

    outcome = RateLimitedLookupQueue(lookup, delay_sec=0.1, sleep=no_sleep).run(["a", "slow", "missing", "b"])
    assert list(outcome.results) == ["a", "b"]
    assert outcome.failures == {"slow": "timeout", "missing": "not found"}


def test_unreachable_remote_is_a_separate_failure(no_sleep):
    def lookup(ident):
        if ident == "down":
            raise RemoteLookupError("503")
        return {"id": ident}

    outcome = RateLimitedLookupQueue(lookup, delay_sec=0.1, sleep=no_sleep).run(["down", "a"])
    assert list(outcome.results) == ["a"]
    assert outcome.failures == {"down": "unavailable"}


def test_cancel_stops_further_requests_and_keeps_results():
    seen = []
    queue = None

    def lookup(ident):
        seen.append(ident)
        if ident == 2:
            queue.cancel()
        return {"id": ident}

    queue = RateLimitedLookupQueue(lookup, delay_sec=0.01)
    outcome = queue.run([1, 2, 3, 4])

    assert seen == [1, 2]
    assert list(outcome.results) == [1, 2]
    assert outcome.failures == {3: "cancelled", 4: "cancelled"}
    assert outcome.cancelled


def test_cancel_interrupts_the_wait():
    waited = threading.Event()

    def sleep(seconds, cancel_event):
        waited.set()
        cancel_event.wait(seconds)

    queue = RateLimitedLookupQueue(lambda i: {"id": i}, delay_sec=30.0, sleep=sleep)
    threading.Thread(target=lambda: waited.wait(5) and queue.cancel(), daemon=True).start()
    outcome = queue.run(["a", "b"])

    assert list(outcome.results) == ["a"]
    assert outcome.failures == {"b": "cancelled"}


def test_factory_queues_share_the_cancel_event(no_sleep):
    event = threading.Event()
    factory = make_queue_factory(delay_sec=0.1, sleep=no_sleep, cancel_event=event)
    first, second = factory(lambda i: {"id": i}), factory(lambda i: {"id": i})

    event.set()
    assert first.cancelled and second.cancelled
    outcome = second.run(["a"])
    assert outcome.results == {}
    assert outcome.failures == {"a": "cancelled"}

def test_unexpected_errors_propagate(no_sleep):
    def lookup(ident):
        raise KeyError(ident)

    with pytest.raises(KeyError):
        RateLimitedLookupQueue(lookup, sleep=no_sleep).run(["x"])


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        RateLimitedLookupQueue(lambda i: None, delay_sec=-1)
