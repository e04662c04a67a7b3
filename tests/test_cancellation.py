"""Tests for caller-supplied cancellation tokens."""
import pytest

from data_query_engine.cancellation import CancellationToken, abort_on_cancel, check
from data_query_engine.errors import QueryCancelledError


def test_not_cancelled_by_default():
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled("anything")


def test_raise_after_cancel():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(QueryCancelledError) as exc_info:
        token.raise_if_cancelled("count")
    assert exc_info.value.details == {"stage": "count"}


def test_check_tolerates_missing_token():
    check(None, "raw_execute")


def test_callback_fires_while_registered():
    token = CancellationToken()
    fired = []
    with token.on_cancel(lambda: fired.append(1)):
        token.cancel()
    assert fired == [1]


def test_callback_not_fired_after_block():
    token = CancellationToken()
    fired = []
    with token.on_cancel(lambda: fired.append(1)):
        pass
    token.cancel()
    assert fired == []


def test_already_cancelled_fires_immediately():
    token = CancellationToken()
    token.cancel()
    fired = []
    with abort_on_cancel(token, lambda: fired.append(1)):
        assert fired == [1]


def test_cancel_is_one_shot():
    token = CancellationToken()
    fired = []
    with token.on_cancel(lambda: fired.append(1)):
        token.cancel()
        token.cancel()
    assert fired == [1]


def test_failing_callback_does_not_break_cancel():
    token = CancellationToken()

    def broken():
        raise RuntimeError("connection already closed")

    with token.on_cancel(broken):
        token.cancel()
    assert token.cancelled


def test_abort_on_cancel_without_token():
    with abort_on_cancel(None, lambda: pytest.fail("should not run")):
        pass
