import httpx
import pytest

from chat_gateway.services.errors import RateLimitedError, UpstreamTimeoutError
from chat_gateway.services.retry import ErrorKind, RetriesExhausted, RetryPolicy, classify_error


class FlakyWork:
    """Падает заданной ошибкой `failures` раз, потом возвращает "ok"."""

    def __init__(self, failures: int, exc_factory) -> None:
        self.failures = failures
        self.exc_factory = exc_factory
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_factory()
        return "ok"


def _policy(sleeps: list[float]) -> RetryPolicy:
    return RetryPolicy(sleep=sleeps.append)


@pytest.mark.parametrize("k", [0, 1, 5])
def test_rate_limited_then_success(k: int) -> None:
    sleeps: list[float] = []
    work = FlakyWork(k, lambda: RateLimitedError("429"))
    assert _policy(sleeps).execute(work) == "ok"
    assert work.calls == k + 1
    assert sleeps == [2.0**n for n in range(1, k + 1)]


@pytest.mark.parametrize("k", [6, 10])
def test_rate_limited_exhausted_returns_typed_result(k: int) -> None:
    sleeps: list[float] = []
    work = FlakyWork(k, lambda: RateLimitedError("429"))
    result = _policy(sleeps).execute(work)
    assert isinstance(result, RetriesExhausted)
    assert result.kind is ErrorKind.RATE_LIMITED
    assert result.attempts == 6
    assert work.calls == 6
    assert sleeps == [2.0, 4.0, 8.0, 16.0, 32.0]


def test_timeout_retries_without_delay() -> None:
    sleeps: list[float] = []
    work = FlakyWork(2, lambda: UpstreamTimeoutError("timeout"))
    assert _policy(sleeps).execute(work) == "ok"
    assert work.calls == 3
    assert sleeps == []


def test_timeout_exhausted_after_three_attempts() -> None:
    work = FlakyWork(5, lambda: httpx.ReadTimeout("slow"))
    result = _policy([]).execute(work)
    assert isinstance(result, RetriesExhausted)
    assert result.kind is ErrorKind.TIMEOUT
    assert result.attempts == 3
    assert work.calls == 3


def test_other_errors_are_not_retried() -> None:
    work = FlakyWork(1, lambda: KeyError("boom"))
    with pytest.raises(KeyError):
        _policy([]).execute(work)
    assert work.calls == 1


def test_attempt_counter_is_shared_between_kinds() -> None:
    errors = iter([RateLimitedError("429"), UpstreamTimeoutError("t"), UpstreamTimeoutError("t")])

    def work() -> str:
        raise next(errors)

    sleeps: list[float] = []
    result = _policy(sleeps).execute(work)
    assert isinstance(result, RetriesExhausted)
    assert result.kind is ErrorKind.TIMEOUT
    assert result.attempts == 3
    assert sleeps == [2.0]


def test_classify_error() -> None:
    request = httpx.Request("POST", "http://upstream.test/v1/chat/completions")
    too_many = httpx.HTTPStatusError(
        "429", request=request, response=httpx.Response(429, request=request)
    )
    bad_auth = httpx.HTTPStatusError(
        "401", request=request, response=httpx.Response(401, request=request)
    )
    assert classify_error(too_many) is ErrorKind.RATE_LIMITED
    assert classify_error(RateLimitedError("x")) is ErrorKind.RATE_LIMITED
    assert classify_error(httpx.ConnectTimeout("x")) is ErrorKind.TIMEOUT
    assert classify_error(bad_auth) is ErrorKind.OTHER
    assert classify_error(ValueError("x")) is ErrorKind.OTHER
