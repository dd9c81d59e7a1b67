import httpx
import pytest

from app.util.retry import _is_retryable_httpx, retry_telegram


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.telegram.org/botx/sendMessage")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError("status", request=request, response=response)


@pytest.mark.parametrize("code", [429, 500, 502, 503])
def test_retryable_status(code: int):
    assert _is_retryable_httpx(_status_error(code))


@pytest.mark.parametrize("code", [400, 401, 403, 404])
def test_non_retryable_status(code: int):
    assert not _is_retryable_httpx(_status_error(code))


@pytest.mark.parametrize(
    "exc",
    [
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
        httpx.ConnectTimeout("slow"),
        httpx.ReadError("reset"),
    ],
)
def test_retryable_transport_errors(exc: Exception):
    assert _is_retryable_httpx(exc)


@pytest.mark.parametrize("exc", [ValueError("x"), RuntimeError("x")])
def test_other_errors_not_retried(exc: Exception):
    assert not _is_retryable_httpx(exc)


async def test_retry_telegram_gives_up_after_three_attempts():
    calls = {"n": 0}

    @retry_telegram()
    async def send() -> None:
        calls["n"] += 1
        raise httpx.ConnectError("refused")

    with pytest.raises(httpx.ConnectError):
        await send()
    assert calls["n"] == 3


async def test_retry_telegram_does_not_retry_client_error():
    calls = {"n": 0}

    @retry_telegram()
    async def send() -> None:
        calls["n"] += 1
        raise _status_error(400)

    with pytest.raises(httpx.HTTPStatusError):
        await send()
    assert calls["n"] == 1
