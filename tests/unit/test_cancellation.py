import asyncio

import pytest

from waha_monitor.core.cancellation import (
    CancellationToken,
    cancellable_sleep,
    check_cancelled,
)
from waha_monitor.core.exceptions import OperationCancelled


def test_cancel_is_idempotent_and_keeps_first_reason():
    token = CancellationToken()
    assert token.cancelled is False
    token.cancel("first")
    token.cancel("second")
    assert token.cancelled is True
    assert token.reason == "first"


def test_check_cancelled_accepts_none():
    check_cancelled(None)
    token = CancellationToken()
    check_cancelled(token)
    token.cancel()
    with pytest.raises(OperationCancelled):
        check_cancelled(token)


@pytest.mark.asyncio
async def test_sleep_completes_when_not_cancelled():
    token = CancellationToken()
    await token.sleep(0.01)
    await cancellable_sleep(0.0)
    await cancellable_sleep(0.01, token)


@pytest.mark.asyncio
async def test_sleep_raises_when_cancelled_midway():
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.02, token.cancel, "stop")
    with pytest.raises(OperationCancelled, match="stop"):
        await asyncio.wait_for(token.sleep(10), timeout=2)
