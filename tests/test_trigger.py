# File: tests/test_trigger.py
from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import ClientResponseError, ClientSession, web

from conftest import serve_app
from indie_scout.queue.trigger import HttpValidationTrigger, LoggingValidationTrigger


@pytest_asyncio.fixture
async def webhook(unused_tcp_port: int) -> AsyncIterator[tuple[str, list]]:
    received: list = []
    app = web.Application()

    async def handle_ok(request):
        received.append(await request.json())
        return web.json_response({"queued": True})

    async def handle_broken(_):
        return web.Response(status=500, text="boom")

    app.router.add_post("/validate", handle_ok)
    app.router.add_post("/broken", handle_broken)

    async for url in serve_app(app, unused_tcp_port):
        yield url, received


@pytest.mark.asyncio()
async def test_http_trigger_posts_source(webhook):
    base, received = webhook
    await HttpValidationTrigger(f"{base}/validate").notify()
    assert received == [{"source": "crawler"}]


@pytest.mark.asyncio()
async def test_http_trigger_with_shared_session(webhook):
    base, received = webhook
    async with ClientSession() as session:
        trigger = HttpValidationTrigger(f"{base}/validate", session=session)
        await trigger.notify()
        await trigger.notify()
        assert not session.closed
    assert len(received) == 2


@pytest.mark.asyncio()
async def test_http_trigger_raises_on_error_status(webhook):
    base, _ = webhook
    with pytest.raises(ClientResponseError):
        await HttpValidationTrigger(f"{base}/broken").notify()


@pytest.mark.asyncio()
async def test_logging_trigger(caplog):
    # the project logger does not propagate, attach caplog directly
    logger = logging.getLogger("IndieScout")
    logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.INFO, logger="IndieScout"):
            await LoggingValidationTrigger().notify()
    finally:
        logger.removeHandler(caplog.handler)
    assert "waiting for validation" in caplog.text
