"""Tests for the Jupiter price oracle client."""
from decimal import Decimal

import httpx
import pytest

from exchange.jupiter_client import JupiterClient
from services.exceptions import PriceUnavailable
from utils.constants import SOL_NATIVE_MINT


def make_client(handler):
    return JupiterClient(
        price_api_url="https://price.test/v3",
        api_key="key",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_sol_price():
    def handler(request):
        assert request.headers["x-api-key"] == "key"
        assert request.url.params["ids"] == SOL_NATIVE_MINT
        return httpx.Response(200, json={SOL_NATIVE_MINT: {"usdPrice": 150.25}})

    client = make_client(handler)
    assert await client.get_sol_price() == Decimal("150.25")
    await client.close()


@pytest.mark.asyncio
async def test_http_error():
    client = make_client(lambda r: httpx.Response(503))
    with pytest.raises(PriceUnavailable):
        await client.get_sol_price()


@pytest.mark.asyncio
async def test_missing_price():
    client = make_client(lambda r: httpx.Response(200, json={}))
    with pytest.raises(PriceUnavailable):
        await client.get_sol_price()


@pytest.mark.asyncio
async def test_non_positive_price():
    client = make_client(lambda r: httpx.Response(200, json={SOL_NATIVE_MINT: {"usdPrice": 0}}))
    with pytest.raises(PriceUnavailable):
        await client.get_sol_price()
