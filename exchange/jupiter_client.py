"""Jupiter price API client, used as the SOL/USDC price oracle."""
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict
import httpx
from loguru import logger

from services.exceptions import PriceUnavailable
from utils.constants import SOL_NATIVE_MINT


class JupiterClient:
    """Client for the Jupiter Price API V3."""

    def __init__(
        self,
        price_api_url: str = "https://api.jup.ag/price/v3",
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.price_api_url = price_api_url.rstrip("/")
        self.api_key = api_key

        # Set up headers with API key if provided
        headers = {}
        if api_key:
            headers["x-api-key"] = api_key

        self.client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def get_token_price(self, token_ids: list[str]) -> Dict[str, Decimal]:
        """
        Get USD prices for a set of mints.

        Args:
            token_ids: List of token mint addresses

        Returns:
            Dictionary of {mint: price in USD}

        Raises:
            PriceUnavailable: on transport failure or non-success response
        """
        try:
            response = await self.client.get(self.price_api_url, params={"ids": ",".join(token_ids)})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                logger.error("Jupiter API key is invalid or not authorized")
            else:
                logger.error("Failed to fetch token prices: HTTP {}", e.response.status_code)
            raise PriceUnavailable(f"Price API returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch token prices: {}", e)
            raise PriceUnavailable(f"Price API request failed: {e}") from e

        if not isinstance(data, dict):
            raise PriceUnavailable("Unexpected price API response shape")

        prices: Dict[str, Decimal] = {}

        # V3 format: {"mint": {"usdPrice": 0.123, ...}, ...}
        for mint, info in data.items():
            if isinstance(info, dict) and info.get("usdPrice") is not None:
                try:
                    prices[mint] = Decimal(str(info["usdPrice"]))
                except InvalidOperation:
                    logger.warning("Ignoring unparseable price for {}: {}", mint, info["usdPrice"])

        logger.debug("Fetched prices for {} tokens", len(prices))
        return prices

    async def get_sol_price(self) -> Decimal:
        """Current SOL price in USDC. A missing or non-positive price is an error."""
        prices = await self.get_token_price([SOL_NATIVE_MINT])
        price = prices.get(SOL_NATIVE_MINT)
        if price is None or price <= 0:
            raise PriceUnavailable("SOL price missing from price API response")
        return price
