"""Sponsored Bridge - gas-sponsored Solana to EVM swaps via Relay and deBridge."""
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import build_fee_settings, load_config, require_sponsor_key
from utils.logging import setup_logging
from services.swap_router import register_exception_handlers, router as swap_router
from services.fee_calculator import FeeCalculator
from services.price_cache import PriceCache
from services.quote_aggregator import QuoteAggregator
from services.sponsor import SponsorAccount
from services.status_poller import StatusPoller
from services.swap_executor import SwapExecutor
from services.swap_store import SwapStore
from exchange.debridge_client import DeBridgeClient
from exchange.jupiter_client import JupiterClient
from exchange.relay_client import RelayClient
from exchange.solana_client import SolanaClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Sponsored Bridge...")
    logger.info("Sponsor wallet: {}", app.state.sponsor.pubkey)

    yield

    # Shutdown
    logger.info("Shutting down Sponsored Bridge...")

    # Close clients
    if hasattr(app.state, "aggregator"):
        await app.state.aggregator.close()
    if hasattr(app.state, "jupiter"):
        await app.state.jupiter.close()
    if hasattr(app.state, "solana"):
        await app.state.solana.close()


def create_app(config: Optional[Dict[str, Any]] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    # Load configuration
    if config is None:
        config = load_config()

    # Setup logging
    log_config = config.get("logging", {})
    setup_logging(
        log_dir=log_config.get("dir", "./logs"),
        level=log_config.get("level", "INFO"),
        rotation=log_config.get("rotation", "100 MB"),
        retention=log_config.get("retention", "30 days"),
    )

    logger.info("Configuration loaded")

    # Required at startup; no fallback
    fee_settings = build_fee_settings(config)
    sponsor_key = require_sponsor_key(config)

    # Initialize database
    db_path = config.get("database", {}).get("path", "./data/sponsored_bridge.db")
    swap_store = SwapStore(db_path=db_path)
    logger.info("Swap database initialized at {}", db_path)

    # Initialize Solana client
    solana_config = config.get("solana", {})
    solana = SolanaClient(
        rpc_url=solana_config.get("rpc_url", "https://api.mainnet-beta.solana.com"),
        commitment=solana_config.get("commitment", "confirmed"),
    )
    logger.info("Solana RPC client initialized")

    sponsor = SponsorAccount.from_private_key(sponsor_key, solana)

    # Initialize Jupiter price client
    jupiter_config = config.get("jupiter", {})
    jupiter = JupiterClient(
        price_api_url=jupiter_config.get("price_api_url", "https://api.jup.ag/price/v3"),
        api_key=jupiter_config.get("api_key") or None,
    )
    price_cache = PriceCache(jupiter.get_sol_price)
    logger.info("Jupiter price client initialized")

    # Initialize bridge providers, in tie-break order
    relay_config = config.get("relay", {})
    debridge_config = config.get("debridge", {})
    aggregator = QuoteAggregator([
        RelayClient(
            solana,
            api_url=relay_config.get("api_url", "https://api.relay.link"),
            timeout=float(relay_config.get("timeout_seconds", 20)),
        ),
        DeBridgeClient(
            api_url=debridge_config.get("api_url", "https://dln.debridge.finance/v1.0"),
            stats_api_url=debridge_config.get("stats_api_url", "https://stats-api.dln.trade"),
            timeout=float(debridge_config.get("timeout_seconds", 20)),
        ),
    ])
    logger.info("Bridge providers initialized: {}", ", ".join(p.name.value for p in aggregator.providers))

    fee_calculator = FeeCalculator(solana, sponsor, price_cache, fee_settings)
    swap_executor = SwapExecutor(aggregator, fee_calculator, sponsor, solana, swap_store)
    status_poller = StatusPoller(swap_store, aggregator)

    # Create FastAPI app
    app = FastAPI(
        title="Sponsored Bridge",
        description="Gas-sponsored cross-chain swaps from Solana to EVM chains",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store state
    app.state.config = config
    app.state.solana = solana
    app.state.jupiter = jupiter
    app.state.sponsor = sponsor
    app.state.aggregator = aggregator
    app.state.fee_calculator = fee_calculator
    app.state.swap_store = swap_store
    app.state.swap_executor = swap_executor
    app.state.status_poller = status_poller

    # Include routers
    app.include_router(swap_router, tags=["swap"])
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "sponsored-bridge",
            "version": "0.1.0",
        }

    logger.info("Sponsored Bridge initialized")

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=4201,
        reload=True,
    )
