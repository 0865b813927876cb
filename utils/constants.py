"""Chain ids, well-known mints and cost estimates."""

# Solana chain ids as each bridge provider names them
SOLANA_CHAIN_ID_RELAY = 792703809
SOLANA_CHAIN_ID_DEBRIDGE = 7565164

# Supported EVM destination chains: chain id -> name
DEST_CHAINS = {
    1: "ethereum",
    42161: "arbitrum",
    8453: "base",
}
SUPPORTED_DEST_CHAIN_IDS = tuple(DEST_CHAINS)

SOURCE_CHAIN = "solana"

SOL_NATIVE_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT_DEFAULT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

USDC_DECIMALS = 6

# Solana transaction cost estimates (lamports)
SOLANA_BASE_TX_FEE = 5_000
SOLANA_PRIORITY_FEE_ESTIMATE = 50_000
SOLANA_ATA_RENT = 2_039_280

# deBridge fixed order fee on Solana (0.015 SOL)
DEBRIDGE_FIXED_FEE_LAMPORTS = 15_000_000

QUOTE_EXPIRY_MS = 30_000
SOL_PRICE_CACHE_TTL_SECONDS = 10.0

# Recomputed fee may exceed the quoted one by at most 10%
FEE_DRIFT_PERCENT = 110

# Sponsor must hold twice the estimated cost of a swap
SOLVENCY_MULTIPLIER = 2

HISTORY_LIMIT = 50
