"""Solana RPC client wrapper."""
import struct
from typing import Optional, Dict, Any
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TokenAccountOpts
from solders.address_lookup_table_account import AddressLookupTable, AddressLookupTableAccount
from solders.hash import Hash
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID
from spl.token.instructions import get_associated_token_address
from loguru import logger

from services.exceptions import ChainReadError
from utils.constants import SOL_NATIVE_MINT
from utils.transfer_fee import TransferFeeConfig

RPC_ERRORS = (SolanaRpcException, RPCException, OSError)

# Token-2022 mint extensions start after the padded base account and a type byte
_EXTENSIONS_OFFSET = 166
_ACCOUNT_TYPE_OFFSET = 165
_ACCOUNT_TYPE_MINT = 1
_EXTENSION_TRANSFER_FEE_CONFIG = 1
# Two authorities (32 + 32) and the withheld amount (u64) precede the fee pair
_OLDER_FEE_OFFSET = 72
_NEWER_FEE_OFFSET = 90
_TRANSFER_FEE = struct.Struct("<QQH")  # epoch, maximum_fee, basis_points


def parse_transfer_fee_config(data: bytes, epoch: int) -> Optional[TransferFeeConfig]:
    """Extract the active TransferFeeConfig from raw Token-2022 mint data."""
    if len(data) <= _EXTENSIONS_OFFSET or data[_ACCOUNT_TYPE_OFFSET] != _ACCOUNT_TYPE_MINT:
        return None

    offset = _EXTENSIONS_OFFSET
    while offset + 4 <= len(data):
        ext_type, length = struct.unpack_from("<HH", data, offset)
        offset += 4
        if ext_type == _EXTENSION_TRANSFER_FEE_CONFIG:
            value = data[offset:offset + length]
            if len(value) < _NEWER_FEE_OFFSET + _TRANSFER_FEE.size:
                return None
            _, older_max, older_bps = _TRANSFER_FEE.unpack_from(value, _OLDER_FEE_OFFSET)
            newer_epoch, newer_max, newer_bps = _TRANSFER_FEE.unpack_from(value, _NEWER_FEE_OFFSET)
            # The newer fee takes effect once its epoch has been reached
            if epoch >= newer_epoch:
                return TransferFeeConfig(basis_points=newer_bps, maximum_fee=newer_max)
            return TransferFeeConfig(basis_points=older_bps, maximum_fee=older_max)
        if ext_type == 0 and length == 0:
            break
        offset += length

    return None


class SolanaClient:
    """Wrapper for Solana RPC client."""

    def __init__(self, rpc_url: str, commitment: str = "confirmed"):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.client = AsyncClient(rpc_url, commitment=Commitment(commitment))
        self._mint_info_cache: Dict[str, Dict[str, Any]] = {}

    async def close(self):
        """Close the RPC client."""
        await self.client.close()

    async def get_balance(self, pubkey: Pubkey) -> int:
        """
        Get SOL balance for a wallet in lamports.

        Raises:
            ChainReadError: if the RPC call fails
        """
        try:
            response = await self.client.get_balance(pubkey)
        except RPC_ERRORS as e:
            logger.error("Failed to get balance for {}: {}", pubkey, e)
            raise ChainReadError(f"Failed to read SOL balance of {pubkey}: {e}") from e
        return int(response.value)

    async def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        """Raw account data, or None if the account does not exist."""
        try:
            response = await self.client.get_account_info(pubkey)
        except RPC_ERRORS as e:
            logger.error("Failed to get account info for {}: {}", pubkey, e)
            raise ChainReadError(f"Failed to read account {pubkey}: {e}") from e
        if response.value is None:
            return None
        return bytes(response.value.data)

    async def account_exists(self, pubkey: Pubkey) -> bool:
        return await self.get_account_data(pubkey) is not None

    async def get_token_balance(
        self,
        owner: Pubkey,
        mint: Pubkey,
        program_id: Optional[Pubkey] = None,
    ) -> int:
        """
        Get token balance for a wallet.

        Native SOL reads the lamport balance. SPL mints read the owner's
        associated token account; a missing account is a zero balance.

        Args:
            owner: Wallet public key
            mint: Token mint address

        Returns:
            Balance in base units
        """
        if str(mint) == SOL_NATIVE_MINT:
            return await self.get_balance(owner)

        if program_id is None:
            program_id = await self.get_token_program_id(mint)

        ata = get_associated_token_address(owner, mint, program_id)
        try:
            accounts = await self.client.get_token_accounts_by_owner(
                owner, TokenAccountOpts(mint=mint, program_id=program_id)
            )
            if not any(account.pubkey == ata for account in accounts.value):
                return 0
            balance = await self.client.get_token_account_balance(ata)
        except RPC_ERRORS as e:
            logger.error("Failed to get token balance of {} for {}: {}", mint, owner, e)
            raise ChainReadError(f"Failed to read {mint} balance of {owner}: {e}") from e

        return int(balance.value.amount)

    async def get_mint_info(self, mint: Pubkey) -> Dict[str, Any]:
        """Get mint owner program id, decimals and raw data (cached)."""
        mint_str = str(mint)
        cached = self._mint_info_cache.get(mint_str)
        if cached:
            return cached

        try:
            response = await self.client.get_account_info(mint)
            if response.value is None:
                raise ChainReadError(f"Mint account not found: {mint_str}")
            supply = await self.client.get_token_supply(mint)
        except RPC_ERRORS as e:
            logger.error("Failed to get mint info for {}: {}", mint_str, e)
            raise ChainReadError(f"Failed to read mint {mint_str}: {e}") from e

        info = {
            "owner": response.value.owner,
            "decimals": int(supply.value.decimals),
            "data": bytes(response.value.data),
        }
        self._mint_info_cache[mint_str] = info
        return info

    async def get_token_decimals(self, mint: Pubkey) -> Optional[int]:
        """Get token decimals for a mint."""
        info = await self.get_mint_info(mint)
        return info.get("decimals")

    async def get_token_program_id(self, mint: Pubkey) -> Pubkey:
        """Get the token program id that owns the mint (Token or Token-2022)."""
        if str(mint) == SOL_NATIVE_MINT:
            return TOKEN_PROGRAM_ID

        info = await self.get_mint_info(mint)
        if info["owner"] == TOKEN_2022_PROGRAM_ID:
            return TOKEN_2022_PROGRAM_ID
        return TOKEN_PROGRAM_ID

    async def get_transfer_fee_config(self, mint: Pubkey) -> Optional[TransferFeeConfig]:
        """Active transfer fee of a Token-2022 mint, None for plain SPL mints."""
        if await self.get_token_program_id(mint) != TOKEN_2022_PROGRAM_ID:
            return None

        info = await self.get_mint_info(mint)
        try:
            epoch_info = await self.client.get_epoch_info()
        except RPC_ERRORS as e:
            raise ChainReadError(f"Failed to read epoch info: {e}") from e

        return parse_transfer_fee_config(info["data"], epoch_info.value.epoch)

    async def get_latest_blockhash(self) -> Hash:
        try:
            response = await self.client.get_latest_blockhash(Confirmed)
        except RPC_ERRORS as e:
            logger.error("Failed to get latest blockhash: {}", e)
            raise ChainReadError(f"Failed to read latest blockhash: {e}") from e
        return response.value.blockhash

    async def get_address_lookup_table(self, address: Pubkey) -> Optional[AddressLookupTableAccount]:
        """Resolve an address lookup table, None if it does not exist."""
        data = await self.get_account_data(address)
        if data is None:
            logger.warning("Address lookup table not found: {}", address)
            return None

        table = AddressLookupTable.deserialize(data)
        return AddressLookupTableAccount(key=address, addresses=list(table.addresses))
