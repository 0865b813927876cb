"""Configuration loader with environment variable support."""
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from pathlib import Path
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from services.exceptions import ConfigError
from utils.constants import USDC_MINT_DEFAULT


class EnvOverrides(BaseSettings):
    """Environment variables that override values from config.yaml."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_ignore_empty=True, extra="ignore"
    )

    log_level: Optional[str] = None
    solana_rpc_url: Optional[str] = None
    sponsor_private_key: Optional[str] = None
    fee_percentage_bps: Optional[int] = None
    fee_fixed_buffer_lamports: Optional[int] = None
    relay_api_url: Optional[str] = None
    debridge_api_url: Optional[str] = None
    debridge_stats_api_url: Optional[str] = None
    usdc_mint: Optional[str] = None
    jupiter_api_key: Optional[str] = None
    database_path: Optional[str] = None


# env field -> (config section, key)
_OVERRIDE_TARGETS = {
    "log_level": ("logging", "level"),
    "solana_rpc_url": ("solana", "rpc_url"),
    "sponsor_private_key": ("sponsor", "private_key"),
    "fee_percentage_bps": ("fees", "percentage_bps"),
    "fee_fixed_buffer_lamports": ("fees", "fixed_buffer_lamports"),
    "relay_api_url": ("relay", "api_url"),
    "debridge_api_url": ("debridge", "api_url"),
    "debridge_stats_api_url": ("debridge", "stats_api_url"),
    "usdc_mint": ("tokens", "usdc_mint"),
    "jupiter_api_key": ("jupiter", "api_key"),
    "database_path": ("database", "path"),
}


@dataclass(frozen=True)
class FeeSettings:
    """Sponsor cost model consumed by the fee calculator."""
    percentage_bps: int = 50
    fixed_buffer_lamports: int = 10_000_000
    usdc_mint: str = USDC_MINT_DEFAULT


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values."""
    if isinstance(value, str):
        # Replace ${VAR_NAME} with environment variable value
        pattern = r'\$\{([^}]+)\}'
        matches = re.findall(pattern, value)
        for var_name in matches:
            env_value = os.getenv(var_name, '')
            value = value.replace(f'${{{var_name}}}', env_value)
        return value
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def apply_env_overrides(config: Dict[str, Any], overrides: EnvOverrides) -> Dict[str, Any]:
    """Copy every set environment override into its config section."""
    for field, (section, key) in _OVERRIDE_TARGETS.items():
        value = getattr(overrides, field)
        if value is not None and value != "":
            config.setdefault(section, {})[key] = value
    return config


def load_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file with environment variable expansion.

    Args:
        config_path: Path to config.yaml file

    Returns:
        Configuration dictionary
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        config = yaml.safe_load(f) or {}

    # Expand environment variables
    config = _expand_env_vars(config)

    return apply_env_overrides(config, EnvOverrides())


def _configured(value: Any, default: Any) -> Any:
    # Zero is a real setting; only absent or blank values fall back
    if value is None or value == "":
        return default
    return value


def build_fee_settings(config: Dict[str, Any]) -> FeeSettings:
    """Fee model with fixed fallbacks for anything not configured."""
    fees = config.get("fees") or {}
    defaults = FeeSettings()
    try:
        return FeeSettings(
            percentage_bps=int(_configured(fees.get("percentage_bps"), defaults.percentage_bps)),
            fixed_buffer_lamports=int(
                _configured(fees.get("fixed_buffer_lamports"), defaults.fixed_buffer_lamports)
            ),
            usdc_mint=config.get("tokens", {}).get("usdc_mint") or defaults.usdc_mint,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid fee configuration: {e}") from e


def require_sponsor_key(config: Dict[str, Any]) -> str:
    """The sponsor credential has no fallback."""
    private_key = config.get("sponsor", {}).get("private_key")
    if not private_key:
        raise ConfigError("Missing required configuration: sponsor.private_key (SPONSOR_PRIVATE_KEY)")
    return private_key
