"""
Configuration management and loading.

Handles budget, tier and storage settings loaded from YAML.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from tiered_answers.core.tiers import DEFAULT_TIER_TABLE, ModelTier, TierSpec, TierTable
from tiered_answers.storage.db import DEFAULT_DB_PATH

# ~$5/day of premium tokens
DEFAULT_DAILY_LIMIT = 33_000


@dataclass(frozen=True)
class BudgetConfig:
    """Daily budget in premium-equivalent (weighted) tokens."""
    daily_limit: float = DEFAULT_DAILY_LIMIT
    timezone: Optional[str] = None

    def __post_init__(self):
        """Validate budget values."""
        if self.daily_limit <= 0:
            raise ValueError("daily_limit must be > 0")
        if self.timezone is not None:
            try:
                ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValueError(f"Unknown timezone: {self.timezone}")

    def local_now(self) -> datetime:
        """Current wall-clock time in the deployment timezone, as naive local time."""
        if self.timezone is None:
            return datetime.now()
        return datetime.now(ZoneInfo(self.timezone)).replace(tzinfo=None)


@dataclass(frozen=True)
class StorageConfig:
    """Location of the SQLite store."""
    db_path: str = DEFAULT_DB_PATH

    def __post_init__(self):
        if not self.db_path or not str(self.db_path).strip():
            raise ValueError("db_path cannot be empty")


@dataclass(frozen=True)
class ProviderConfig:
    """LLM provider call settings."""
    timeout_seconds: float = 60.0

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class AssistantConfig:
    """Complete assistant configuration."""
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    tiers: TierTable = DEFAULT_TIER_TABLE
    storage: StorageConfig = field(default_factory=StorageConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)


def default_config(db_path: Optional[str] = None) -> AssistantConfig:
    """Configuration with built-in defaults, optionally pointing at another database."""
    if db_path:
        return AssistantConfig(storage=StorageConfig(db_path=db_path))
    return AssistantConfig()


def load_assistant_config(path: str) -> AssistantConfig:
    """Load and validate assistant configuration from a YAML file.

    Strict validation ensures no silent misconfiguration that could lead to
    unmetered spend or a wrongly sized tier.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AssistantConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Assistant config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'budget', 'tiers', 'storage', 'provider'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    if 'budget' not in raw_config:
        raise ValueError("Missing required 'budget' section")
    budget = _parse_budget(raw_config['budget'])

    tiers = DEFAULT_TIER_TABLE
    if 'tiers' in raw_config:
        tiers = _parse_tiers(raw_config['tiers'])

    storage = StorageConfig()
    if 'storage' in raw_config:
        storage_data = _require_section(raw_config['storage'], 'storage', {'db_path'})
        storage = StorageConfig(db_path=str(storage_data.get('db_path', DEFAULT_DB_PATH)))

    provider = ProviderConfig()
    if 'provider' in raw_config:
        provider_data = _require_section(raw_config['provider'], 'provider', {'timeout_seconds'})
        if 'timeout_seconds' in provider_data:
            provider = ProviderConfig(
                timeout_seconds=_positive_number(provider_data['timeout_seconds'], 'provider.timeout_seconds')
            )

    return AssistantConfig(budget=budget, tiers=tiers, storage=storage, provider=provider)


def _require_section(data, path: str, allowed_keys: set) -> Dict:
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
    return data


def _positive_number(value, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"'{path}' must be a number > 0")
    return float(value)


def _parse_budget(data) -> BudgetConfig:
    budget_data = _require_section(data, 'budget', {'daily_limit', 'timezone'})

    if 'daily_limit' not in budget_data:
        raise ValueError("Missing required 'daily_limit' budget")
    daily_limit = _positive_number(budget_data['daily_limit'], 'budget.daily_limit')

    timezone = budget_data.get('timezone')
    if timezone is not None and not isinstance(timezone, str):
        raise ValueError("'budget.timezone' must be a string")

    return BudgetConfig(daily_limit=daily_limit, timezone=timezone)


def _parse_tiers(data) -> TierTable:
    """Parse and validate the tier table.

    Every tier must be present; a partial table would leave the router with a
    tier it cannot call.
    """
    valid_names = {tier.value for tier in ModelTier}
    tiers_data = _require_section(data, 'tiers', valid_names)

    tiers = {}
    for tier in ModelTier:
        if tier.value not in tiers_data:
            raise ValueError(f"Missing required tier '{tier.value}'")
        tiers[tier] = _parse_tier_spec(tiers_data[tier.value], f"tiers.{tier.value}")

    return TierTable(tiers)


def _parse_tier_spec(data, path: str) -> TierSpec:
    spec_data = _require_section(data, path, {'model', 'weight', 'max_tokens', 'cache_ttl_hours'})

    for key in ('model', 'weight', 'max_tokens'):
        if key not in spec_data:
            raise ValueError(f"Missing required '{key}' in {path}")

    model = spec_data['model']
    if not isinstance(model, str) or not model.strip():
        raise ValueError(f"'model' in {path} must be a non-empty string")

    max_tokens = spec_data['max_tokens']
    if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0:
        raise ValueError(f"'max_tokens' in {path} must be a positive integer")

    ttl = spec_data.get('cache_ttl_hours', 0)
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)) or ttl < 0:
        raise ValueError(f"'cache_ttl_hours' in {path} must be >= 0")

    return TierSpec(
        model=model,
        weight=_positive_number(spec_data['weight'], f"{path}.weight"),
        max_tokens=max_tokens,
        cache_ttl_hours=float(ttl),
    )
