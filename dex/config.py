"""
Configuration loading and validation for the flash-loan arbitrage runner.

Settings come from an optional YAML file overlaid with environment
variables (RPC_URL, PRIVATE_KEY, TOKEN_ADDRESS, ...), are validated against
the pydantic schema, and are normalized into an immutable DexConfig.
"""

import copy
import os
from dataclasses import dataclass
from decimal import Decimal
from string import Template
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from flash_arbitrage.config_schema import validate_flashloan_config
from flash_arbitrage.constants import DEFAULT_SOURCES
from flash_arbitrage.exceptions import ConfigurationError
from flash_arbitrage.utils import get_logger

from .executor import ExecutionConfig
from .feed import ReconnectPolicy
from .opportunity_math import ProfitParams
from .types import Source

logger = get_logger(__name__)

# Trading values kept exact: YAML floats are re-read through str
_DECIMAL_KEYS = (
    "trade_amount",
    "trading_fee_rate",
    "fixed_gas_fee_estimate",
    "min_profit_threshold",
)


@dataclass(frozen=True)
class DexConfig:
    """
    Parsed and validated configuration.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint of the chain node
        private_key: Signing key (None allows scan-only runs)
        token_address: Token watched, subscribed to and borrowed
        pair_id: Subgraph pair id queried on every source
        sources: Ordered sources; order fixes scan enumeration
        trade_amount: Fixed trade size in token units
        trading_fee_rate: Per-leg fee rate
        fixed_gas_fee_estimate: Gas cost in profit units
        min_profit_threshold: Net profit a candidate must exceed
        scan_interval_sec: Timer period
        feeds_enabled: Start push subscriptions
        reconnect_delay_sec: Base reconnect delay
        reconnect_backoff_multiplier: 1.0 for fixed backoff
        reconnect_max_delay_sec: Backoff ceiling
        execution_lock: Serialize guard+execution per source pair
        request_timeout_sec: Total timeout for price queries (None = aiohttp default)
        addresses_provider: Loan facility addresses provider
        receiver_address: Flash-loan receiver contract
        token_decimals: Decimals of the borrowed token
        dry_run: Estimate gas but never submit
        gas_limit_cap: Maximum accepted gas estimate
        max_gas_price_gwei: Gas price ceiling
        metrics_port: Port for the Prometheus endpoint (None disables)
    """

    rpc_url: Optional[str]
    private_key: Optional[str]
    token_address: str
    pair_id: str
    sources: Tuple[Source, ...]
    trade_amount: Decimal
    trading_fee_rate: Decimal
    fixed_gas_fee_estimate: Decimal
    min_profit_threshold: Decimal
    scan_interval_sec: float
    feeds_enabled: bool
    reconnect_delay_sec: float
    reconnect_backoff_multiplier: float
    reconnect_max_delay_sec: float
    execution_lock: bool
    request_timeout_sec: Optional[float]
    addresses_provider: str
    receiver_address: Optional[str]
    token_decimals: int
    dry_run: bool
    gas_limit_cap: Optional[int]
    max_gas_price_gwei: Optional[float]
    metrics_port: Optional[int]

    @property
    def profit_params(self) -> ProfitParams:
        return ProfitParams(
            trade_amount=self.trade_amount,
            trading_fee_rate=self.trading_fee_rate,
            fixed_gas_fee_estimate=self.fixed_gas_fee_estimate,
            min_profit=self.min_profit_threshold,
        )

    @property
    def reconnect_policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(
            base_delay=self.reconnect_delay_sec,
            multiplier=self.reconnect_backoff_multiplier,
            max_delay=self.reconnect_max_delay_sec,
        )

    @property
    def execution_config(self) -> ExecutionConfig:
        return ExecutionConfig(
            addresses_provider=self.addresses_provider,
            receiver_address=self.receiver_address,
            token_decimals=self.token_decimals,
            dry_run=self.dry_run,
            gas_limit_cap=self.gas_limit_cap,
            max_gas_price_gwei=self.max_gas_price_gwei,
        )

    @property
    def sources_by_id(self) -> Dict[str, Source]:
        return {s.id: s for s in self.sources}


def _env_key(source_id: str, suffix: str) -> str:
    return f"{source_id.upper().replace('-', '_')}_{suffix}"


def apply_env_overrides(
    config_dict: Dict[str, Any], env: Mapping[str, str]
) -> Dict[str, Any]:
    """
    Overlay environment variables onto a raw config dict.

    Recognized: RPC_URL (or INFURA_OR_NODE_URL), PRIVATE_KEY, TOKEN_ADDRESS,
    PAIR_ID, and per source <ID>_QUERY_URL, <ID>_STREAM_URL,
    <ID>_ROUTER_ADDRESS. ``${VAR}`` placeholders in stream URLs are
    substituted from ``env``; a stream URL left with an unresolved
    placeholder is disabled.
    """
    result = copy.deepcopy(config_dict)

    rpc_url = env.get("RPC_URL") or env.get("INFURA_OR_NODE_URL")
    if rpc_url:
        result["rpc_url"] = rpc_url
    for env_name, key in (
        ("PRIVATE_KEY", "private_key"),
        ("TOKEN_ADDRESS", "token_address"),
        ("PAIR_ID", "pair_id"),
    ):
        if env.get(env_name):
            result[key] = env[env_name]

    if "sources" not in result:
        result["sources"] = copy.deepcopy(DEFAULT_SOURCES)

    for source in result["sources"]:
        if not isinstance(source, dict) or "id" not in source:
            continue
        for suffix, key in (
            ("QUERY_URL", "query_url"),
            ("STREAM_URL", "stream_url"),
            ("ROUTER_ADDRESS", "router_address"),
        ):
            value = env.get(_env_key(source["id"], suffix))
            if value:
                source[key] = value

        stream_url = source.get("stream_url")
        if stream_url:
            resolved = Template(stream_url).safe_substitute(env)
            if "${" in resolved:
                logger.warning(
                    f"Stream URL for {source['id']} has unresolved placeholders; "
                    f"push feed disabled"
                )
                resolved = None
            source["stream_url"] = resolved

    return result


def _exact_decimals(section: Dict[str, Any]) -> Dict[str, Any]:
    section = dict(section)
    for key in _DECIMAL_KEYS:
        if isinstance(section.get(key), float):
            section[key] = str(section[key])
    return section


def build_config(config_dict: Dict[str, Any]) -> DexConfig:
    """
    Validate a raw (already env-overlaid) config dict into a DexConfig.

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Configuration must be a dictionary")

    raw = dict(config_dict)
    if isinstance(raw.get("trading"), dict):
        raw["trading"] = _exact_decimals(raw["trading"])

    try:
        schema = validate_flashloan_config(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            details={"errors": e.errors(include_url=False)},
        ) from e

    sources: List[Source] = []
    for s in schema.sources:
        if not s.router_address:
            raise ConfigurationError(f"Source '{s.id}' missing 'router_address'")
        sources.append(
            Source(
                id=s.id,
                query_url=s.query_url,
                stream_url=s.stream_url,
                router_address=s.router_address,
            )
        )

    trading = schema.trading
    feeds = schema.feeds
    execution = schema.execution

    return DexConfig(
        rpc_url=schema.rpc_url,
        private_key=schema.private_key,
        token_address=schema.token_address,
        pair_id=schema.pair_id or schema.token_address,
        sources=tuple(sources),
        trade_amount=trading.trade_amount,
        trading_fee_rate=trading.trading_fee_rate,
        fixed_gas_fee_estimate=trading.fixed_gas_fee_estimate,
        min_profit_threshold=trading.min_profit_threshold,
        scan_interval_sec=trading.scan_interval_ms / 1000.0,
        feeds_enabled=feeds.enabled,
        reconnect_delay_sec=feeds.reconnect_delay_ms / 1000.0,
        reconnect_backoff_multiplier=feeds.reconnect_backoff_multiplier,
        reconnect_max_delay_sec=feeds.reconnect_max_delay_ms / 1000.0,
        execution_lock=trading.execution_lock,
        request_timeout_sec=trading.request_timeout_sec,
        addresses_provider=execution.addresses_provider,
        receiver_address=execution.receiver_address,
        token_decimals=trading.token_decimals,
        dry_run=execution.dry_run,
        gas_limit_cap=execution.gas_limit_cap,
        max_gas_price_gwei=execution.max_gas_price_gwei,
        metrics_port=schema.metrics_port,
    )


def load_config(
    config_path: Optional[str] = None, env: Optional[Mapping[str, str]] = None
) -> DexConfig:
    """
    Load config from an optional YAML file plus environment variables.

    Args:
        config_path: Path to config YAML file (None = environment only)
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated DexConfig instance

    Raises:
        ConfigurationError: If config invalid or file not found
    """
    env = os.environ if env is None else env
    config_dict: Dict[str, Any] = {}

    if config_path is not None:
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Config file not found: {config_path}")
        try:
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError("Config file must contain a YAML dictionary")
        config_dict = loaded

    return build_config(apply_env_overrides(config_dict, env))
