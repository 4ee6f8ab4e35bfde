"""
Configuration schema validation using Pydantic
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    DEFAULT_ADDRESSES_PROVIDER,
    DEFAULT_FIXED_GAS_FEE_ESTIMATE,
    DEFAULT_MIN_PROFIT_THRESHOLD,
    DEFAULT_RECONNECT_BACKOFF_MULTIPLIER,
    DEFAULT_RECONNECT_DELAY_MS,
    DEFAULT_RECONNECT_MAX_DELAY_MS,
    DEFAULT_SCAN_INTERVAL_MS,
    DEFAULT_TOKEN_DECIMALS,
    DEFAULT_TRADE_AMOUNT,
    DEFAULT_TRADING_FEE_RATE,
)


def _is_hex_address(value: str) -> bool:
    if not isinstance(value, str) or len(value) != 42 or not value.startswith("0x"):
        return False
    try:
        int(value[2:], 16)
    except ValueError:
        return False
    return True


class SourceSchema(BaseModel):
    """A liquidity venue with a query endpoint and a push endpoint"""

    id: str = Field(min_length=1, description="Unique source identifier")
    query_url: str = Field(min_length=1, description="GraphQL endpoint")
    stream_url: Optional[str] = Field(default=None, description="WebSocket endpoint")
    router_address: Optional[str] = Field(
        default=None, description="Router address encoded into trade instructions"
    )

    @field_validator("query_url")
    @classmethod
    def validate_query_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"query_url must be http(s): {v}")
        return v

    @field_validator("stream_url")
    @classmethod
    def validate_stream_url(cls, v):
        if v is not None and not v.startswith(("ws://", "wss://")):
            raise ValueError(f"stream_url must be ws(s): {v}")
        return v

    @field_validator("router_address")
    @classmethod
    def validate_router_address(cls, v):
        if v is not None and not _is_hex_address(v):
            raise ValueError(f"router_address is not a hex address: {v}")
        return v


class TradingSchema(BaseModel):
    """Profitability and sizing parameters"""

    trade_amount: Decimal = Field(gt=0, default=Decimal(DEFAULT_TRADE_AMOUNT))
    trading_fee_rate: Decimal = Field(
        ge=0, lt=Decimal("0.5"), default=Decimal(DEFAULT_TRADING_FEE_RATE)
    )
    fixed_gas_fee_estimate: Decimal = Field(
        ge=0, default=Decimal(DEFAULT_FIXED_GAS_FEE_ESTIMATE)
    )
    min_profit_threshold: Decimal = Field(
        ge=0, default=Decimal(DEFAULT_MIN_PROFIT_THRESHOLD)
    )
    scan_interval_ms: int = Field(gt=0, default=DEFAULT_SCAN_INTERVAL_MS)
    token_decimals: int = Field(ge=0, le=36, default=DEFAULT_TOKEN_DECIMALS)
    execution_lock: bool = False
    request_timeout_sec: Optional[float] = Field(gt=0, default=None)


class FeedsSchema(BaseModel):
    """Push subscription and reconnect policy parameters"""

    enabled: bool = True
    reconnect_delay_ms: int = Field(ge=0, default=DEFAULT_RECONNECT_DELAY_MS)
    reconnect_backoff_multiplier: float = Field(
        ge=1.0, le=10.0, default=DEFAULT_RECONNECT_BACKOFF_MULTIPLIER
    )
    reconnect_max_delay_ms: int = Field(ge=0, default=DEFAULT_RECONNECT_MAX_DELAY_MS)

    @model_validator(mode="after")
    def validate_delays(self):
        if self.reconnect_max_delay_ms < self.reconnect_delay_ms:
            raise ValueError("reconnect_max_delay_ms must be >= reconnect_delay_ms")
        return self


class ExecutionSchema(BaseModel):
    """Flash-loan execution parameters"""

    addresses_provider: str = DEFAULT_ADDRESSES_PROVIDER
    receiver_address: Optional[str] = None
    dry_run: bool = False
    gas_limit_cap: Optional[int] = Field(gt=0, default=None)
    max_gas_price_gwei: Optional[float] = Field(gt=0, default=None)

    @field_validator("addresses_provider", "receiver_address")
    @classmethod
    def validate_address(cls, v):
        if v is not None and not _is_hex_address(v):
            raise ValueError(f"not a hex address: {v}")
        return v


class FlashLoanConfigSchema(BaseModel):
    """Complete flash-loan arbitrage configuration"""

    rpc_url: Optional[str] = None
    private_key: Optional[str] = None
    token_address: str = Field(description="Token borrowed and watched")
    pair_id: Optional[str] = Field(
        default=None, description="Subgraph pair id; defaults to token_address"
    )
    sources: List[SourceSchema] = Field(min_length=2)
    trading: TradingSchema = Field(default_factory=TradingSchema)
    feeds: FeedsSchema = Field(default_factory=FeedsSchema)
    execution: ExecutionSchema = Field(default_factory=ExecutionSchema)
    metrics_port: Optional[int] = Field(ge=1, le=65535, default=None)

    @field_validator("token_address")
    @classmethod
    def validate_token_address(cls, v):
        if not _is_hex_address(v):
            raise ValueError(f"token_address is not a hex address: {v}")
        return v

    @field_validator("sources")
    @classmethod
    def validate_unique_sources(cls, v):
        ids = [source.id for source in v]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate source ids: {duplicates}")
        return v


def validate_flashloan_config(config_dict: Dict[str, Any]) -> FlashLoanConfigSchema:
    """Validate a raw configuration dictionary"""
    return FlashLoanConfigSchema(**config_dict)
