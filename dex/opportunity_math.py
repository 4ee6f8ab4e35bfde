"""
Single source of truth for opportunity profit calculations.

The scanner and the execution guard both call ``compute_profit`` so a
candidate is always rechecked with exactly the formula that produced it.
All values are Decimal; no float ever enters the profit path.
"""

from dataclasses import dataclass
from decimal import Decimal, getcontext

# Set high precision for all decimal operations
getcontext().prec = 50


@dataclass(frozen=True)
class ProfitParams:
    """
    Fixed inputs of the profit formula.

    Attributes:
        trade_amount: Trade size in token units
        trading_fee_rate: Per-leg exchange fee (applied to both legs)
        fixed_gas_fee_estimate: Gas cost, in the same unit as profit
        min_profit: Net profit a candidate must exceed
    """

    trade_amount: Decimal
    trading_fee_rate: Decimal
    fixed_gas_fee_estimate: Decimal
    min_profit: Decimal


@dataclass(frozen=True)
class ProfitBreakdown:
    """Gross-to-net breakdown for one direction of a source pair."""

    gross_profit: Decimal
    fee_cost: Decimal
    gas_cost: Decimal
    net_profit: Decimal

    def to_dict(self):
        """Convert to dictionary for structured logging."""
        return {
            "gross_profit": float(self.gross_profit),
            "fee_cost": float(self.fee_cost),
            "gas_cost": float(self.gas_cost),
            "net_profit": float(self.net_profit),
        }


def compute_profit(
    price_high: Decimal,
    price_low: Decimal,
    trade_amount: Decimal,
    trading_fee_rate: Decimal,
    fixed_gas_fee_estimate: Decimal,
) -> ProfitBreakdown:
    """
    Compute net profit of selling at ``price_high`` and buying at ``price_low``.

        gross = (price_high - price_low) * trade_amount
        net   = gross - gross * 2 * trading_fee_rate - fixed_gas_fee_estimate

    A reversed gap yields a negative gross and so a negative net.
    """
    gross = (price_high - price_low) * trade_amount
    fee_cost = gross * Decimal(2) * trading_fee_rate
    net = gross - fee_cost - fixed_gas_fee_estimate
    return ProfitBreakdown(
        gross_profit=gross,
        fee_cost=fee_cost,
        gas_cost=fixed_gas_fee_estimate,
        net_profit=net,
    )


def net_profit(price_high: Decimal, price_low: Decimal, params: ProfitParams) -> Decimal:
    """Net profit for the given prices under ``params``."""
    return compute_profit(
        price_high,
        price_low,
        params.trade_amount,
        params.trading_fee_rate,
        params.fixed_gas_fee_estimate,
    ).net_profit
