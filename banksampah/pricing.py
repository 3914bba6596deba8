from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from flask import current_app

from .config import PLATFORM_FEE_RATE, WASTE_PRICING
from .errors import ValidationError


@dataclass(frozen=True)
class PricingTable:
    prices: Dict[str, float] = field(default_factory=lambda: dict(WASTE_PRICING))
    fee_rate: float = PLATFORM_FEE_RATE

    def price_for(self, waste_type: str) -> float:
        if waste_type not in self.prices:
            raise ValidationError(
                'Jenis sampah tidak valid',
                details={'waste_type': waste_type, 'allowed': sorted(self.prices)})
        return self.prices[waste_type]

    def fee_for(self, value: float) -> float:
        return round(value * self.fee_rate, 2)

    def split(self, weight: float, price_per_kg: float) -> Tuple[float, float, float]:
        """Return ``(value, platform_fee, transfer)`` for a weight at a fixed price."""
        value = weight * price_per_kg
        fee = self.fee_for(value)
        return value, fee, value - fee

    def as_list(self):
        return [
            {'waste_type': name, 'price_per_kg': price}
            for name, price in sorted(self.prices.items(), key=lambda item: -item[1])
        ]


def get_pricing(config: Optional[dict] = None) -> PricingTable:
    config = config if config is not None else current_app.config
    return PricingTable(
        prices=dict(config.get('WASTE_PRICING', WASTE_PRICING)),
        fee_rate=config.get('PLATFORM_FEE_RATE', PLATFORM_FEE_RATE),
    )
