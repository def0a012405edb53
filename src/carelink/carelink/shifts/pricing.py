from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..core.constants import DEFAULT_HOURLY_RATE_CENTS, DEFAULT_KM_RATE_CENTS
from .model import Shift


@dataclass(frozen=True)
class PricingSnapshot:
    hourly_rate_cents: int
    km_rate_cents: int


class PricingResolver(Protocol):
    """Supplies the rates frozen onto a shift at clock-out."""

    def resolve(self, shift: Shift) -> PricingSnapshot:
        raise NotImplementedError


class FixedRatePricingResolver(PricingResolver):
    def __init__(
        self,
        hourly_rate_cents: int = DEFAULT_HOURLY_RATE_CENTS,
        km_rate_cents: int = DEFAULT_KM_RATE_CENTS,
    ):
        self._snapshot = PricingSnapshot(hourly_rate_cents=int(hourly_rate_cents), km_rate_cents=int(km_rate_cents))

    def resolve(self, shift: Shift) -> PricingSnapshot:
        return self._snapshot
