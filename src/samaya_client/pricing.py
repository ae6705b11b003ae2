"""Booking price calculation."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .errors import ValidationError
from .models import ConsultationMode, PriceBreakdown, PriceQuote

DEFAULT_BASE_PRICE = 1000
DEFAULT_CURRENCY = "INR"

MODE_MULTIPLIERS: dict[ConsultationMode, Decimal] = {
    ConsultationMode.VIDEO: Decimal("1.2"),
}


def _round_to_int(value: Decimal) -> int:
    # ROUND_HALF_UP on Decimal rounds half away from zero.
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PricingEngine:
    """
    Computes a booking price from the consultation parameters.

    ``amount = base_price * (duration_minutes / 60) * mode_multiplier``, rounded
    half away from zero. Quotes are never cached: the same inputs always give
    the same quote, and changed inputs always give a fresh one.
    """

    def __init__(
        self,
        base_price: int = DEFAULT_BASE_PRICE,
        currency: str = DEFAULT_CURRENCY,
    ) -> None:
        if base_price < 0:
            raise ValueError("base_price must be non-negative")
        self.base_price = base_price
        self.currency = currency

    @staticmethod
    def mode_multiplier(consultation_mode: ConsultationMode | str) -> Decimal:
        try:
            mode = ConsultationMode(consultation_mode)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown consultation mode: {consultation_mode}",
                code="invalid_consultation_mode",
            ) from exc
        return MODE_MULTIPLIERS.get(mode, Decimal("1.0"))

    def quote(
        self,
        service: str,
        consultation_mode: ConsultationMode | str,
        duration_minutes: int,
    ) -> PriceQuote:
        if duration_minutes <= 0:
            raise ValidationError(
                "Duration must be a positive number of minutes",
                code="invalid_duration",
            )

        duration_multiplier = Decimal(duration_minutes) / Decimal(60)
        mode_multiplier = self.mode_multiplier(consultation_mode)
        amount = _round_to_int(Decimal(self.base_price) * duration_multiplier * mode_multiplier)

        return PriceQuote(
            amount=amount,
            currency=self.currency,
            breakdown=PriceBreakdown(
                base_price=self.base_price,
                duration_multiplier=float(duration_multiplier),
                mode_multiplier=float(mode_multiplier),
            ),
        )
