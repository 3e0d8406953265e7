"""
PricingCalculator — area-based window pricing and quotation roll-up.

Covers:
  - Area in sq ft from mm dimensions
  - Archetype base rate × frame multiplier × glass multiplier → unit price
  - Per-window breakdown (total, transportation, loading, tax, grand total)
  - Manual overrides per field, cleared only by an explicit auto-populate
  - Range validation of spec and pricing fields (blocks submission only)
  - Quotation-level totals (basic value, project cost, GST, averages per sq ft)
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from app.config import (
    DEFAULT_TAX_RATE,
    ENGINE_MAX_QUANTITY,
    FRAME_MULTIPLIERS,
    GLASS_MULTIPLIERS,
    LOADING_RATE_PCT,
    MANUAL_PRICING_FIELDS,
    MAX_HEIGHT_MM,
    MAX_TAX_RATE,
    MAX_WIDTH_MM,
    MIN_HEIGHT_MM,
    MIN_TAX_RATE,
    MIN_WIDTH_MM,
    SQFT_DIVISOR_MM2,
    TRANSPORT_RATE_PCT,
)
from app.models.window_models import PricingBreakdown, QuotationAggregate, WindowInstance
from app.services.catalog_engine import base_rate
from app.services.quote_errors import ValidationError

logger = logging.getLogger("fenestra-costing")


def area_sqft(width_mm: float, height_mm: float) -> float:
    """Window area in sq ft; non-positive dimensions count as zero."""
    width = max(float(width_mm or 0.0), 0.0)
    height = max(float(height_mm or 0.0), 0.0)
    return (width * height) / SQFT_DIVISOR_MM2


def frame_multiplier(material: Optional[str]) -> float:
    return FRAME_MULTIPLIERS.get((material or "").lower(), 1.0)


def glass_multiplier(glass_type: Optional[str]) -> float:
    return GLASS_MULTIPLIERS.get((glass_type or "").lower(), 1.0)


def effective_quantity_cap(max_quantity: Optional[int] = None) -> int:
    """The stricter of the caller's cap and the engine cap."""
    if max_quantity is None:
        return ENGINE_MAX_QUANTITY
    return min(int(max_quantity), ENGINE_MAX_QUANTITY)


@dataclass
class QuotationTotals:
    basic_value: float = 0.0
    transportation: float = 0.0
    loading: float = 0.0
    total_project_cost: float = 0.0
    gst_rate: float = DEFAULT_TAX_RATE
    gst_amount: float = 0.0
    grand_total: float = 0.0
    total_area_sqft: float = 0.0
    avg_per_sqft_incl_tax: float = 0.0
    avg_per_sqft_excl_tax: float = 0.0
    window_count: int = 0
    unit_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PricingCalculator:
    """
    Stateless pricing rules over WindowInstance / QuotationAggregate.

    ``refresh`` and the override operations mutate ``window.pricing`` in place;
    everything else is a pure function of its inputs.
    """

    # ------------------------------------------------------------------
    # 1. Unit price
    # ------------------------------------------------------------------

    def base_price(self, window: WindowInstance) -> float:
        """archetype base rate × area (sq ft), unrounded."""
        spec = window.spec
        return base_rate(window.archetype) * area_sqft(spec.width_mm, spec.height_mm)

    def adjusted_price(self, window: WindowInstance) -> float:
        """
        Formula:
            adjusted = base_rate × area_sqft × frame_multiplier × glass_multiplier
        """
        spec = window.spec
        return (
            self.base_price(window)
            * frame_multiplier(spec.frame_material)
            * glass_multiplier(spec.glass_type)
        )

    def computed_unit_price(self, window: WindowInstance) -> float:
        return round(self.adjusted_price(window), 2)

    # ------------------------------------------------------------------
    # 2. Per-window breakdown
    # ------------------------------------------------------------------

    def _computed_value(self, window: WindowInstance, field: str, unit_price: float) -> float:
        quantity = window.spec.quantity
        if field == "unit_price":
            return self.computed_unit_price(window)
        if field == "transportation_cost":
            return round(unit_price * quantity * TRANSPORT_RATE_PCT / 100.0, 2)
        if field == "loading_cost":
            return round(unit_price * quantity * LOADING_RATE_PCT / 100.0, 2)
        if field == "tax_rate":
            return DEFAULT_TAX_RATE
        raise KeyError(field)

    def refresh(self, window: WindowInstance) -> PricingBreakdown:
        """
        Recompute every non-overridden pricing field plus all derived totals.

        Overridden fields keep their manual value.
        """
        pricing = window.pricing
        overrides = set(pricing.manual_overrides)

        if "unit_price" not in overrides:
            pricing.unit_price = self.computed_unit_price(window)
        for field in MANUAL_PRICING_FIELDS:
            if field == "unit_price" or field in overrides:
                continue
            setattr(pricing, field, self._computed_value(window, field, pricing.unit_price))

        self._derive_totals(window)
        return pricing

    def _derive_totals(self, window: WindowInstance) -> None:
        pricing = window.pricing
        pricing.quantity = window.spec.quantity
        pricing.total_price = round(pricing.unit_price * pricing.quantity, 2)
        taxable = pricing.total_price + pricing.transportation_cost + pricing.loading_cost
        pricing.tax_amount = round(taxable * pricing.tax_rate / 100.0, 2)
        pricing.grand_total = round(taxable + pricing.tax_amount, 2)

    def set_manual(self, window: WindowInstance, field: str, value: float) -> PricingBreakdown:
        """
        Record a manual value for one of the overridable pricing fields.

        Raises ValidationError (and leaves pricing untouched) when the value is out of range.
        """
        if field not in MANUAL_PRICING_FIELDS:
            raise ValidationError(field, "not a manually editable pricing field", window_id=window.id)
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ValidationError(field, f"must be a number, got {value!r}", window_id=window.id) from None

        issue = self._pricing_field_issue(field, value, window.id)
        if issue is not None:
            raise issue

        pricing = window.pricing
        setattr(pricing, field, value)
        pricing.manual_overrides = sorted(set(pricing.manual_overrides) | {field})
        logger.debug("Manual %s=%s on window %s", field, value, window.id,
                     extra={"window_id": window.id})
        return self.refresh(window)

    def auto_populate(self, window: WindowInstance) -> PricingBreakdown:
        """Drop all manual overrides on this window and recompute from configuration."""
        if window.pricing.manual_overrides:
            logger.info(
                "Auto-populate cleared overrides %s on window %s",
                window.pricing.manual_overrides, window.id,
                extra={"window_id": window.id},
            )
        window.pricing.manual_overrides = []
        return self.refresh(window)

    # ------------------------------------------------------------------
    # 3. Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _pricing_field_issue(field: str, value: float, window_id: Optional[str]) -> Optional[ValidationError]:
        if field == "tax_rate":
            if not MIN_TAX_RATE <= value <= MAX_TAX_RATE:
                return ValidationError(
                    field, f"must be between {MIN_TAX_RATE:g} and {MAX_TAX_RATE:g}, got {value:g}",
                    window_id=window_id,
                )
            return None
        if value < 0:
            return ValidationError(field, f"must be non-negative, got {value:g}", window_id=window_id)
        return None

    def validate_window(self, window: WindowInstance, max_quantity: Optional[int] = None) -> List[ValidationError]:
        """Every range problem on one window; empty list when it is ready to submit."""
        issues: List[ValidationError] = []
        spec = window.spec
        cap = effective_quantity_cap(max_quantity)

        if not MIN_WIDTH_MM <= spec.width_mm <= MAX_WIDTH_MM:
            issues.append(ValidationError(
                "width_mm", f"must be between {MIN_WIDTH_MM:g} and {MAX_WIDTH_MM:g} mm, got {spec.width_mm:g}",
                window_id=window.id,
            ))
        if not MIN_HEIGHT_MM <= spec.height_mm <= MAX_HEIGHT_MM:
            issues.append(ValidationError(
                "height_mm", f"must be between {MIN_HEIGHT_MM:g} and {MAX_HEIGHT_MM:g} mm, got {spec.height_mm:g}",
                window_id=window.id,
            ))
        if not 1 <= spec.quantity <= cap:
            issues.append(ValidationError(
                "quantity", f"must be a whole number between 1 and {cap}, got {spec.quantity}",
                window_id=window.id,
            ))

        for field in MANUAL_PRICING_FIELDS:
            issue = self._pricing_field_issue(field, getattr(window.pricing, field), window.id)
            if issue is not None:
                issues.append(issue)
        return issues

    # ------------------------------------------------------------------
    # 4. Quotation roll-up
    # ------------------------------------------------------------------

    def quotation_totals(self, aggregate: QuotationAggregate) -> QuotationTotals:
        """
        Formula:
            basic_value        = Σ unit_price × quantity
            total_project_cost = basic_value + Σ transportation + Σ loading
            gst_amount         = total_project_cost × gst_rate / 100   (rate of the active window)
            grand_total        = total_project_cost + gst_amount
        """
        basic_value = sum(w.pricing.unit_price * w.spec.quantity for w in aggregate.windows)
        transportation = sum(w.pricing.transportation_cost for w in aggregate.windows)
        loading = sum(w.pricing.loading_cost for w in aggregate.windows)
        total_project_cost = basic_value + transportation + loading

        active = aggregate.window(aggregate.active_window_id) if aggregate.active_window_id else None
        gst_rate = active.pricing.tax_rate if active is not None else DEFAULT_TAX_RATE
        gst_amount = total_project_cost * gst_rate / 100.0
        grand_total = total_project_cost + gst_amount

        total_area = sum(
            area_sqft(w.spec.width_mm, w.spec.height_mm) * w.spec.quantity for w in aggregate.windows
        )
        if total_area > 0:
            avg_incl = grand_total / total_area
            avg_excl = basic_value / total_area
        else:
            avg_incl = avg_excl = 0.0

        return QuotationTotals(
            basic_value=round(basic_value, 2),
            transportation=round(transportation, 2),
            loading=round(loading, 2),
            total_project_cost=round(total_project_cost, 2),
            gst_rate=gst_rate,
            gst_amount=round(gst_amount, 2),
            grand_total=round(grand_total, 2),
            total_area_sqft=round(total_area, 3),
            avg_per_sqft_incl_tax=round(avg_incl, 2),
            avg_per_sqft_excl_tax=round(avg_excl, 2),
            window_count=len(aggregate.windows),
            unit_count=sum(w.spec.quantity for w in aggregate.windows),
        )
