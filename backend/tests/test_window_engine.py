"""
test_window_engine.py — Unit tests for QuotationEngine.

Tests cover:
  - Window add / remove / duplicate / rename / activate (naming and ordering rules)
  - Archetype switches and configuration edits (pattern clearing on panel changes)
  - Spec edits: out-of-range values stay editable, wrong types are rejected
  - Per-window manual pricing and auto-populate scope
  - Quotation lifecycle: numbering, new, submit, status changes, duplicate

All tests are pure unit tests; no database or external services required.
"""

from datetime import date, timedelta

import pytest

from app.models.catalog_schema import ArchetypeId
from app.models.window_models import (
    BayConfiguration,
    ClientInfo,
    QuotationStatus,
    SlidingConfiguration,
    WindowInstance,
)
from app.services.quote_errors import InvariantViolation, ValidationError
from app.services.window_engine import (
    format_quotation_number,
    next_quotation_number,
    next_window_name,
)


# ===========================================================================
# Class 1: Naming helpers
# ===========================================================================

class TestNaming:

    def test_next_window_name_uses_highest_number(self):
        windows = [WindowInstance(name="Window 1"), WindowInstance(name="Window 4"),
                   WindowInstance(name="Kitchen")]
        assert next_window_name(windows) == "Window 5"

    def test_next_window_name_empty(self):
        assert next_window_name([]) == "Window 1"

    def test_copy_names_count_towards_numbering(self):
        windows = [WindowInstance(name="Window 2 (Copy)")]
        assert next_window_name(windows) == "Window 3"

    def test_quotation_number_format(self):
        assert format_quotation_number(1001) == "Q-1001"
        assert format_quotation_number(7) == "Q-0007"
        assert format_quotation_number(12, {"prefix": "ADS", "separator": "/", "suffix": "/26"}) == "ADS/0012/26"

    def test_next_quotation_number(self):
        assert next_quotation_number() == "Q-1001"
        assert next_quotation_number(["Q-1001", "Q-1007", "X-9999", "junk"]) == "Q-1008"


# ===========================================================================
# Class 2: Multi-window management
# ===========================================================================

class TestWindowManagement:

    def test_add_appends_and_activates(self, engine, quotation):
        added = engine.add(quotation)
        assert [w.name for w in quotation.windows] == ["Window 1", "Window 2"]
        assert quotation.active_window_id == added.id
        assert added.pricing.unit_price > 0

    def test_add_duplicate_id_rejected(self, engine, quotation):
        with pytest.raises(InvariantViolation):
            engine.add(quotation, quotation.windows[0])

    def test_add_blank_name_gets_next_number(self, engine, quotation):
        added = engine.add(quotation, WindowInstance(name="  "))
        assert added.name == "Window 2"

    def test_remove_last_window_raises_and_leaves_aggregate(self, engine, quotation):
        before = quotation.model_dump()
        with pytest.raises(InvariantViolation):
            engine.remove(quotation, quotation.windows[0].id)
        assert quotation.model_dump() == before

    def test_remove_active_selects_neighbour(self, engine, quotation):
        first = quotation.windows[0]
        second = engine.add(quotation)
        third = engine.add(quotation)
        engine.set_active(quotation, second.id)
        engine.remove(quotation, second.id)
        assert [w.id for w in quotation.windows] == [first.id, third.id]
        assert quotation.active_window_id == first.id

    def test_remove_unknown_window(self, engine, quotation):
        engine.add(quotation)
        with pytest.raises(InvariantViolation):
            engine.remove(quotation, "missing")

    def test_duplicate_inserts_after_source(self, engine, quotation):
        engine.add(quotation)
        third = engine.add(quotation)
        second = quotation.windows[1]
        copy = engine.duplicate(quotation, second.id)

        assert copy.name == "Window 2 (Copy)"
        assert copy.id != second.id
        assert [w.name for w in quotation.windows] == [
            "Window 1", "Window 2", "Window 2 (Copy)", "Window 3",
        ]
        assert quotation.windows[3].id == third.id
        assert copy.spec == second.spec
        assert quotation.active_window_id == copy.id

    def test_duplicate_is_independent(self, engine, quotation):
        source = quotation.windows[0]
        copy = engine.duplicate(quotation, source.id)
        engine.update_spec(quotation, copy.id, width_mm=2000)
        assert source.spec.width_mm == 1000.0

    def test_rename_and_blank_rename(self, engine, quotation):
        second = engine.add(quotation)
        engine.rename(quotation, second.id, "  Bedroom  ")
        assert second.name == "Bedroom"
        engine.rename(quotation, second.id, "")
        assert second.name == "Window 2"

    def test_blank_rename_of_highest_numbered_window(self, engine, quotation):
        engine.add(quotation)
        third = engine.add(quotation)
        assert third.name == "Window 3"
        engine.rename(quotation, third.id, "   ")
        assert third.name == "Window 4"

    def test_set_active_unknown(self, engine, quotation):
        with pytest.raises(InvariantViolation):
            engine.set_active(quotation, "nope")


# ===========================================================================
# Class 3: Configuration edits
# ===========================================================================

class TestConfiguration:

    def test_change_archetype_swaps_variant_and_reprices(self, engine, quotation):
        window = quotation.windows[0]
        sliding_price = window.pricing.unit_price
        engine.change_archetype(quotation, window.id, "Bay Windows")
        assert window.archetype == ArchetypeId.BAY
        assert isinstance(window.configuration, BayConfiguration)
        assert window.configuration.panel_count == 3
        assert window.pricing.unit_price > sliding_price

    def test_change_archetype_unknown(self, engine, quotation):
        with pytest.raises(InvariantViolation):
            engine.change_archetype(quotation, quotation.windows[0].id, "skylight")

    def test_panel_change_clears_pattern(self, engine, quotation):
        window = quotation.windows[0]
        engine.select_pattern(quotation, window.id, "2-both-sliding")
        engine.update_configuration(quotation, window.id, panels=4)
        assert window.configuration.panels == 4
        assert window.configuration.pattern_id is None

    def test_panel_change_with_valid_pattern_keeps_it(self, engine, quotation):
        window = quotation.windows[0]
        engine.update_configuration(quotation, window.id, panels=4, pattern_id="4-ssss")
        assert window.configuration.pattern_id == "4-ssss"

    def test_panel_change_with_stale_pattern_raises(self, engine, quotation):
        window = quotation.windows[0]
        before = window.configuration
        with pytest.raises(InvariantViolation):
            engine.update_configuration(quotation, window.id, panels=4, pattern_id="2-both-sliding")
        assert window.configuration == before

    def test_bay_side_count_change_clears_pattern(self, engine, quotation):
        window = quotation.windows[0]
        engine.change_archetype(quotation, window.id, "bay")
        engine.select_pattern(quotation, window.id, "bay-cfc")
        engine.update_configuration(quotation, window.id, side_window_count=4)
        assert window.configuration.pattern_id is None

    def test_non_count_change_keeps_pattern(self, engine, quotation):
        window = quotation.windows[0]
        engine.select_pattern(quotation, window.id, "2-fixed-sliding-right")
        engine.update_configuration(quotation, window.id, tracks=2)
        assert window.configuration.pattern_id == "2-fixed-sliding-right"

    def test_out_of_range_configuration_rejected(self, engine, quotation):
        with pytest.raises(InvariantViolation):
            engine.update_configuration(quotation, quotation.windows[0].id, panels=7)

    def test_kind_change_rejected(self, engine, quotation):
        with pytest.raises(InvariantViolation):
            engine.update_configuration(quotation, quotation.windows[0].id, kind="bay")

    def test_select_pattern_on_casement(self, engine, quotation):
        window = quotation.windows[0]
        engine.change_archetype(quotation, window.id, "casement")
        with pytest.raises(InvariantViolation):
            engine.select_pattern(quotation, window.id, "3-fsf")

    def test_select_pattern_clears_with_none(self, engine, quotation):
        window = quotation.windows[0]
        engine.select_pattern(quotation, window.id, "2-both-sliding")
        engine.select_pattern(quotation, window.id, None)
        assert window.configuration == SlidingConfiguration()

    def test_variant_must_match_archetype(self):
        with pytest.raises(ValueError):
            WindowInstance(archetype=ArchetypeId.BAY, configuration=SlidingConfiguration())


# ===========================================================================
# Class 4: Spec edits & pricing
# ===========================================================================

class TestSpecAndPricing:

    def test_out_of_range_spec_accepted(self, engine, quotation):
        window = quotation.windows[0]
        engine.update_spec(quotation, window.id, width_mm=5000, quantity=0)
        assert window.spec.width_mm == 5000
        assert window.pricing.total_price == 0.0

    def test_unknown_spec_field(self, engine, quotation):
        with pytest.raises(ValidationError) as exc:
            engine.update_spec(quotation, quotation.windows[0].id, colour="red")
        assert exc.value.field == "colour"

    def test_wrong_type_spec_field(self, engine, quotation):
        with pytest.raises(ValidationError) as exc:
            engine.update_spec(quotation, quotation.windows[0].id, width_mm="wide")
        assert exc.value.field == "width_mm"

    def test_spec_edit_reprices(self, engine, quotation):
        window = quotation.windows[0]
        before = window.pricing.unit_price
        engine.update_spec(quotation, window.id, glass_type="triple")
        assert window.pricing.unit_price == pytest.approx(before * 1.6, abs=0.01)

    def test_auto_populate_is_per_window(self, engine, quotation):
        first = quotation.windows[0]
        second = engine.add(quotation)
        engine.set_manual_price(quotation, first.id, "unit_price", 1234)
        engine.set_manual_price(quotation, second.id, "unit_price", 4321)
        engine.auto_populate(quotation)          # active window = second
        assert second.pricing.manual_overrides == []
        assert first.pricing.manual_overrides == ["unit_price"]
        assert first.pricing.unit_price == 1234.0

    def test_totals_delegates_to_calculator(self, engine, quotation, calculator):
        assert engine.totals(quotation) == calculator.quotation_totals(quotation)


# ===========================================================================
# Class 5: Quotation lifecycle
# ===========================================================================

class TestLifecycle:

    def test_new_quotation_defaults(self, engine):
        aggregate = engine.new_quotation("Q-1002", on_date=date(2026, 1, 10))
        assert aggregate.status == QuotationStatus.DRAFT
        assert aggregate.valid_until == date(2026, 1, 10) + timedelta(days=30)
        assert len(aggregate.windows) == 1
        assert aggregate.active_window_id == aggregate.windows[0].id
        assert aggregate.created_by == "System User"
        assert aggregate.company_details.name == "ADS SYSTEMS"

    def test_new_quotation_with_archetype(self, engine):
        aggregate = engine.new_quotation("Q-1003", archetype="pivot", created_by="Meera")
        assert aggregate.windows[0].archetype == ArchetypeId.PIVOT
        assert aggregate.created_by == "Meera"

    def test_submit_valid(self, engine, quotation):
        engine.submit(quotation, submitted_by="Ravi")
        assert quotation.status == QuotationStatus.SUBMITTED
        assert quotation.submitted_date is not None
        assert quotation.last_modified_by == "Ravi"

    def test_submit_lists_every_issue(self, engine, quotation):
        quotation.client_info = ClientInfo(name="  ")
        second = engine.add(quotation)
        engine.update_spec(quotation, second.id, width_mm=100, quantity=80)
        with pytest.raises(ValidationError) as exc:
            engine.submit(quotation, max_quantity=50)
        fields = [issue.field for issue in exc.value.issues]
        assert fields == ["client_info.name", "width_mm", "quantity"]
        assert quotation.status == QuotationStatus.DRAFT

    def test_set_status(self, engine, quotation):
        engine.submit(quotation)
        engine.set_status(quotation, "approved")
        assert quotation.status == QuotationStatus.APPROVED
        engine.set_status(quotation, QuotationStatus.ARCHIVED)
        assert quotation.status == QuotationStatus.ARCHIVED

    def test_set_status_submitted_requires_submit(self, engine, quotation):
        with pytest.raises(InvariantViolation):
            engine.set_status(quotation, "submitted")

    def test_set_status_unknown(self, engine, quotation):
        with pytest.raises(InvariantViolation):
            engine.set_status(quotation, "lost")

    def test_duplicate_quotation(self, engine, mixed_quotation):
        copy = engine.duplicate_quotation(mixed_quotation, "Q-1050")
        assert copy.quotation_number == "Q-1050"
        assert copy.status == QuotationStatus.DRAFT
        assert len(copy.windows) == 3
        assert {w.id for w in copy.windows}.isdisjoint({w.id for w in mixed_quotation.windows})
        assert [w.spec for w in copy.windows] == [w.spec for w in mixed_quotation.windows]
        assert copy.windows[2].pricing.manual_overrides == ["unit_price"]
        assert copy.active_window.name == mixed_quotation.active_window.name
