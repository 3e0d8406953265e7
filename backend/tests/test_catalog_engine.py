"""
test_catalog_engine.py — Unit tests for the archetype table and pattern catalog.

Tests cover:
  - Archetype table (nine entries, base rates, display names)
  - Pattern catalog integrity (role count == panel count for every entry)
  - Default pattern per (class, panel count)
  - find_pattern / resolve_pattern including stale and renamed ids
  - Fallback role rules for uncatalogued panel counts
  - Archetype lookup by id and display name

All tests are pure unit tests; no database or external services required.
"""

import pytest

from app.models.catalog_schema import ArchetypeId, ConfigurationPattern, PanelRole
from app.services.catalog_engine import (
    ARCHETYPES,
    base_rate,
    catalog_keys,
    default_roles,
    find_pattern,
    get_default_pattern,
    get_patterns,
    panel_roles,
    pattern_ids,
    resolve_archetype,
    resolve_pattern,
)
from app.services.quote_errors import InvariantViolation

F, S, C = PanelRole.FIXED, PanelRole.SLIDING, PanelRole.CASEMENT


# ===========================================================================
# Class 1: Archetype table
# ===========================================================================

class TestArchetypes:

    def test_nine_archetypes(self):
        assert set(ARCHETYPES) == set(ArchetypeId)

    @pytest.mark.parametrize("archetype, rate", [
        ("sliding", 520.0), ("casement", 580.0), ("bay", 750.0),
        ("awning", 560.0), ("fixed", 450.0), ("picture", 480.0),
        ("double-hung", 620.0), ("single-hung", 560.0), ("pivot", 650.0),
    ])
    def test_base_rates(self, archetype, rate):
        assert base_rate(archetype) == rate

    def test_archetype_is_frozen(self):
        with pytest.raises(Exception):
            ARCHETYPES[ArchetypeId.SLIDING].base_rate = 1.0


# ===========================================================================
# Class 2: Pattern catalog integrity
# ===========================================================================

class TestPatternCatalog:

    @pytest.mark.parametrize("key", catalog_keys(), ids=lambda k: f"{k[0].value}-{k[1]}")
    def test_roles_length_matches_panel_count(self, key):
        archetype_class, panel_count = key
        for pattern in get_patterns(archetype_class, panel_count):
            assert len(pattern.roles) == panel_count
            assert pattern.panel_count == panel_count

    def test_sliding_covers_one_to_six_panels(self):
        for n in range(1, 7):
            assert get_patterns("sliding", n), n

    def test_pattern_ids_unique_per_class(self):
        for archetype_class in (ArchetypeId.SLIDING, ArchetypeId.BAY,
                                ArchetypeId.DOUBLE_HUNG, ArchetypeId.SINGLE_HUNG):
            ids = [pid for (cls, n) in catalog_keys() if cls == archetype_class
                   for pid in pattern_ids(cls, n)]
            assert len(ids) == len(set(ids))

    def test_mismatched_roles_rejected_by_schema(self):
        with pytest.raises(ValueError):
            ConfigurationPattern(
                archetype_class=ArchetypeId.SLIDING, panel_count=3,
                pattern_id="bad", name="Bad", roles=(F, S),
            )

    def test_bay_and_hung_counts(self):
        assert len(get_patterns("bay", 3)) == 7
        assert len(get_patterns("double-hung", 2)) == 6
        assert len(get_patterns("single-hung", 2)) == 3


# ===========================================================================
# Class 3: Defaults and lookups
# ===========================================================================

class TestPatternLookup:

    @pytest.mark.parametrize("archetype_class, panels, expected", [
        ("sliding", 2, "2-fixed-sliding-left"),
        ("sliding", 3, "3-fsf"),
        ("sliding", 6, "6-fssssf"),
        ("bay", 3, "bay-3-fixed"),
        ("double-hung", 2, "dh-both-sliding"),
        ("single-hung", 2, "sh-bottom-sliding"),
    ])
    def test_default_is_first_entry(self, archetype_class, panels, expected):
        assert get_default_pattern(archetype_class, panels).pattern_id == expected

    def test_no_default_for_uncatalogued_count(self):
        assert get_default_pattern("bay", 5) is None
        assert get_default_pattern("casement", 1) is None

    def test_find_pattern_requires_matching_count(self):
        assert find_pattern("sliding", 3, "3-sfs").roles == (S, F, S)
        assert find_pattern("sliding", 4, "3-sfs") is None
        assert find_pattern("sliding", 3, None) is None

    def test_resolve_without_selection_gives_default(self):
        assert resolve_pattern("sliding", 4, None).pattern_id == "4-fssf"

    def test_resolve_stale_id_raises(self):
        with pytest.raises(InvariantViolation, match="3-panel"):
            resolve_pattern("sliding", 4, "3-fsf")

    def test_resolve_unknown_id_raises(self):
        with pytest.raises(InvariantViolation):
            resolve_pattern("sliding", 2, "9-nonsense")

    def test_renamed_six_panel_id_resolves(self):
        assert resolve_pattern("sliding", 6, "6-fsssf").pattern_id == "6-fssssf"


# ===========================================================================
# Class 4: Fallback roles
# ===========================================================================

class TestDefaultRoles:

    def test_catalogued_count_uses_default_pattern(self):
        assert default_roles("sliding", 3) == (F, S, F)

    def test_bay_five_panels_all_fixed(self):
        assert default_roles("bay", 5) == (F,) * 5

    def test_casement_roles(self):
        assert default_roles("casement", 3) == (C, C, C)

    def test_single_panel_classes(self):
        assert default_roles("awning", 1) == (PanelRole.AWNING,)
        assert default_roles("picture", 1) == (PanelRole.PICTURE,)
        assert default_roles("pivot", 1) == (PanelRole.PIVOT,)
        assert default_roles("fixed", 1) == (F,)

    def test_panel_roles_prefers_selected_pattern(self):
        assert panel_roles("bay", 3, "bay-cpc") == (C, PanelRole.PICTURE, C)
        assert panel_roles("casement", 2) == (C, C)


# ===========================================================================
# Class 5: Archetype resolution
# ===========================================================================

class TestResolveArchetype:

    @pytest.mark.parametrize("value, expected", [
        ("sliding", ArchetypeId.SLIDING),
        ("Double Hung Windows", ArchetypeId.DOUBLE_HUNG),
        ("double-hung", ArchetypeId.DOUBLE_HUNG),
        ("BAY WINDOWS", ArchetypeId.BAY),
        ("Single Hung", ArchetypeId.SINGLE_HUNG),
        ("picture", ArchetypeId.PICTURE),
        (ArchetypeId.PIVOT, ArchetypeId.PIVOT),
    ])
    def test_known_values(self, value, expected):
        assert resolve_archetype(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   ", "skylight"])
    def test_unknown_values(self, value):
        assert resolve_archetype(value) is None
