"""
CatalogEngine — static archetype table and configuration pattern catalog.

Covers:
  - Nine window archetypes with display names and per-sq-ft base rates
  - Enumerated panel patterns for the multi-panel classes (sliding, bay, double-hung,
    single-hung), keyed by (archetype_class, panel_count, pattern_id)
  - Default / fallback role sequences when no pattern is selected or catalogued
  - Archetype lookup by id or display name

The catalog is a pure lookup table: nothing here mutates after import.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

from app.models.catalog_schema import ArchetypeId, ConfigurationPattern, PanelRole, WindowArchetype
from app.services.quote_errors import InvariantViolation

logger = logging.getLogger("fenestra-catalog")


# ---------------------------------------------------------------------------
# Archetypes (INR per sq ft)
# ---------------------------------------------------------------------------
ARCHETYPES: Dict[ArchetypeId, WindowArchetype] = {
    a.id: a for a in (
        WindowArchetype(id=ArchetypeId.SLIDING, name="Sliding Windows",
                        description="Horizontal sliding windows with multiple tracks", base_rate=520.0),
        WindowArchetype(id=ArchetypeId.CASEMENT, name="Casement Windows",
                        description="Side-hinged windows that open outward", base_rate=580.0),
        WindowArchetype(id=ArchetypeId.BAY, name="Bay Windows",
                        description="Protruding windows with multiple angles", base_rate=750.0),
        WindowArchetype(id=ArchetypeId.AWNING, name="Awning Windows",
                        description="Top-hinged windows that open outward", base_rate=560.0),
        WindowArchetype(id=ArchetypeId.FIXED, name="Fixed Windows",
                        description="Non-opening windows for light and view", base_rate=450.0),
        WindowArchetype(id=ArchetypeId.PICTURE, name="Picture Windows",
                        description="Large fixed windows for unobstructed views", base_rate=480.0),
        WindowArchetype(id=ArchetypeId.DOUBLE_HUNG, name="Double Hung Windows",
                        description="Two vertically sliding sashes", base_rate=620.0),
        WindowArchetype(id=ArchetypeId.SINGLE_HUNG, name="Single Hung Windows",
                        description="Bottom sash slides up, top is fixed", base_rate=560.0),
        WindowArchetype(id=ArchetypeId.PIVOT, name="Pivot Windows",
                        description="Central pivot rotation mechanism", base_rate=650.0),
    )
}


# ---------------------------------------------------------------------------
# Pattern catalog
# ---------------------------------------------------------------------------
_F = PanelRole.FIXED
_S = PanelRole.SLIDING
_C = PanelRole.CASEMENT
_A = PanelRole.AWNING
_P = PanelRole.PICTURE
_T = PanelRole.TILT_IN
_X = PanelRole.SPLIT

# (archetype_class, pattern_id, display name, roles). Order within a panel count is
# significant: the first entry is the default.
_PATTERN_ROWS: Tuple[Tuple[ArchetypeId, str, str, Tuple[PanelRole, ...]], ...] = (
    # Sliding, 1–6 panels
    (ArchetypeId.SLIDING, "1-fixed", "1 Fixed", (_F,)),
    (ArchetypeId.SLIDING, "1-sliding", "1 Sliding", (_S,)),
    (ArchetypeId.SLIDING, "2-fixed-sliding-left", "1 Fixed + 1 Sliding (Left Fixed)", (_F, _S)),
    (ArchetypeId.SLIDING, "2-fixed-sliding-right", "1 Fixed + 1 Sliding (Right Fixed)", (_S, _F)),
    (ArchetypeId.SLIDING, "2-both-sliding", "2 Sliding (Both Move)", (_S, _S)),
    (ArchetypeId.SLIDING, "3-fsf", "Fixed-Sliding-Fixed", (_F, _S, _F)),
    (ArchetypeId.SLIDING, "3-sfs", "Sliding-Fixed-Sliding", (_S, _F, _S)),
    (ArchetypeId.SLIDING, "3-fss", "Fixed-Sliding-Sliding", (_F, _S, _S)),
    (ArchetypeId.SLIDING, "3-ssf", "Sliding-Sliding-Fixed", (_S, _S, _F)),
    (ArchetypeId.SLIDING, "4-fssf", "Fixed-Sliding-Sliding-Fixed", (_F, _S, _S, _F)),
    (ArchetypeId.SLIDING, "4-sffs", "Sliding-Fixed-Fixed-Sliding", (_S, _F, _F, _S)),
    (ArchetypeId.SLIDING, "4-ffss", "Fixed-Fixed-Sliding-Sliding", (_F, _F, _S, _S)),
    (ArchetypeId.SLIDING, "4-ssff", "Sliding-Sliding-Fixed-Fixed", (_S, _S, _F, _F)),
    (ArchetypeId.SLIDING, "4-ssss", "All 4 Sliding (Stackable)", (_S, _S, _S, _S)),
    (ArchetypeId.SLIDING, "5-fsfsf", "Fixed-Sliding-Fixed-Sliding-Fixed", (_F, _S, _F, _S, _F)),
    (ArchetypeId.SLIDING, "5-sfsfs", "Sliding-Fixed-Sliding-Fixed-Sliding", (_S, _F, _S, _F, _S)),
    (ArchetypeId.SLIDING, "5-fsssf", "Fixed-Sliding-Sliding-Sliding-Fixed", (_F, _S, _S, _S, _F)),
    (ArchetypeId.SLIDING, "5-sssss", "All 5 Sliding (Stackable)", (_S, _S, _S, _S, _S)),
    (ArchetypeId.SLIDING, "6-fssssf", "Fixed-Sliding x4-Fixed", (_F, _S, _S, _S, _S, _F)),
    (ArchetypeId.SLIDING, "6-sfsfsf", "Sliding-Fixed Alternating", (_S, _F, _S, _F, _S, _F)),
    (ArchetypeId.SLIDING, "6-ffssff", "Fixed-Fixed-Sliding-Sliding-Fixed-Fixed", (_F, _F, _S, _S, _F, _F)),
    (ArchetypeId.SLIDING, "6-ssffss", "Sliding-Sliding-Fixed-Fixed-Sliding-Sliding", (_S, _S, _F, _F, _S, _S)),
    (ArchetypeId.SLIDING, "6-ssssss", "All 6 Sliding (Stackable)", (_S, _S, _S, _S, _S, _S)),
    # Bay, 3 panels (left side, centre, right side)
    (ArchetypeId.BAY, "bay-3-fixed", "3 Fixed Panels (All Fixed)", (_F, _F, _F)),
    (ArchetypeId.BAY, "bay-fcf", "Fixed - Casement - Fixed", (_F, _C, _F)),
    (ArchetypeId.BAY, "bay-cfc", "Casement - Fixed - Casement", (_C, _F, _C)),
    (ArchetypeId.BAY, "bay-sfs", "Sliding - Fixed - Sliding", (_S, _F, _S)),
    (ArchetypeId.BAY, "bay-fsf", "Fixed - Sliding - Fixed", (_F, _S, _F)),
    (ArchetypeId.BAY, "bay-faf", "Fixed - Awning - Fixed", (_F, _A, _F)),
    (ArchetypeId.BAY, "bay-cpc", "Casement - Picture - Casement", (_C, _P, _C)),
    # Double hung, 2 sashes (top first)
    (ArchetypeId.DOUBLE_HUNG, "dh-both-sliding", "2 Sliding Sashes (Both Move Vertically)", (_S, _S)),
    (ArchetypeId.DOUBLE_HUNG, "dh-top-fixed", "Top Fixed + Bottom Sliding", (_F, _S)),
    (ArchetypeId.DOUBLE_HUNG, "dh-bottom-fixed", "Top Sliding + Bottom Fixed", (_S, _F)),
    (ArchetypeId.DOUBLE_HUNG, "dh-both-fixed", "Both Fixed (False Double Hung)", (_F, _F)),
    (ArchetypeId.DOUBLE_HUNG, "dh-tilt-in", "Tilt-In Double Hung", (_T, _T)),
    (ArchetypeId.DOUBLE_HUNG, "dh-split-glass", "Split Glass Style", (_X, _X)),
    # Single hung, 2 sashes (top first)
    (ArchetypeId.SINGLE_HUNG, "sh-bottom-sliding", "Top Fixed + Bottom Sliding", (_F, _S)),
    (ArchetypeId.SINGLE_HUNG, "sh-top-sliding", "Top Sliding + Bottom Fixed", (_S, _F)),
    (ArchetypeId.SINGLE_HUNG, "sh-tilt-in", "Top Fixed + Bottom Tilt-In", (_F, _T)),
)

# Ids written by older clients that were later renamed
PATTERN_ALIASES: Dict[str, str] = {
    "6-fsssf": "6-fssssf",
}


def _build_catalog() -> Dict[Tuple[ArchetypeId, int], Tuple[ConfigurationPattern, ...]]:
    catalog: Dict[Tuple[ArchetypeId, int], List[ConfigurationPattern]] = {}
    for archetype_class, pattern_id, name, roles in _PATTERN_ROWS:
        pattern = ConfigurationPattern(
            archetype_class=archetype_class,
            panel_count=len(roles),
            pattern_id=pattern_id,
            name=name,
            roles=roles,
        )
        catalog.setdefault((archetype_class, pattern.panel_count), []).append(pattern)
    return {key: tuple(patterns) for key, patterns in catalog.items()}


_CATALOG = _build_catalog()
_BY_ID: Dict[Tuple[ArchetypeId, str], ConfigurationPattern] = {
    (p.archetype_class, p.pattern_id): p for patterns in _CATALOG.values() for p in patterns
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_archetype(archetype: Union[ArchetypeId, str]) -> WindowArchetype:
    return ARCHETYPES[ArchetypeId(archetype)]


def base_rate(archetype: Union[ArchetypeId, str]) -> float:
    return get_archetype(archetype).base_rate


def catalog_keys() -> List[Tuple[ArchetypeId, int]]:
    """Every (archetype_class, panel_count) pair that has catalogued patterns."""
    return list(_CATALOG.keys())


def get_patterns(archetype_class: Union[ArchetypeId, str], panel_count: int) -> List[ConfigurationPattern]:
    """Ordered patterns for a class and panel count; empty when none are catalogued."""
    return list(_CATALOG.get((ArchetypeId(archetype_class), int(panel_count)), ()))


def get_default_pattern(archetype_class: Union[ArchetypeId, str], panel_count: int) -> Optional[ConfigurationPattern]:
    """The first catalog entry for the panel count, or None when nothing is catalogued."""
    patterns = _CATALOG.get((ArchetypeId(archetype_class), int(panel_count)))
    return patterns[0] if patterns else None


def canonical_pattern_id(pattern_id: Optional[str]) -> Optional[str]:
    if not pattern_id:
        return None
    return PATTERN_ALIASES.get(pattern_id, pattern_id)


def find_pattern(
    archetype_class: Union[ArchetypeId, str],
    panel_count: int,
    pattern_id: Optional[str],
) -> Optional[ConfigurationPattern]:
    pattern_id = canonical_pattern_id(pattern_id)
    if pattern_id is None:
        return None
    pattern = _BY_ID.get((ArchetypeId(archetype_class), pattern_id))
    if pattern is None or pattern.panel_count != int(panel_count):
        return None
    return pattern


def resolve_pattern(
    archetype_class: Union[ArchetypeId, str],
    panel_count: int,
    pattern_id: Optional[str],
) -> Optional[ConfigurationPattern]:
    """
    Pattern to render and price for a configuration.

    No selection → the default for the panel count (None if the count is uncatalogued).
    A selection that is not catalogued for this exact panel count raises
    InvariantViolation: a stale id must never be rendered.
    """
    if not pattern_id:
        return get_default_pattern(archetype_class, panel_count)

    pattern = find_pattern(archetype_class, panel_count, pattern_id)
    if pattern is not None:
        return pattern

    other = _BY_ID.get((ArchetypeId(archetype_class), canonical_pattern_id(pattern_id)))
    if other is not None:
        raise InvariantViolation(
            f"pattern {pattern_id!r} is a {other.panel_count}-panel {other.archetype_class.value} "
            f"pattern, configuration has {panel_count} panels"
        )
    raise InvariantViolation(
        f"pattern {pattern_id!r} is not in the {ArchetypeId(archetype_class).value} catalog"
    )


def default_roles(archetype_class: Union[ArchetypeId, str], panel_count: int) -> Tuple[PanelRole, ...]:
    """
    Role sequence used when no catalog pattern applies.

    Multi-panel classes fall back to their default pattern when one exists for the
    count; otherwise each class has a fixed rule.
    """
    archetype_class = ArchetypeId(archetype_class)
    n = max(int(panel_count), 1)

    default = get_default_pattern(archetype_class, n)
    if default is not None:
        return default.roles

    if archetype_class == ArchetypeId.SLIDING:
        if n <= 2:
            return (_S,) * n
        return (_F,) + (_S,) * (n - 2) + (_F,)
    if archetype_class == ArchetypeId.BAY:
        return (_F,) * n
    if archetype_class == ArchetypeId.DOUBLE_HUNG:
        return (_S,) * n
    if archetype_class == ArchetypeId.SINGLE_HUNG:
        return (_F,) * (n - 1) + (_S,)
    if archetype_class == ArchetypeId.CASEMENT:
        return (_C,) * n
    if archetype_class == ArchetypeId.AWNING:
        return (_A,) * n
    if archetype_class == ArchetypeId.PICTURE:
        return (_P,) * n
    if archetype_class == ArchetypeId.PIVOT:
        return (PanelRole.PIVOT,) * n
    return (_F,) * n


def panel_roles(
    archetype_class: Union[ArchetypeId, str],
    panel_count: int,
    pattern_id: Optional[str] = None,
) -> Tuple[PanelRole, ...]:
    pattern = resolve_pattern(archetype_class, panel_count, pattern_id)
    if pattern is not None:
        return pattern.roles
    return default_roles(archetype_class, panel_count)


def resolve_archetype(value) -> Optional[ArchetypeId]:
    """
    Map an archetype id or display name to an ArchetypeId.

    Matching is case-insensitive: exact id, then exact display name, then the value
    as a substring of a display name (first archetype in table order wins).
    """
    if value is None:
        return None
    if isinstance(value, ArchetypeId):
        return value
    text = str(value).strip().lower()
    if not text:
        return None

    for archetype_id in ARCHETYPES:
        if text == archetype_id.value:
            return archetype_id
    for archetype_id, archetype in ARCHETYPES.items():
        if text == archetype.name.lower():
            return archetype_id

    spaced = text.replace("-", " ").replace("_", " ")
    for archetype_id, archetype in ARCHETYPES.items():
        name = archetype.name.lower()
        if spaced in name or archetype_id.value.replace("-", " ") in spaced:
            return archetype_id

    logger.debug("Unrecognised archetype value %r", value)
    return None


def pattern_ids(archetype_class: Union[ArchetypeId, str], panel_count: int) -> Sequence[str]:
    return [p.pattern_id for p in get_patterns(archetype_class, panel_count)]
