"""
Window & quotation data model — pydantic v2.

ArchetypeConfiguration is a discriminated union keyed on ``kind``: exactly one
variant is active per window, and the variant always matches the window's archetype.
Range checks (dimensions, quantity, tax) are NOT enforced here — out-of-range values
must stay editable; the costing engine validates them before submission.
"""
import uuid
from datetime import date as Date, datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from app.config import COMPANY_DEFAULTS, CURRENCY, DEFAULT_CREATED_BY, DEFAULT_TAX_RATE, QUOTE_VALIDITY_DAYS
from app.models.catalog_schema import ArchetypeId


def gen_window_id() -> str:
    return uuid.uuid4().hex


# ── Configuration variants ────────────────────────────────────────────────────

class SlidingConfiguration(BaseModel):
    kind: Literal["sliding"] = "sliding"
    panels: int = Field(2, ge=1, le=6)
    tracks: int = Field(1, ge=1, le=3)
    pattern_id: Optional[str] = None
    opening_direction: str = "left-to-right"

    @property
    def panel_count(self) -> int:
        return self.panels


class CasementConfiguration(BaseModel):
    kind: Literal["casement"] = "casement"
    panels: int = Field(1, ge=1, le=4)
    direction: str = "outward"       # outward | inward
    hinge: str = "left"              # left | right

    @property
    def panel_count(self) -> int:
        return self.panels


class BayConfiguration(BaseModel):
    kind: Literal["bay"] = "bay"
    angle: float = Field(30.0, ge=0, le=90)
    pattern_id: Optional[str] = None
    side_window_count: int = Field(2, ge=2, le=4)

    @property
    def panel_count(self) -> int:
        return self.side_window_count + 1


class AwningConfiguration(BaseModel):
    kind: Literal["awning"] = "awning"
    orientation: str = "top-hinged"
    size: str = "standard"

    @property
    def panel_count(self) -> int:
        return 1


class FixedConfiguration(BaseModel):
    kind: Literal["fixed"] = "fixed"
    shape: str = "rectangular"

    @property
    def panel_count(self) -> int:
        return 1


class PictureConfiguration(BaseModel):
    kind: Literal["picture"] = "picture"
    shape: str = "rectangular"

    @property
    def panel_count(self) -> int:
        return 1


class DoubleHungConfiguration(BaseModel):
    kind: Literal["double-hung"] = "double-hung"
    pattern_id: Optional[str] = None

    @property
    def panel_count(self) -> int:
        return 2


class SingleHungConfiguration(BaseModel):
    kind: Literal["single-hung"] = "single-hung"
    pattern_id: Optional[str] = None

    @property
    def panel_count(self) -> int:
        return 2


class PivotConfiguration(BaseModel):
    kind: Literal["pivot"] = "pivot"
    axis: str = "vertical"           # vertical | horizontal

    @property
    def panel_count(self) -> int:
        return 1


ArchetypeConfiguration = Annotated[
    Union[
        SlidingConfiguration,
        CasementConfiguration,
        BayConfiguration,
        AwningConfiguration,
        FixedConfiguration,
        PictureConfiguration,
        DoubleHungConfiguration,
        SingleHungConfiguration,
        PivotConfiguration,
    ],
    Field(discriminator="kind"),
]

CONFIGURATION_VARIANTS: Dict[ArchetypeId, type] = {
    ArchetypeId.SLIDING: SlidingConfiguration,
    ArchetypeId.CASEMENT: CasementConfiguration,
    ArchetypeId.BAY: BayConfiguration,
    ArchetypeId.AWNING: AwningConfiguration,
    ArchetypeId.FIXED: FixedConfiguration,
    ArchetypeId.PICTURE: PictureConfiguration,
    ArchetypeId.DOUBLE_HUNG: DoubleHungConfiguration,
    ArchetypeId.SINGLE_HUNG: SingleHungConfiguration,
    ArchetypeId.PIVOT: PivotConfiguration,
}

# Variants whose panels come from the pattern catalog
PATTERN_CLASSES = frozenset({
    ArchetypeId.SLIDING,
    ArchetypeId.BAY,
    ArchetypeId.DOUBLE_HUNG,
    ArchetypeId.SINGLE_HUNG,
})


def default_configuration(archetype: ArchetypeId):
    """Class-default configuration variant for an archetype."""
    return CONFIGURATION_VARIANTS[ArchetypeId(archetype)]()


# ── Physical specification ────────────────────────────────────────────────────

class WindowSpec(BaseModel):
    width_mm: float = 1000.0
    height_mm: float = 1000.0
    quantity: int = 1
    location: str = ""

    frame_material: str = "aluminum"
    frame_color: str = "white"

    glass_type: str = "single"
    glass_tint: str = "clear"
    glass_pattern: str = "none"
    glass_thickness_mm: float = 5.0

    hardware_finish: str = "standard"
    opening_type: str = "fixed"
    lock_position: str = "right"

    grille_style: str = "none"       # none | colonial | prairie | georgian | diamond
    grille_color: str = "white"

    # Comfort / energy / accessory flags
    screen_included: bool = False
    motorized: bool = False
    security: bool = False
    security_level: str = "standard"
    smart_home: bool = False
    blinds: bool = False
    weather_sealing: bool = False
    sound_insulation: bool = False
    energy_efficient: bool = False
    child_lock: bool = False
    mosquito_net: bool = False
    rain_sensor: bool = False

    notes: str = ""


# ── Pricing ───────────────────────────────────────────────────────────────────

class PricingBreakdown(BaseModel):
    unit_price: float = 0.0
    quantity: int = 1
    total_price: float = 0.0
    transportation_cost: float = 0.0
    loading_cost: float = 0.0
    tax_rate: float = DEFAULT_TAX_RATE
    tax_amount: float = 0.0
    grand_total: float = 0.0
    # Fields entered by hand; kept sorted, cleared by auto-populate
    manual_overrides: List[str] = Field(default_factory=list)


# ── Window instance ───────────────────────────────────────────────────────────

class WindowInstance(BaseModel):
    id: str = Field(default_factory=gen_window_id)
    name: str = "Window 1"
    archetype: ArchetypeId = ArchetypeId.SLIDING
    configuration: ArchetypeConfiguration = Field(default_factory=SlidingConfiguration)
    spec: WindowSpec = Field(default_factory=WindowSpec)
    pricing: PricingBreakdown = Field(default_factory=PricingBreakdown)

    @model_validator(mode="after")
    def _variant_matches_archetype(self):
        if self.configuration.kind != self.archetype.value:
            raise ValueError(
                f"configuration kind {self.configuration.kind!r} does not match "
                f"archetype {self.archetype.value!r}"
            )
        return self


# ── Quotation aggregate ───────────────────────────────────────────────────────

class QuotationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class ClientInfo(BaseModel):
    name: str = ""
    address: str = ""
    city: str = ""
    phone: str = ""
    email: str = ""
    company: str = ""


class CompanyDetails(BaseModel):
    name: str = COMPANY_DEFAULTS["name"]
    address: str = COMPANY_DEFAULTS["address"]
    phone: str = COMPANY_DEFAULTS["phone"]
    email: str = COMPANY_DEFAULTS["email"]
    website: str = COMPANY_DEFAULTS["website"]
    gstin: str = COMPANY_DEFAULTS["gstin"]


def _today() -> Date:
    return Date.today()


class QuotationAggregate(BaseModel):
    quotation_number: str
    date: Date = Field(default_factory=_today)
    valid_until: Optional[Date] = None
    client_info: ClientInfo = Field(default_factory=ClientInfo)
    company_details: CompanyDetails = Field(default_factory=CompanyDetails)
    windows: List[WindowInstance] = Field(default_factory=lambda: [WindowInstance()], min_length=1)
    active_window_id: Optional[str] = None
    status: QuotationStatus = QuotationStatus.DRAFT
    notes: str = ""
    created_by: str = DEFAULT_CREATED_BY
    last_modified_by: str = ""
    submitted_date: Optional[datetime] = None
    currency: str = CURRENCY
    # Full-fidelity encoding attached by the codec on decode; never authoritative in memory
    raw_backup: Optional[Dict[str, Any]] = Field(default=None, repr=False)

    @model_validator(mode="after")
    def _fill_defaults(self):
        if self.valid_until is None:
            self.valid_until = self.date + timedelta(days=QUOTE_VALIDITY_DAYS)
        ids = {w.id for w in self.windows}
        if self.active_window_id not in ids:
            self.active_window_id = self.windows[0].id
        return self

    def window(self, window_id: str) -> Optional[WindowInstance]:
        return next((w for w in self.windows if w.id == window_id), None)

    @property
    def active_window(self) -> WindowInstance:
        return self.window(self.active_window_id) or self.windows[0]
