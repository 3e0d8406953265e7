"""
PersistenceCodec — QuotationAggregate <-> storage record.

Encode writes two views of every window on each save:
  - ``windowSpecs[]``: flattened, camelCase fields for reporting and search
  - ``rawBackup.windows[]``: the full configuration / spec / pricing verbatim

Decode is a small pipeline:
  1. shape classification (current list, legacy single object, empty)
  2. per-window source collection
  3. per-field resolution through an explicit precedence list:
       rawBackup.windows[i]  >  rawBackup (quotation level, first window only)
       >  windowSpecs[i].specifications  >  windowSpecs[i] dimensions / pricing  >  default
  4. pattern sanity check and price refresh

Only a record that is not an object/array shape at all raises CorruptRecordError;
missing or malformed fields always fall through to a default.
"""
import json
import logging
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from app.config import CURRENCY, MANUAL_PRICING_FIELDS, QUOTE_VALIDITY_DAYS, RECORD_VERSION
from app.models.catalog_schema import ArchetypeId
from app.models.window_models import (
    CONFIGURATION_VARIANTS,
    PATTERN_CLASSES,
    ClientInfo,
    CompanyDetails,
    PricingBreakdown,
    QuotationAggregate,
    QuotationStatus,
    WindowInstance,
    WindowSpec,
    gen_window_id,
)
from app.services.catalog_engine import ARCHETYPES, canonical_pattern_id, find_pattern, resolve_archetype
from app.services.costing_engine import PricingCalculator, area_sqft
from app.services.perf_monitor import timed
from app.services.quote_errors import CorruptRecordError
from app.services.window_engine import next_window_name

logger = logging.getLogger("fenestra-codec")

_MISSING = object()
DEFAULT_SOURCE = "default"


# ---------------------------------------------------------------------------
# Field name tables (first alias is the flattened key written on encode)
# ---------------------------------------------------------------------------
SPEC_ALIASES: Dict[str, Tuple[str, ...]] = {
    "width_mm": ("width", "widthMm"),
    "height_mm": ("height", "heightMm"),
    "quantity": ("quantity",),
    "location": ("location",),
    "frame_material": ("frameMaterial", "frame.material", "frame"),
    "frame_color": ("frameColor", "frame.color", "color"),
    "glass_type": ("glass", "glassType"),
    "glass_tint": ("glassTint", "tint"),
    "glass_pattern": ("glassPattern",),
    "glass_thickness_mm": ("glassThickness", "glassThicknessMm"),
    "hardware_finish": ("hardware", "hardwareFinish"),
    "opening_type": ("openingType", "opening"),
    "lock_position": ("lockPosition",),
    "grille_style": ("grilleStyle", "grille.style", "grilles"),
    "grille_color": ("grillColor", "grilleColor", "grille.color"),
    "screen_included": ("screenIncluded", "screen"),
    "motorized": ("motorized",),
    "security": ("security",),
    "security_level": ("securityLevel", "security"),
    "smart_home": ("smartHome",),
    "blinds": ("blinds",),
    "weather_sealing": ("weatherSealing", "weatherStripping"),
    "sound_insulation": ("soundInsulation",),
    "energy_efficient": ("energyEfficient",),
    "child_lock": ("childLock",),
    "mosquito_net": ("mosquitoNet",),
    "rain_sensor": ("rainSensor",),
    "notes": ("notes",),
}

# Numeric fields also found outside ``specifications`` on a window entry
SPEC_NUMERIC_PATHS: Dict[str, Tuple[str, ...]] = {
    "width_mm": ("dimensions.width",),
    "height_mm": ("dimensions.height",),
    "quantity": ("pricing.quantity", "dimensions.quantity"),
}

CONFIG_ALIASES: Dict[str, Tuple[str, ...]] = {
    "panels": ("panels", "panelCount"),
    "tracks": ("tracks",),
    "pattern_id": ("patternId", "combination", "pattern"),
    "opening_direction": ("openingDirection",),
    "direction": ("direction", "openingDirection"),
    "hinge": ("hinge", "hingeSide"),
    "angle": ("angle", "bayAngle"),
    "side_window_count": ("sideWindowCount",),
    "orientation": ("orientation",),
    "size": ("size",),
    "shape": ("shape",),
    "axis": ("axis", "pivotAxis"),
}

# Quotation-level legacy configuration blocks
LEGACY_CONFIG_BLOCKS: Dict[ArchetypeId, str] = {
    ArchetypeId.SLIDING: "slidingConfig",
    ArchetypeId.CASEMENT: "casementConfig",
    ArchetypeId.BAY: "bayConfig",
    ArchetypeId.AWNING: "awningConfig",
    ArchetypeId.DOUBLE_HUNG: "doubleHungConfig",
    ArchetypeId.SINGLE_HUNG: "singleHungConfig",
    ArchetypeId.PIVOT: "pivotConfig",
}

# Extra names used only inside those legacy blocks
LEGACY_BLOCK_ALIASES: Dict[str, Tuple[str, ...]] = {
    "direction": ("openingType",),
}

PRICING_ALIASES: Dict[str, Tuple[str, ...]] = {
    "unit_price": ("unitPrice",),
    "transportation_cost": ("transportationCost", "transportation"),
    "loading_cost": ("loadingCost", "loading"),
    "tax_rate": ("taxRate", "gstRate"),
}

CLIENT_FIELDS = tuple(ClientInfo.model_fields)
COMPANY_FIELDS = tuple(CompanyDetails.model_fields)


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------

class Source(NamedTuple):
    """
    One precedence level: a label for diagnostics, the data, and the paths to try in it.

    ``keep_blank`` marks levels written verbatim by ``encode`` (the per-window raw backup
    and the top-level quotation fields): a blank string there is a value the user chose.
    Legacy and flattened levels stored ``''`` as a placeholder, so blanks fall through.
    """
    label: str
    data: Any
    paths: Tuple[str, ...]
    keep_blank: bool = False


def is_undefined(value: Any, keep_blank: bool = False) -> bool:
    """Missing and None are undefined; blank strings too unless ``keep_blank``. False and 0 are values."""
    if value is _MISSING or value is None:
        return True
    return not keep_blank and isinstance(value, str) and not value.strip()


def dig(data: Any, path: str) -> Any:
    current = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def resolve_with_source(
    field: str,
    sources: Sequence[Source],
    coerce: Optional[Callable[[Any], Any]] = None,
    default: Any = None,
) -> Tuple[Any, str]:
    """
    First defined, coercible value for ``field`` and the label of the source it came from.

    Sources are tried in order, and within a source its paths in order. A value that
    fails coercion (TypeError / ValueError) is skipped, not fatal.
    """
    for source in sources:
        if not isinstance(source.data, Mapping):
            continue
        for path in source.paths:
            raw = dig(source.data, path)
            if is_undefined(raw, source.keep_blank):
                continue
            if coerce is None:
                return raw, f"{source.label}.{path}"
            try:
                return coerce(raw), f"{source.label}.{path}"
            except (TypeError, ValueError) as exc:
                logger.debug("Skipping %s=%r from %s.%s: %s", field, raw, source.label, path, exc)
    return default, DEFAULT_SOURCE


def resolve(
    field: str,
    sources: Sequence[Source],
    coerce: Optional[Callable[[Any], Any]] = None,
    default: Any = None,
) -> Any:
    return resolve_with_source(field, sources, coerce, default)[0]


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def model_field_coercer(model: type, field: str) -> Callable[[Any], Any]:
    """Coerce/validate a single value using the model's own field rules."""
    def coerce(raw: Any) -> Any:
        return getattr(model.model_validate({field: raw}), field)
    return coerce


def coerce_archetype(raw: Any) -> ArchetypeId:
    if isinstance(raw, Mapping):
        raw = raw.get("id") or raw.get("name")
    if not isinstance(raw, (str, ArchetypeId)):
        raise TypeError(f"archetype must be a string, got {type(raw).__name__}")
    archetype = resolve_archetype(raw)
    if archetype is None:
        raise ValueError(f"unknown archetype {raw!r}")
    return archetype


def coerce_str(raw: Any) -> str:
    if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
        raise TypeError(f"expected text, got {type(raw).__name__}")
    return str(raw)


def coerce_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise TypeError(f"expected ISO date, got {type(raw).__name__}")
    text = raw.strip()
    if len(text) > 10:
        return parse_datetime(text).date()
    return date.fromisoformat(text)


def parse_datetime(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str):
        raise TypeError(f"expected ISO datetime, got {type(raw).__name__}")
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def coerce_status(raw: Any) -> QuotationStatus:
    if not isinstance(raw, str):
        raise TypeError("status must be a string")
    return QuotationStatus(raw.strip().lower())


def coerce_overrides(raw: Any) -> List[str]:
    if not isinstance(raw, (list, tuple)):
        raise TypeError("manual overrides must be a list")
    return sorted({f for f in raw if f in MANUAL_PRICING_FIELDS})


def _mapping(value: Any) -> Optional[Mapping]:
    return value if isinstance(value, Mapping) else None


# ---------------------------------------------------------------------------
# Record shape classification
# ---------------------------------------------------------------------------

class RecordShape(str, Enum):
    CURRENT = "current"      # windowSpecs is a non-empty array
    LEGACY = "legacy"        # windowSpecs is one flattened object
    EMPTY = "empty"          # no windowSpecs (or an empty array)


class WindowSources(NamedTuple):
    index: int
    entry: Mapping                 # windowSpecs[i] (or {} when absent)
    raw_window: Optional[Mapping]  # rawBackup.windows[i]
    raw_quote: Optional[Mapping]   # quotation-level rawBackup, first window only
    record: Mapping


def classify_record(record: Mapping) -> RecordShape:
    specs = record.get("windowSpecs")
    if specs is None:
        return RecordShape.EMPTY
    if isinstance(specs, Mapping):
        return RecordShape.LEGACY
    if isinstance(specs, list):
        return RecordShape.CURRENT if specs else RecordShape.EMPTY
    raise CorruptRecordError(f"windowSpecs must be an array or object, got {type(specs).__name__}")


def _window_entries(shape: RecordShape, record: Mapping) -> List[Mapping]:
    if shape == RecordShape.CURRENT:
        entries = []
        for i, entry in enumerate(record["windowSpecs"]):
            if not isinstance(entry, Mapping):
                logger.warning("windowSpecs[%d] is %s, using defaults", i, type(entry).__name__)
                entry = {}
            entries.append(entry)
        return entries
    if shape == RecordShape.LEGACY:
        return [record["windowSpecs"]]
    return [{}]


def _raw_backup(record: Mapping) -> Tuple[Optional[Mapping], List[Optional[Mapping]]]:
    raw = record.get("rawBackup")
    if raw is None:
        return None, []
    if not isinstance(raw, Mapping):
        raise CorruptRecordError(f"rawBackup must be an object, got {type(raw).__name__}")
    windows = raw.get("windows")
    if windows is None:
        return raw, []
    if not isinstance(windows, list):
        raise CorruptRecordError(f"rawBackup.windows must be an array, got {type(windows).__name__}")
    return raw, [_mapping(w) for w in windows]


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

class PersistenceCodec:
    """Stateless encoder / decoder; the pricing calculator re-derives totals on decode."""

    def __init__(self, calculator: Optional[PricingCalculator] = None) -> None:
        self.calculator = calculator or PricingCalculator()

    # ------------------------------------------------------------------
    # Encode
    # ------------------------------------------------------------------

    @timed
    def encode(self, aggregate: QuotationAggregate) -> Dict[str, Any]:
        totals = self.calculator.quotation_totals(aggregate)
        first = aggregate.windows[0]
        return {
            "version": RECORD_VERSION,
            "quotationNumber": aggregate.quotation_number,
            "date": aggregate.date.isoformat(),
            "validUntil": aggregate.valid_until.isoformat() if aggregate.valid_until else None,
            "status": aggregate.status.value,
            "clientInfo": aggregate.client_info.model_dump(),
            "companyDetails": aggregate.company_details.model_dump(),
            "notes": aggregate.notes,
            "createdBy": aggregate.created_by,
            "lastModifiedBy": aggregate.last_modified_by,
            "submittedDate": aggregate.submitted_date.isoformat() if aggregate.submitted_date else None,
            "selectedWindowType": ARCHETYPES[first.archetype].name,
            "windowSpecs": [self._flatten_window(w) for w in aggregate.windows],
            "pricing": {
                "basicValue": totals.basic_value,
                "transportation": totals.transportation,
                "loading": totals.loading,
                "subtotal": totals.total_project_cost,
                "taxRate": totals.gst_rate,
                "tax": totals.gst_amount,
                "total": totals.grand_total,
                "grandTotal": totals.grand_total,
                "currency": aggregate.currency,
            },
            "rawBackup": {
                "windows": [self._raw_window(w) for w in aggregate.windows],
                "activeWindowId": aggregate.active_window_id,
            },
        }

    @staticmethod
    def _raw_window(window: WindowInstance) -> Dict[str, Any]:
        return {
            "id": window.id,
            "name": window.name,
            "archetype": window.archetype.value,
            "configuration": window.configuration.model_dump(mode="json"),
            "spec": window.spec.model_dump(mode="json"),
            "pricing": window.pricing.model_dump(mode="json"),
            "manualOverrides": list(window.pricing.manual_overrides),
        }

    @staticmethod
    def _flatten_window(window: WindowInstance) -> Dict[str, Any]:
        spec = window.spec
        config = window.configuration
        pricing = window.pricing
        area = area_sqft(spec.width_mm, spec.height_mm)

        specifications = {
            SPEC_ALIASES[field][0]: getattr(spec, field)
            for field in SPEC_ALIASES
            if field not in SPEC_NUMERIC_PATHS and "." not in SPEC_ALIASES[field][0]
        }
        specifications.update({
            "frame": {"material": spec.frame_material, "color": spec.frame_color},
            "grille": {
                "enabled": spec.grille_style not in ("", "none"),
                "style": spec.grille_style,
                "color": spec.grille_color,
            },
            "panels": config.panel_count,
        })
        for field, value in config.model_dump(mode="json").items():
            if field in ("kind", "panels"):
                continue
            specifications[CONFIG_ALIASES.get(field, (field,))[0]] = value

        return {
            "id": window.id,
            "name": window.name,
            "location": spec.location,
            "type": window.archetype.value,
            "dimensions": {"width": spec.width_mm, "height": spec.height_mm},
            "specifications": specifications,
            "pricing": {
                "sqFtPrice": round(pricing.unit_price / area, 2) if area > 0 else 0.0,
                "quantity": pricing.quantity,
                "unitPrice": pricing.unit_price,
                "totalPrice": pricing.total_price,
                "transportationCost": pricing.transportation_cost,
                "loadingCost": pricing.loading_cost,
                "taxRate": pricing.tax_rate,
                "taxAmount": pricing.tax_amount,
                "grandTotal": pricing.grand_total,
            },
        }

    # ------------------------------------------------------------------
    # Decode
    # ------------------------------------------------------------------

    @timed
    def decode(self, record: Any, quotation_number: Optional[str] = None) -> QuotationAggregate:
        record = self._load_record(record)
        shape = classify_record(record)
        raw_quote, raw_windows = _raw_backup(record)

        windows: List[WindowInstance] = []
        for i, entry in enumerate(_window_entries(shape, record)):
            sources = WindowSources(
                index=i,
                entry=entry,
                raw_window=raw_windows[i] if i < len(raw_windows) else None,
                raw_quote=raw_quote if i == 0 else None,
                record=record,
            )
            windows.append(self._decode_window(sources, windows))

        aggregate = self._decode_quotation(record, windows, raw_quote, quotation_number)
        logger.info(
            "Decoded %s (%s shape, %d window(s))", aggregate.quotation_number, shape.value, len(windows),
            extra={"quotation_number": aggregate.quotation_number},
        )
        return aggregate

    def decode_or_default(self, record: Any, quotation_number: Optional[str] = None) -> QuotationAggregate:
        """Decode, or fall back to one default window when the record is not decodable at all."""
        try:
            return self.decode(record, quotation_number)
        except CorruptRecordError as exc:
            number = quotation_number
            if number is None and isinstance(record, Mapping) and isinstance(record.get("quotationNumber"), str):
                number = record["quotationNumber"]
            logger.warning(
                "Corrupt record %s, starting from a default window: %s", number, exc,
                extra={"quotation_number": number},
            )
            window = WindowInstance()
            self.calculator.refresh(window)
            return QuotationAggregate(quotation_number=number or "", windows=[window])

    @staticmethod
    def _load_record(record: Any) -> Mapping:
        if isinstance(record, (bytes, bytearray)):
            record = record.decode("utf-8", errors="replace")
        if isinstance(record, str):
            try:
                record = json.loads(record)
            except ValueError as exc:
                raise CorruptRecordError(f"record is not valid JSON: {exc}") from exc
        if not isinstance(record, Mapping):
            raise CorruptRecordError(f"record must be an object, got {type(record).__name__}")
        return record

    # -- windows --------------------------------------------------------

    def _decode_window(self, src: WindowSources, previous: List[WindowInstance]) -> WindowInstance:
        raw_w = src.raw_window
        raw_q = src.raw_quote
        entry = src.entry
        label = f"windowSpecs[{src.index}]"
        raw_label = f"rawBackup.windows[{src.index}]"

        taken = {w.id for w in previous}
        window_id = resolve("id", [
            Source(raw_label, raw_w, ("id",)),
            Source(label, entry, ("id",)),
        ], coerce_str)
        if not window_id or window_id in taken:
            window_id = gen_window_id()

        name = resolve("name", [
            Source(raw_label, raw_w, ("name",), keep_blank=True),
            Source("rawBackup", raw_q, ("name",)),
            Source(label, entry, ("name",)),
        ], coerce_str)
        if name is None:
            name = next_window_name(previous)

        archetype = resolve("archetype", [
            Source(raw_label, raw_w, ("archetype",)),
            Source("rawBackup", raw_q, ("archetype", "selectedWindowType")),
            Source(label, entry, ("type", "windowType")),
            Source("record", src.record, ("selectedWindowType", "windowType")),
        ], coerce_archetype, ArchetypeId.SLIDING)

        configuration = self._decode_configuration(src, archetype)
        spec = self._decode_spec(src)
        pricing = self._decode_pricing(src)

        window = WindowInstance(
            id=window_id,
            name=name,
            archetype=archetype,
            configuration=configuration,
            spec=spec,
            pricing=pricing,
        )
        self.calculator.refresh(window)
        return window

    def _decode_configuration(self, src: WindowSources, archetype: ArchetypeId):
        variant = CONFIGURATION_VARIANTS[archetype]
        raw_label = f"rawBackup.windows[{src.index}].configuration"

        def matching(config: Any) -> Optional[Mapping]:
            # A stored configuration for another archetype contributes nothing
            config = _mapping(config)
            if config is None or config.get("kind") not in (None, archetype.value):
                return None
            return config

        raw_config = matching(dig(src.raw_window, "configuration"))
        quote_config = matching(dig(src.raw_quote, "configuration"))
        legacy_block = None
        if src.index == 0 and archetype in LEGACY_CONFIG_BLOCKS:
            legacy_block = _mapping(src.record.get(LEGACY_CONFIG_BLOCKS[archetype]))
        flat_specs = _mapping(src.entry.get("specifications"))

        values: Dict[str, Any] = {}
        for field in variant.model_fields:
            if field == "kind":
                continue
            aliases = CONFIG_ALIASES.get(field, (field,))
            value = resolve(field, [
                Source(raw_label, raw_config, (field,), keep_blank=True),
                Source("rawBackup.configuration", quote_config, (field,) + aliases),
                Source(
                    LEGACY_CONFIG_BLOCKS.get(archetype, "legacyConfig"), legacy_block,
                    (field,) + aliases + LEGACY_BLOCK_ALIASES.get(field, ()),
                ),
                Source(f"windowSpecs[{src.index}].specifications", flat_specs, aliases),
            ], model_field_coercer(variant, field), _MISSING)
            if value is not _MISSING:
                values[field] = value

        configuration = variant(**values)
        if archetype in PATTERN_CLASSES and configuration.pattern_id is not None:
            pattern_id = canonical_pattern_id(configuration.pattern_id)
            if find_pattern(archetype, configuration.panel_count, pattern_id) is None:
                logger.warning(
                    "Clearing stale pattern %r for %d-panel %s window",
                    configuration.pattern_id, configuration.panel_count, archetype.value,
                )
                pattern_id = None
            configuration = configuration.model_copy(update={"pattern_id": pattern_id})
        return configuration

    def _decode_spec(self, src: WindowSources) -> WindowSpec:
        raw_spec = _mapping(dig(src.raw_window, "spec"))
        quote_spec = _mapping(dig(src.raw_quote, "spec"))
        flat_specs = _mapping(src.entry.get("specifications"))
        raw_label = f"rawBackup.windows[{src.index}].spec"
        label = f"windowSpecs[{src.index}]"

        values: Dict[str, Any] = {}
        for field, aliases in SPEC_ALIASES.items():
            value = resolve(field, [
                Source(raw_label, raw_spec, (field,), keep_blank=True),
                Source("rawBackup.spec", quote_spec, (field,) + aliases),
                Source(f"{label}.specifications", flat_specs, aliases),
                Source(label, src.entry, aliases + SPEC_NUMERIC_PATHS.get(field, ())),
            ], model_field_coercer(WindowSpec, field), _MISSING)
            if value is not _MISSING:
                values[field] = value
        return WindowSpec(**values)

    def _decode_pricing(self, src: WindowSources) -> PricingBreakdown:
        raw_pricing = _mapping(dig(src.raw_window, "pricing"))
        quote_pricing = _mapping(dig(src.raw_quote, "pricing"))
        flat_pricing = _mapping(src.entry.get("pricing"))
        record_pricing = _mapping(src.record.get("pricing")) if src.index == 0 else None
        raw_label = f"rawBackup.windows[{src.index}]"

        values: Dict[str, Any] = {}
        found: List[str] = []
        for field, aliases in PRICING_ALIASES.items():
            value, origin = resolve_with_source(field, [
                Source(f"{raw_label}.pricing", raw_pricing, (field,)),
                Source("rawBackup.pricing", quote_pricing, (field,) + aliases),
                Source(f"windowSpecs[{src.index}].pricing", flat_pricing, aliases),
                Source("record.pricing", record_pricing, aliases),
            ], model_field_coercer(PricingBreakdown, field), _MISSING)
            if value is not _MISSING:
                logger.debug("Window %d %s resolved from %s", src.index, field, origin)
                values[field] = value
                found.append(field)

        overrides = resolve("manual_overrides", [
            Source(raw_label, src.raw_window, ("manualOverrides",)),
            Source(f"{raw_label}.pricing", raw_pricing, ("manual_overrides",)),
            Source("rawBackup.pricing", quote_pricing, ("manual_overrides", "manualOverrides")),
        ], coerce_overrides, _MISSING)
        if overrides is _MISSING:
            # No override bookkeeping stored: keep every stored price as entered
            overrides = sorted(found)

        # Tax rate defaults when not overridden; other values are recomputed on refresh
        return PricingBreakdown(**values, manual_overrides=overrides)

    # -- quotation -------------------------------------------------------

    def _decode_quotation(
        self,
        record: Mapping,
        windows: List[WindowInstance],
        raw_quote: Optional[Mapping],
        quotation_number: Optional[str],
    ) -> QuotationAggregate:
        def field(name: str, paths: Tuple[str, ...], coerce=coerce_str, default=None, keep_blank=False):
            return resolve(name, [Source("record", record, paths, keep_blank)], coerce, default)

        number = field("quotationNumber", ("quotationNumber", "quoteNumber")) or quotation_number or ""
        on_date = field("date", ("date", "createdAt"), coerce_date, date.today())
        valid_until = field("validUntil", ("validUntil",), coerce_date,
                            on_date + timedelta(days=QUOTE_VALIDITY_DAYS))

        client_values = {
            f: field(f"clientInfo.{f}", (f"clientInfo.{f}",), keep_blank=True) for f in CLIENT_FIELDS
        }
        if client_values["name"] is None:
            client_values["name"] = field("clientName", ("clientName",))
        client_info = ClientInfo(**{f: v if v is not None else "" for f, v in client_values.items()})

        company_defaults = CompanyDetails()
        company_details = CompanyDetails(**{
            f: field(f"companyDetails.{f}", (f"companyDetails.{f}",),
                     default=getattr(company_defaults, f), keep_blank=True)
            for f in COMPANY_FIELDS
        })

        kwargs: Dict[str, Any] = {}
        created_by = field("createdBy", ("createdBy",), keep_blank=True)
        if created_by is not None:
            kwargs["created_by"] = created_by

        ids = {w.id for w in windows}
        active_window_id = resolve("activeWindowId", [
            Source("rawBackup", raw_quote, ("activeWindowId",)),
        ], coerce_str)
        if active_window_id not in ids:
            active_window_id = windows[0].id

        return QuotationAggregate(
            quotation_number=number,
            date=on_date,
            valid_until=valid_until,
            client_info=client_info,
            company_details=company_details,
            windows=windows,
            active_window_id=active_window_id,
            status=field("status", ("status",), coerce_status, QuotationStatus.DRAFT),
            notes=field("notes", ("notes",), default="", keep_blank=True),
            last_modified_by=field("lastModifiedBy", ("lastModifiedBy",), default="", keep_blank=True),
            submitted_date=field("submittedDate", ("submittedDate",), parse_datetime),
            currency=field("currency", ("pricing.currency", "currency"), default=CURRENCY),
            raw_backup=dict(raw_quote) if raw_quote is not None else None,
            **kwargs,
        )

