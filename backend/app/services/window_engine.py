"""
QuotationEngine — multi-window management and quotation lifecycle.

Every operation mutates the in-memory QuotationAggregate synchronously and
re-prices the touched window inline. Structural failures raise InvariantViolation
and leave the aggregate unchanged; range problems are only reported at submit time.
"""
import logging
import re
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from app.config import QUOTATION_NUMBER_SETTINGS
from app.models.catalog_schema import ArchetypeId
from app.models.window_models import (
    CONFIGURATION_VARIANTS,
    PATTERN_CLASSES,
    ClientInfo,
    CompanyDetails,
    QuotationAggregate,
    QuotationStatus,
    WindowInstance,
    WindowSpec,
    default_configuration,
    gen_window_id,
)
from app.services.catalog_engine import resolve_archetype, resolve_pattern
from app.services.costing_engine import PricingCalculator, QuotationTotals
from app.services.quote_errors import InvariantViolation, ValidationError

logger = logging.getLogger("fenestra-quotation")

_WINDOW_NAME_RE = re.compile(r"^Window (\d+)\b")
COPY_SUFFIX = " (Copy)"


def next_window_name(windows: Iterable[WindowInstance]) -> str:
    """'Window N' with N one past the highest number in use (never the count)."""
    used = [
        int(m.group(1))
        for m in (_WINDOW_NAME_RE.match(w.name or "") for w in windows)
        if m
    ]
    return f"Window {max(used, default=0) + 1}"


def format_quotation_number(number: int, settings: Optional[dict] = None) -> str:
    s = {**QUOTATION_NUMBER_SETTINGS, **(settings or {})}
    return f"{s['prefix']}{s['separator']}{int(number):0{int(s['pad_width'])}d}{s['suffix']}"


def next_quotation_number(existing: Iterable[str] = (), settings: Optional[dict] = None) -> str:
    """
    Next number in the configured series, e.g. ``Q-1001``.

    Numbers in ``existing`` that follow the same prefix/separator/suffix advance the
    counter; anything else is ignored.
    """
    s = {**QUOTATION_NUMBER_SETTINGS, **(settings or {})}
    pattern = re.compile(
        "^" + re.escape(f"{s['prefix']}{s['separator']}") + r"(\d+)" + re.escape(str(s["suffix"])) + "$"
    )
    highest = int(s["starting_number"]) - 1
    for number in existing:
        m = pattern.match(number or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return format_quotation_number(highest + 1, s)


class QuotationEngine:
    """
    Window-level and quotation-level operations over a QuotationAggregate.

    The pricing calculator is injected so callers can share one instance; the engine
    itself holds no per-quotation state.
    """

    def __init__(self, calculator: Optional[PricingCalculator] = None) -> None:
        self.calculator = calculator or PricingCalculator()

    # ------------------------------------------------------------------
    # Window creation & lookup
    # ------------------------------------------------------------------

    def create_default(
        self,
        archetype: Union[ArchetypeId, str, None] = None,
        name: str = "Window 1",
    ) -> WindowInstance:
        archetype_id = resolve_archetype(archetype) if archetype is not None else ArchetypeId.SLIDING
        if archetype_id is None:
            raise InvariantViolation(f"unknown archetype {archetype!r}")
        window = WindowInstance(
            name=name,
            archetype=archetype_id,
            configuration=default_configuration(archetype_id),
        )
        self.calculator.refresh(window)
        return window

    def get(self, aggregate: QuotationAggregate, window_id: str) -> WindowInstance:
        window = aggregate.window(window_id)
        if window is None:
            raise InvariantViolation(f"window {window_id!r} is not part of {aggregate.quotation_number}")
        return window

    def _index(self, aggregate: QuotationAggregate, window_id: str) -> int:
        for i, window in enumerate(aggregate.windows):
            if window.id == window_id:
                return i
        raise InvariantViolation(f"window {window_id!r} is not part of {aggregate.quotation_number}")

    # ------------------------------------------------------------------
    # Multi-window management
    # ------------------------------------------------------------------

    def add(self, aggregate: QuotationAggregate, instance: Optional[WindowInstance] = None) -> WindowInstance:
        """Append a window (a fresh default when none is given) and make it active."""
        if instance is None:
            instance = self.create_default(name=next_window_name(aggregate.windows))
        elif aggregate.window(instance.id) is not None:
            raise InvariantViolation(f"window {instance.id!r} is already in {aggregate.quotation_number}")
        if not (instance.name or "").strip():
            instance.name = next_window_name(aggregate.windows)
        self.calculator.refresh(instance)
        aggregate.windows.append(instance)
        aggregate.active_window_id = instance.id
        return instance

    def remove(self, aggregate: QuotationAggregate, window_id: str) -> WindowInstance:
        index = self._index(aggregate, window_id)
        if len(aggregate.windows) == 1:
            raise InvariantViolation("a quotation must keep at least one window")

        removed = aggregate.windows.pop(index)
        if aggregate.active_window_id == window_id:
            aggregate.active_window_id = aggregate.windows[max(index - 1, 0)].id
        logger.debug("Removed window %s", window_id, extra={"window_id": window_id})
        return removed

    def duplicate(self, aggregate: QuotationAggregate, window_id: str) -> WindowInstance:
        """Copy a window under a new id, named '<name> (Copy)', right after the source."""
        index = self._index(aggregate, window_id)
        source = aggregate.windows[index]
        copy = source.model_copy(deep=True, update={"id": gen_window_id(), "name": f"{source.name}{COPY_SUFFIX}"})
        aggregate.windows.insert(index + 1, copy)
        aggregate.active_window_id = copy.id
        return copy

    def rename(self, aggregate: QuotationAggregate, window_id: str, name: Optional[str]) -> WindowInstance:
        """A blank name numbers the window past every "Window N", its own current name included."""
        window = self.get(aggregate, window_id)
        name = (name or "").strip()
        if not name:
            name = next_window_name(aggregate.windows)
        window.name = name
        return window

    def set_active(self, aggregate: QuotationAggregate, window_id: str) -> WindowInstance:
        window = self.get(aggregate, window_id)
        aggregate.active_window_id = window.id
        return window

    # ------------------------------------------------------------------
    # Configuration & spec edits
    # ------------------------------------------------------------------

    def change_archetype(
        self,
        aggregate: QuotationAggregate,
        window_id: str,
        archetype: Union[ArchetypeId, str],
    ) -> WindowInstance:
        window = self.get(aggregate, window_id)
        archetype_id = resolve_archetype(archetype)
        if archetype_id is None:
            raise InvariantViolation(f"unknown archetype {archetype!r}")
        if archetype_id != window.archetype:
            window.configuration = default_configuration(archetype_id)
            window.archetype = archetype_id
        self.calculator.refresh(window)
        return window

    def update_configuration(self, aggregate: QuotationAggregate, window_id: str, **changes) -> WindowInstance:
        """
        Apply configuration fields for the window's current variant.

        A panel-count change clears ``pattern_id`` unless the same call selects a
        pattern catalogued for the new count.
        """
        window = self.get(aggregate, window_id)
        current = window.configuration
        if "kind" in changes and changes["kind"] != current.kind:
            raise InvariantViolation("use change_archetype to switch configuration kind")

        variant = CONFIGURATION_VARIANTS[window.archetype]
        try:
            updated = variant.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as exc:
            raise InvariantViolation(f"invalid {current.kind} configuration: {exc.errors()[0]['msg']}") from exc

        if window.archetype in PATTERN_CLASSES:
            count_changed = updated.panel_count != current.panel_count
            if "pattern_id" in changes and changes["pattern_id"]:
                pattern = resolve_pattern(window.archetype, updated.panel_count, updated.pattern_id)
                updated = updated.model_copy(update={"pattern_id": pattern.pattern_id})
            elif count_changed and updated.pattern_id is not None:
                logger.debug(
                    "Panel count %d -> %d cleared pattern %s",
                    current.panel_count, updated.panel_count, updated.pattern_id,
                    extra={"window_id": window_id},
                )
                updated = updated.model_copy(update={"pattern_id": None})

        window.configuration = updated
        self.calculator.refresh(window)
        return window

    def select_pattern(self, aggregate: QuotationAggregate, window_id: str, pattern_id: Optional[str]) -> WindowInstance:
        window = self.get(aggregate, window_id)
        if window.archetype not in PATTERN_CLASSES:
            raise InvariantViolation(f"{window.archetype.value} windows have no pattern catalog")
        if pattern_id:
            pattern = resolve_pattern(window.archetype, window.configuration.panel_count, pattern_id)
            pattern_id = pattern.pattern_id
        window.configuration = window.configuration.model_copy(update={"pattern_id": pattern_id or None})
        self.calculator.refresh(window)
        return window

    def update_spec(self, aggregate: QuotationAggregate, window_id: str, **changes) -> WindowInstance:
        """
        Edit spec fields. Out-of-range values are accepted; only wrong types or
        unknown field names raise ValidationError.
        """
        window = self.get(aggregate, window_id)
        unknown = sorted(set(changes) - set(WindowSpec.model_fields))
        if unknown:
            raise ValidationError(unknown[0], "not a window spec field", window_id=window_id)
        try:
            window.spec = WindowSpec.model_validate({**window.spec.model_dump(), **changes})
        except PydanticValidationError as exc:
            err = exc.errors()[0]
            field = str(err["loc"][0]) if err.get("loc") else "spec"
            raise ValidationError(field, err["msg"], window_id=window_id) from exc
        self.calculator.refresh(window)
        return window

    def set_manual_price(self, aggregate: QuotationAggregate, window_id: str, field: str, value: float) -> WindowInstance:
        window = self.get(aggregate, window_id)
        self.calculator.set_manual(window, field, value)
        return window

    def auto_populate(self, aggregate: QuotationAggregate, window_id: Optional[str] = None) -> WindowInstance:
        """Recompute pricing for one window (the active one by default); other windows keep overrides."""
        window = self.get(aggregate, window_id or aggregate.active_window_id)
        self.calculator.auto_populate(window)
        return window

    def totals(self, aggregate: QuotationAggregate) -> QuotationTotals:
        return self.calculator.quotation_totals(aggregate)

    # ------------------------------------------------------------------
    # Quotation lifecycle
    # ------------------------------------------------------------------

    def new_quotation(
        self,
        quotation_number: str,
        client_info: Optional[ClientInfo] = None,
        company_details: Optional[CompanyDetails] = None,
        archetype: Union[ArchetypeId, str, None] = None,
        created_by: Optional[str] = None,
        on_date: Optional[date] = None,
    ) -> QuotationAggregate:
        window = self.create_default(archetype)
        kwargs = {}
        if created_by:
            kwargs["created_by"] = created_by
        aggregate = QuotationAggregate(
            quotation_number=quotation_number,
            date=on_date or date.today(),
            client_info=client_info or ClientInfo(),
            company_details=company_details or CompanyDetails(),
            windows=[window],
            **kwargs,
        )
        logger.info("Created quotation %s", quotation_number, extra={"quotation_number": quotation_number})
        return aggregate

    def validate(self, aggregate: QuotationAggregate, max_quantity: Optional[int] = None) -> List[ValidationError]:
        issues: List[ValidationError] = []
        if not aggregate.client_info.name.strip():
            issues.append(ValidationError("client_info.name", "client name is required"))
        for window in aggregate.windows:
            issues.extend(self.calculator.validate_window(window, max_quantity))
        return issues

    def submit(
        self,
        aggregate: QuotationAggregate,
        max_quantity: Optional[int] = None,
        submitted_by: Optional[str] = None,
    ) -> QuotationAggregate:
        """draft → submitted, only when every window and the client info validate."""
        issues = self.validate(aggregate, max_quantity)
        if issues:
            first = issues[0]
            raise ValidationError(
                first.field,
                f"{first.message} ({len(issues)} issue(s) block submission)",
                window_id=first.window_id,
                issues=issues,
            )
        aggregate.status = QuotationStatus.SUBMITTED
        aggregate.submitted_date = datetime.now(timezone.utc)
        if submitted_by:
            aggregate.last_modified_by = submitted_by
        logger.info(
            "Quotation %s submitted with %d window(s)",
            aggregate.quotation_number, len(aggregate.windows),
            extra={"quotation_number": aggregate.quotation_number},
        )
        return aggregate

    def set_status(self, aggregate: QuotationAggregate, status: Union[QuotationStatus, str]) -> QuotationAggregate:
        """Store an externally decided status; submission goes through ``submit``."""
        try:
            new_status = QuotationStatus(str(getattr(status, "value", status)).lower())
        except ValueError:
            raise InvariantViolation(f"unknown quotation status {status!r}") from None
        if new_status == QuotationStatus.SUBMITTED and aggregate.status != QuotationStatus.SUBMITTED:
            raise InvariantViolation("use submit() to move a quotation to submitted")
        aggregate.status = new_status
        logger.info(
            "Quotation %s status -> %s", aggregate.quotation_number, new_status.value,
            extra={"quotation_number": aggregate.quotation_number},
        )
        return aggregate

    def duplicate_quotation(self, aggregate: QuotationAggregate, quotation_number: str) -> QuotationAggregate:
        """New draft with the same client, company and windows (fresh window ids)."""
        windows = [w.model_copy(deep=True, update={"id": gen_window_id()}) for w in aggregate.windows]
        active_index = next(
            (i for i, w in enumerate(aggregate.windows) if w.id == aggregate.active_window_id), 0
        )
        return QuotationAggregate(
            quotation_number=quotation_number,
            date=date.today(),
            client_info=aggregate.client_info.model_copy(),
            company_details=aggregate.company_details.model_copy(),
            windows=windows,
            active_window_id=windows[active_index].id,
            notes=aggregate.notes,
            created_by=aggregate.created_by,
            currency=aggregate.currency,
        )
