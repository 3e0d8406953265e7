"""
Diagram Mapper — maps (archetype, configuration, spec) to a declarative scene.

Outputs a SceneDescription: frame and glass colours, one panel per pattern role with
its movement glyph and handle, hardware glyphs, an optional grille layer, feature
glyphs and text labels. Painting is left to the renderer.

The mapping is deterministic and side-effect free: identical inputs give equal scenes.
"""
import logging
import math
from fractions import Fraction
from typing import Dict, List, Optional, Tuple

from app.config import (
    DEFAULT_FRAME_COLOR,
    DEFAULT_GLASS_COLOR,
    FRAME_THICKNESS,
    GRILLE_COLOR_DEFAULT,
    MIN_RENDER_SIZE,
    RENDER_SIZE,
    SCENE_MARGIN_X,
    SCENE_MARGIN_Y,
)
from app.models.catalog_schema import ArchetypeId, PanelRole
from app.models.scene_models import (
    Box,
    FeatureGlyph,
    GrilleLayer,
    HardwareGlyph,
    Point,
    SceneDescription,
    SceneLabel,
    ScenePanel,
    Segment,
)
from app.models.window_models import WindowInstance, WindowSpec
from app.services.catalog_engine import default_roles, resolve_pattern

logger = logging.getLogger("fenestra-drafting")

# Colors
FRAME_PALETTE: Dict[str, Dict[str, str]] = {
    "aluminum": {"white": "#F5F5F5", "black": "#2C2C2C", "brown": "#8B4513", "grey": "#808080"},
    "upvc": {"white": "#FFFFFF", "black": "#1C1C1C", "brown": "#8B4513", "grey": "#A9A9A9"},
    "wooden": {"white": "#FFF8DC", "black": "#3C3C3C", "brown": "#8B4513", "grey": "#DCDCDC"},
}

GLASS_BASE_COLORS: Dict[str, str] = {
    "single": "#E6F3FF",
    "double": "#E8F4FD",
    "triple": "#EAF5FE",
    "low-e": "#E6F9FF",
    "laminated": "#E3EEF7",
    "tempered": "#E4F1FA",
}

# Tinted glass by family: monolithic panes vs insulated units
_INSULATED_GLASS = frozenset({"double", "triple", "low-e"})
GLASS_TINT_COLORS: Dict[str, Dict[str, str]] = {
    "monolithic": {"bronze": "#D8C3A5", "grey": "#C9CED3", "blue": "#BFDDF5", "green": "#CFEBD6"},
    "insulated": {"bronze": "#DCCAB0", "grey": "#CFD4D9", "blue": "#C6E1F7", "green": "#D5EEDB"},
}

GRILLE_COLORS: Dict[str, str] = {
    "white": "#FFFFFF",
    "black": "#2C2C2C",
    "brown": "#8B4513",
    "grey": "#808080",
    "gold": "#C9A227",
}

GLASS_INSET = 2.0
HANDLE_OFFSET = 10.0
FEATURE_INSET = 8.0

_OPERABLE = frozenset({
    PanelRole.SLIDING,
    PanelRole.CASEMENT,
    PanelRole.AWNING,
    PanelRole.TILT_IN,
    PanelRole.PIVOT,
})

_HUNG = frozenset({ArchetypeId.DOUBLE_HUNG, ArchetypeId.SINGLE_HUNG})

# (flag on WindowSpec, glyph kind, anchor) in drawing order
_FEATURES: Tuple[Tuple[str, str, str], ...] = (
    ("screen_included", "screen", "top-right"),
    ("motorized", "motorized", "bottom-centre"),
    ("security", "security", "top-left"),
    ("smart_home", "smart_home", "bottom-right"),
    ("blinds", "blinds", "top-centre"),
)


def frame_color(material: Optional[str], color: Optional[str]) -> str:
    return FRAME_PALETTE.get((material or "").lower(), {}).get((color or "").lower(), DEFAULT_FRAME_COLOR)


def glass_color(glass_type: Optional[str], tint: Optional[str]) -> str:
    glass_type = (glass_type or "").lower()
    tint = (tint or "clear").lower()
    if tint in ("", "clear", "none"):
        return GLASS_BASE_COLORS.get(glass_type, DEFAULT_GLASS_COLOR)
    family = "insulated" if glass_type in _INSULATED_GLASS else "monolithic"
    tinted = GLASS_TINT_COLORS[family].get(tint)
    if tinted is None:
        return GLASS_BASE_COLORS.get(glass_type, DEFAULT_GLASS_COLOR)
    return tinted


def format_material(material: Optional[str]) -> str:
    if not material:
        return "N/A"
    text = str(material)
    return text[:1].upper() + text[1:]


def format_glass(glass_type: Optional[str]) -> str:
    if not glass_type:
        return "N/A"
    return " ".join(part[:1].upper() + part[1:] for part in str(glass_type).replace("-", " ").split())


def format_mm(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else f"{value:.1f}"


def _r(value: float) -> float:
    return round(value, 2)


def _rect(x: float, y: float, w: float, h: float) -> Tuple[Point, ...]:
    return ((_r(x), _r(y)), (_r(x + w), _r(y)), (_r(x + w), _r(y + h)), (_r(x), _r(y + h)))


def _bounds(points: Tuple[Point, ...]) -> Box:
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return Box(min(xs), min(ys), _r(max(xs) - min(xs)), _r(max(ys) - min(ys)))


def _inset(points: Tuple[Point, ...], amount: float) -> Tuple[Point, ...]:
    """Shrink a clockwise quad (tl, tr, br, bl) towards its interior."""
    (x0, y0), (x1, y1), (x2, y2), (x3, y3) = points
    return (
        (_r(x0 + amount), _r(y0 + amount)),
        (_r(x1 - amount), _r(y1 + amount)),
        (_r(x2 - amount), _r(y2 - amount)),
        (_r(x3 + amount), _r(y3 - amount)),
    )


def scene_size(width_mm: float, height_mm: float) -> Tuple[float, float]:
    """
    Frame size in scene units.

    The longer side is RENDER_SIZE; the shorter keeps the aspect ratio but never
    drops below MIN_RENDER_SIZE.
    """
    w = max(float(width_mm or 0.0), 1.0)
    h = max(float(height_mm or 0.0), 1.0)
    if w >= h:
        return RENDER_SIZE, _r(max(RENDER_SIZE * h / w, MIN_RENDER_SIZE))
    return _r(max(RENDER_SIZE * w / h, MIN_RENDER_SIZE)), RENDER_SIZE


class DiagramMapper:
    """Builds SceneDescriptions; holds no state between calls."""

    def map_window(self, window: WindowInstance) -> SceneDescription:
        return self.map_to_scene(window.archetype, window.configuration, window.spec)

    def map_to_scene(self, archetype, configuration, spec: WindowSpec) -> SceneDescription:
        archetype = ArchetypeId(archetype)
        panel_count = configuration.panel_count
        pattern_id = getattr(configuration, "pattern_id", None)

        # Stale pattern ids raise InvariantViolation here and are never drawn
        pattern = resolve_pattern(archetype, panel_count, pattern_id)
        roles = pattern.roles if pattern is not None else default_roles(archetype, panel_count)

        fw, fh = scene_size(spec.width_mm, spec.height_mm)
        frame = Box(SCENE_MARGIN_X, SCENE_MARGIN_Y, fw, fh)
        canvas = Box(0.0, 0.0, _r(fw + 2 * SCENE_MARGIN_X), _r(fh + 50.0))

        if archetype == ArchetypeId.BAY:
            panels, hardware, extra_labels = self._bay_panels(frame, roles, configuration)
        elif archetype in _HUNG:
            panels, hardware = self._hung_panels(frame, roles)
            extra_labels = []
        else:
            panels, hardware = self._row_panels(archetype, frame, roles, configuration)
            extra_labels = []

        labels = self._labels(canvas, frame, spec, panels) + extra_labels

        return SceneDescription(
            archetype=archetype,
            pattern_id=pattern.pattern_id if pattern is not None else None,
            canvas=canvas,
            frame=frame,
            frame_color=frame_color(spec.frame_material, spec.frame_color),
            glass_color=glass_color(spec.glass_type, spec.glass_tint),
            panels=tuple(panels),
            hardware=tuple(hardware),
            grille=self._grille(spec, panels),
            features=self._features(frame, spec),
            labels=tuple(labels),
        )

    # ------------------------------------------------------------------
    # Panel layouts
    # ------------------------------------------------------------------

    def _inner(self, frame: Box) -> Box:
        t = FRAME_THICKNESS
        return Box(frame.x + t, frame.y + t, frame.width - 2 * t, frame.height - 2 * t)

    def _row_panels(self, archetype: ArchetypeId, frame: Box, roles, configuration):
        """Panels side by side: sliding, casement and the single-panel archetypes."""
        inner = self._inner(frame)
        n = len(roles)
        pw = inner.width / n
        panels: List[ScenePanel] = []
        hardware: List[HardwareGlyph] = []

        for i, role in enumerate(roles):
            x = inner.x + i * pw
            outline = _rect(x, inner.y, pw, inner.height)
            hinge = self._hinge_side(archetype, configuration, i, n)
            movement = self._movement(archetype, role, configuration, hinge)
            handle = self._handle(role, x, inner.y, pw, inner.height, hinge, configuration)
            panels.append(ScenePanel(
                index=i,
                role=role,
                outline=outline,
                glass=_inset(outline, GLASS_INSET),
                movement=movement,
                handle=handle,
            ))
            hardware.extend(self._panel_hardware(role, x, inner.y, pw, inner.height, hinge, configuration))

        if archetype == ArchetypeId.SLIDING:
            hardware.append(HardwareGlyph(
                "track",
                Box(_r(frame.x + 2), _r(frame.y + frame.height - FRAME_THICKNESS - 2), _r(frame.width - 4), 2.0),
            ))
        return panels, hardware

    def _hung_panels(self, frame: Box, roles):
        """Sashes stacked top to bottom with a meeting rail between them."""
        inner = self._inner(frame)
        n = len(roles)
        ph = inner.height / n
        panels: List[ScenePanel] = []
        hardware: List[HardwareGlyph] = []

        for i, role in enumerate(roles):
            y = inner.y + i * ph
            outline = _rect(inner.x, y, inner.width, ph)
            handle = None
            if role in _OPERABLE:
                # Lift handles sit on the meeting rail side of each sash
                hy = y + ph - 6 if i == 0 else y + 6
                handle = (_r(inner.x + inner.width / 2), _r(hy))
            panels.append(ScenePanel(
                index=i,
                role=role,
                outline=outline,
                glass=_inset(outline, GLASS_INSET),
                movement=self._movement(ArchetypeId.DOUBLE_HUNG, role, None, None),
                handle=handle,
            ))
            if i > 0:
                hardware.append(HardwareGlyph("sash-rail", Box(_r(inner.x), _r(y - 1), _r(inner.width), 2.0)))
        return panels, hardware

    def _bay_panels(self, frame: Box, roles, configuration):
        """
        Centre panel flat at half the width; side panels share the rest and are drawn
        as trapezoids whose outer edge recedes by the projection depth.
        """
        inner = self._inner(frame)
        n = len(roles)
        sides = n - 1
        left_count = sides // 2
        right_count = sides - left_count
        centre_index = left_count
        centre_w = inner.width * 0.5
        side_w = (inner.width - centre_w) / max(sides, 1)

        angle = float(configuration.angle)
        step = min(side_w * math.sin(math.radians(angle)) * 0.8, inner.height * 0.25 / max(left_count, right_count, 1))

        # Edge x positions and the recession depth at each edge
        xs = [inner.x + i * side_w for i in range(left_count + 1)]
        xs += [xs[-1] + centre_w + i * side_w for i in range(right_count + 1)]
        depths = [step * (left_count - i) for i in range(left_count + 1)]
        depths += [step * i for i in range(right_count + 1)]

        panels: List[ScenePanel] = []
        hardware: List[HardwareGlyph] = []
        top, bottom = inner.y, inner.y + inner.height
        for i, role in enumerate(roles):
            xa, xb = xs[i], xs[i + 1]
            da, db = depths[i], depths[i + 1]
            outline = (
                (_r(xa), _r(top + da)),
                (_r(xb), _r(top + db)),
                (_r(xb), _r(bottom - db)),
                (_r(xa), _r(bottom - da)),
            )
            hinge = "left" if i <= centre_index else "right"
            w = xb - xa
            panels.append(ScenePanel(
                index=i,
                role=role,
                outline=outline,
                glass=_inset(outline, GLASS_INSET),
                movement=self._movement(ArchetypeId.BAY, role, configuration, hinge),
                handle=self._handle(role, xa, top + max(da, db), w, inner.height - 2 * max(da, db), hinge, None),
                depth=_r(max(da, db)),
            ))
            hardware.extend(self._panel_hardware(
                role, xa, top + max(da, db), w, inner.height - 2 * max(da, db), hinge, None,
            ))

        labels: List[SceneLabel] = [
            SceneLabel("angle", f"{format_mm(angle)}°", (_r(frame.x - 15), _r(frame.y + frame.height / 2))),
        ]
        side_fraction = str(Fraction(1, 2 * max(sides, 1)))
        for i, panel in enumerate(panels):
            box = _bounds(panel.outline)
            text = "1/2" if i == centre_index else side_fraction
            labels.append(SceneLabel("fraction", text, (_r(box.x + box.width / 2), _r(frame.y - 2))))
        return panels, hardware, labels

    # ------------------------------------------------------------------
    # Glyph rules
    # ------------------------------------------------------------------

    @staticmethod
    def _hinge_side(archetype: ArchetypeId, configuration, index: int, count: int) -> Optional[str]:
        if archetype != ArchetypeId.CASEMENT:
            return None
        if count == 1:
            return getattr(configuration, "hinge", "left")
        return "left" if index < count / 2 else "right"

    @staticmethod
    def _movement(archetype: ArchetypeId, role: PanelRole, configuration, hinge: Optional[str]) -> str:
        if role in (PanelRole.FIXED, PanelRole.PICTURE):
            return "fixed-mark"
        if role == PanelRole.SLIDING:
            return "arrow-vertical" if archetype in _HUNG else "arrow-horizontal"
        if role == PanelRole.CASEMENT:
            return f"swing-{hinge or 'left'}"
        if role == PanelRole.AWNING:
            return "swing-top"
        if role == PanelRole.TILT_IN:
            return "tilt-in"
        if role == PanelRole.SPLIT:
            return "split"
        if role == PanelRole.PIVOT:
            axis = getattr(configuration, "axis", "vertical")
            return "pivot-horizontal" if axis == "horizontal" else "pivot-vertical"
        return "fixed-mark"

    @staticmethod
    def _handle(role: PanelRole, x: float, y: float, w: float, h: float,
                hinge: Optional[str], configuration) -> Optional[Point]:
        if role not in _OPERABLE:
            return None
        if role == PanelRole.AWNING:
            return (_r(x + w / 2), _r(y + h - HANDLE_OFFSET))
        if role == PanelRole.PIVOT and getattr(configuration, "axis", "vertical") == "horizontal":
            return (_r(x + w / 2), _r(y + h - HANDLE_OFFSET))
        if role == PanelRole.CASEMENT and hinge == "right":
            return (_r(x + HANDLE_OFFSET), _r(y + h / 2))
        return (_r(x + w - HANDLE_OFFSET), _r(y + h / 2))

    @staticmethod
    def _panel_hardware(role: PanelRole, x: float, y: float, w: float, h: float,
                        hinge: Optional[str], configuration) -> List[HardwareGlyph]:
        glyphs: List[HardwareGlyph] = []
        if role == PanelRole.CASEMENT:
            hx = x + 2 if hinge != "right" else x + w - 6
            for hy in (y + 10, y + h / 2 - 4, y + h - 18):
                glyphs.append(HardwareGlyph("hinge", Box(_r(hx), _r(hy), 4.0, 8.0)))
        elif role == PanelRole.AWNING:
            for hx in (x + w / 4, x + 3 * w / 4):
                glyphs.append(HardwareGlyph("hinge", Box(_r(hx - 4), _r(y + 2), 8.0, 4.0)))
        elif role == PanelRole.PIVOT:
            if getattr(configuration, "axis", "vertical") == "horizontal":
                glyphs.append(HardwareGlyph("pivot-axis", Box(_r(x), _r(y + h / 2 - 0.5), _r(w), 1.0)))
            else:
                glyphs.append(HardwareGlyph("pivot-axis", Box(_r(x + w / 2 - 0.5), _r(y), 1.0, _r(h))))
        return glyphs

    # ------------------------------------------------------------------
    # Layers & labels
    # ------------------------------------------------------------------

    def _grille(self, spec: WindowSpec, panels: List[ScenePanel]) -> Optional[GrilleLayer]:
        style = (spec.grille_style or "none").lower()
        if style in ("", "none"):
            return None
        if style not in ("colonial", "prairie", "georgian", "diamond"):
            logger.debug("No grille geometry for style %r", style)
            return None
        color = GRILLE_COLORS.get((spec.grille_color or "").lower(), GRILLE_COLOR_DEFAULT)
        return GrilleLayer(
            style=style,
            color=color,
            panels=tuple(grille_segments(style, _bounds(p.glass)) for p in panels),
        )

    @staticmethod
    def _features(frame: Box, spec: WindowSpec) -> Tuple[FeatureGlyph, ...]:
        anchors = {
            "top-left": (frame.x + FEATURE_INSET, frame.y + FEATURE_INSET),
            "top-centre": (frame.x + frame.width / 2, frame.y + FEATURE_INSET),
            "top-right": (frame.x + frame.width - FEATURE_INSET, frame.y + FEATURE_INSET),
            "bottom-centre": (frame.x + frame.width / 2, frame.y + frame.height - FEATURE_INSET),
            "bottom-right": (frame.x + frame.width - FEATURE_INSET, frame.y + frame.height - FEATURE_INSET),
        }
        glyphs = []
        for flag, kind, anchor in _FEATURES:
            if getattr(spec, flag):
                x, y = anchors[anchor]
                glyphs.append(FeatureGlyph(kind, anchor, (_r(x), _r(y))))
        return tuple(glyphs)

    @staticmethod
    def _labels(canvas: Box, frame: Box, spec: WindowSpec, panels: List[ScenePanel]) -> List[SceneLabel]:
        bottom = frame.y + frame.height
        labels = [
            SceneLabel(
                "dimensions",
                f"{format_mm(spec.width_mm)} × {format_mm(spec.height_mm)} mm",
                (_r(canvas.width / 2), _r(bottom + 31)),
            ),
            SceneLabel("material", format_material(spec.frame_material), (5.0, _r(bottom + 10))),
            SceneLabel("glass", format_glass(spec.glass_type), (5.0, _r(bottom + 20))),
        ]
        if len(panels) > 1:
            for panel in panels:
                box = _bounds(panel.outline)
                labels.append(SceneLabel("panel", str(panel.index + 1), (_r(box.x + box.width / 2), _r(box.y + 10))))
        return labels


def grille_segments(style: str, glass: Box) -> Tuple[Segment, ...]:
    """Grille bars for one pane, relative to the pane's top-left corner."""
    w, h = glass.width, glass.height
    if style == "colonial":
        cols = 4 if w > 80 else 3
        rows = 3 if h > 120 else 2
        verticals = [Segment(_r(i * w / cols), 0.0, _r(i * w / cols), _r(h)) for i in range(1, cols)]
        horizontals = [Segment(0.0, _r(i * h / rows), _r(w), _r(i * h / rows)) for i in range(1, rows)]
        return tuple(verticals + horizontals)
    if style == "prairie":
        return (Segment(_r(w / 2), 0.0, _r(w / 2), _r(h)), Segment(0.0, _r(h / 2), _r(w), _r(h / 2)))
    if style == "georgian":
        return (
            Segment(_r(w / 3), 0.0, _r(w / 3), _r(h)),
            Segment(_r(2 * w / 3), 0.0, _r(2 * w / 3), _r(h)),
            Segment(0.0, _r(h / 2), _r(w), _r(h / 2)),
        )
    if style == "diamond":
        return (Segment(0.0, 0.0, _r(w), _r(h)), Segment(_r(w), 0.0, 0.0, _r(h)))
    return ()


def map_to_scene(archetype, configuration, spec: WindowSpec) -> SceneDescription:
    return DiagramMapper().map_to_scene(archetype, configuration, spec)
