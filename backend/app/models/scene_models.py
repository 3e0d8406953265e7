"""
Scene description handed to an external renderer (SVG / canvas / PDF).

Pure geometry and labels in scene units; nothing here knows how to paint.
All classes are frozen so identical inputs produce equal, hashable scenes.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

from app.models.catalog_schema import ArchetypeId, PanelRole

Point = Tuple[float, float]


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Segment:
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(frozen=True)
class ScenePanel:
    index: int                       # 0-based, left→right (top→bottom for hung sashes)
    role: PanelRole
    outline: Tuple[Point, ...]       # frame polygon, clockwise from top-left
    glass: Tuple[Point, ...]         # glazed area polygon inside the outline
    movement: str                    # movement glyph name, e.g. 'arrow-horizontal'
    handle: Optional[Point] = None   # only operable panels carry a handle
    depth: float = 0.0               # bay side projection


@dataclass(frozen=True)
class HardwareGlyph:
    kind: str                        # hinge | track | pivot-axis | sash-rail
    box: Box


@dataclass(frozen=True)
class GrilleLayer:
    style: str
    color: str
    # One tuple of segments per panel, relative to that panel's glass origin
    panels: Tuple[Tuple[Segment, ...], ...]


@dataclass(frozen=True)
class FeatureGlyph:
    kind: str                        # screen | motorized | security | smart_home | blinds
    anchor: str                      # top-left | top-centre | top-right | bottom-centre | bottom-right
    position: Point


@dataclass(frozen=True)
class SceneLabel:
    kind: str                        # dimensions | material | glass | angle | fraction | panel
    text: str
    position: Point


@dataclass(frozen=True)
class SceneDescription:
    archetype: ArchetypeId
    pattern_id: Optional[str]
    canvas: Box                      # full drawing area including margins and labels
    frame: Box                       # outer frame bounding box
    frame_color: str
    glass_color: str
    panels: Tuple[ScenePanel, ...]
    hardware: Tuple[HardwareGlyph, ...] = ()
    grille: Optional[GrilleLayer] = None
    features: Tuple[FeatureGlyph, ...] = ()
    labels: Tuple[SceneLabel, ...] = field(default=())

    @property
    def roles(self) -> Tuple[PanelRole, ...]:
        return tuple(p.role for p in self.panels)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
