"""
Viewport pan/zoom state for the rendered family tree.

The state transitions are a pure reducer, ``reduce(state, event) -> state``,
so they can be tested without a browser. ``ViewportController`` wraps the
reducer, turns the state into a CSS transform, and persists it through a
``ViewportStorage`` so the next session opens at the same pan and zoom.
"""

from dataclasses import asdict, dataclass, replace
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

STORAGE_KEY = "familyTreeViewport"
MIN_SCALE = 0.3
MAX_SCALE = 2.0
ZOOM_SENSITIVITY = 0.001

# Python field name -> key in the persisted JSON object
JSON_KEYS = {
    "offset_x": "offsetX",
    "offset_y": "offsetY",
    "scale": "scale",
    "is_dragging": "isDragging",
    "drag_start_x": "dragStartX",
    "drag_start_y": "dragStartY",
}


@dataclass(frozen=True)
class ViewportState:
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0
    is_dragging: bool = False
    drag_start_x: float = 0.0
    drag_start_y: float = 0.0


@dataclass(frozen=True)
class Box:
    left: float
    top: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.left + self.width / 2, self.top + self.height / 2)


@dataclass(frozen=True)
class PanStart:
    x: float
    y: float


@dataclass(frozen=True)
class PanMove:
    x: float
    y: float


@dataclass(frozen=True)
class PanEnd:
    pass


@dataclass(frozen=True)
class Zoom:
    delta_y: float


@dataclass(frozen=True)
class CenterOn:
    node_box: Box
    viewport_box: Box


def clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


def reduce(
    state: ViewportState,
    event,
    *,
    min_scale: float = MIN_SCALE,
    max_scale: float = MAX_SCALE,
    sensitivity: float = ZOOM_SENSITIVITY,
) -> ViewportState:
    """Apply one input event to the viewport state."""
    if isinstance(event, PanStart):
        # Store the pointer relative to the offset so moves set the offset directly
        return replace(
            state,
            is_dragging=True,
            drag_start_x=event.x - state.offset_x,
            drag_start_y=event.y - state.offset_y,
        )

    if isinstance(event, PanMove):
        if not state.is_dragging:
            return state
        return replace(
            state,
            offset_x=event.x - state.drag_start_x,
            offset_y=event.y - state.drag_start_y,
        )

    if isinstance(event, PanEnd):
        return replace(state, is_dragging=False)

    if isinstance(event, Zoom):
        scale = clamp(state.scale - event.delta_y * sensitivity, min_scale, max_scale)
        return replace(state, scale=scale)

    if isinstance(event, CenterOn):
        vp_x, vp_y = event.viewport_box.center
        node_x, node_y = event.node_box.center
        return replace(
            state,
            offset_x=state.offset_x + vp_x - node_x,
            offset_y=state.offset_y + vp_y - node_y,
        )

    raise TypeError(f"Unknown viewport event: {event!r}")


def _css_number(value: float) -> str:
    # Fixed point, never exponent notation
    return f"{value:.4f}".rstrip("0").rstrip(".")


def css_transform(state: ViewportState) -> str:
    x, y, scale = (_css_number(v) for v in (state.offset_x, state.offset_y, state.scale))
    return f"translate({x}px, {y}px) scale({scale})"


def state_to_json(state: ViewportState) -> str:
    return json.dumps({JSON_KEYS[name]: value for name, value in asdict(state).items()})


def state_from_json(text: str | None, min_scale=MIN_SCALE, max_scale=MAX_SCALE) -> ViewportState:
    """
    Rebuild a viewport state from its persisted JSON.

    Missing or invalid data gives the identity transform. Drag bookkeeping is
    transient and is never restored.
    """
    if not text:
        return ViewportState()
    try:
        data = json.loads(text)
        offset_x = float(data.get("offsetX", 0.0))
        offset_y = float(data.get("offsetY", 0.0))
        scale = float(data.get("scale", 1.0))
    except (ValueError, TypeError, AttributeError):
        logger.warning("Ignoring invalid saved viewport state")
        return ViewportState()

    return ViewportState(
        offset_x=offset_x,
        offset_y=offset_y,
        scale=clamp(scale, min_scale, max_scale),
    )


class ViewportStorage:
    """A JSON file used as key/value local storage. Failures are logged, never raised."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read viewport storage %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        try:
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write viewport storage %s: %s", self.path, exc)


class ViewportController:
    """Pan/zoom controller that persists its state after every applied transform."""

    def __init__(
        self,
        storage: ViewportStorage | None = None,
        key: str = STORAGE_KEY,
        min_scale: float = MIN_SCALE,
        max_scale: float = MAX_SCALE,
        sensitivity: float = ZOOM_SENSITIVITY,
    ):
        self.storage = storage
        self.key = key
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.sensitivity = sensitivity
        self.state = self.restore()

    def restore(self) -> ViewportState:
        saved = self.storage.get(self.key) if self.storage else None
        return state_from_json(saved, self.min_scale, self.max_scale)

    def dispatch(self, event) -> ViewportState:
        self.state = reduce(
            self.state,
            event,
            min_scale=self.min_scale,
            max_scale=self.max_scale,
            sensitivity=self.sensitivity,
        )
        return self.state

    @property
    def transform(self) -> str:
        return css_transform(self.state)

    def apply_transform(self) -> str:
        """Return the CSS transform for the current state and persist the state."""
        if self.storage:
            self.storage.set(self.key, state_to_json(self.state))
        return self.transform

    def pan_start(self, x: float, y: float):
        self.dispatch(PanStart(x, y))

    def pan_move(self, x: float, y: float):
        if not self.state.is_dragging:
            return
        self.dispatch(PanMove(x, y))
        self.apply_transform()

    def pan_end(self):
        self.dispatch(PanEnd())

    def zoom(self, delta_y: float):
        self.dispatch(Zoom(delta_y))
        self.apply_transform()

    def center_on(self, node_box: Box, viewport_box: Box):
        self.dispatch(CenterOn(node_box, viewport_box))
        self.apply_transform()
