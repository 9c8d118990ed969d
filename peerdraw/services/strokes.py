"""
Headless interpretation of remote drawing events as strokes.
"""
from typing import Callable, List, Optional, Tuple

from ..webrtc.envelope import DrawEvent

Point = Tuple[float, float]


class StrokeAssembler:
    """Builds polylines from a stream of DrawEvents.

    The first event after a terminator starts a path, later events extend
    it, and an ``end_line`` event closes it.
    """

    def __init__(self, on_stroke: Optional[Callable[[List[Point]], None]] = None):
        self.strokes: List[List[Point]] = []
        self.current: Optional[List[Point]] = None
        self._on_stroke = on_stroke

    def __call__(self, event: DrawEvent):
        self.feed(event)

    def feed(self, event: DrawEvent):
        if event.end_line:
            self.end_stroke()
            return

        point = (event.offset_x, event.offset_y)
        if self.current is None:
            self.current = [point]
        else:
            self.current.append(point)

    def end_stroke(self):
        if self.current is None:
            return
        stroke, self.current = self.current, None
        self.strokes.append(stroke)
        if self._on_stroke:
            self._on_stroke(stroke)


def stroke_events(points: List[Point]) -> List[DrawEvent]:
    """Events that draw the given polyline on the remote side."""
    events = [DrawEvent(offset_x=x, offset_y=y) for x, y in points]
    if points:
        x, y = points[-1]
        events.append(DrawEvent(offset_x=x, offset_y=y, end_line=True))
    return events
