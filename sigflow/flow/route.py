"""
Edge routing on the flow canvas.

:func:`route` returns SVG path data for an edge drawn from the right side
of one node box to the left side of another, steering around the other
boxes when the direct curve would cross them.  The search order is fixed,
so the same inputs always give the same path.
"""
from collections import namedtuple

try:
    from typing import Dict, Iterable, Tuple
except ImportError:
    pass

#: Distance between candidate elbow positions, in pixels.
ROUTE_STEP = 50

#: Number of candidate positions tried on each side of the midpoint.
MAX_STEPS = 40


class Rect(namedtuple('Rect', ['left', 'top', 'width', 'height'])):
    __slots__ = ()

    @property
    def right(self):
        return self.left + self.width

    @property
    def bottom(self):
        return self.top + self.height

    def contains(self, point):
        x, y = point
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def corners(self):
        return [(self.left, self.top), (self.right, self.top),
                (self.right, self.bottom), (self.left, self.bottom)]


def as_rect(value):
    if isinstance(value, Rect):
        return value
    if hasattr(value, 'items'):
        return Rect(value['left'], value['top'], value['width'], value['height'])
    return Rect(*value)


def _orientation(p, q, r):
    v = (q[1] - p[1])*(r[0] - q[0]) - (q[0] - p[0])*(r[1] - q[1])
    return 0 if v == 0 else (1 if v > 0 else 2)


def _on_segment(p, q, r):
    # q lies on segment pr, given p, q, r collinear
    return (min(p[0], r[0]) <= q[0] <= max(p[0], r[0])
            and min(p[1], r[1]) <= q[1] <= max(p[1], r[1]))


def segments_intersect(p1, p2, q1, q2):
    """True if segment p1-p2 touches or crosses segment q1-q2."""
    o1 = _orientation(p1, p2, q1)
    o2 = _orientation(p1, p2, q2)
    o3 = _orientation(q1, q2, p1)
    o4 = _orientation(q1, q2, p2)
    if o1 != o2 and o3 != o4:
        return True
    if o1 == 0 and _on_segment(p1, q1, p2):
        return True
    if o2 == 0 and _on_segment(p1, q2, p2):
        return True
    if o3 == 0 and _on_segment(q1, p1, q2):
        return True
    if o4 == 0 and _on_segment(q1, p2, q2):
        return True
    return False


def segment_intersects_rect(p1, p2, rect):
    """
    True if the segment p1-p2 has an end inside *rect* or crosses one of
    its four sides.
    """
    rect = as_rect(rect)
    if rect.contains(p1) or rect.contains(p2):
        return True
    corners = rect.corners()
    for k in range(4):
        if segments_intersect(p1, p2, corners[k], corners[(k+1) % 4]):
            return True
    return False


def _blocked(points, rects):
    segments = list(zip(points[:-1], points[1:]))
    return any(segment_intersects_rect(a, b, r) for a, b in segments for r in rects)


def _fmt(value):
    text = ("%.2f" % value).rstrip('0').rstrip('.')
    return "0" if text in ("-0", "") else text


def _point(p):
    return "%s %s" % (_fmt(p[0]), _fmt(p[1]))


def curve_path(start, end, min_offset=60, scale=0.5):
    """
    Cubic curve leaving *start* to the right and entering *end* from the
    left, with control points offset by max(*min_offset*, *scale* |dx|).
    """
    offset = max(min_offset, abs(end[0] - start[0]) * scale)
    c1 = (start[0] + offset, start[1])
    c2 = (end[0] - offset, end[1])
    return "M %s C %s, %s, %s" % (_point(start), _point(c1), _point(c2), _point(end))


def polyline_path(points):
    return "M " + " L ".join(_point(p) for p in points)


def _scan(center, step, max_steps):
    yield center
    for k in range(1, max_steps + 1):
        yield center + k*step
        yield center - k*step


def route(start, end, obstacles, exclude_ids=(), step=None, max_steps=None):
    # type: (Tuple[float, float], Tuple[float, float], Dict[str, Rect], Iterable[str], float, int) -> str
    """
    SVG path data for an edge from *start* to *end*.

    *obstacles* maps node ids to boxes, given as :class:`Rect` or
    (left, top, width, height); boxes named in *exclude_ids*, normally
    the two nodes being joined, are ignored.

    The direct curve is used when the straight line between the ends is
    clear.  Otherwise an elbow with a vertical middle leg is tried at
    x positions stepping out from the midpoint by *step*, then an elbow
    with a horizontal middle leg the same way in y.  When neither is
    clear an exaggerated curve is returned.
    """
    step = ROUTE_STEP if step is None else step
    max_steps = MAX_STEPS if max_steps is None else max_steps
    exclude = set(exclude_ids)
    rects = [as_rect(box) for key, box in obstacles.items() if key not in exclude]
    start = (float(start[0]), float(start[1]))
    end = (float(end[0]), float(end[1]))

    if not _blocked([start, end], rects):
        return curve_path(start, end)

    for mx in _scan((start[0] + end[0])/2, step, max_steps):
        points = [start, (mx, start[1]), (mx, end[1]), end]
        if not _blocked(points, rects):
            return polyline_path(points)

    for my in _scan((start[1] + end[1])/2, step, max_steps):
        points = [start, (start[0], my), (end[0], my), end]
        if not _blocked(points, rects):
            return polyline_path(points)

    return curve_path(start, end, min_offset=120, scale=1.0)


def anchors(source_box, target_box):
    """
    Edge end points for boxes: the middle of the right side of the source
    and the middle of the left side of the target.
    """
    source_box, target_box = as_rect(source_box), as_rect(target_box)
    start = (source_box.right, source_box.top + source_box.height/2)
    end = (target_box.left, target_box.top + target_box.height/2)
    return start, end


def test_fmt():
    assert _fmt(1.0) == "1"
    assert _fmt(-0.001) == "0"
    assert _fmt(100.0) == "100"
    assert _fmt(0.25) == "0.25"
