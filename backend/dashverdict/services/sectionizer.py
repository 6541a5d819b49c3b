from __future__ import annotations

from dashverdict.schemas.analysis import VideoSection


DEFAULT_HALF_WIDTH_SEC = 5.0


def sectionize(
    robust_time: float,
    duration: float,
    half_width: float = DEFAULT_HALF_WIDTH_SEC,
) -> tuple[VideoSection, VideoSection, VideoSection]:
    """Split ``[0, duration]`` into ante/event/post around ``robust_time``.

    The event section is ``robust_time +/- half_width`` clamped to the video, so
    ante or post collapse to zero length near either end. ``robust_time`` itself
    is clamped into the video first; the sections always tile the timeline.
    """
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")
    if half_width < 0:
        raise ValueError(f"half_width must be non-negative, got {half_width}")

    anchor = min(max(robust_time, 0.0), duration)
    event_start = max(0.0, anchor - half_width)
    event_end = min(duration, anchor + half_width)

    return (
        VideoSection(name="ante", start=0.0, end=event_start),
        VideoSection(name="event", start=event_start, end=event_end),
        VideoSection(name="post", start=event_end, end=duration),
    )
