"""Selection of the forward-looking window of events to display."""
import logging
from datetime import datetime, timedelta
from typing import Iterable, List

from processor.models import NormalizedEvent

logger = logging.getLogger(__name__)


def select_window(
    events: Iterable[NormalizedEvent],
    now: datetime,
    days_ahead: int,
    max_items: int
) -> List[NormalizedEvent]:
    """
    Pick the events starting within ``[now, now + days_ahead]``.

    Events without a start are dropped. The result is sorted by start,
    keeping feed order for equal starts, and cut to the earliest
    ``max_items``.

    Args:
        events: Normalized events in feed order
        now: Aware reference instant
        days_ahead: Horizon in days
        max_items: Maximum number of events returned

    Returns:
        Sorted, bounded list of events
    """
    until = now + timedelta(days=days_ahead)
    in_window = [
        event for event in events
        if event.start is not None and now <= event.start <= until
    ]
    in_window.sort(key=lambda event: event.start)
    selected = in_window[:max(max_items, 0)]

    logger.info(
        f"Selected {len(selected)} of {len(in_window)} events between "
        f"{now.isoformat()} and {until.isoformat()}"
    )
    return selected
