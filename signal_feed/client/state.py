"""
Client view state and the de-duplicating merge.

Everything here is pure data manipulation so the reconciliation rules can be
exercised without a network or a UI.
"""
from dataclasses import dataclass, field
from datetime import date, tzinfo
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from signal_feed.schemas import SignalEvent


class ViewPhase(str, Enum):
    """Viewer lifecycle."""
    IDLE = "idle"
    LOADING_INITIAL = "loading_initial"
    READY = "ready"
    LOADING_MORE = "loading_more"
    ERROR = "error"


@dataclass
class FeedPage:
    """One page as returned by ``GET /api/data``."""
    items: List[SignalEvent]
    total_pages: int
    current_page: int
    # Server row count at fetch time; None when the source does not report it
    total_count: Optional[int] = None


@dataclass
class ClientViewState:
    """
    Everything one viewer knows about what it has rendered.

    Invariants:
    - ``displayed_ids`` holds exactly the ids present in ``date_groups``
    - each group is sorted newest-first by (timestamp, id)
    - ``synced_count`` is the server row count the view was last reconciled
      against; rows beyond it may still be missing from the revealed pages
    """
    displayed_ids: Set[int] = field(default_factory=set)
    current_page: int = 0
    has_more_data: bool = True
    date_groups: Dict[date, List[SignalEvent]] = field(default_factory=dict)
    is_loading: bool = False
    initial_load_complete: bool = False
    phase: ViewPhase = ViewPhase.IDLE
    error: Optional[str] = None
    highlighted_ids: Set[int] = field(default_factory=set)
    pending_refresh: bool = False
    synced_count: Optional[int] = None

    def ordered_groups(self) -> List[Tuple[date, List[SignalEvent]]]:
        """Date groups newest date first."""
        return [(day, self.date_groups[day]) for day in sorted(self.date_groups, reverse=True)]

    @property
    def rendered_count(self) -> int:
        return sum(len(events) for events in self.date_groups.values())

    def oldest_key(self):
        """Sort key of the oldest rendered event, or None when nothing is rendered."""
        if not self.date_groups:
            return None
        return self.ordered_groups()[-1][1][-1].sort_key()


def local_date(event: SignalEvent, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of an event in ``tz`` (system local time when None)."""
    return event.timestamp.astimezone(tz).date()


def insert_event(state: ClientViewState, event: SignalEvent, tz: Optional[tzinfo] = None) -> None:
    """Place one event in its date group, keeping the group newest-first."""
    group = state.date_groups.setdefault(local_date(event, tz), [])
    key = event.sort_key()
    index = len(group)
    for position, existing in enumerate(group):
        if existing.sort_key() < key:
            index = position
            break
    group.insert(index, event)


def merge_events(
    state: ClientViewState,
    events: Iterable[SignalEvent],
    tz: Optional[tzinfo] = None,
    highlight: bool = False,
) -> List[SignalEvent]:
    """
    Merge fetched events, skipping ids that are already displayed.

    Pages fetched at different times overlap when rows were inserted in
    between (offsets shift), so every page goes through this filter.

    Returns:
        The events that were actually added
    """
    added = []
    for event in events:
        if event.id in state.displayed_ids:
            continue
        insert_event(state, event, tz)
        state.displayed_ids.add(event.id)
        if highlight:
            state.highlighted_ids.add(event.id)
        added.append(event)
    return added


def is_last_page(page: FeedPage, requested: int) -> bool:
    """True when no further page can hold data."""
    return not page.items or requested >= page.total_pages - 1


def chronological_ranks(events: Iterable[SignalEvent]) -> Dict[int, int]:
    """
    Oldest-first rank (1-based) of each event within one date group.
    Display order is newest-first; numbering counts from the oldest event of
    the day so a label does not move when newer events land on top.
    """
    ordered = sorted(events, key=lambda event: event.sort_key())
    return {event.id: rank for rank, event in enumerate(ordered, start=1)}
