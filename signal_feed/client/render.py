"""Turns a ClientViewState into something a UI can draw."""
from dataclasses import dataclass
from datetime import date, tzinfo
from typing import List, Optional

from signal_feed.client.state import ClientViewState, ViewPhase, chronological_ranks
from signal_feed.schemas import SignalEvent
from signal_feed.utils.constants import DATE_HEADER_FORMAT


@dataclass
class RenderedCard:
    event: SignalEvent
    rank: int
    is_new: bool
    time_label: str


@dataclass
class RenderedGroup:
    day: date
    header: str
    cards: List[RenderedCard]


def build_view(state: ClientViewState, tz: Optional[tzinfo] = None) -> List[RenderedGroup]:
    """
    Date groups newest-first, cards newest-first, each card numbered by its
    oldest-first rank within the day.
    """
    groups = []
    for day, events in state.ordered_groups():
        ranks = chronological_ranks(events)
        cards = [
            RenderedCard(
                event=event,
                rank=ranks[event.id],
                is_new=event.id in state.highlighted_ids,
                time_label=event.timestamp.astimezone(tz).strftime("%H:%M:%S"),
            )
            for event in events
        ]
        groups.append(RenderedGroup(day=day, header=day.strftime(DATE_HEADER_FORMAT), cards=cards))
    return groups


def format_card(card: RenderedCard) -> str:
    event = card.event
    line = f"  #{card.rank:<3} {card.time_label}  {event.symbol:<10} {event.signal:<8} Price: {event.price:g}"
    if event.additional_info:
        line += f"  Note: {event.additional_info}"
    if card.is_new:
        line += "  [new]"
    return line


def render_text(state: ClientViewState, tz: Optional[tzinfo] = None) -> str:
    """Plain-text rendering for terminals and logs."""
    if state.phase == ViewPhase.ERROR:
        return f"Failed to load data. {state.error}"

    lines = []
    for group in build_view(state, tz):
        lines.append(group.header)
        lines.extend(format_card(card) for card in group.cards)

    if state.is_loading:
        lines.append("Loading...")
    elif not lines:
        lines.append("No signals yet.")
    elif not state.has_more_data:
        lines.append("-- end of feed --")
    return "\n".join(lines)
