"""
Counter selection for events and filters

Each approximate counter is identified by a reference (the followed pubkey,
the reacted-to or commented-on event id) and an offset. The offset comes from
the reference itself, so independent relays pick the same key window for the
same counter without coordinating.

Nothing here raises: events and filters come from untrusted peers, so
anything malformed is simply left out (events) or reported as -1 (filters).
"""
from typing import List, NamedTuple, Optional, Sequence

from hllcount.models.events import Event, EventKind, Filter
from hllcount.utils.encoding import is_valid_hex_key

NOT_ELIGIBLE = -1

# Nibble position used to spread counters over offsets 8..23
NIBBLE_INDEX = 32
NIBBLE_BASE = 8

# Tag selector -> event kind pairs that have an approximate counter
SUPPORTED_SELECTORS = {
    "#p": EventKind.FOLLOW_LIST,
    "#e": EventKind.REACTION,
    "#E": EventKind.COMMENT,
}


class Contribution(NamedTuple):
    """Counter an event key should be folded into"""

    reference: str
    offset: int


def offset_from_nibble(hex_key: str) -> int:
    """
    Offset for the counter named by a validated 64-character hex key

    Reads the 33rd hex character (first nibble of byte 16) and adds 8,
    which keeps the result in [8, 23].
    """
    return int(hex_key[NIBBLE_INDEX], 16) + NIBBLE_BASE


def _contribution(value) -> Optional[Contribution]:
    if not is_valid_hex_key(value):
        return None
    return Contribution(reference=value, offset=offset_from_nibble(value))


def _tag_name(tag: Sequence[str]) -> Optional[str]:
    return tag[0] if len(tag) >= 1 else None


def _tag_value(tag: Sequence[str]) -> Optional[str]:
    return tag[1] if len(tag) >= 2 else None


def derive_event_contributions(event: Event) -> List[Contribution]:
    """
    List the counters an event updates

    - kind 3 (follow list): one per "p" tag holding a valid key
    - kind 7 (reaction): the last "e" tag only
    - kind 1111 (comment): the first "E" tag only
    - anything else: none

    Args:
        event: Parsed event

    Returns:
        (reference, offset) pairs in tag order
    """
    tags = event.tags

    if event.kind == EventKind.FOLLOW_LIST:
        contributions = []
        for tag in tags:
            if _tag_name(tag) == "p":
                contribution = _contribution(_tag_value(tag))
                if contribution is not None:
                    contributions.append(contribution)
        return contributions

    if event.kind == EventKind.REACTION:
        target = next((tag for tag in reversed(tags) if _tag_name(tag) == "e"), None)
    elif event.kind == EventKind.COMMENT:
        target = next((tag for tag in tags if _tag_name(tag) == "E"), None)
    else:
        return []

    if target is None:
        return []

    contribution = _contribution(_tag_value(target))
    return [contribution] if contribution is not None else []


def derive_filter_contribution(filter: Filter) -> Optional[Contribution]:
    """
    Find the single counter that answers a filter, if there is one

    A filter qualifies only when it has no ids, authors, since, until or
    search, exactly one kind, and exactly one tag selector with exactly one
    valid hex value, and the selector/kind pair is "#p"/3, "#e"/7 or "#E"/1111.

    Returns:
        (reference, offset), or None if the filter needs an exact count
    """
    if filter.ids:
        return None
    if filter.authors:
        return None
    if filter.since:
        return None
    if filter.until:
        return None
    if filter.search:
        return None

    if not filter.kinds or len(filter.kinds) != 1:
        return None

    selectors = filter.tag_selectors
    if len(selectors) != 1:
        return None

    selector, values = next(iter(selectors.items()))
    if not isinstance(values, (list, tuple)) or len(values) != 1:
        return None

    value = values[0]
    if not is_valid_hex_key(value):
        return None

    if SUPPORTED_SELECTORS.get(selector) != filter.kinds[0]:
        return None

    return _contribution(value)


def derive_filter_offset(filter: Filter) -> int:
    """
    Offset of the counter answering a filter

    Returns:
        Offset in [8, 23], or -1 when the filter is not eligible for
        approximate counting
    """
    contribution = derive_filter_contribution(filter)
    if contribution is None:
        return NOT_ELIGIBLE
    return contribution.offset
