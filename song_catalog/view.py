"""
Song list view state.

The browsable list is an immutable ``ViewState`` advanced by a pure
transition function, ``reduce(state, event) -> state``. Rendering and
timers live elsewhere; everything here can be exercised without them.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .models import Song
from .search_index import SearchIndex


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

class SortingMethod(str, Enum):
    ARTIST = "artist"
    RECENCY = "recency"

    def toggled(self) -> "SortingMethod":
        return SortingMethod.RECENCY if self is SortingMethod.ARTIST else SortingMethod.ARTIST


def artist_sort_key(song: Song) -> Tuple[str, str]:
    """Case-insensitive artist, then case-insensitive title."""
    return (song.artist.casefold(), song.title.casefold())


def _recency_key(song: Song) -> Tuple[bool, float]:
    ts = song.created_at
    return (ts is not None, ts.timestamp() if ts is not None else 0.0)


def sort_songs(songs: Iterable[Song], method: SortingMethod) -> Tuple[Song, ...]:
    """Stable sort. Recency is newest first, songs without a timestamp last."""
    if method is SortingMethod.RECENCY:
        return tuple(sorted(songs, key=_recency_key, reverse=True))
    return tuple(sorted(songs, key=artist_sort_key))


def clean_songs(songs: Iterable[Song]) -> List[Song]:
    """Drop songs that cannot be displayed or searched (blank title or artist)."""
    return [s for s in songs if s.title and s.artist]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ListLoaded:
    songs: Tuple[Song, ...]


@dataclass(frozen=True)
class SearchInput:
    value: str


@dataclass(frozen=True)
class SearchPerformed:
    """The debounce window for the current search string has expired."""


@dataclass(frozen=True)
class SortToggled:
    pass


@dataclass(frozen=True)
class ScrollPositionReset:
    pass


@dataclass(frozen=True)
class Scrolled:
    scroll_top: int


@dataclass(frozen=True)
class CustomListsLoaded:
    """Names of the custom lists the server knows about; contents load lazily."""
    names: Tuple[str, ...]


@dataclass(frozen=True)
class CustomListLoaded:
    name: str
    song_hashes: FrozenSet[str]


@dataclass(frozen=True)
class ListSelected:
    """Restrict the view to one custom list, or ``None`` for the whole catalog."""
    name: Optional[str]


@dataclass(frozen=True)
class Shuffled:
    """Clear the search and show the visible songs in random order.

    The seed travels with the event so the transition stays reproducible.
    """
    seed: int


Event = Union[
    ListLoaded, SearchInput, SearchPerformed, SortToggled, ScrollPositionReset, Scrolled,
    CustomListsLoaded, CustomListLoaded, ListSelected, Shuffled,
]


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ViewState:
    songs: Tuple[Song, ...] = ()
    filtered_songs: Tuple[Song, ...] = ()
    search_string: str = ""
    sorting_method: SortingMethod = SortingMethod.ARTIST
    scroll_top: int = 0
    loaded: bool = False
    index: Optional[SearchIndex] = field(default=None, compare=False, repr=False)
    # List name -> song hashes, None until the list contents are fetched
    custom_lists: Dict[str, Optional[FrozenSet[str]]] = field(default_factory=dict)
    selected_list: Optional[str] = None

    @property
    def hits(self) -> int:
        return len(self.filtered_songs)

    @property
    def selected_list_pending(self) -> bool:
        return self.selected_list is not None and self.custom_lists.get(self.selected_list) is None


def _in_selected_list(state: ViewState, songs: Sequence[Song]) -> Tuple[Song, ...]:
    if state.selected_list is None:
        return tuple(songs)
    hashes = state.custom_lists.get(state.selected_list)
    if hashes is None:
        # Nothing to show until the list has been fetched
        return ()
    return tuple(s for s in songs if s.song_hash in hashes)


def _filter(state: ViewState) -> Tuple[Song, ...]:
    if state.index is None or len(state.search_string) <= 1:
        return _in_selected_list(state, state.songs)
    return _in_selected_list(state, state.index.search(state.search_string))


def reduce(state: ViewState, event: Event) -> ViewState:
    if isinstance(event, ListLoaded):
        # A sort toggled while the fetch was in flight still applies
        songs = sort_songs(clean_songs(event.songs), state.sorting_method)
        loaded = replace(state, songs=songs, index=SearchIndex(songs), loaded=True)
        return replace(loaded, filtered_songs=_in_selected_list(loaded, songs))

    if isinstance(event, SearchInput):
        return replace(state, search_string=event.value, scroll_top=0)

    if isinstance(event, SearchPerformed):
        if state.index is None:
            return state
        return replace(state, filtered_songs=_filter(state))

    if isinstance(event, SortToggled):
        method = state.sorting_method.toggled()
        return replace(
            state,
            sorting_method=method,
            songs=sort_songs(state.songs, method),
            filtered_songs=sort_songs(state.filtered_songs, method),
        )

    if isinstance(event, ScrollPositionReset):
        return replace(state, scroll_top=0)

    if isinstance(event, Scrolled):
        return replace(state, scroll_top=max(0, event.scroll_top))

    if isinstance(event, CustomListsLoaded):
        lists = {name: state.custom_lists.get(name) for name in event.names}
        return replace(state, custom_lists=lists)

    if isinstance(event, CustomListLoaded):
        lists = dict(state.custom_lists)
        lists[event.name] = frozenset(event.song_hashes)
        updated = replace(state, custom_lists=lists)
        if event.name != state.selected_list or not state.loaded:
            return updated
        return replace(updated, filtered_songs=_filter(updated))

    if isinstance(event, ListSelected):
        selected = replace(state, selected_list=event.name, scroll_top=0)
        if not state.loaded:
            return selected
        return replace(selected, filtered_songs=_filter(selected))

    if isinstance(event, Shuffled):
        cleared = replace(state, search_string="", scroll_top=0)
        songs = list(_in_selected_list(cleared, state.songs))
        random.Random(event.seed).shuffle(songs)
        return replace(cleared, filtered_songs=tuple(songs))

    raise TypeError(f"Unknown view event: {event!r}")
