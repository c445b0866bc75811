"""
Song browser client.

Fetches the catalog once, then keeps a ``ViewState`` current as the user
types, toggles sorting and scrolls. Search input is debounced so the fuzzy
match runs once per pause in typing, not once per keystroke. Custom lists
are fetched by name the first time one is selected.
"""

import random
from typing import Any, List, Optional
from urllib.parse import quote

import httpx
from loguru import logger

from .debounce import AsyncioScheduler, Debouncer, Scheduler
from .models import Song
from .view import (
    CustomListLoaded,
    CustomListsLoaded,
    ListLoaded,
    ListSelected,
    ScrollPositionReset,
    Scrolled,
    SearchInput,
    SearchPerformed,
    Shuffled,
    SortToggled,
    ViewState,
    Event,
    reduce,
)
from .virtual_list import RenderedList, VirtualList

DEBOUNCE_SECONDS = 0.1
SONGS_PATH = "/songs.json"
CUSTOM_LISTS_PATH = "/custom/lists"


async def _get_json(base_url: str, path: str, client: Optional[httpx.AsyncClient]) -> Any:
    if client is None:
        async with httpx.AsyncClient(base_url=base_url) as own:
            return await _get_json(base_url, path, own)

    resp = await client.get(path, headers={"Accept": "application/json"})
    resp.raise_for_status()
    return resp.json()


async def fetch_songs(base_url: str, client: Optional[httpx.AsyncClient] = None) -> List[Song]:
    """GET the full song list. HTTP and network errors propagate."""
    return [Song.model_validate(item) for item in await _get_json(base_url, SONGS_PATH, client)]


async def fetch_custom_list_names(base_url: str, client: Optional[httpx.AsyncClient] = None) -> List[str]:
    return list(await _get_json(base_url, CUSTOM_LISTS_PATH, client))


async def fetch_custom_list(base_url: str, name: str, client: Optional[httpx.AsyncClient] = None) -> List[str]:
    return list(await _get_json(base_url, f"/custom/list/{quote(name, safe='')}", client))


class SongBrowser:
    def __init__(
        self,
        base_url: str,
        scheduler: Optional[Scheduler] = None,
        renderer: Optional[VirtualList] = None,
        debounce_delay: float = DEBOUNCE_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url
        self.client = client
        self.renderer = renderer or VirtualList(container_height=800)
        self.state = ViewState()
        self.search_count = 0
        self._debounced_search = Debouncer(
            scheduler or AsyncioScheduler(), debounce_delay, self._perform_search
        )

    def dispatch(self, event: Event) -> ViewState:
        self.state = reduce(self.state, event)
        return self.state

    async def load(self) -> ViewState:
        songs = await fetch_songs(self.base_url, self.client)
        self.dispatch(ListLoaded(tuple(songs)))
        logger.info(f"Loaded {len(self.state.songs)} of {len(songs)} songs into the browser.")
        # Input typed while the list was loading still applies, once
        if self._debounced_search.pending:
            self._debounced_search.flush()
        elif self.state.search_string:
            self._perform_search()
        return self.state

    async def load_custom_lists(self) -> ViewState:
        names = await fetch_custom_list_names(self.base_url, self.client)
        logger.info(f"Found {len(names)} custom lists.")
        return self.dispatch(CustomListsLoaded(tuple(names)))

    async def select_list(self, name: Optional[str]) -> ViewState:
        """Show only the songs of custom list ``name`` (``None`` shows everything)."""
        self.dispatch(ListSelected(name))
        if self.state.selected_list_pending:
            hashes = await fetch_custom_list(self.base_url, name, self.client)
            self.dispatch(CustomListLoaded(name, frozenset(hashes)))
        return self.state

    def input(self, value: str) -> None:
        self.dispatch(SearchInput(value))
        self._debounced_search(value)

    def _perform_search(self, _value: Optional[str] = None) -> None:
        self.search_count += 1
        self.dispatch(SearchPerformed())

    def flush(self) -> None:
        self._debounced_search.flush()

    def shuffle(self, seed: Optional[int] = None) -> ViewState:
        # A search still waiting on the debounce would undo the shuffle
        self._debounced_search.cancel()
        if seed is None:
            seed = random.randrange(2 ** 32)
        return self.dispatch(Shuffled(seed))

    def toggle_sort(self) -> ViewState:
        return self.dispatch(SortToggled())

    def scroll(self, scroll_top: int) -> ViewState:
        return self.dispatch(Scrolled(scroll_top))

    def scroll_to_top(self) -> ViewState:
        return self.dispatch(ScrollPositionReset())

    def render(self) -> RenderedList:
        return self.renderer.render(self.state.filtered_songs, self.state.scroll_top)
