"""
Virtualized list rendering.

Only the rows that intersect the viewport, plus a preload margin above and
below it, are rendered. Spacer heights stand in for everything else so the
scrollable height still matches the full list.
"""

import math
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from .models import Song

ELEMENT_HEIGHT = 48


class Window(BaseModel):
    start: int = Field(0, ge=0, description="First rendered index")
    end: int = Field(0, ge=0, description="One past the last rendered index")
    top_padding: int = 0
    bottom_padding: int = 0

    @property
    def size(self) -> int:
        return self.end - self.start


class RenderedList(BaseModel):
    hits: int = Field(0, description="Size of the whole filtered list")
    window: Window = Field(default_factory=Window)
    rows: List[str] = Field(default_factory=list)

    def hits_label(self) -> str:
        return f"Hits: {self.hits}"


class VirtualList:
    def __init__(
        self,
        container_height: int,
        element_height: int = ELEMENT_HEIGHT,
        preload_additional_height: Optional[int] = None,
    ) -> None:
        if element_height <= 0:
            raise ValueError("element_height must be positive")
        self.container_height = max(0, container_height)
        self.element_height = element_height
        if preload_additional_height is None:
            preload_additional_height = 2 * self.container_height
        self.preload_additional_height = max(0, preload_additional_height)

    def total_height(self, total: int) -> int:
        return total * self.element_height

    def window(self, total: int, scroll_top: int) -> Window:
        if total <= 0:
            return Window()

        max_scroll = max(0, self.total_height(total) - self.container_height)
        scroll_top = min(max(0, scroll_top), max_scroll)

        top = scroll_top - self.preload_additional_height
        bottom = scroll_top + self.container_height + self.preload_additional_height

        start = max(0, top // self.element_height)
        end = min(total, math.ceil(bottom / self.element_height))
        end = max(end, start)
        return Window(
            start=start,
            end=end,
            top_padding=start * self.element_height,
            bottom_padding=(total - end) * self.element_height,
        )

    def render(self, songs: Sequence[Song], scroll_top: int = 0) -> RenderedList:
        window = self.window(len(songs), scroll_top)
        rows = [render_row(s) for s in songs[window.start:window.end]]
        return RenderedList(hits=len(songs), window=window, rows=rows)


def render_row(song: Song) -> str:
    line = song.display_name()
    if song.genre:
        line += f"  [{song.genre}]"
    return line
