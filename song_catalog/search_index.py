"""
Fuzzy Search Index

Approximate matching of a query against song titles and artists. Query
characters are matched in order, case-insensitively; a character that
immediately follows the previous match is worth more than one found after
skipping ahead, and a character that is not found at all is skipped. That
makes partial input ("dfpnk") and small typos ("daft pank") still match.

Usage:
    index = SearchIndex(songs)
    results = index.search("daft pnk")
"""

from typing import List, Sequence, Tuple

from .models import Song

ADJACENT_SCORE = 3
SKIP_SCORE = 2
MAX_PATTERN_LENGTH = 32
MIN_QUERY_LENGTH = 2
# A field matches when it reaches MATCH_NUM/MATCH_DEN of the query's maximum score
MATCH_NUM, MATCH_DEN = 2, 3


def fuzzy_score(text: str, query: str) -> int:
    """Score ``query`` against ``text``; higher is a closer match."""
    text = text.lower()
    pos = 0
    score = 0
    for ch in query.lower():
        found = text.find(ch, pos)
        if found < 0:
            continue
        score += ADJACENT_SCORE if found == pos else SKIP_SCORE
        pos = found + 1
    return score


def max_score(query: str) -> int:
    """Score of a query matched against itself."""
    return ADJACENT_SCORE * len(query)


class SearchIndex:
    """Read-only index over a point-in-time list of songs."""

    def __init__(
        self,
        songs: Sequence[Song],
        keys: Tuple[str, ...] = ("title", "artist"),
        max_pattern_length: int = MAX_PATTERN_LENGTH,
        should_sort: bool = True,
    ) -> None:
        self.songs: List[Song] = list(songs)
        self.keys = keys
        self.max_pattern_length = max_pattern_length
        self.should_sort = should_sort
        # Lowercased field values, computed once
        self._fields: List[Tuple[str, ...]] = [
            tuple((getattr(s, k, None) or "").lower() for k in keys)
            for s in self.songs
        ]

    def __len__(self) -> int:
        return len(self.songs)

    def score(self, position: int, query: str) -> int:
        return max((fuzzy_score(f, query) for f in self._fields[position]), default=0)

    def search(self, query: str) -> List[Song]:
        """
        Songs matching ``query``, best first.

        Queries shorter than two characters are not meaningful for fuzzy
        matching and return every indexed song in index order.
        """
        if len(query) < MIN_QUERY_LENGTH:
            return list(self.songs)

        pattern = query[: self.max_pattern_length].lower()
        threshold = max_score(pattern) * MATCH_NUM

        hits: List[Tuple[int, int]] = []
        for i in range(len(self.songs)):
            s = self.score(i, pattern)
            if s * MATCH_DEN >= threshold:
                hits.append((s, i))

        if self.should_sort:
            # sorted() is stable, equal scores keep index order
            hits.sort(key=lambda h: h[0], reverse=True)
        return [self.songs[i] for _, i in hits]
