"""
Response serializers.

A serializer turns a handler result into an HTTP response in one
representation. The variant is picked by ``negotiate`` from the request
before the handler runs, so handlers never branch on format.
"""

import json
from html import escape
from typing import List, Optional, Protocol, Tuple

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from .cache import ListCache
from .handlers import Failure, HandlerResult
from .models import Song

JSON_SUFFIX = ".json"


class ResponseSerializer(Protocol):
    media_type: str

    def render(self, result: HandlerResult) -> Response:
        ...


def split_format(song_id: str) -> Tuple[str, Optional[str]]:
    """``"abc.json"`` -> ``("abc", "json")``; ids without a suffix pass through."""
    if song_id.endswith(JSON_SUFFIX):
        return song_id[: -len(JSON_SUFFIX)], "json"
    return song_id, None


def _dump_songs(songs: List[Song]) -> bytes:
    return json.dumps([s.model_dump(mode="json") for s in songs]).encode("utf-8")


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

class JsonSerializer:
    media_type = "application/json"

    def __init__(self, cache: Optional[ListCache] = None) -> None:
        self.cache = cache

    def render(self, result: HandlerResult) -> Response:
        if isinstance(result, Failure):
            return JSONResponse(result.errors, status_code=result.status)

        payload = result.payload
        if payload is None:
            return Response(status_code=result.status)
        if isinstance(payload, list):
            if all(isinstance(s, Song) for s in payload):
                return self._song_list(payload, result.status)
            return JSONResponse(payload, status_code=result.status)

        headers = {"Location": result.location} if result.location else None
        return JSONResponse(payload.model_dump(mode="json"), status_code=result.status, headers=headers)

    def _song_list(self, songs: List[Song], status: int) -> Response:
        if self.cache is not None:
            body = self.cache.fetch(songs, _dump_songs)
        else:
            body = _dump_songs(songs)
        return Response(content=body, status_code=status, media_type=self.media_type)


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""


def _page(title: str, body: str, status: int = 200) -> HTMLResponse:
    return HTMLResponse(_PAGE.format(title=escape(title), body=body), status_code=status)


class HtmlSerializer:
    media_type = "text/html"

    def render(self, result: HandlerResult) -> Response:
        if isinstance(result, Failure):
            return self._errors(result)

        payload = result.payload
        if payload is None:
            return RedirectResponse("/songs", status_code=303)
        if isinstance(payload, list):
            return self._song_list(payload)
        if result.location:
            # Successful create/update: send the browser to the song page
            return RedirectResponse(result.location, status_code=303)
        return self._song(payload)

    def _song_list(self, songs: List[Song]) -> HTMLResponse:
        rows = "\n".join(
            "<tr><td>{artist}</td><td><a href=\"/songs/{hash}\">{title}</a></td><td>{genre}</td></tr>".format(
                artist=escape(s.artist),
                hash=escape(s.song_hash, quote=True),
                title=escape(s.title),
                genre=escape(s.genre or ""),
            )
            for s in songs
        )
        body = (
            f"<p>{len(songs)} songs</p>\n"
            "<table>\n<tr><th>Artist</th><th>Title</th><th>Genre</th></tr>\n"
            f"{rows}\n</table>"
        )
        return _page("Songs", body)

    def _song(self, song: Song) -> HTMLResponse:
        fields = [
            ("Title", song.title),
            ("Artist", song.artist),
            ("Genre", song.genre or ""),
            ("Cover", song.cover or ""),
            ("Song hash", song.song_hash),
            ("Added", song.created_at.isoformat() if song.created_at else ""),
        ]
        items = "\n".join(f"<dt>{escape(k)}</dt><dd>{escape(v)}</dd>" for k, v in fields)
        body = f"<dl>\n{items}\n</dl>\n<p><a href=\"/songs\">Back</a></p>"
        return _page(song.display_name(), body)

    def _errors(self, result: Failure) -> HTMLResponse:
        errors = result.errors if isinstance(result.errors, list) else [result.errors]
        items = "\n".join(
            f"<li>{escape(field)} {escape(message)}</li>"
            for item in errors
            for field, messages in item.items()
            for message in messages
        )
        title = "Not found" if result.status == 404 else "Song could not be saved"
        return _page(title, f"<ul>\n{items}\n</ul>", status=result.status)


# ---------------------------------------------------------------------------
# Negotiation
# ---------------------------------------------------------------------------

def wants_json(request: Request) -> bool:
    if request.url.path.endswith(JSON_SUFFIX):
        return True
    accept = request.headers.get("accept", "")
    if "application/json" in accept:
        return True
    if "text/html" in accept:
        return False
    return request.headers.get("content-type", "").startswith("application/json")


def negotiate(request: Request) -> ResponseSerializer:
    """FastAPI dependency selecting the serializer for this request."""
    if wants_json(request):
        return JsonSerializer(getattr(request.app.state, "list_cache", None))
    return HtmlSerializer()


def json_only(request: Request) -> ResponseSerializer:
    return JsonSerializer(getattr(request.app.state, "list_cache", None))
