"""
FastAPI Web Application for the Song Catalog

Endpoints:
  GET    /songs, /songs.json           - List all songs (HTML or JSON)
  GET    /songs/{id}, /songs/{id}.json - One song by content hash
  POST   /songs                        - Create a song            (token)
  POST   /songs/batch                  - Upsert a batch by hash   (token)
  PATCH  /songs/{id}, PUT /songs/{id}  - Update a song            (token)
  DELETE /songs/{id}                   - Delete a song            (token)
  GET    /custom/lists                 - Names of all custom lists
  GET    /custom/list/{name}           - Song hashes in one list
  PUT    /custom/list/{name}/{hash}    - Add a song to a list      (token)
  DELETE /custom/list/{name}/{hash}    - Remove a song from a list (token)
  GET    /images/songs/{image}         - Cover art
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import FileResponse
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from . import handlers
from .auth import auth_error_handler, require_list_owner, require_token
from .cache import ListCache
from .config import Settings, configure_logging
from .database import SongDatabase
from .errors import AuthError
from .ingestion import BatchIngestionService
from .models import BatchRequest, SongCreateRequest, SongUpdateRequest
from .serializers import ResponseSerializer, json_only, negotiate, split_format

router = APIRouter()


def _db(request: Request) -> SongDatabase:
    return request.app.state.db


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

@router.get("/songs")
@router.get("/songs.json")
async def index(request: Request, serializer: ResponseSerializer = Depends(negotiate)):
    return serializer.render(await handlers.list_songs(_db(request)))


@router.get("/songs/{song_id}")
async def show(song_id: str, request: Request, serializer: ResponseSerializer = Depends(negotiate)):
    song_id, _ = split_format(song_id)
    return serializer.render(await handlers.show_song(_db(request), song_id))


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

@router.post("/songs", dependencies=[Depends(require_token)])
async def create(body: SongCreateRequest, request: Request,
                 serializer: ResponseSerializer = Depends(negotiate)):
    return serializer.render(await handlers.create_song(_db(request), body))


@router.post("/songs/batch", dependencies=[Depends(require_token)])
async def batch_create(body: BatchRequest, request: Request,
                       serializer: ResponseSerializer = Depends(json_only)):
    return serializer.render(await handlers.batch_create(request.app.state.ingestion, body))


@router.patch("/songs/{song_id}", dependencies=[Depends(require_token)])
@router.put("/songs/{song_id}", dependencies=[Depends(require_token)])
async def update(song_id: str, body: SongUpdateRequest, request: Request,
                 serializer: ResponseSerializer = Depends(negotiate)):
    song_id, _ = split_format(song_id)
    return serializer.render(await handlers.update_song(_db(request), song_id, body))


@router.delete("/songs/{song_id}", dependencies=[Depends(require_token)])
async def destroy(song_id: str, request: Request,
                  serializer: ResponseSerializer = Depends(negotiate)):
    song_id, _ = split_format(song_id)
    return serializer.render(await handlers.delete_song(_db(request), song_id))


# ---------------------------------------------------------------------------
# Custom lists
# ---------------------------------------------------------------------------

@router.get("/custom/lists")
async def custom_lists(request: Request, serializer: ResponseSerializer = Depends(json_only)):
    return serializer.render(await handlers.list_custom_lists(_db(request)))


@router.get("/custom/list/{list_name}")
async def custom_list(list_name: str, request: Request,
                      serializer: ResponseSerializer = Depends(json_only)):
    return serializer.render(await handlers.show_custom_list(_db(request), list_name))


@router.put("/custom/list/{list_name}/{song_hash}", dependencies=[Depends(require_list_owner)])
async def custom_list_insert(list_name: str, song_hash: str, request: Request,
                             serializer: ResponseSerializer = Depends(json_only)):
    return serializer.render(await handlers.add_to_custom_list(_db(request), list_name, song_hash))


@router.delete("/custom/list/{list_name}/{song_hash}", dependencies=[Depends(require_list_owner)])
async def custom_list_remove(list_name: str, song_hash: str, request: Request,
                             serializer: ResponseSerializer = Depends(json_only)):
    return serializer.render(await handlers.remove_from_custom_list(_db(request), list_name, song_hash))


# ---------------------------------------------------------------------------
# Cover art
# ---------------------------------------------------------------------------

@router.get("/images/songs/{image}")
async def song_image(image: str, request: Request):
    covers_dir = request.app.state.settings.covers_dir.resolve()
    path = (covers_dir / image).resolve()
    if not path.is_relative_to(covers_dir) or not path.is_file():
        raise HTTPException(status_code=404, detail="Image not found")
    return FileResponse(path)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        db = SongDatabase(settings.database_url)
        await db.connect()
        app_instance.state.db = db
        app_instance.state.ingestion = BatchIngestionService(db)
        app_instance.state.list_cache = ListCache(settings.cache_size)

        songs = await db.get_all_songs()
        logger.info(f"Song catalog ready. {len(songs)} songs in store.")

        yield

        await db.disconnect()

    app = FastAPI(title="Song Catalog", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AuthError, auth_error_handler)
    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(host: Optional[str] = None, port: Optional[int] = None):
    settings = app.state.settings
    configure_logging(settings.log_level)
    host = host or settings.host
    port = port or settings.port
    logger.info(f"Starting Song Catalog on {host}:{port}")
    uvicorn.run(
        "song_catalog.app:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
