"""
Command-line entry point.

    song-catalog serve [--host H] [--port P]
    song-catalog create-token [--token T] [--owner NAME]
    song-catalog import songs.json
    song-catalog browse http://localhost:8080 [--search Q] [--sort recency] [--list NAME] [--shuffle]
"""

import argparse
import asyncio
import json
import secrets
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .browser import SongBrowser
from .config import Settings, configure_logging
from .database import SongDatabase
from .ingestion import BatchIngestionService
from .view import SortingMethod
from .virtual_list import VirtualList


async def _create_token(settings: Settings, token: Optional[str], owner: Optional[str] = None) -> str:
    token = token or secrets.token_hex(16)
    db = SongDatabase(settings.database_url)
    await db.connect()
    try:
        await db.add_token(token, owner)
    finally:
        await db.disconnect()
    return token


def _read_batch(path: Path) -> list:
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("songs", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of songs or {{\"songs\": [...]}}")
    return data


async def _import(settings: Settings, path: Path) -> int:
    items = _read_batch(path)
    db = SongDatabase(settings.database_url)
    await db.connect()
    try:
        result = await BatchIngestionService(db).ingest(items)
    finally:
        await db.disconnect()

    for outcome in result.outcomes:
        if not outcome.success:
            print(f"item {outcome.position}: {outcome.errors}")
    print(f"{len(result.outcomes) - result.failed_count} saved, {result.failed_count} failed")
    return 0 if result.all_succeeded else 1


async def _browse(args: argparse.Namespace) -> int:
    browser = SongBrowser(args.url, renderer=VirtualList(container_height=args.height))
    await browser.load()
    if args.list:
        await browser.load_custom_lists()
        if args.list not in browser.state.custom_lists:
            logger.error(f"No custom list named {args.list!r}")
            return 1
        await browser.select_list(args.list)
    if args.shuffle:
        browser.shuffle()
    elif args.search:
        browser.input(args.search)
        browser.flush()
    if SortingMethod(args.sort) is not browser.state.sorting_method:
        browser.toggle_sort()
    if args.scroll:
        browser.scroll(args.scroll)

    rendered = browser.render()
    print(rendered.hits_label())
    for row in rendered.rows:
        print(row)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="song-catalog", description="Song catalog service and tools")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    token = sub.add_parser("create-token", help="Register an API token for write requests")
    token.add_argument("--token", default=None, help="Token to register (random if omitted)")
    token.add_argument("--owner", default=None, help="User the token belongs to; it may edit only their custom list")

    imp = sub.add_parser("import", help="Upsert songs from a JSON file")
    imp.add_argument("file", type=Path)

    browse = sub.add_parser("browse", help="Fetch, search and print the song list")
    browse.add_argument("url", help="Base URL of the catalog service")
    browse.add_argument("--search", default="")
    browse.add_argument("--sort", default="artist", choices=[m.value for m in SortingMethod])
    browse.add_argument("--scroll", type=int, default=0, help="Scroll offset in pixels")
    browse.add_argument("--height", type=int, default=800, help="Viewport height in pixels")
    browse.add_argument("--list", default=None, help="Only show songs in this custom list")
    browse.add_argument("--shuffle", action="store_true", help="Show the songs in random order")

    args = parser.parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if args.command == "serve":
        from .app import main as serve_main
        serve_main(host=args.host, port=args.port)
        return 0

    if args.command == "create-token":
        print(asyncio.run(_create_token(settings, args.token, args.owner)))
        return 0

    if args.command == "import":
        try:
            return asyncio.run(_import(settings, args.file))
        except (OSError, ValueError) as e:
            logger.error(f"Import failed: {e}")
            return 2

    if args.command == "browse":
        return asyncio.run(_browse(args))

    parser.error(f"unknown command {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
