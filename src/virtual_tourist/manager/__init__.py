"""Pin and photo management CLI: drop pins, fetch Flickr photos and cache them in DuckDB."""

import argparse
import asyncio
import logging


def main() -> None:
    """CLI entry point for pin and photo management."""
    parser = argparse.ArgumentParser(description="Virtual Tourist photo manager")
    parser.add_argument("--db", help="DuckDB file (default: virtual_tourist.duckdb)")
    subparsers = parser.add_subparsers(dest="command")

    # init-db
    subparsers.add_parser("init-db", help="Initialize the database schema")

    # add-pin
    add_parser = subparsers.add_parser("add-pin", help="Drop a pin at a coordinate")
    _add_coordinate_args(add_parser)

    # list-pins
    subparsers.add_parser("list-pins", help="List all pins")

    # photos
    photos_parser = subparsers.add_parser(
        "photos", help="Show a pin's photos, fetching a random batch from Flickr if it has none"
    )
    _add_coordinate_args(photos_parser)

    # refresh
    refresh_parser = subparsers.add_parser(
        "refresh", help="Replace a pin's photos with a new random batch"
    )
    _add_coordinate_args(refresh_parser)

    # download
    dl_parser = subparsers.add_parser("download", help="Download and cache image data for a pin")
    _add_coordinate_args(dl_parser)

    # delete-pin
    del_parser = subparsers.add_parser("delete-pin", help="Delete a pin and its photos")
    _add_coordinate_args(del_parser)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    _init_logging()

    if args.command == "init-db":
        from virtual_tourist.db import get_connection

        conn = get_connection(args.db)
        conn.close()
        print("Database initialized successfully.")

    elif args.command == "add-pin":
        _cmd_add_pin(args)

    elif args.command == "list-pins":
        _cmd_list_pins(args)

    elif args.command in ("photos", "refresh"):
        asyncio.run(_cmd_fetch(args))

    elif args.command == "download":
        asyncio.run(_cmd_download(args))

    elif args.command == "delete-pin":
        _cmd_delete_pin(args)


def _add_coordinate_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--lat", type=float, required=True, help="Latitude (-90 to 90)")
    parser.add_argument("--lon", type=float, required=True, help="Longitude (-180 to 180)")


def _init_logging() -> None:
    """Route log records through rich."""
    from rich.logging import RichHandler

    from virtual_tourist.config import LOG_LEVEL

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
    )


def _open_repository(args: argparse.Namespace):
    from virtual_tourist.db import get_connection
    from virtual_tourist.manager.repository import PhotoRepository

    return PhotoRepository(get_connection(args.db))


def _find_pin(repo, args: argparse.Namespace):
    """Resolve the pin at --lat/--lon, or print an error."""
    pin = repo.find_pin(args.lat, args.lon)
    if pin is None:
        print(f"Error: no pin at ({args.lat}, {args.lon}). Use add-pin first.")
    return pin


def _cmd_add_pin(args: argparse.Namespace) -> None:
    if not (-90 <= args.lat <= 90 and -180 <= args.lon <= 180):
        print("Error: coordinate out of range")
        return
    repo = _open_repository(args)
    pin = repo.create_pin(args.lat, args.lon)
    repo.conn.close()
    print(f"Created pin {pin.id} at ({pin.latitude}, {pin.longitude})")


def _cmd_list_pins(args: argparse.Namespace) -> None:
    repo = _open_repository(args)
    for pin in repo.list_pins():
        photos = repo.list_photos(pin)
        cached = sum(1 for p in photos if not p.is_pending)
        print(
            f"  {pin.id:>4}  ({pin.latitude:.5f}, {pin.longitude:.5f})"
            f"  {len(photos):>3} photos  {cached:>3} cached"
        )
    repo.conn.close()


def _cmd_delete_pin(args: argparse.Namespace) -> None:
    repo = _open_repository(args)
    pin = _find_pin(repo, args)
    if pin is not None:
        repo.delete_pin(pin)
        print(f"Deleted pin {pin.id}")
    repo.conn.close()


async def _cmd_fetch(args: argparse.Namespace) -> None:
    """Load or refresh a pin's photo collection."""
    from virtual_tourist.manager.flickr_client import ImageSearchClient
    from virtual_tourist.manager.service import PinPhotoService

    repo = _open_repository(args)
    pin = _find_pin(repo, args)
    if pin is None:
        repo.conn.close()
        return

    service = PinPhotoService(ImageSearchClient(), repo)
    if args.command == "refresh":
        load = service.refresh_photos(pin)
    else:
        load = service.load_photos(pin)
    result = await load.completion
    repo.conn.close()

    if result.no_results:
        print("No photos found near this pin. Try refresh for another page.")
        return
    if not result.ok:
        print(f"Error: {result.error}")
        return
    for photo in result.photos:
        status = "cached" if not photo.is_pending else "pending"
        print(f"  {photo.id:>5}  [{status}]  {photo.image_url}")


async def _cmd_download(args: argparse.Namespace) -> None:
    """Download image data for every pending photo of a pin."""
    from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

    from virtual_tourist.errors import ApiError
    from virtual_tourist.manager.flickr_client import ImageSearchClient
    from virtual_tourist.manager.service import PinPhotoService

    repo = _open_repository(args)
    pin = _find_pin(repo, args)
    if pin is None:
        repo.conn.close()
        return

    service = PinPhotoService(ImageSearchClient(), repo)
    photos = repo.list_photos(pin)
    pending = [p for p in photos if p.is_pending]
    if not pending:
        print(f"All {len(photos)} photos already cached.")
        repo.conn.close()
        return

    errors = 0
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("{task.completed}/{task.total}"),
    ) as progress:
        task = progress.add_task(f"Downloading pin {pin.id}", total=len(pending))

        async def fetch_one(photo) -> None:
            nonlocal errors
            try:
                await service.ensure_photo_bytes(photo)
            except ApiError as e:
                errors += 1
                logging.getLogger(__name__).warning("Photo %d: %s", photo.id, e)
            progress.advance(task)

        await asyncio.gather(*(fetch_one(p) for p in pending))

    repo.conn.close()
    print(f"Cached {len(pending) - errors} of {len(pending)} photos.")
