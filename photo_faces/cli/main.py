#!/usr/bin/env python
"""
Photo Faces command line

Index folders of photos, find known persons in a probe image, list the
gallery of persons and reset the store.

Usage:
    photo-faces index <folder>
    photo-faces query <image> [--json]
    photo-faces gallery
    photo-faces reset --yes
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from tqdm import tqdm

from photo_faces.core.config import Settings
from photo_faces.core.container import ServiceContainer
from photo_faces.core.exceptions import FaceIndexError
from photo_faces.core.logging import get_logger, setup_logging
from photo_faces.domain.value_objects.recognition import QueryStatus

logger = get_logger(__name__)


def build_settings(args: argparse.Namespace) -> Settings:
    """Create settings from the environment, applying command-line overrides."""
    overrides = {}
    if args.database_url:
        overrides["DATABASE_URL"] = args.database_url
    if args.threshold is not None:
        overrides["MATCH_THRESHOLD"] = args.threshold
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    return Settings(**overrides)


async def run_index(container: ServiceContainer, folder: str) -> int:
    """Index a folder, showing a progress bar."""
    progress: Optional[tqdm] = None
    exit_code = 0
    async for event in container.index_folder(folder):
        if event.completed:
            if progress is not None:
                progress.close()
            print(event.message)
            if event.summary and event.summary.failed:
                exit_code = 2
            continue
        if progress is None:
            progress = tqdm(total=event.total, desc="Indexing", unit="image")
        progress.set_postfix_str(event.result.state.value if event.result else "")
        progress.update(1)
    return exit_code


async def run_query(container: ServiceContainer, image: str, as_json: bool) -> int:
    """Query by image and print the persons found."""
    result = await container.query_by_image(image)
    if as_json:
        print(result.model_dump_json(indent=2))
        return 0

    print(result.message)
    if result.status is not QueryStatus.MATCHED:
        return 1
    for person in result.persons:
        print(f"\nPerson {person.person_id} (distance {person.distance:.2f}) appears in:")
        for detection in person.detections:
            print(f"  - {detection.image_path}")
    return 0


async def run_gallery(container: ServiceContainer) -> int:
    """Print every person with the images they appear in."""
    gallery = await container.gallery()
    if not gallery:
        print("No persons indexed yet.")
        return 0
    for person in gallery:
        print(f"Person {person.person_id}: {len(person.detections)} detections")
        for detection in person.detections:
            box = detection.box
            print(
                f"  - {detection.image_path} "
                f"[x={box.x:.0f} y={box.y:.0f} w={box.width:.0f} h={box.height:.0f}]"
            )
    return 0


async def run(args: argparse.Namespace) -> int:
    """Dispatch the selected command inside an initialized container."""
    settings = build_settings(args)
    setup_logging(settings)

    async with ServiceContainer(settings) as container:
        if args.command == "index":
            return await run_index(container, args.folder)
        if args.command == "query":
            return await run_query(container, args.image, args.json)
        if args.command == "gallery":
            return await run_gallery(container)
        if args.command == "reset":
            await container.reset_store()
            print("Store reset.")
            return 0
    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photo-faces",
        description="Recognize recurring persons across a photo collection"
    )
    parser.add_argument("--database-url", help="SQLAlchemy URL of the store (overrides DATABASE_URL)")
    parser.add_argument("--threshold", type=float, help="Match threshold (overrides MATCH_THRESHOLD)")
    parser.add_argument("--log-level", help="Log level (overrides LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser("index", help="Index the images of a folder")
    index_parser.add_argument("folder", help="Folder containing .jpg/.jpeg/.png images")

    query_parser = subparsers.add_parser("query", help="Find known persons in an image")
    query_parser.add_argument("image", help="Path to the query image")
    query_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    subparsers.add_parser("gallery", help="List every person and their detections")

    reset_parser = subparsers.add_parser("reset", help="Delete all persons, images and detections")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm the reset")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "reset" and not args.yes:
        parser.error("reset discards every stored identity, pass --yes to confirm")

    try:
        exit_code = asyncio.run(run(args))
    except FaceIndexError as e:
        logger.error("Command failed", command=args.command, error=str(e), details=e.details)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
