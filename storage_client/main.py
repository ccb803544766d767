"""Command-line interface for the storage client."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .client import StorageClient
from .config import LOG_LEVEL
from .exceptions import StorageArgumentError, StorageError, TransferCancelledError
from .models import FileOptions, TransformOptions


def _configure_logging(debug: bool) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if debug else getattr(logging, LOG_LEVEL, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )


def _print_progress(percentage: float) -> None:
    sys.stdout.write(f"\r  {percentage:6.2f}%")
    sys.stdout.flush()
    if percentage >= 100:
        sys.stdout.write("\n")


def _file_options(args) -> FileOptions:
    options = FileOptions(upsert=args.upsert)
    if args.content_type:
        options.content_type = args.content_type
    if args.cache_control:
        options.cache_control = args.cache_control
    return options


def _transform(args) -> Optional[TransformOptions]:
    if not (args.width or args.height):
        return None
    return TransformOptions(width=args.width, height=args.height)


async def _run(args) -> int:
    async with StorageClient.from_env() as client:
        if args.command == "buckets":
            for bucket in await client.list_buckets():
                visibility = "public" if bucket.public else "private"
                print(f"{bucket.id}\t{visibility}")
            return 0

        bucket = client.from_(args.bucket)

        if args.command == "list":
            for item in await bucket.list(args.prefix or ""):
                suffix = "/" if item.is_folder else ""
                print(f"{item.name}{suffix}")
            return 0

        if args.command == "upload":
            progress = None if args.quiet else _print_progress
            stored = await bucket.upload(
                args.source,
                args.path,
                options=_file_options(args),
                on_progress=progress,
                infer_content_type=not args.content_type,
            )
            print(f"[OK] Uploaded {stored}")
            return 0

        if args.command == "resume":
            progress = None if args.quiet else _print_progress
            await bucket.upload_or_resume(
                args.source,
                args.path,
                options=_file_options(args),
                on_progress=progress,
            )
            print(f"[OK] Uploaded {args.bucket}/{args.path}")
            return 0

        if args.command == "download":
            progress = None if args.quiet else _print_progress
            written = await bucket.download_to(
                args.path,
                args.destination,
                transform=_transform(args),
                on_progress=progress,
            )
            print(f"[OK] Saved {written}")
            return 0

        if args.command == "sign":
            if args.paths and len(args.paths) > 1:
                results = await bucket.create_signed_urls(args.paths, args.expires_in)
                print(json.dumps([{"path": r.path, "signedURL": r.signed_url} for r in results], indent=2))
            else:
                print(await bucket.create_signed_url(args.paths[0], args.expires_in, transform=_transform(args)))
            return 0

        if args.command == "public-url":
            print(bucket.get_public_url(args.path, _transform(args)))
            return 0

    raise StorageArgumentError(f"Unknown command: {args.command}")


def _build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        description="Manage buckets and objects on a Supabase-compatible storage service"
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("buckets", help="List buckets")

    list_parser = subparsers.add_parser("list", help="List objects in a bucket")
    list_parser.add_argument("bucket")
    list_parser.add_argument("prefix", nargs="?")

    for name, help_text in (
        ("upload", "Upload a local file"),
        ("resume", "Upload a local file through the resumable endpoint"),
    ):
        upload_parser = subparsers.add_parser(name, help=help_text)
        upload_parser.add_argument("bucket")
        upload_parser.add_argument("source", type=Path, help="Local file to upload")
        upload_parser.add_argument("path", help="Object path inside the bucket")
        upload_parser.add_argument('--upsert', action='store_true', help="Overwrite an existing object")
        upload_parser.add_argument('--content-type', type=str, help="Content type (inferred from the file name by default)")
        upload_parser.add_argument('--cache-control', type=str, help="Cache max-age in seconds")
        upload_parser.add_argument('--quiet', action='store_true', help="Do not print progress")

    download_parser = subparsers.add_parser("download", help="Download an object to a local file")
    download_parser.add_argument("bucket")
    download_parser.add_argument("path")
    download_parser.add_argument("destination", type=Path)
    download_parser.add_argument('--quiet', action='store_true', help="Do not print progress")

    sign_parser = subparsers.add_parser("sign", help="Create signed URLs")
    sign_parser.add_argument("bucket")
    sign_parser.add_argument("paths", nargs="+")
    sign_parser.add_argument('--expires-in', type=int, default=3600, help="Lifetime in seconds (default: 3600)")

    public_parser = subparsers.add_parser("public-url", help="Print the public URL of an object")
    public_parser.add_argument("bucket")
    public_parser.add_argument("path")

    for image_parser in (download_parser, sign_parser, public_parser):
        image_parser.add_argument('--width', type=int, help="Resize width for image transforms")
        image_parser.add_argument('--height', type=int, help="Resize height for image transforms")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line interface."""

    args = _build_parser().parse_args(argv)
    _configure_logging(args.debug)

    try:
        return asyncio.run(_run(args))
    except StorageError as exc:
        print(f"[ERROR] {exc} (reason: {exc.reason.value})", file=sys.stderr)
    except TransferCancelledError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
    except StorageArgumentError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
    except KeyboardInterrupt:
        print("\n[WARN] Interrupted", file=sys.stderr)
        return 130
    return 1


if __name__ == "__main__":
    sys.exit(main())
