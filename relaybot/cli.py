"""
Terminal relay for testing the upload pipeline locally.

Uses the exact same RelayService the Discord bot uses, so behaviour here
matches what members will see in Discord.

Usage:
    relaybot-upload https://example.com/big.iso --token $ZIPLINE_TOKEN
    relaybot-upload URL --threshold 0 --chunk-size 1048576   # force chunked
"""

import argparse
import asyncio
import sys

import aiohttp

from relaybot.config import settings
from relaybot.logging_config import setup_logging
from relaybot.services.chunk_store import ChunkStore
from relaybot.services.errors import RelayError
from relaybot.services.models import UploadSettings
from relaybot.services.relay import RelayService
from relaybot.utils import filename_from_url, format_file_size, progress_bar


def parse_args(argv=None):
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(prog="relaybot-upload", description="Relay a URL into Zipline.")
    parser.add_argument("url")
    parser.add_argument("-f", "--filename")
    parser.add_argument("--base-url", default=settings.ZIPLINE_BASE_URL)
    parser.add_argument("--token", default=settings.ANON_ZIPLINE_TOKEN)
    parser.add_argument("--expiry")
    parser.add_argument("--compression")
    parser.add_argument("--threshold", type=int, default=settings.CHUNK_THRESHOLD_BYTES)
    parser.add_argument("--chunk-size", type=int, default=settings.CHUNK_SIZE_BYTES)
    parser.add_argument("--staging-dir", default=settings.STAGING_DIR)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def print_progress(sent: int, total: int):
    print(f"\r⏳ {progress_bar(sent, total)} {format_file_size(sent)}", end="", flush=True)


async def run(args) -> int:
    if not args.token:
        print("Error: no token given (--token or ANON_ZIPLINE_TOKEN)", file=sys.stderr)
        return 2

    timeout = aiohttp.ClientTimeout(total=settings.TRANSFER_TIMEOUT_SECONDS)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        relay = RelayService(
            session=session,
            store=ChunkStore(args.staging_dir),
            threshold=args.threshold,
            chunk_size=args.chunk_size,
        )
        try:
            result = await relay.relay(
                args.url,
                args.filename or filename_from_url(args.url),
                base_url=args.base_url,
                credential=args.token,
                upload_settings=UploadSettings(expiry=args.expiry, compression=args.compression),
                on_progress=print_progress,
            )
        except RelayError as e:
            print(f"\nError: {e}", file=sys.stderr)
            return 1

    print(f"\nUploaded via {result.route.value} ({format_file_size(result.bytes_sent)}):")
    for link in result.links(args.base_url):
        print(f"  {link}")
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING")
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
