#!/usr/bin/env python3
"""
Channel search script

Runs the YouTube channel search directly, without creating a query,
and prints one line per channel found.

Usage:
    python scripts/search_channels.py cooking baking --min-subscribers 10000

Note:
    - Each keyword costs about 101 API units (search + channel details)
    - Make sure YOUTUBE_API_KEY is set in the environment or .env
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.settings import settings
from app.schemas.youtube import SearchOptions
from app.services.youtube_client import YouTubeAPIError, YouTubeClient


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search YouTube channels by keyword")
    parser.add_argument("keywords", nargs="+", help="Search keywords")
    parser.add_argument("--max-results", type=int, default=None)
    parser.add_argument("--min-subscribers", type=int, default=settings.youtube_min_subscribers)
    parser.add_argument("--country", default=None)
    parser.add_argument("--contact-only", action="store_true", help="Only channels with contact info")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)

    if not settings.youtube_api_key:
        print("YOUTUBE_API_KEY is not set", file=sys.stderr)
        return 1

    options = SearchOptions(
        keywords=args.keywords,
        max_results=args.max_results,
        min_subscribers=args.min_subscribers,
        country=args.country,
        has_contact_info=args.contact_only,
    )
    client = YouTubeClient.from_settings(settings)

    try:
        channels = await client.search_channels(options)
    except YouTubeAPIError as e:
        print(f"Search failed: {e}", file=sys.stderr)
        return 1

    print(f"{'='*60}")
    print(f"Keywords: {', '.join(options.keywords)} ({len(channels)} channels)")
    print(f"{'='*60}")

    for idx, channel in enumerate(channels, 1):
        contact = ", ".join(channel["emails"] + channel["websites"]) or "-"
        print(
            f"[{idx}] {channel['channelTitle']} "
            f"({channel['subscriberCount']:,} subscribers, {channel['country']}) "
            f"{channel['youtubeUrl']} | {contact}"
        )

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
