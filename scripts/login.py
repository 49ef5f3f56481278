#!/usr/bin/env python3
"""
Log in to Instagram and print the media feed.

The access token is stored encrypted in the local keychain database, so
later runs reuse it until it expires. Pass --logout to forget it.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import httpx

from instafeed.core.auth_session import ConsoleAuthSession
from instafeed.core.client import InstagramClient
from instafeed.core.exceptions import AuthorizationCancelledError, InstafeedError
from instafeed.models.data_models import Config
from instafeed.utils.logging import setup_logging


def _load_config(path: Path) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        return Config.from_dict(json.load(f))


def _print_feed(media) -> None:
    print(f"\n{len(media)} media item(s)\n" + "-" * 60)
    for item in media:
        caption = (item.caption or "").replace("\n", " ")[:60]
        print(f"{item.timestamp:%Y-%m-%d} {item.media_type.value:<15} {item.id}  {caption}")
        for child in item.children:
            print(f"    └ {child.media_type.value:<11} {child.id}  {child.media_url}")


async def run(args: argparse.Namespace) -> int:
    config = _load_config(args.config)

    async with InstagramClient(config, fetch_automatically=False) as client:
        if args.logout:
            client.logout()
            print("Logged out.")
            return 0

        if not client.is_authenticated:
            print("\n" + "=" * 60)
            print("Instafeed - Instagram Login")
            print("=" * 60)
            try:
                await client.authorize(ConsoleAuthSession())
            except AuthorizationCancelledError:
                print("\nLogin cancelled")
                return 1
            except (InstafeedError, httpx.HTTPError) as e:
                print(f"\nERROR: {e}")
                return 1

        media = await client.fetch(force=True)
        if media is None:
            print("\nERROR: could not fetch media, see the log for details")
            return 1
        _print_feed(media)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Log in to Instagram and list your media.")
    parser.add_argument("config", type=Path, help="JSON file with serverURL, callbackScheme, clientId, keychainServiceName, keychainCredentialsKey")
    parser.add_argument("--logout", action="store_true", help="Forget the stored access token")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
