#!/usr/bin/env python3
"""
reporadar - starred-repository sync example

This example walks through the dashboard flow:
1. Resolve a GitHub token
2. Bulk-fetch starred repositories, most-starred first
3. Open a repository (cached, ETag-revalidated) with trend metrics
4. Search upstream
5. Unstar optimistically

Run with:
    REPORADAR_TEST_TOKEN=gho_... REPORADAR_DATABASE_URL=sqlite:///radar.db python examples/star_sync.py
"""

import asyncio
import logging
import sys

from reporadar import RepoRadarClient, RepoRadarError, configure_logging
from reporadar.exceptions import RateLimitedError, ReauthRequiredError


async def main() -> int:
    """Run the sync example."""
    print("=== reporadar star sync example ===\n")
    configure_logging(level=logging.INFO)

    async with RepoRadarClient.from_env() as radar:
        # Step 1: token
        print("1. Resolving access token...")
        try:
            await radar.resolve_token()
        except ReauthRequiredError as e:
            print(f"   {e.message}. Set REPORADAR_TEST_TOKEN and retry.")
            return 1
        print("   OK")

        # Step 2: starred list
        print("\n2. Fetching starred repositories...")
        try:
            starred = await radar.starred_repositories()
        except RateLimitedError as e:
            print(f"   Rate limited until {e.reset_at.isoformat()}")
            return 1
        print(f"   Fetched {starred.total_fetched} of {starred.total_starred}")
        if starred.is_limited:
            print(f"   (limited to the {radar.config.max_starred_repos} most recent)")
        for repo in starred.repositories[:5]:
            snapshot = repo.snapshot
            print(f"   - {snapshot.full_name}: {snapshot.stars} stars")

        if not starred.repositories:
            print("\nNo starred repositories, nothing else to show.")
            return 0

        # Step 3: detail view with metrics
        top = starred.repositories[0]
        print(f"\n3. Opening {top.snapshot.full_name}...")
        detail = await radar.repository(top.id)
        metrics = detail.metrics
        if metrics is not None and metrics.growth_rate is not None:
            print(f"   Growth: {metrics.growth_rate:.1%} ({metrics.stars_gained:+d} stars)")
            print(f"   Hot: {metrics.is_hot}, trending: {metrics.is_trending}")
        else:
            print("   No earlier snapshot cached yet; run again later for trends")

        releases = await radar.releases(detail.snapshot.owner_login, detail.snapshot.name)
        print(f"   Latest releases: {[r.tag_name for r in releases[:3]]}")

        # Step 4: search
        print("\n4. Searching for exact name matches...")
        try:
            results = await radar.search(
                f'"{top.snapshot.name}"', starred_ids={r.id for r in starred.repositories}
            )
        except RepoRadarError as e:
            print(f"   Search failed: {e}")
        else:
            print(f"   {results.total_count} results, showing {len(results.repositories)}")

        # Step 5: housekeeping
        print("\n5. Cleaning up the cache...")
        print(f"   Removed {await radar.cleanup_cache()} stale entries")

        status = await radar.rate_limit()
        print(f"\nRate limit: {status.remaining}/{status.limit}, resets {status.reset_at.isoformat()}")

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
