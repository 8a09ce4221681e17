# ThreatView: Main Entry Point
#
# By default starts the API server with background feed refresh.
# ``--once`` fetches the feed a single time, prints the summary
# statistics as JSON, and exits.

import argparse
import json
import sys
from dataclasses import replace

from . import __version__
from .config import get_settings
from .feed.aggregation import aggregate
from .feed.fetcher import HttpFeedFetcher
from .feed.store import ThreatStore


def _run_once(settings) -> int:
    store = ThreatStore()
    fetcher = HttpFeedFetcher(url=settings.feed_url, timeout=settings.feed_timeout)
    report = store.refresh(fetcher)
    if not report.success:
        print(f"Feed refresh failed: {report.error}", file=sys.stderr)
        return 1
    stats = aggregate(store.records, top_n=settings.top_n)
    print(json.dumps({"refresh": report.to_dict(), "stats": stats.to_dict()}, indent=2))
    return 0


def main(argv=None):
    """Main entry point for ThreatView."""
    parser = argparse.ArgumentParser(
        description="ThreatView - threat feed dashboard backend",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="API host (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="API port (default: 8000)"
    )
    parser.add_argument(
        "--feed-url",
        default=None,
        help="Override THREATVIEW_FEED_URL"
    )
    parser.add_argument(
        "--no-refresh",
        action="store_true",
        help="Serve without polling the feed"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Fetch the feed once, print summary statistics as JSON, and exit"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ThreatView v{__version__}"
    )

    args = parser.parse_args(argv)

    settings = get_settings()
    if args.feed_url:
        settings = replace(settings, feed_url=args.feed_url)

    if args.once:
        return _run_once(settings)

    from .api.main import start_api_server

    try:
        start_api_server(
            host=args.host,
            port=args.port,
            refresh=not args.no_refresh,
            settings=settings,
        )
    except KeyboardInterrupt:
        print("\nShutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
