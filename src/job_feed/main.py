"""Command line front end for the job feed.

Commands:
  - list:   fetch the feed once and print the filtered view
  - scrape: start a remote scrape and follow it to a terminal status
  - watch:  keep the feed open and report pushed jobs until interrupted
  - stats:  print backend job statistics
  - serve-mock: run the in-memory mock backend
"""

import argparse
import asyncio
import sys

from loguru import logger

from job_feed.api.mock_backend import MockServerConfig, serve
from job_feed.client import HttpJobFeedClient
from job_feed.config import Config, settings
from job_feed.config.settings import JOB_SEARCH_FEATURE
from job_feed.exceptions import JobFeedError
from job_feed.schema import FeedView, FetchParams, ScrapeStatus, Tab
from job_feed.sync import FeedOrchestrator
from job_feed.sync.channel import NewJobsCallback
from job_feed.sync.controller import StatusCallback
from job_feed.utils import setup_logger


def _load_config() -> Config:
    try:
        return settings.load_config()
    except FileNotFoundError as e:
        logger.debug(f"{e}, using defaults")
        return Config()


def _fetch_params(config: Config, args: argparse.Namespace) -> FetchParams:
    update = {
        key: value
        for key, value in (("location", args.location), ("date_filter", args.date_filter))
        if value is not None
    }
    return config.filters.model_copy(update=update)


def _client() -> HttpJobFeedClient:
    return HttpJobFeedClient(settings.api_url, timeout=settings.http_timeout)


def _orchestrator(
    client: HttpJobFeedClient,
    on_new_jobs: NewJobsCallback | None = None,
    on_scrape_status: StatusCallback | None = None,
) -> FeedOrchestrator:
    return FeedOrchestrator(
        client,
        poll_interval=settings.poll_interval,
        request_timeout=settings.request_timeout,
        default_scrape_query=settings.default_scrape_query,
        on_new_jobs=on_new_jobs,
        on_scrape_status=on_scrape_status,
    )


def _log_view(view: FeedView) -> None:
    for job in view.jobs:
        logger.info(f"[{job.ai_match_score:>3}] {job.title or 'Untitled'} @ {job.company or 'Unknown'} ({job.id})")
    counts = " | ".join(f"{tab}: {count}" for tab, count in view.tab_counts.items())
    logger.info(f"Showing {len(view.jobs)} jobs on '{view.filters.active_tab}' | {counts}")


async def list_main(config: Config, args: argparse.Namespace) -> None:
    async with _client() as client, _orchestrator(client) as feed:
        await feed.initialize(_fetch_params(config, args))
        feed.set_tab(args.tab)
        _log_view(feed.search(args.search))


async def scrape_main(config: Config, args: argparse.Namespace) -> None:
    """Start a scrape and wait for it. Ctrl-C abandons the operation."""
    def on_status(status: ScrapeStatus) -> None:
        logger.info(f"Scrape status: {status}")

    def on_new_jobs(count: int) -> None:
        logger.success(f"{count} new jobs found!")

    async with _client() as client, _orchestrator(client, on_new_jobs=on_new_jobs, on_scrape_status=on_status) as feed:
        await feed.initialize(_fetch_params(config, args))
        before = feed.store.count()
        handle = await feed.start_scrape(args.query, location=args.location, date_filter=args.date_filter)
        logger.info(f"Scraping started ({handle.operation_id}), polling every {settings.poll_interval:.0f}s")

        status = await handle.wait()
        if status is ScrapeStatus.failed:
            logger.error(f"Scrape {handle.operation_id} failed")
        logger.info("\n" + "=" * 10)
        logger.info(f"Scrape {status}: {feed.store.count() - before} jobs added, {feed.store.count()} total")
        _log_view(feed.view())


async def watch_main(config: Config, args: argparse.Namespace) -> None:
    def on_new_jobs(count: int) -> None:
        logger.success(f"{count} new jobs found!")
        _log_view(feed.view())

    async with _client() as client, _orchestrator(client, on_new_jobs=on_new_jobs) as feed:
        feed.set_tab(args.tab)
        _log_view(await feed.initialize(_fetch_params(config, args)))
        logger.info("Watching for job updates, Ctrl-C to stop")
        await asyncio.Event().wait()


async def stats_main() -> None:
    async with _client() as client:
        stats = await client.get_job_stats()
    for key, value in stats.model_dump().items():
        logger.info(f"{key}: {value}")


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="job-feed",
        description="Live job feed synchronized with a scraping backend",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    filters = argparse.ArgumentParser(add_help=False)
    filters.add_argument("--location", help="Location filter")
    filters.add_argument("--date-filter", dest="date_filter", help="Posting date filter, e.g. yesterday")

    tabs = argparse.ArgumentParser(add_help=False)
    tabs.add_argument("--tab", choices=[t.value for t in Tab], default=Tab.all.value)

    # list
    list_parser = subparsers.add_parser("list", parents=[filters, tabs], help="Print the job feed")
    list_parser.add_argument("--search", default="", help="Case-insensitive text search")

    # scrape
    scrape_parser = subparsers.add_parser("scrape", parents=[filters], help="Start a scrape and wait for it")
    scrape_parser.add_argument("query", nargs="?", help=f"Search query (default: {settings.default_scrape_query!r})")

    # watch
    subparsers.add_parser("watch", parents=[filters, tabs], help="Follow pushed job updates")

    # stats
    subparsers.add_parser("stats", help="Print job statistics")

    # serve-mock
    mock_parser = subparsers.add_parser("serve-mock", help="Run the in-memory mock backend")
    mock_parser.add_argument("--host", default="127.0.0.1")
    mock_parser.add_argument("--port", type=int, default=8000)
    mock_parser.add_argument("--jobs-per-scrape", dest="jobs_per_scrape", type=int, default=3)

    return parser.parse_args()


async def main(args: argparse.Namespace, config: Config) -> None:
    """Main async entry point."""
    match args.command:
        case "list":
            await list_main(config, args)
        case "scrape":
            await scrape_main(config, args)
        case "watch":
            await watch_main(config, args)
        case "stats":
            await stats_main()
        case _:
            logger.error("Unknown command. Use: list, scrape, watch, stats or serve-mock")


def cli() -> None:
    """CLI entry point."""
    args = parse_args()

    if not args.command:
        print("\nPlease specify a command: list, scrape, watch, stats or serve-mock")
        print("  Example: job-feed list --tab for-you --search welder")
        sys.exit(1)

    setup_logger(
        settings.log_level,
        log_file=settings.log_file,
        sentry_dsn=settings.sentry_dsn,
        sentry_environment=settings.sentry_environment,
    )

    if args.command == "serve-mock":
        serve(MockServerConfig(host=args.host, port=args.port, jobs_per_scrape=args.jobs_per_scrape))
        return

    config = _load_config()
    if not config.can_user_access_feature(JOB_SEARCH_FEATURE):
        logger.warning(config.coming_soon_message(JOB_SEARCH_FEATURE))
        sys.exit(1)

    try:
        asyncio.run(main(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except JobFeedError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
