"""CLI entry point for the Tender Desk workspace."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from .config import DATA_DIR, LOG_LEVEL
from .ingestion_pipeline import FeedIngestor
from .services.dashboard_stats import compute_dashboard_stats
from .state.persistence import JsonFileStorage, open_store

logger = logging.getLogger(__name__)

LAST_FETCHED_KEY = "feed_last_fetched"


def _print_tenders(tenders) -> None:
    for t in sorted(tenders, key=lambda t: t.closing_date):
        flag = " (est.)" if t.is_closing_date_estimated else ""
        print(f"  {t.closing_date[:10]}{flag}  {t.title[:70]}")
        print(f"      id={t.id}  source={t.source}")


async def _refresh(storage: JsonFileStorage, sources, force: bool) -> FeedIngestor:
    ingestor = FeedIngestor()
    stamp = storage.get(LAST_FETCHED_KEY)
    last_fetched = datetime.fromisoformat(stamp) if stamp else None
    await ingestor.refresh(sources, force=force, last_fetched=last_fetched)
    if ingestor.last_fetched and not ingestor.error:
        storage.set(LAST_FETCHED_KEY, ingestor.last_fetched.isoformat())
    return ingestor


async def run_refresh(args: argparse.Namespace) -> int:
    storage = JsonFileStorage(args.data_dir)
    store, _ = open_store(storage)
    print(f"[TenderDesk] Fetching {len(store.state.sources)} sources")
    print("-" * 60)

    ingestor = await _refresh(storage, store.state.sources, args.force)
    if ingestor.error:
        print(f"[Error] {ingestor.error}", file=sys.stderr)
        return 1
    if ingestor.last_fetched is None:
        print("Feed was refreshed less than 5 minutes ago; use --force to fetch again.")
        return 0

    _print_tenders(ingestor.tenders)
    print("\n" + "=" * 60)
    print(f"[Done] {len(ingestor.tenders)} tenders")
    return 0


async def run_watch(args: argparse.Namespace) -> int:
    storage = JsonFileStorage(args.data_dir)
    store, _ = open_store(storage)

    ingestor = await _refresh(storage, store.state.sources, force=True)
    if ingestor.error:
        print(f"[Error] {ingestor.error}", file=sys.stderr)
        return 1

    tender = next((t for t in ingestor.tenders if t.id == args.tender_id), None)
    if tender is None:
        print(f"[Error] No fetched tender with id {args.tender_id}", file=sys.stderr)
        return 1
    if store.get_watchlist_item(tender.id):
        print(f"Already watching: {tender.title}")
        return 0

    store.add_to_watchlist(tender, assigned_team_member_id=args.assign)
    print(f"[Done] Watching: {tender.title} (closes {tender.closing_date[:10]})")
    return 0


async def run_dashboard(args: argparse.Namespace) -> int:
    store, _ = open_store(JsonFileStorage(args.data_dir))
    user = store.get_team_member(args.user) if args.user else store.current_user
    stats = compute_dashboard_stats(store.state, user)

    scope = f"for {user.name}" if stats.personal and user else "for all tenders"
    print(f"[TenderDesk] Dashboard {scope}")
    print("-" * 60)
    print(f"  Active tenders:  {stats.active_tenders}")
    print(f"  Pending tasks:   {stats.pending_tasks}")
    print(f"  Total revenue:   ${stats.total_revenue:,.2f}")
    print(f"  Net profit:      ${stats.net_profit:,.2f}")

    if stats.upcoming_deadlines:
        print("\nUpcoming deadlines:")
        for d in stats.upcoming_deadlines:
            print(f"  {d.remaining_days:>2}d  {d.item.tender.title[:70]}")
    if stats.priority_tasks:
        print("\nPriority tasks:")
        for task in stats.priority_tasks:
            print(f"  {task.due_date[:10]}  {task.title}")
    print("\nFunnel:")
    for status, count in stats.tender_funnel.items():
        print(f"  {status:<10} {count}")
    return 0


def cli_main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="tender-desk",
        description="Tender discovery feed and bid workspace",
    )
    parser.add_argument(
        "--data-dir",
        default=str(DATA_DIR),
        help=f"Workspace storage directory (default: {DATA_DIR})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    refresh_parser = subparsers.add_parser("refresh", help="Fetch all configured feeds")
    refresh_parser.add_argument("--force", action="store_true", help="Ignore the 5-minute debounce")

    watch_parser = subparsers.add_parser("watch", help="Add a fetched tender to the watchlist")
    watch_parser.add_argument("tender_id", help="Tender id as shown by refresh")
    watch_parser.add_argument("--assign", default=None, help="Team member id to assign")

    dashboard_parser = subparsers.add_parser("dashboard", help="Show dashboard figures")
    dashboard_parser.add_argument("--user", default=None, help="Team member id to view as")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    log_level = logging.DEBUG if args.verbose else getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    command_map = {
        "refresh": run_refresh,
        "watch": run_watch,
        "dashboard": run_dashboard,
    }

    sys.exit(asyncio.run(command_map[args.command](args)))


if __name__ == "__main__":
    cli_main()
