"""
RideOut - Rate My Ride

CLI entry point for posting bikes, rating them and browsing the gallery.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from rideout.errors import RideOutError
from rideout.models.category import RATING_CATEGORIES
from rideout.service import RateMyRideService
from rideout.session import ViewerSession
import config.settings as settings


def setup_logging(log_level: str = "INFO"):
    """Configure logging for the entire application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(settings.LOG_FILE)
        ]
    )


def parse_scores(pairs):
    """Turn ["style=4", "mods=2"] into {"style": 4, "mods": 2}."""
    scores = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected category=score, got '{pair}'")
        try:
            scores[key.strip()] = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Score must be an integer: '{pair}'")
    return scores


def format_item(item) -> str:
    stars = "  ".join(
        f"{cat.emoji} {cat.label} {item.ratings[key].avg:.1f} ({item.ratings[key].count})"
        for key, cat in RATING_CATEGORIES.items()
    )
    return (
        f"[{item.item_id}] {item.bike_name} by {item.owner_name} | "
        f"⭐ {item.overall_rating:.1f} from {item.total_ratings} ratings | "
        f"{item.view_count} views\n    {stars}"
    )


def print_page(page):
    if not page.items:
        print("(no bikes)")
    for item in page.items:
        print(format_item(item))
    if page.next_cursor:
        print(f"\nNext page: --cursor {page.next_cursor}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="RideOut - Rate My Ride",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Post a bike
  python main.py --viewer rider-1 post --image bike.jpg --name "Sur-Ron X"

  # Rate it as another rider
  python main.py --viewer rider-2 rate <item-id> style=4 mods=2

  # Browse top rated, then the leaderboard
  python main.py feed --sort top_rated
  python main.py leaderboard
        """
    )

    parser.add_argument(
        "--data-root",
        default=str(settings.DATA_ROOT),
        help=f"Data directory (default: {settings.DATA_ROOT})"
    )
    parser.add_argument(
        "--viewer",
        help="Viewer id performing the action (required for post/rate/delete)"
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.LOG_LEVEL})"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    post = commands.add_parser("post", help="Post a bike")
    post.add_argument("--image", help="Path to bike photo (omit for a text-only post)")
    post.add_argument("--name", default="", help="Bike name")
    post.add_argument("--caption", default="", help="Caption")
    post.add_argument("--owner-name", default="", help="Display name")

    rate = commands.add_parser("rate", help="Rate a bike")
    rate.add_argument("item_id")
    rate.add_argument(
        "scores",
        nargs="*",
        help=f"category=score pairs; categories: {', '.join(RATING_CATEGORIES)}"
    )

    show = commands.add_parser("show", help="Show a bike (counts a view)")
    show.add_argument("item_id")

    feed = commands.add_parser("feed", help="List bikes")
    feed.add_argument("--sort", default="newest", choices=["newest", "top_rated", "topRated"])
    feed.add_argument("--page-size", type=int, default=settings.DEFAULT_PAGE_SIZE)
    feed.add_argument("--cursor")

    board = commands.add_parser("leaderboard", help="Top rated bikes with enough ratings")
    board.add_argument("--page-size", type=int, default=settings.LEADERBOARD_LIMIT)
    board.add_argument("--min-ratings", type=int, default=settings.LEADERBOARD_MIN_RATINGS)
    board.add_argument("--cursor")

    export = commands.add_parser("export", help="Write leaderboard CSV")
    export.add_argument("--output-dir", default=str(settings.OUTPUT_ROOT))
    export.add_argument("--limit", type=int, default=settings.LEADERBOARD_LIMIT)
    export.add_argument("--min-ratings", type=int, default=settings.LEADERBOARD_MIN_RATINGS)

    mine = commands.add_parser("mine", help="List a rider's bikes")
    mine.add_argument("--owner", help="Owner id (defaults to --viewer)")

    delete = commands.add_parser("delete", help="Delete one of your bikes")
    delete.add_argument("item_id")

    return parser


def run(args, service: RateMyRideService) -> int:
    """Execute one CLI command. Returns the process exit code."""
    if args.command in ("post", "rate", "delete") and not args.viewer:
        print(f"❌ --viewer is required for '{args.command}'")
        return 1
    session = ViewerSession.acquire(args.viewer) if args.viewer else None

    if args.command == "post":
        fields = {"bike_name": args.name, "caption": args.caption, "owner_name": args.owner_name}
        if args.image:
            image_path = Path(args.image)
            item = service.post_bike(session, image_path.read_bytes(), image_path.name, fields)
        else:
            item = service.create_item(session, fields)
        print(f"✅ Posted {item.bike_name}: {item.item_id}")

    elif args.command == "rate":
        result = service.submit_rating(session, args.item_id, parse_scores(args.scores))
        print("✅ Rating saved")
        print(format_item(result.item))

    elif args.command == "show":
        item = service.view_item(args.item_id)
        if item is None:
            print(f"❌ Bike not found: {args.item_id}")
            return 1
        print(format_item(item))
        if session is not None:
            rating = service.get_rating(session, args.item_id)
            if rating is not None:
                print(f"    Your rating: {json.dumps(rating.scores)}")

    elif args.command == "feed":
        print_page(service.list_feed(args.sort, args.page_size, args.cursor))

    elif args.command == "leaderboard":
        print_page(service.leaderboard(args.page_size, args.cursor, args.min_ratings))

    elif args.command == "export":
        output_path = service.export_leaderboard(args.output_dir, args.limit, args.min_ratings)
        print(f"✅ Leaderboard: {output_path}")

    elif args.command == "mine":
        owner = args.owner or args.viewer
        if not owner:
            print("❌ --owner or --viewer is required for 'mine'")
            return 1
        items = service.items_by_owner(owner)
        if not items:
            print("(no bikes)")
        for item in items:
            print(format_item(item))

    elif args.command == "delete":
        deleted = service.delete_item(session, args.item_id)
        print(f"✅ Deleted {args.item_id} and {deleted} ratings")

    return 0


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        service = RateMyRideService.from_data_root(args.data_root)
        sys.exit(run(args, service))

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sys.exit(1)

    except (RideOutError, argparse.ArgumentTypeError, OSError) as e:
        logger.error(f"Command '{args.command}' failed: {e}")
        print(f"\n❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
