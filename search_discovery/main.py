"""
Main entry point and CLI for the search discovery client.

Runs one search session against the discovery service (or an in-memory
demo catalogue), loads the requested number of pages and prints the
accumulated results.
"""

import asyncio
import argparse
import logging
import sys
from datetime import datetime
from typing import Dict, List, Optional

from dotenv import load_dotenv

# Environment must be loaded before the engine config module reads it
load_dotenv()

from search_discovery.backend.http_backend import HttpDiscoveryClient
from search_discovery.backend.keyword_phrases import KeywordPhraseList
from search_discovery.backend.memory_backend import InMemorySearchBackend
from search_discovery.config.engine_config import ENGINE_CONFIG, EngineSettings, get_engine_settings
from search_discovery.models import (
    BackendMode,
    MaxDistanceStrategy,
    ResultItem,
    SearchParameters,
    SearchSnapshot,
)
from search_discovery.parameters.parameter_store import ParameterStore
from search_discovery.session.session_controller import SessionController
from search_discovery.session.similar_search import SimilarSearchFlow


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


DEMO_TOPICS = [
    ("Sleep study cohort", "Polysomnography recordings of adults with sleep apnea", "clinical", 2019),
    ("Sleep diaries", "Self-reported sleep duration and quality over six months", "survey", 2021),
    ("Circadian rhythm genes", "Expression of clock genes across tissues", "genomics", 2018),
    ("Heart rate variability", "Wearable heart rate recordings during sleep and exercise", "clinical", 2022),
    ("Urban air quality", "Hourly particulate matter readings from city sensors", "environment", 2020),
    ("River temperature", "Daily water temperature along a river network", "environment", 2017),
    ("Protein structures", "Predicted structures for bacterial proteins", "genomics", 2023),
    ("School attendance", "Attendance rates by district and grade", "survey", 2016),
]


def build_demo_catalogue(copies: int = 12) -> List[ResultItem]:
    """Build a small catalogue of datasets for demo mode."""
    items = []
    for copy in range(copies):
        for index, (name, description, kind, year) in enumerate(DEMO_TOPICS):
            item_id = f"demo-{index:02d}-{copy:02d}"
            items.append(ResultItem(
                id=item_id,
                score=round(1.0 - copy * 0.05, 2),
                payload={
                    'dataset_schema': {
                        'identifier': [item_id],
                        'name': f"{name} #{copy + 1}",
                        'description': description,
                    },
                    'kind': kind,
                    'year': year + copy % 3,
                },
            ))
    return items


def parse_filters(raw_filters: Optional[List[str]]) -> Dict[str, List[str]]:
    """
    Parse repeated KEY=VALUE arguments into a filter map.

    Raises:
        ValueError: If an argument has no '='
    """
    filters: Dict[str, List[str]] = {}
    for raw in raw_filters or []:
        key, sep, value = raw.partition('=')
        if not sep or not key.strip():
            raise ValueError(f"Invalid filter '{raw}', expected KEY=VALUE")
        filters.setdefault(key.strip(), []).append(value.strip())
    return filters


def format_result_item(position: int, item: ResultItem) -> str:
    """Format a single result for console output."""
    lines = [f"📌 {position}. {item.name or '[No name]'}"]
    lines.append(f"   ID: {item.id}")
    lines.append(f"   Score: {item.score:.3f}")
    if item.description:
        description = item.description
        if len(description) > 100:
            description = description[:97] + "..."
        lines.append(f"   {description}")
    lines.append("")
    return "\n".join(lines)


def format_results(snapshot: SearchSnapshot) -> str:
    """
    Format a session snapshot for console output.

    Args:
        snapshot: Snapshot to format

    Returns:
        Formatted string representation of all results
    """
    if not snapshot.results:
        return "No results found matching your criteria.\n"

    total = f"{snapshot.total_hits_estimate}{'+' if snapshot.is_total_lower_bound else ''}"
    output = [f"\n{'='*60}\n"]
    output.append(f"Showing {len(snapshot.results)} of {total} result(s) over {snapshot.page} page(s)\n")
    output.append(f"{'='*60}\n\n")
    for position, item in enumerate(snapshot.results, start=1):
        output.append(format_result_item(position, item) + "\n")
    output.append(f"{'='*60}\n")
    return "".join(output)


async def run_search(
    query: str,
    filters: Dict[str, List[str]],
    mode: str = BackendMode.CURSOR.value,
    hybrid_weight: Optional[float] = None,
    max_distance: Optional[float] = None,
    strategy: str = MaxDistanceStrategy.BOTH.value,
    like: Optional[str] = None,
    pages: int = 1,
    demo: bool = False,
    verbose: bool = False,
    settings: Optional[EngineSettings] = None
) -> int:
    """
    Execute one search session and print the results.

    Args:
        query: Search text (ignored when like is given)
        filters: Filter map
        mode: Backend pagination protocol
        hybrid_weight: Explicit hybrid weight, derived from the query if None
        max_distance: Maximum vector distance, default if None
        strategy: How max-distance is sent
        like: Anchor item for a similarity search
        pages: Maximum number of pages to load
        demo: Use the in-memory demo catalogue instead of the remote service
        verbose: Enable verbose logging output
        settings: Engine settings, read from the environment if None

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")

    if not like and not query.strip() and not filters:
        logger.error("Search query cannot be empty")
        print("Error: a query, a filter or --like is required", file=sys.stderr)
        return 1

    if pages < 1:
        print("Error: --pages must be at least 1", file=sys.stderr)
        return 1

    settings = settings or get_engine_settings()
    logger.debug(f"Using configuration: {ENGINE_CONFIG}")

    if demo:
        backend = InMemorySearchBackend(
            build_demo_catalogue(),
            keyword_phrases=["sleep diaries", "river temperature"],
        )
    else:
        backend = HttpDiscoveryClient(settings.backend.api_base_url)

    initial = SearchParameters.create(
        filters=filters,
        mode=BackendMode(mode),
        max_distance_strategy=MaxDistanceStrategy(strategy),
    )
    if max_distance is not None:
        initial = initial.with_changes(max_distance=max_distance)

    store = ParameterStore(
        initial,
        query_debounce_ms=settings.debounce.query_ms,
        hybrid_weight_debounce_ms=settings.debounce.hybrid_weight_ms,
        max_distance_debounce_ms=settings.debounce.max_distance_ms,
    )
    controller = SessionController(backend, store=store, settings=settings)
    try:
        await controller.load_keyword_phrases(KeywordPhraseList(backend, controller.error_handler))

        start_time = datetime.now()

        if like:
            print(f"\n🔍 Searching for items similar to '{like}'...")
            if not await SimilarSearchFlow(controller, backend).find_similar(like):
                print(f"Error: could not load item '{like}'", file=sys.stderr)
                return 1
            if hybrid_weight is not None:
                controller.search_now(hybrid_weight=hybrid_weight)
        else:
            print(f"\n🔍 Searching for '{query}'...")
            changes = {'query': query}
            if hybrid_weight is not None:
                changes['hybrid_weight'] = hybrid_weight
            controller.search_now(**changes)

        if filters:
            print(f"   Filters: {filters}")
        print()

        snapshot = await controller.wait_idle()
        while snapshot.page < pages and not snapshot.backend_offline and controller.load_more():
            snapshot = await controller.wait_idle()

        elapsed_time = (datetime.now() - start_time).total_seconds()

        if snapshot.backend_offline:
            print("❌ The search service is unavailable, try again later.", file=sys.stderr)
            return 1

        print(format_results(snapshot))
        logger.info(f"Search completed in {elapsed_time:.2f} seconds")
        print(f"✅ Search completed in {elapsed_time:.2f} seconds")
        print(f"   More results available: {'yes' if snapshot.has_more else 'no'}")
        print()
        return 0

    except KeyboardInterrupt:
        logger.info("Search interrupted by user")
        print("\n\n⚠️  Search interrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        logger.exception(f"Search failed with error: {str(e)}")
        print(f"\n❌ Error: {str(e)}", file=sys.stderr)
        return 1

    finally:
        await controller.close()
        if isinstance(backend, HttpDiscoveryClient):
            await backend.close()


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="search-discovery",
        description="Search a discovery service and page through the results",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search the demo catalogue
  search-discovery "sleep" --demo

  # Filter and load three pages
  search-discovery "sleep" --filter kind=clinical --filter year_min=2020 --pages 3

  # Use the legacy exclusion-list protocol
  search-discovery "air quality" --mode legacy

  # Find items similar to a known item
  search-discovery --like demo-00-00 --demo
        """
    )

    parser.add_argument(
        "query",
        nargs="?",
        default="",
        help="Search text (e.g., 'sleep apnea', '*')"
    )

    parser.add_argument(
        "--filter",
        action="append",
        dest="filters",
        metavar="KEY=VALUE",
        help="Filter value, repeatable (e.g., kind=clinical, year_min=2020)"
    )

    parser.add_argument(
        "--mode",
        choices=[m.value for m in BackendMode],
        default=BackendMode.CURSOR.value,
        help="Backend pagination protocol"
    )

    parser.add_argument(
        "--hybrid-weight",
        type=float,
        default=None,
        help="Keyword/semantic balance between 0 and 1 (derived from the query by default)"
    )

    parser.add_argument(
        "--max-distance",
        type=float,
        default=None,
        help="Maximum vector distance between 0 and 1"
    )

    parser.add_argument(
        "--strategy",
        choices=[s.value for s in MaxDistanceStrategy],
        default=MaxDistanceStrategy.BOTH.value,
        help="How max-distance is sent to the service"
    )

    parser.add_argument(
        "--like",
        metavar="ITEM_ID",
        default=None,
        help="Search for items similar to this item instead of QUERY"
    )

    parser.add_argument(
        "--pages",
        type=int,
        default=1,
        help="Maximum number of pages to load (default: 1)"
    )

    parser.add_argument(
        "--demo",
        action="store_true",
        help="Search a built-in demo catalogue instead of the remote service"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging output"
    )

    return parser


def main() -> int:
    """
    Main entry point for the CLI application.

    Returns:
        Exit code (0 for success, 1 for error, 130 on interrupt)
    """
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        filters = parse_filters(args.filters)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(
            run_search(
                query=args.query,
                filters=filters,
                mode=args.mode,
                hybrid_weight=args.hybrid_weight,
                max_distance=args.max_distance,
                strategy=args.strategy,
                like=args.like,
                pages=args.pages,
                demo=args.demo,
                verbose=args.verbose,
            )
        )
    except KeyboardInterrupt:
        print("\n\n⚠️  Search interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logger.exception(f"Unexpected error in main: {str(e)}")
        print(f"❌ Unexpected error: {str(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
