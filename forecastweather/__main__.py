"""Allow running as: python -m forecastweather

Usage:
  python -m forecastweather                       # last viewed city, or GPS
  python -m forecastweather --city London         # fetch a city by name
  python -m forecastweather --search "sao pa"     # search, open first result
  python -m forecastweather --locate              # use current location
  python -m forecastweather --city Paris --toggle-favorite
"""

import argparse
import asyncio
import contextlib

from forecastweather.app import running_app
from forecastweather.config.settings import get_config
from forecastweather.core.orchestrator import WeatherOrchestrator
from forecastweather.dashboard.cli_dashboard import CLIDashboard
from forecastweather.utils.logger import get_logger, setup_logging

logger = get_logger("main")

FAVORITES_SETTLE_S = 5.0


async def _favorites_settled(orchestrator: WeatherOrchestrator) -> None:
    """Wait until the favorites listing agrees with the current place's flag."""
    async with contextlib.aclosing(orchestrator.observe_state()) as states:
        async for state in states:
            place = state.current_place
            if place is None:
                return
            listed = any(fav.name == place.name for fav in state.favorites)
            if listed == state.is_current_place_favorite:
                return


async def run(args: argparse.Namespace) -> None:
    async with running_app() as app:
        orchestrator = app.orchestrator
        await orchestrator.wait_until_idle()

        if args.search:
            orchestrator.search_locations(args.search)
            await orchestrator.wait_until_idle()
            results = orchestrator.state.search_results
            if results:
                orchestrator.select_search_result(results[0])
        elif args.city:
            orchestrator.fetch_by_name(args.city)
        elif args.locate:
            orchestrator.fetch_by_current_location()
        await orchestrator.wait_until_idle()

        if args.toggle_favorite:
            orchestrator.toggle_favorite()
            await orchestrator.wait_until_idle()
            try:
                await asyncio.wait_for(_favorites_settled(orchestrator), FAVORITES_SETTLE_S)
            except TimeoutError:
                logger.warning("favorites_listing_not_updated", timeout_s=FAVORITES_SETTLE_S)

        print(CLIDashboard().render(orchestrator.state))


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Forecast Weather terminal client")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--city", help="Show weather for a city by name")
    target.add_argument("--search", help="Search places and open the first result")
    target.add_argument("--locate", action="store_true", help="Use the current location")
    parser.add_argument(
        "--toggle-favorite",
        action="store_true",
        help="Add or remove the displayed city from favorites",
    )
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    setup_logging(log_level=args.log_level or get_config().log_level)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
