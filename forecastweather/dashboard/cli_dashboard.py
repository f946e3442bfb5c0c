"""CLI dashboard: plain-text rendering of ApplicationState.

Loading indicator while loading, error view when an error is set and nothing
is loading, otherwise the current place, forecast, favorites and search
results. Plain str formatting, no TUI library.
"""

from __future__ import annotations

from datetime import UTC, datetime

from forecastweather.connectors.weather_models import (
    FavoritePlace,
    Forecast,
    PlaceSearchResult,
    PlaceWeather,
    aqi_label,
)
from forecastweather.core.state import ApplicationState


class CLIDashboard:
    """Terminal view of the weather state."""

    SEPARATOR = "=" * 60

    def render(self, state: ApplicationState) -> str:
        """Render the full dashboard as a string."""
        sections: list[str] = []

        header = (
            f"\n{self.SEPARATOR}\n  FORECAST WEATHER\n"
            f"  {datetime.now(UTC).strftime('%Y-%m-%d %H:%M:%S UTC')}\n{self.SEPARATOR}"
        )
        sections.append(header)

        if state.is_loading:
            sections.append("  Loading...")
        elif state.error_message is not None:
            sections.append(f"  ERROR: {state.error_message}")
        elif state.current_place is not None:
            sections.append(
                self.format_place(
                    state.current_place,
                    from_gps=state.is_current_from_gps,
                    favorite=state.is_current_place_favorite,
                )
            )
            if state.forecast is not None:
                sections.append(self.format_forecast(state.forecast))
        else:
            sections.append("  No place selected. Search for a city or use your location.")

        if state.gps_place is not None and not state.is_current_from_gps:
            gps = state.gps_place
            sections.append(
                f"\n  Your location: {gps.name} {gps.temperature:.0f}°C {gps.condition}"
            )

        if state.favorites:
            sections.append(self.format_favorites(state.favorites))

        if state.search_query:
            sections.append(
                self.format_search(state.search_query, state.search_results, state.is_searching)
            )

        sections.append(self.SEPARATOR)
        return "\n".join(sections)

    def format_place(self, place: PlaceWeather, from_gps: bool, favorite: bool) -> str:
        marker = " *" if favorite else ""
        source = " (GPS)" if from_gps else ""
        location = ", ".join(part for part in (place.name, place.region, place.country) if part)
        daylight = "day" if place.is_day else "night"
        lines = [
            f"\n  {location}{marker}{source}",
            f"  Local time: {place.local_time} ({place.time_zone_id}) {daylight}",
            f"  {place.temperature:.1f}°C  {place.condition}",
            f"  Max/Min: {place.max_temperature:.0f}° / {place.min_temperature:.0f}°"
            f"  Feels like: {place.feels_like:.0f}°",
            f"  Humidity: {place.humidity}%"
            f"  Wind: {place.wind_speed:.0f} km/h {place.wind_direction}",
            f"  UV: {place.uv:.0f}  Air quality: {aqi_label(place.air_quality_index)}",
        ]
        return "\n".join(lines)

    def format_forecast(self, forecast: Forecast) -> str:
        lines = ["\n  NEXT HOURS"]
        for hour in forecast.hourly:
            lines.append(
                f"  {hour.time:<6} {hour.temperature:>5.1f}°C"
                f"  rain {hour.chance_of_rain:>3}%  {hour.condition}"
            )
        lines.append("\n  NEXT DAYS")
        for day in forecast.daily:
            lines.append(
                f"  {day.date:<6} {day.max_temperature:>4.0f}° / {day.min_temperature:<4.0f}°"
                f" rain {day.chance_of_rain:>3}%  {day.condition}"
                f"  ({day.sunrise} - {day.sunset})"
            )
        return "\n".join(lines)

    def format_favorites(self, favorites: list[FavoritePlace]) -> str:
        lines = ["\n  FAVORITES"]
        lines.extend(f"  - {fav.name}, {fav.country}" for fav in favorites)
        return "\n".join(lines)

    def format_search(self, query: str, results: list[PlaceSearchResult], searching: bool) -> str:
        lines = [f"\n  SEARCH: {query!r}"]
        if searching:
            lines.append("  Searching...")
        elif not results:
            lines.append("  No results")
        lines.extend(f"  {i}. {r.name}, {r.region}, {r.country}" for i, r in enumerate(results, 1))
        return "\n".join(lines)
