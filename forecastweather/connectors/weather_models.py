"""Pydantic models for the WeatherAPI.com wire schema and the app's weather snapshots.

Wire models (``Api*``, ``WeatherResponse``) mirror the JSON returned by the
API and ignore fields the app does not use. Domain models (``PlaceWeather``,
``Forecast``, ...) are immutable snapshots built from one response.
"""

from __future__ import annotations

import time
from datetime import UTC, date, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HOURLY_LIMIT = 12

# US-EPA air quality index (1 = best, 6 = worst)
AQI_LABELS: dict[int, str] = {
    1: "Good",
    2: "Moderate",
    3: "Unhealthy for sensitive groups",
    4: "Unhealthy",
    5: "Very unhealthy",
    6: "Hazardous",
}


# ================================================================
# Wire schema
# ================================================================


class ApiCondition(BaseModel):
    text: str
    icon: str = ""
    code: int = 0


class ApiAirQuality(BaseModel):
    us_epa_index: int | None = Field(default=None, alias="us-epa-index")
    gb_defra_index: int | None = Field(default=None, alias="gb-defra-index")
    pm2_5: float | None = None
    pm10: float | None = None


class ApiLocation(BaseModel):
    name: str
    region: str = ""
    country: str = ""
    lat: float
    lon: float
    tz_id: str
    localtime_epoch: int
    localtime: str


class ApiCurrent(BaseModel):
    temp_c: float
    is_day: int
    condition: ApiCondition
    wind_kph: float
    wind_dir: str
    humidity: int
    feelslike_c: float
    uv: float
    air_quality: ApiAirQuality | None = None


class ApiDay(BaseModel):
    maxtemp_c: float
    mintemp_c: float
    daily_chance_of_rain: int = 0
    condition: ApiCondition
    uv: float


class ApiAstro(BaseModel):
    sunrise: str
    sunset: str


class ApiHour(BaseModel):
    time_epoch: int
    time: str
    temp_c: float
    condition: ApiCondition
    wind_kph: float
    humidity: int
    chance_of_rain: int = 0
    air_quality: ApiAirQuality | None = None


class ApiForecastDay(BaseModel):
    date: str
    date_epoch: int
    day: ApiDay
    astro: ApiAstro
    hour: list[ApiHour] = []


class ApiForecast(BaseModel):
    forecastday: list[ApiForecastDay]


class WeatherResponse(BaseModel):
    """Body of ``current.json`` and ``forecast.json``."""

    location: ApiLocation
    current: ApiCurrent
    forecast: ApiForecast | None = None


class ApiSearchLocation(BaseModel):
    """One element of the ``search.json`` array."""

    name: str
    region: str = ""
    country: str = ""
    lat: float
    lon: float
    id: int | None = None
    url: str | None = None


# ================================================================
# Domain snapshots
# ================================================================


class PlaceWeather(BaseModel):
    """Current conditions for one place, built from a single API response."""

    model_config = ConfigDict(frozen=True)

    name: str
    region: str
    country: str
    latitude: float
    longitude: float
    temperature: float
    max_temperature: float
    min_temperature: float
    condition: str
    condition_icon: str
    humidity: int
    wind_speed: float = Field(description="Wind speed in km/h")
    wind_direction: str
    uv: float
    feels_like: float
    air_quality_index: int | None = Field(default=None, description="US-EPA index, 1-6")
    is_day: bool
    local_time: str
    time_zone_id: str


class HourlyPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: str = Field(description="HH:MM in the place's time zone")
    temperature: float
    max_temperature: float
    min_temperature: float
    condition: str
    condition_icon: str
    chance_of_rain: int
    humidity: int
    wind_speed: float
    air_quality_index: int | None = None
    epoch_time: int


class DailyPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str = Field(description="DD/MM")
    max_temperature: float
    min_temperature: float
    condition: str
    condition_icon: str
    chance_of_rain: int
    sunrise: str
    sunset: str
    uv: float


class Forecast(BaseModel):
    """Hourly and daily series for one place."""

    model_config = ConfigDict(frozen=True)

    place_name: str
    time_zone_id: str
    hourly: list[HourlyPoint]
    daily: list[DailyPoint]


class PlaceSearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    region: str
    country: str
    latitude: float
    longitude: float


class FavoritePlace(BaseModel):
    """A favorite city. Keyed by name; re-adding replaces the record."""

    model_config = ConfigDict(frozen=True)

    name: str
    region: str = ""
    country: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# ================================================================
# Conversions
# ================================================================


def _zone(tz_id: str) -> tzinfo:
    try:
        return ZoneInfo(tz_id)
    except (ZoneInfoNotFoundError, ValueError):
        return UTC


def local_epoch(location: ApiLocation) -> int:
    """Epoch seconds of the place's current local time.

    Parses ``localtime`` ("YYYY-MM-DD H:MM") in the place's zone, falling
    back to ``localtime_epoch`` and finally to the system clock.
    """
    try:
        naive = datetime.strptime(location.localtime, "%Y-%m-%d %H:%M")
        return int(naive.replace(tzinfo=ZoneInfo(location.tz_id)).timestamp())
    except (ValueError, ZoneInfoNotFoundError):
        pass
    if location.localtime_epoch:
        return location.localtime_epoch
    return int(time.time())


def _aqi(air_quality: ApiAirQuality | None) -> int | None:
    return air_quality.us_epa_index if air_quality is not None else None


def to_place_weather(response: WeatherResponse) -> PlaceWeather:
    """Build the current-conditions snapshot.

    Daily min/max come from the first forecast day when present, otherwise
    both equal the current temperature.
    """
    loc = response.location
    cur = response.current
    max_temp = min_temp = cur.temp_c
    if response.forecast is not None and response.forecast.forecastday:
        today = response.forecast.forecastday[0].day
        max_temp, min_temp = today.maxtemp_c, today.mintemp_c

    return PlaceWeather(
        name=loc.name,
        region=loc.region,
        country=loc.country,
        latitude=loc.lat,
        longitude=loc.lon,
        temperature=cur.temp_c,
        max_temperature=max_temp,
        min_temperature=min_temp,
        condition=cur.condition.text,
        condition_icon=cur.condition.icon,
        humidity=cur.humidity,
        wind_speed=cur.wind_kph,
        wind_direction=cur.wind_dir,
        uv=cur.uv,
        feels_like=cur.feelslike_c,
        air_quality_index=_aqi(cur.air_quality),
        is_day=cur.is_day == 1,
        local_time=loc.localtime,
        time_zone_id=loc.tz_id,
    )


def to_forecast(response: WeatherResponse, hourly_limit: int = DEFAULT_HOURLY_LIMIT) -> Forecast:
    """Build hourly/daily series from a ``forecast.json`` response.

    Hourly points are the hours strictly after the place's local time, sorted
    ascending and truncated to ``hourly_limit``; each carries its day's min/max.
    """
    loc = response.location
    zone = _zone(loc.tz_id)
    now_epoch = local_epoch(loc)
    days = response.forecast.forecastday if response.forecast is not None else []

    hourly: list[HourlyPoint] = []
    for day in days:
        for hour in day.hour:
            if hour.time_epoch <= now_epoch:
                continue
            hourly.append(
                HourlyPoint(
                    time=datetime.fromtimestamp(hour.time_epoch, zone).strftime("%H:%M"),
                    temperature=hour.temp_c,
                    max_temperature=day.day.maxtemp_c,
                    min_temperature=day.day.mintemp_c,
                    condition=hour.condition.text,
                    condition_icon=hour.condition.icon,
                    chance_of_rain=hour.chance_of_rain,
                    humidity=hour.humidity,
                    wind_speed=hour.wind_kph,
                    air_quality_index=_aqi(hour.air_quality),
                    epoch_time=hour.time_epoch,
                )
            )
    hourly.sort(key=lambda h: h.epoch_time)

    daily = [
        DailyPoint(
            date=date.fromisoformat(day.date).strftime("%d/%m"),
            max_temperature=day.day.maxtemp_c,
            min_temperature=day.day.mintemp_c,
            condition=day.day.condition.text,
            condition_icon=day.day.condition.icon,
            chance_of_rain=day.day.daily_chance_of_rain,
            sunrise=day.astro.sunrise,
            sunset=day.astro.sunset,
            uv=day.day.uv,
        )
        for day in days
    ]

    return Forecast(
        place_name=loc.name,
        time_zone_id=loc.tz_id,
        hourly=hourly[:hourly_limit],
        daily=daily,
    )


def to_search_result(location: ApiSearchLocation) -> PlaceSearchResult:
    return PlaceSearchResult(
        name=location.name,
        region=location.region,
        country=location.country,
        latitude=location.lat,
        longitude=location.lon,
    )


def aqi_label(index: int | None) -> str:
    """Human-readable label for a US-EPA air quality index."""
    if index is None:
        return "Unavailable"
    return AQI_LABELS.get(index, "Unavailable")
