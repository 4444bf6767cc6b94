import requests
from collections import namedtuple
from datetime import date, datetime, time
from typing import Dict, Any, Optional, Tuple
import logging
from abc import ABC, abstractmethod

from tracker.core.errors import ConfigurationError, TransientError

# Order matters: the next prayer's start closes the current prayer's window
PRAYERS = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

DEFAULT_COUNTRY = "Egypt"

# times: {prayer_name: naive local datetime}
DailyTimings = namedtuple("DailyTimings", ["date", "city", "country", "times"])


def parse_location(location: Optional[str], default_country: str = DEFAULT_COUNTRY) -> Tuple[str, str]:
    """Split "City, Country" on ", ". Country falls back to default_country when omitted."""
    if not location or not str(location).strip():
        raise ConfigurationError("Location is empty", details={"location": location})
    parts = [p.strip() for p in str(location).split(", ")]
    if len(parts) > 2 or not all(parts):
        raise ConfigurationError("Malformed location, expected 'City, Country'", details={"location": location})
    city = parts[0]
    country = parts[1] if len(parts) == 2 else default_country
    return city, country


def parse_clock(prayer_date: date, value: Any) -> datetime:
    """Anchor an "HH:MM" string (optionally followed by a zone suffix like "(EET)") to prayer_date."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"not a time string: {value!r}")
    hh, mm = value.strip().split()[0].split(":")[:2]
    return datetime.combine(prayer_date, time(int(hh), int(mm)))


class TimingsProvider(ABC):
    """Source of the five prayer times for one (date, city, country). Stateless, no retries."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def fetch(self, prayer_date: date, city: str, country: str) -> DailyTimings:
        """Get prayer times for prayer_date.
        Returns:
            DailyTimings with all five prayers present
        Raises:
            TransientError: source unavailable or response malformed/partial
        """
        pass

    def _build_timings(self, prayer_date: date, city: str, country: str, raw: Dict[str, Any]) -> DailyTimings:
        """Convert {prayer: "HH:MM"} into DailyTimings; any missing or unparsable prayer is a TransientError."""
        times = {}
        for prayer in PRAYERS:
            if prayer not in raw:
                raise TransientError(
                    f"Timing source response is missing {prayer}",
                    details={"date": prayer_date.isoformat(), "city": city, "country": country},
                )
            try:
                times[prayer] = parse_clock(prayer_date, raw[prayer])
            except (ValueError, TypeError):
                raise TransientError(
                    f"Timing source returned an unreadable time for {prayer}: {raw[prayer]!r}",
                    details={"date": prayer_date.isoformat(), "city": city, "country": country},
                )
        return DailyTimings(prayer_date, city, country, times)


class AladhanProvider(TimingsProvider):
    """Prayer times from api.aladhan.com (timingsByCity)"""

    DEFAULT_BASE_URL = "https://api.aladhan.com/v1"
    DEFAULT_TIMEOUT = 10

    def fetch(self, prayer_date: date, city: str, country: str) -> DailyTimings:
        base_url = str(self.config.get("base_url") or self.DEFAULT_BASE_URL).rstrip("/")
        timeout = float(self.config.get("timeout") or self.DEFAULT_TIMEOUT)
        url = f"{base_url}/timingsByCity/{prayer_date.strftime('%d-%m-%Y')}"
        params = {"city": city, "country": country}
        method = self.config.get("method")
        if method is not None:
            params["method"] = method

        self.logger.info(f"Making API request to {url} with params {params}")
        try:
            response = requests.get(url, params=params, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            self.logger.error(f"Timing source timed out after {timeout}s: {e}")
            raise TransientError("Timing source timed out", details={"url": url})
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Network error fetching prayer times: {e}")
            raise TransientError("Timing source unavailable", details={"url": url, "reason": str(e)})
        except ValueError as e:
            self.logger.error(f"Timing source returned invalid JSON: {e}")
            raise TransientError("Timing source returned an invalid response", details={"url": url})

        try:
            timings = data["data"]["timings"]
        except (KeyError, TypeError):
            self.logger.error(f"Invalid response format - missing data.timings: {str(data)[:200]}")
            raise TransientError("Timing source response has no timings", details={"url": url})
        if not isinstance(timings, dict):
            raise TransientError("Timing source response has no timings", details={"url": url})

        result = self._build_timings(prayer_date, city, country, timings)
        self.logger.debug(f"Prayer times for {city}, {country} on {prayer_date}: {result.times}")
        return result


PROVIDER_TYPES = {
    "aladhan": AladhanProvider,
}


def create_provider(config: Dict[str, Any]) -> TimingsProvider:
    """Build the provider named by config['backend'] (default aladhan)"""
    backend_type = (config.get("backend") or "aladhan").lower()
    provider_class = PROVIDER_TYPES.get(backend_type)
    if provider_class is None:
        raise ConfigurationError(f"Unknown timings backend: {backend_type}")
    return provider_class(config)
