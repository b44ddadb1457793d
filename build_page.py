"""Static build of the scrolling calendar page from an ICS feed."""
import argparse
import dataclasses
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import requests

from processor.event_normalizer import EventNormalizer
from processor.models import AgendaConfig, BuildResult
from processor.window_selector import select_window
from renderer.html_renderer import HtmlRenderer
from scraper.ics_feed import IcsFeedFetcher
from scraper.weather import WeatherClient
from storage.page_writer import PageWriter

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class ConfigError(ValueError):
    """Raised when required settings are missing or malformed."""


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any ``extra`` fields."""
        log_data: Dict[str, Any] = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _int_setting(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got '{raw}'")


def _float_setting(environ: Mapping[str, str], key: str) -> Optional[float]:
    raw = environ.get(key)
    if raw is None or raw.strip() == '':
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got '{raw}'")


def load_config(environ: Optional[Mapping[str, str]] = None) -> AgendaConfig:
    """
    Build the configuration from environment variables.

    Args:
        environ: Variable mapping (default: os.environ)

    Returns:
        AgendaConfig

    Raises:
        ConfigError: If ICS_URL is missing or a numeric value is malformed
    """
    if environ is None:
        environ = os.environ

    ics_url = environ.get('ICS_URL', '').strip()
    if not ics_url:
        raise ConfigError('Missing ICS_URL secret.')

    defaults = AgendaConfig(ics_url=ics_url)
    return AgendaConfig(
        ics_url=ics_url,
        brand=environ.get('BRAND') or defaults.brand,
        timezone=environ.get('TIMEZONE') or defaults.timezone,
        days_ahead=_int_setting(environ, 'DAYS_AHEAD', defaults.days_ahead),
        max_items=_int_setting(environ, 'MAX_ITEMS', defaults.max_items),
        scroll_ms=_int_setting(environ, 'SCROLL_MS', defaults.scroll_ms),
        output_path=environ.get('OUTPUT_PATH') or defaults.output_path,
        timeout_seconds=_int_setting(
            environ, 'TIMEOUT_SECONDS', defaults.timeout_seconds
        ),
        weather_latitude=_float_setting(environ, 'WEATHER_LAT'),
        weather_longitude=_float_setting(environ, 'WEATHER_LON')
    )


def run_build(
    config: AgendaConfig,
    now: Optional[datetime] = None
) -> BuildResult:
    """
    Fetch, normalize, select, render and write the agenda page.

    Args:
        config: Build configuration
        now: Reference instant for the window (default: current UTC time)

    Returns:
        BuildResult with summary counts

    Raises:
        requests.RequestException: If the feed cannot be fetched
        OSError: If the page cannot be written
    """
    logger = logging.getLogger(__name__)
    if now is None:
        now = datetime.now(timezone.utc)

    fetcher = IcsFeedFetcher(timeout=config.timeout_seconds)
    normalizer = EventNormalizer.from_config(config)
    renderer = HtmlRenderer(config)
    writer = PageWriter(config.output_path)

    logger.info("Fetching events from calendar")
    ics_text = fetcher.fetch_text(config.ics_url)

    logger.info("Normalizing calendar events")
    results = normalizer.normalize_feed(ics_text)
    events = [result.event for result in results]
    warnings: List[str] = [
        f"{result.event.title}: {issue}"
        for result in results
        for issue in result.issues
    ]

    selected = select_window(
        events,
        now=now,
        days_ahead=config.days_ahead,
        max_items=config.max_items
    )

    weather = None
    if config.weather_enabled:
        try:
            weather = WeatherClient(timeout=config.timeout_seconds).fetch_current(
                config.weather_latitude,
                config.weather_longitude,
                config.timezone
            )
        except (requests.RequestException, ValueError) as e:
            logger.warning(
                f"Weather lookup failed, rendering without badge: {e}",
                extra={'error_type': type(e).__name__}
            )
            warnings.append(f"weather unavailable: {e}")

    document = renderer.render(selected, weather=weather)
    output_path = writer.write(document)

    return BuildResult(
        blocks_parsed=len(results),
        degraded_events=sum(1 for result in results if result.degraded),
        events_selected=len(selected),
        output_path=str(output_path),
        weather=weather,
        warnings=warnings
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command-line entry point.

    Returns:
        Process exit status: 0 on success, 1 on any fatal error
    """
    arg_parser = argparse.ArgumentParser(
        description='Build the scrolling calendar page from an ICS feed.'
    )
    arg_parser.add_argument('--output', help='Output file (overrides OUTPUT_PATH)')
    arg_parser.add_argument('--log-level', help='Log level (overrides LOG_LEVEL)')
    args = arg_parser.parse_args(argv)

    setup_logging(args.log_level or os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    try:
        config = load_config()
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if args.output:
        config = dataclasses.replace(config, output_path=args.output)

    logger.info(
        "Build started",
        extra={
            'timezone': config.timezone,
            'days_ahead': config.days_ahead,
            'max_items': config.max_items
        }
    )

    try:
        result = run_build(config)
    except requests.RequestException as e:
        logger.error(
            f"Failed to fetch calendar feed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return 1
    except OSError as e:
        logger.error(
            f"Failed to write page: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return 1

    logger.info(
        "Build completed successfully",
        extra={
            'duration_seconds': round(time.time() - start_time, 2),
            'events_parsed': result.blocks_parsed,
            'events_degraded': result.degraded_events,
            'events_selected': result.events_selected,
            'output_path': result.output_path
        }
    )
    return 0


if __name__ == '__main__':
    sys.exit(main())
