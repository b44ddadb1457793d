"""Integration tests for the build entry point."""
import json
import logging
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
import requests
import responses

from build_page import (
    ConfigError,
    JsonFormatter,
    load_config,
    main,
    run_build,
    setup_logging,
)
from processor.models import AgendaConfig, WeatherReport
from scraper.weather import FORECAST_URL

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

SAMPLE_ICS = "\r\n".join([
    "BEGIN:VCALENDAR",
    "VERSION:2.0",
    "BEGIN:VEVENT",
    "SUMMARY:Yesterday's Event",
    "DTSTART:20250614T140000Z",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "SUMMARY:Choir practice\\, Room 2",
    "LOCATION:Chapel",
    "DTSTART;TZID=America/Chicago:20250616T090000",
    "DTEND;TZID=America/Chicago:20250616T100000",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "SUMMARY:Blood Drive",
    "DTSTART;VALUE=DATE:20250620",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "SUMMARY:Broken Date",
    "DTSTART:sometime soon",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "SUMMARY:Next Year",
    "DTSTART:20260615T140000Z",
    "END:VEVENT",
    "END:VCALENDAR",
    "",
])


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler and level changes made by setup_logging."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def mock_env(tmp_path):
    """Set up environment variables for testing."""
    env_vars = {
        'ICS_URL': 'https://calendar.example.com/feed.ics',
        'LOG_LEVEL': 'INFO',
        'DAYS_AHEAD': '45',
        'MAX_ITEMS': '120',
        'OUTPUT_PATH': str(tmp_path / 'index.html'),
    }
    with patch.dict('os.environ', env_vars, clear=True):
        yield env_vars


@pytest.fixture
def config(tmp_path):
    """Configuration writing into a temporary directory."""
    return AgendaConfig(
        ics_url='https://calendar.example.com/feed.ics',
        output_path=str(tmp_path / 'index.html')
    )


class TestLoadConfig:
    """Test cases for configuration loading."""

    def test_load_config_defaults(self):
        """Test that only ICS_URL is required."""
        config = load_config({'ICS_URL': 'https://example.com/cal.ics'})

        assert config.ics_url == 'https://example.com/cal.ics'
        assert config.timezone == 'America/New_York'
        assert config.days_ahead == 45
        assert config.max_items == 120
        assert config.scroll_ms == 420000
        assert config.output_path == 'index.html'
        assert config.weather_enabled is False

    def test_load_config_overrides(self):
        """Test that every variable is read."""
        config = load_config({
            'ICS_URL': 'https://example.com/cal.ics',
            'BRAND': 'Lobby Board',
            'TIMEZONE': 'America/Chicago',
            'DAYS_AHEAD': '14',
            'MAX_ITEMS': '20',
            'SCROLL_MS': '60000',
            'OUTPUT_PATH': 'public/index.html',
            'TIMEOUT_SECONDS': '10',
            'WEATHER_LAT': '36.14',
            'WEATHER_LON': '-86.80',
        })

        assert config.brand == 'Lobby Board'
        assert config.timezone == 'America/Chicago'
        assert config.days_ahead == 14
        assert config.max_items == 20
        assert config.scroll_ms == 60000
        assert config.output_path == 'public/index.html'
        assert config.timeout_seconds == 10
        assert config.weather_latitude == 36.14
        assert config.weather_longitude == -86.80
        assert config.weather_enabled is True

    def test_load_config_colors_are_read_only(self):
        """Test that the colour table cannot be changed after loading."""
        config = load_config({'ICS_URL': 'https://example.com/cal.ics'})

        with pytest.raises(TypeError):
            config.colors['rule'] = '#000000'
        assert config.colors['rule'] == '#e5e7eb'

    def test_load_config_missing_url(self):
        """Test that a missing ICS_URL is a configuration error."""
        with pytest.raises(ConfigError, match='Missing ICS_URL'):
            load_config({})

    def test_load_config_bad_number(self):
        """Test that malformed numbers are configuration errors."""
        with pytest.raises(ConfigError, match='DAYS_AHEAD'):
            load_config({'ICS_URL': 'https://x', 'DAYS_AHEAD': 'forty'})


class TestRunBuild:
    """Test cases for run_build with the feed fetch mocked."""

    @patch('build_page.IcsFeedFetcher')
    def test_run_build_writes_selected_events(self, mock_fetcher_class, config, tmp_path):
        """Test the end-to-end pipeline from feed text to page."""
        mock_fetcher = Mock()
        mock_fetcher.fetch_text.return_value = SAMPLE_ICS
        mock_fetcher_class.return_value = mock_fetcher

        result = run_build(config, now=NOW)

        mock_fetcher.fetch_text.assert_called_once_with(config.ics_url)
        assert result.blocks_parsed == 5
        assert result.degraded_events == 1
        assert result.events_selected == 2
        assert result.weather is None
        assert any('Broken Date' in warning for warning in result.warnings)

        document = (tmp_path / 'index.html').read_text(encoding='utf-8')
        assert 'Choir practice, Room 2' in document
        assert '10:00 am–11:00 am • Chapel' in document
        assert 'Blood Drive' in document
        assert "Yesterday&#x27;s Event" not in document
        assert 'Next Year' not in document

    @patch('build_page.IcsFeedFetcher')
    def test_run_build_fetch_failure_writes_nothing(self, mock_fetcher_class, config, tmp_path):
        """Test that a fetch failure propagates and no page is written."""
        mock_fetcher = Mock()
        mock_fetcher.fetch_text.side_effect = requests.HTTPError('ICS fetch failed: 500')
        mock_fetcher_class.return_value = mock_fetcher

        with pytest.raises(requests.HTTPError):
            run_build(config, now=NOW)

        assert not (tmp_path / 'index.html').exists()

    @patch('build_page.WeatherClient')
    @patch('build_page.IcsFeedFetcher')
    def test_run_build_with_weather(self, mock_fetcher_class, mock_weather_class, tmp_path):
        """Test that weather is fetched when coordinates are configured."""
        mock_fetcher_class.return_value.fetch_text.return_value = SAMPLE_ICS
        report = WeatherReport(temperature_f=71.0, code=1, summary='Mainly clear')
        mock_weather_class.return_value.fetch_current.return_value = report
        config = AgendaConfig(
            ics_url='https://calendar.example.com/feed.ics',
            output_path=str(tmp_path / 'index.html'),
            weather_latitude=36.14,
            weather_longitude=-86.80
        )

        result = run_build(config, now=NOW)

        mock_weather_class.return_value.fetch_current.assert_called_once_with(
            36.14, -86.80, 'America/New_York'
        )
        assert result.weather == report
        document = (tmp_path / 'index.html').read_text(encoding='utf-8')
        assert '71°F · Mainly clear' in document

    @patch('build_page.WeatherClient')
    @patch('build_page.IcsFeedFetcher')
    def test_run_build_weather_failure_is_not_fatal(self, mock_fetcher_class, mock_weather_class, tmp_path):
        """Test that a weather error still produces a page."""
        mock_fetcher_class.return_value.fetch_text.return_value = SAMPLE_ICS
        mock_weather_class.return_value.fetch_current.side_effect = (
            requests.ConnectionError('no route')
        )
        config = AgendaConfig(
            ics_url='https://calendar.example.com/feed.ics',
            output_path=str(tmp_path / 'index.html'),
            weather_latitude=36.14,
            weather_longitude=-86.80
        )

        result = run_build(config, now=NOW)

        assert result.weather is None
        assert any('weather unavailable' in w for w in result.warnings)
        assert (tmp_path / 'index.html').exists()

    @responses.activate
    @patch('build_page.IcsFeedFetcher')
    def test_run_build_malformed_weather_payload(self, mock_fetcher_class, tmp_path):
        """Test that an unexpected weather body still produces a page."""
        mock_fetcher_class.return_value.fetch_text.return_value = SAMPLE_ICS
        responses.add(responses.GET, FORECAST_URL, json=[1, 2], status=200)
        config = AgendaConfig(
            ics_url='https://calendar.example.com/feed.ics',
            output_path=str(tmp_path / 'index.html'),
            weather_latitude=36.14,
            weather_longitude=-86.80
        )

        result = run_build(config, now=NOW)

        assert result.weather is None
        assert result.events_selected == 2
        assert (tmp_path / 'index.html').exists()


class TestMain:
    """Test cases for the command-line entry point."""

    @patch('build_page.run_build')
    def test_main_success(self, mock_run_build, mock_env):
        """Test that a successful build exits with status 0."""
        mock_run_build.return_value = Mock(
            blocks_parsed=3,
            degraded_events=0,
            events_selected=2,
            output_path=mock_env['OUTPUT_PATH']
        )

        assert main([]) == 0
        config = mock_run_build.call_args.args[0]
        assert config.ics_url == mock_env['ICS_URL']

    @patch('build_page.run_build')
    def test_main_output_override(self, mock_run_build, mock_env):
        """Test that --output replaces OUTPUT_PATH."""
        mock_run_build.return_value = Mock(
            blocks_parsed=0, degraded_events=0, events_selected=0,
            output_path='site/index.html'
        )

        assert main(['--output', 'site/index.html']) == 0
        assert mock_run_build.call_args.args[0].output_path == 'site/index.html'

    @patch('build_page.run_build')
    @patch('build_page.setup_logging')
    def test_main_fetch_failure_exits_nonzero(self, mock_setup_logging, mock_run_build, mock_env, caplog):
        """Test that a feed failure aborts with status 1."""
        mock_run_build.side_effect = requests.HTTPError('ICS fetch failed: 404')

        with caplog.at_level(logging.ERROR, logger='build_page'):
            assert main([]) == 1

        assert any(
            'Failed to fetch calendar feed' in record.message
            for record in caplog.records
        )

    @patch('build_page.run_build')
    def test_main_write_failure_exits_nonzero(self, mock_run_build, mock_env):
        """Test that an output error aborts with status 1."""
        mock_run_build.side_effect = PermissionError('read-only file system')

        assert main([]) == 1

    @patch('build_page.run_build')
    @patch('build_page.setup_logging')
    def test_main_missing_url_exits_nonzero(self, mock_setup_logging, mock_run_build, caplog):
        """Test that a missing ICS_URL aborts before building."""
        with patch.dict('os.environ', {}, clear=True):
            with caplog.at_level(logging.ERROR, logger='build_page'):
                assert main([]) == 1

        mock_run_build.assert_not_called()
        assert any('Missing ICS_URL secret.' in r.message for r in caplog.records)

    @patch('build_page.run_build')
    @patch('build_page.setup_logging')
    def test_main_logging_output(self, mock_setup_logging, mock_run_build, mock_env, caplog):
        """Test that start and completion are logged."""
        mock_run_build.return_value = Mock(
            blocks_parsed=3, degraded_events=1, events_selected=2,
            output_path='index.html'
        )

        with caplog.at_level(logging.INFO, logger='build_page'):
            main([])

        messages = [record.message for record in caplog.records]
        assert any('Build started' in msg for msg in messages)
        assert any('Build completed successfully' in msg for msg in messages)


class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self):
        """Test logging setup with default INFO level."""
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        """Test logging setup with DEBUG level."""
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_unknown_level(self):
        """Test that an unknown level falls back to INFO."""
        setup_logging('CHATTY')
        assert logging.getLogger().level == logging.INFO

    def test_json_formatter_includes_extra(self):
        """Test that extra fields appear in the JSON output."""
        record = logging.makeLogRecord({
            'name': 'build_page',
            'levelname': 'INFO',
            'msg': 'Build started',
            'days_ahead': 45,
        })

        data = json.loads(JsonFormatter().format(record))

        assert data['message'] == 'Build started'
        assert data['level'] == 'INFO'
        assert data['logger'] == 'build_page'
        assert data['days_ahead'] == 45
