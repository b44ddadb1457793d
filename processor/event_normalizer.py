"""Event normalizer turning ICS event blocks into canonical event records."""
import logging
import re
from datetime import date, datetime, timezone, tzinfo
from typing import List, Optional

from dateutil import parser as dateutil_parser

from processor.ics_extractor import get_field, get_text, split_blocks
from processor.models import (
    AgendaConfig,
    NormalizationResult,
    NormalizedEvent,
    RawField,
)
from processor.tz_offset import get_zone, resolve_civil

logger = logging.getLogger(__name__)


class EventNormalizer:
    """Normalizer for VEVENT blocks from a calendar feed."""

    DATE_RE = re.compile(r'^\d{8}$')
    DATE_PREFIX_RE = re.compile(r'^\d{8}(?:$|T)')
    UTC_DATETIME_RE = re.compile(r'^\d{8}T\d{6}Z$')
    FLOATING_DATETIME_RE = re.compile(r'^\d{8}T\d{6}$')
    LEGACY_ALL_DAY_RE = re.compile(r'^DTSTART;VALUE=DATE:', re.MULTILINE)

    def __init__(
        self,
        display_timezone: str = 'America/New_York',
        default_title: str = 'Untitled'
    ):
        """
        Initialize the normalizer.

        Args:
            display_timezone: Zone used for date and floating values that
                carry no TZID (default: America/New_York)
            default_title: Title given to events without a SUMMARY
        """
        self.display_timezone = display_timezone
        self.default_title = default_title
        self.display_zone = self._load_display_zone(display_timezone)

    @classmethod
    def from_config(cls, config: AgendaConfig) -> 'EventNormalizer':
        return cls(
            display_timezone=config.timezone,
            default_title=config.default_title
        )

    @staticmethod
    def _load_display_zone(name: str) -> tzinfo:
        zone = get_zone(name)
        if zone is None:
            logger.warning(
                f"Unknown display timezone '{name}', falling back to UTC"
            )
            return timezone.utc
        return zone

    def normalize_feed(self, ics_text: str) -> List[NormalizationResult]:
        """
        Normalize every event block in a feed.

        Args:
            ics_text: Decoded feed text

        Returns:
            One NormalizationResult per VEVENT, in feed order
        """
        results = []
        for block in split_blocks(ics_text):
            try:
                results.append(self.normalize_block(block))
            except Exception as e:
                logger.warning(f"Failed to normalize event block: {e}")
                results.append(self._placeholder_result(e))

        degraded = [result for result in results if result.degraded]
        for result in degraded:
            logger.warning(
                f"Event '{result.event.title}' normalized with issues: "
                f"{'; '.join(result.issues)}"
            )

        logger.info(
            f"Normalized {len(results)} events "
            f"({len(degraded)} with issues)"
        )
        return results

    def normalize_events(self, ics_text: str) -> List[NormalizedEvent]:
        """Normalize a feed and return only the event records."""
        return [result.event for result in self.normalize_feed(ics_text)]

    def normalize_block(self, block: str) -> NormalizationResult:
        """
        Normalize a single event block.

        Args:
            block: One unfolded VEVENT block

        Returns:
            NormalizationResult carrying the event and any issues found
        """
        issues: List[str] = []

        start_field = get_field(block, 'DTSTART')
        end_field = get_field(block, 'DTEND')

        all_day = self.is_all_day(block, start_field)

        event = NormalizedEvent(
            title=get_text(block, 'SUMMARY') or self.default_title,
            location=get_text(block, 'LOCATION'),
            description=get_text(block, 'DESCRIPTION'),
            all_day=all_day,
            start=self.resolve_instant(start_field, issues),
            end=self.resolve_instant(end_field, issues),
            start_date=self.civil_date(start_field) if all_day else None
        )
        return NormalizationResult(event=event, issues=tuple(issues))

    def civil_date(self, raw_field: Optional[RawField]) -> Optional[date]:
        """Calendar date written in a DATE value, or None."""
        if raw_field is None:
            return None
        value = raw_field.value.strip()
        if not self.DATE_PREFIX_RE.match(value):
            return None
        try:
            return datetime.strptime(value[:8], '%Y%m%d').date()
        except ValueError:
            return None

    def is_all_day(self, block: str, start_field: Optional[RawField]) -> bool:
        """
        Decide whether an event is all-day.

        True when DTSTART carries ``VALUE=DATE``, when its value is a bare
        8-digit date, or when the block has a literal
        ``DTSTART;VALUE=DATE:`` line.
        """
        if start_field is not None:
            if start_field.parameters.get('VALUE', '').upper() == 'DATE':
                return True
            if self.DATE_RE.match(start_field.value.strip()):
                return True
        return bool(self.LEGACY_ALL_DAY_RE.search(block))

    def resolve_instant(
        self,
        raw_field: Optional[RawField],
        issues: Optional[List[str]] = None
    ) -> Optional[datetime]:
        """
        Resolve a date or date-time field to an aware UTC datetime.

        Args:
            raw_field: Extracted DTSTART/DTEND field, or None when absent
            issues: List that receives a message for each problem found

        Returns:
            Aware UTC datetime, or None when absent or unparseable
        """
        if issues is None:
            issues = []
        if raw_field is None:
            return None

        value = raw_field.value.strip()
        if not value:
            issues.append(f"{raw_field.name} is empty")
            return None

        zone = self._zone_for(raw_field, issues)

        try:
            if self.DATE_RE.match(value):
                civil = datetime.strptime(value, '%Y%m%d')
                return resolve_civil(civil, zone)

            if self.UTC_DATETIME_RE.match(value):
                parsed = datetime.strptime(value, '%Y%m%dT%H%M%SZ')
                return parsed.replace(tzinfo=timezone.utc)

            if self.FLOATING_DATETIME_RE.match(value):
                civil = datetime.strptime(value, '%Y%m%dT%H%M%S')
                return resolve_civil(civil, zone)
        except (ValueError, OverflowError) as e:
            logger.debug(f"Strict parse of {raw_field.name} '{value}' failed: {e}")

        return self._parse_generic(raw_field.name, value, zone, issues)

    def _zone_for(self, raw_field: RawField, issues: List[str]) -> tzinfo:
        tzid = raw_field.parameters.get('TZID')
        if not tzid:
            return self.display_zone
        zone = get_zone(tzid)
        if zone is None:
            issues.append(
                f"unknown timezone '{tzid}' on {raw_field.name}, "
                f"using {self.display_timezone}"
            )
            return self.display_zone
        return zone

    def _parse_generic(
        self,
        name: str,
        value: str,
        zone: tzinfo,
        issues: List[str]
    ) -> Optional[datetime]:
        """
        Best-effort parse for values outside the RFC 5545 date forms.

        Naive results are read as wall-clock time in ``zone``. Values that
        cannot be parsed give None rather than a substitute date.
        """
        try:
            parsed = dateutil_parser.parse(value)
        except (ValueError, OverflowError) as e:
            issues.append(f"unparseable {name} '{value}'")
            logger.debug(f"Generic parse of {name} '{value}' failed: {e}")
            return None

        logger.debug(f"Parsed non-standard {name} '{value}' as {parsed}")
        try:
            if parsed.tzinfo is None:
                return resolve_civil(parsed, zone)
            return parsed.astimezone(timezone.utc)
        except (ValueError, OverflowError):
            issues.append(f"{name} '{value}' is out of range")
            return None

    def _placeholder_result(self, error: Exception) -> NormalizationResult:
        event = NormalizedEvent(
            title=self.default_title,
            location='',
            description='',
            all_day=False,
            start=None,
            end=None
        )
        return NormalizationResult(
            event=event,
            issues=(f"block could not be normalized: {error}",)
        )
