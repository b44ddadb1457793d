"""HTML renderer for the scrolling agenda page."""
import html
import json
import logging
from collections import OrderedDict
from datetime import date, datetime, timezone, tzinfo
from string import Template
from typing import List, Optional

from processor.models import AgendaConfig, NormalizedEvent, WeatherReport
from processor.tz_offset import get_zone

logger = logging.getLogger(__name__)

NUDGE_INTERVAL_MS = 300000

PAGE_TEMPLATE = Template("""<!doctype html><html><head>
<meta charset="utf-8"><meta name="viewport" content="width=device-width,initial-scale=1">
<title>$brand</title>
<style>
:root{
  --banner-bg:$banner_bg; --banner-fg:$banner_fg;
  --accent-red:$strip_red; --panel-bg:$panel_bg;
  --panel-fg:$panel_fg;   --rule:$rule;
  --scroll-ms:${scroll_ms}ms;
}
html,body{height:100%}
body{margin:0;background:transparent;color:var(--panel-fg);font-family:system-ui,Segoe UI,Roboto,Helvetica,Arial,sans-serif;}
.wrap{display:flex;flex-direction:column;width:100%;height:100%;box-sizing:border-box}
.bar{display:flex;align-items:center;justify-content:space-between;padding:.6rem 1rem;background:var(--banner-bg);color:var(--banner-fg)}
.brand{font-weight:800;font-size:clamp(1.1rem,2.2vw,2rem);letter-spacing:.02em}
.status{display:flex;align-items:center;gap:1rem}
.weather{font-weight:600;font-size:clamp(.9rem,1.6vw,1.25rem);opacity:.95}
.clock{font-weight:700;font-variant-numeric:tabular-nums;font-size:clamp(.95rem,1.8vw,1.4rem)}
.panel{display:flex;flex-direction:column;background:var(--panel-bg);color:var(--panel-fg);border-left:1px solid var(--rule);border-right:1px solid var(--rule);border-bottom:1px solid var(--rule);height:100%;box-sizing:border-box}
.panel-header{background:var(--accent-red);color:#fff;padding:.5rem .9rem;font-weight:800;font-size:clamp(1rem,2vw,1.4rem)}
.vwrap{position:relative;overflow:hidden;height:100%}
.vcontent{position:absolute;width:100%;animation:vscroll var(--scroll-ms) linear infinite;will-change:transform}
@keyframes vscroll{0%{transform:translateY(0)}98%{transform:translateY(-50%)}100%{transform:translateY(0)}}
.day{padding:.7rem 1rem .8rem;border-bottom:1px solid var(--rule)}
.dayhead{font-weight:800;opacity:.9;margin:0 0 .35rem;font-size:clamp(.95rem,1.8vw,1.2rem)}
.event{padding:.35rem 0}
.title{font-size:clamp(.95rem,1.9vw,1.25rem);line-height:1.35}
.meta{opacity:.85;font-size:clamp(.85rem,1.6vw,1.05rem);margin-top:.15rem}
</style>
</head>
<body>
<div class="wrap">
  <div class="bar"><div class="brand">$brand</div><div class="status">$weather<div class="clock" id="clock"></div></div></div>
  <div class="panel">
    <div class="panel-header">Upcoming Events</div>
    <div class="vwrap">
      <div class="vcontent">
        $first_pass
        $second_pass <!-- duplicated for seamless loop -->
      </div>
    </div>
  </div>
</div>
<script>
var TZ = $timezone_js;
function tick(){ var d=new Date(); var f=d.toLocaleString('en-US',{timeZone:TZ,weekday:'long',month:'long',day:'numeric',hour:'numeric',minute:'2-digit'}); document.getElementById('clock').textContent=f; }
setInterval(tick,1000); tick();
// some embedded browsers pause long animations
setInterval(function(){ document.querySelectorAll('.vcontent').forEach(function(el){ el.style.animation='none'; void el.offsetWidth; el.style.animation=''; }); }, $nudge_ms);
</script>
</body></html>
""")

EMPTY_DAY = '<div class="day"><div class="dayhead">No events</div></div>'


class HtmlRenderer:
    """Renderer producing the self-contained agenda document."""

    def __init__(self, config: AgendaConfig):
        """
        Initialize the renderer.

        Args:
            config: Build configuration (brand, timezone, colours, scroll speed)
        """
        self.config = config
        self.zone: tzinfo = get_zone(config.timezone) or timezone.utc

    def render(
        self,
        events: List[NormalizedEvent],
        weather: Optional[WeatherReport] = None
    ) -> str:
        """
        Render the page for an already selected, sorted event list.

        Args:
            events: Events to show, in display order
            weather: Current conditions for the header badge, if any

        Returns:
            Complete HTML document
        """
        days = self.render_days(events)
        colors = self.config.colors
        page = PAGE_TEMPLATE.substitute(
            brand=html.escape(self.config.brand),
            banner_bg=colors['banner_bg'],
            banner_fg=colors['banner_fg'],
            strip_red=colors['strip_red'],
            panel_bg=colors['panel_bg'],
            panel_fg=colors['panel_fg'],
            rule=colors['rule'],
            scroll_ms=self.config.scroll_ms,
            weather=self.render_weather(weather),
            first_pass=days or EMPTY_DAY,
            second_pass=days,
            timezone_js=json.dumps(self.config.timezone),
            nudge_ms=NUDGE_INTERVAL_MS
        )
        logger.info(f"Rendered page with {len(events)} events")
        return page

    def render_days(self, events: List[NormalizedEvent]) -> str:
        """Markup for all day groups, empty when there are no events."""
        groups: 'OrderedDict[date, List[NormalizedEvent]]' = OrderedDict()
        for event in events:
            if event.start is None:
                continue
            groups.setdefault(self.display_date(event), []).append(event)

        blocks = []
        for day in sorted(groups):
            day_events = groups[day]
            label = self.format_date(day)
            rows = ''.join(self.render_event(event) for event in day_events)
            blocks.append(
                f'<div class="day"><div class="dayhead">{html.escape(label)}'
                f'</div>{rows}</div>'
            )
        return ''.join(blocks)

    def render_event(self, event: NormalizedEvent) -> str:
        meta = html.escape(self.when_text(event))
        if event.location:
            meta += f' • {html.escape(event.location)}'
        return (
            f'<div class="event"><div class="title">{html.escape(event.title)}'
            f'</div><div class="meta">{meta}</div></div>'
        )

    def render_weather(self, weather: Optional[WeatherReport]) -> str:
        if weather is None:
            return ''
        text = f'{round(weather.temperature_f)}°F · {weather.summary}'
        return f'<div class="weather" id="weather">{html.escape(text)}</div>'

    def when_text(self, event: NormalizedEvent) -> str:
        """
        Human-readable time span for an event.

        Returns ``All day`` for all-day events, a time range when the event
        ends on the display day it starts, and full date/time pairs for
        events that cross midnight.
        """
        if event.all_day:
            return 'All day'
        start, end = event.start, event.end
        if end is None:
            return self.format_time(start)
        if self._same_day(start, end):
            return f'{self.format_time(start)}–{self.format_time(end)}'
        return (
            f'{self.format_day(start)} {self.format_time(start)} → '
            f'{self.format_day(end)} {self.format_time(end)}'
        )

    def format_day(self, moment: datetime) -> str:
        """Day label such as ``Sat, Mar 15`` in the display timezone."""
        local = self._local(moment)
        return self.format_date(local)

    def format_date(self, day: date) -> str:
        return f'{day:%a}, {day:%b} {day.day}'

    def display_date(self, event: NormalizedEvent) -> date:
        """
        Day an event is listed under.

        All-day events keep the date written in the feed; timed events use
        the display-timezone date of their start.
        """
        if event.all_day and event.start_date is not None:
            return event.start_date
        return self._local(event.start).date()

    def format_time(self, moment: datetime) -> str:
        """Clock time such as ``9:05 am`` in the display timezone."""
        local = self._local(moment)
        hour = local.hour % 12 or 12
        suffix = 'am' if local.hour < 12 else 'pm'
        return f'{hour}:{local.minute:02d} {suffix}'

    def _same_day(self, first: datetime, second: datetime) -> bool:
        return self._local(first).date() == self._local(second).date()

    def _local(self, moment: datetime) -> datetime:
        return moment.astimezone(self.zone)
