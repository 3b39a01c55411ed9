"""HTML rendering of a newsletter from persisted events.

The template is a single inline Jinja2 string rendered with autoescaping,
so event text coming back from the discovery endpoint can never inject
markup into the email.  Helper functions compute per-event presentation
values (badge colour, category stripe, calendar link) before rendering.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from urllib.parse import urlencode

from jinja2 import BaseLoader, Environment

from src.models.event import StoredEvent

MAX_RENDERED_EVENTS = 20

CATEGORY_COLORS = (
    "#000080",
    "#008000",
    "#800080",
    "#800000",
    "#008080",
    "#808000",
    "#004080",
    "#804000",
    "#408080",
    "#808080",
)

_CALENDAR_BASE_URL = "https://www.google.com/calendar/render"
_TIME_RE = re.compile(r"(\d{1,2})(?:[:.h](\d{2}))?\s*([ap])?\.?m?\.?", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

def score_color(score: int | None) -> str:
    if score is None:
        return "#6c757d"
    if score >= 80:
        return "#28a745"
    if score >= 60:
        return "#ffc107"
    return "#dc3545"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def category_color(category: str | None) -> str:
    """Stable palette colour for a category.

    The hash walks UTF-16 code units of the lowercased category with
    32-bit wrap-around, so a category keeps the same colour the web
    frontend shows for it.
    """
    key = ((category or "").strip() or "(uncategorized)").lower()
    encoded = key.encode("utf-16-le")
    hash_value = 0
    for i in range(0, len(encoded), 2):
        code_unit = int.from_bytes(encoded[i : i + 2], "little")
        hash_value = _to_int32(_to_int32(hash_value << 5) - hash_value + code_unit)
    return CATEGORY_COLORS[abs(hash_value) % len(CATEGORY_COLORS)]


def format_event_date(value: date) -> str:
    """``date(2026, 5, 13)`` -> ``"Wed, 13 May"``."""
    return f"{value:%a}, {value.day} {value:%b}"


def parse_event_time(value: str | None) -> tuple[int, int] | None:
    """Best-effort ``(hour, minute)`` from free text like ``"19:30"`` or ``"8pm"``."""
    if not value:
        return None
    match = _TIME_RE.search(value)
    if match is None:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = (match.group(3) or "").lower()
    if meridiem == "p" and hour < 12:
        hour += 12
    elif meridiem == "a" and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def calendar_url(event: StoredEvent) -> str:
    """Google Calendar "add event" link.

    A known start time yields a two-hour slot ending on the hour; otherwise
    an all-day entry (Google treats the end date as exclusive).
    """
    parsed_time = parse_event_time(event.time)
    if parsed_time is not None:
        start = datetime.combine(event.event_date, datetime.min.time()).replace(
            hour=parsed_time[0], minute=parsed_time[1]
        )
        end = (start + timedelta(hours=2)).replace(minute=0)
        dates = f"{start:%Y%m%dT%H%M%S}/{end:%Y%m%dT%H%M%S}"
    else:
        next_day = event.event_date + timedelta(days=1)
        dates = f"{event.event_date:%Y%m%d}/{next_day:%Y%m%d}"

    params = {"action": "TEMPLATE", "text": event.title, "dates": dates}
    if event.location:
        params["location"] = event.location
    details = "\n\n".join(part for part in (event.description, event.source_url) if part)
    if details:
        params["details"] = details
    return f"{_CALENDAR_BASE_URL}?{urlencode(params)}"


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------

NEWSLETTER_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
  </head>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #007bff;">Your Weekly Local Events</h1>
    <p>Hi {{ recipient }},</p>
    <p>Here are the local events we found for you in the next {{ window_days }} days:</p>
    {% for item in items %}
    <div style="margin-bottom: 30px; padding: 20px; border: 1px solid #e0e0e0; border-left: 4px solid {{ item.category_color }}; border-radius: 8px;">
      <table width="100%" cellpadding="0" cellspacing="0" style="margin-bottom: 10px;"><tr>
        <td style="vertical-align: top;"><h3 style="margin: 0; color: #333; font-size: 16px;">{{ loop.index }}. {{ item.event.title }}</h3></td>
        {% if item.event.score is not none %}
        <td style="vertical-align: top; width: 60px; padding-left: 12px; text-align: center;"><div style="background-color: {{ item.score_color }}; color: white; border-radius: 12px; font-weight: bold; font-size: 14px; width: 56px; height: 28px; line-height: 28px; text-align: center;">{{ item.event.score }}/100</div></td>
        {% else %}
        <td></td>
        {% endif %}
      </tr></table>
      {% if item.event.description %}
      <p style="color: #666; margin: 0 0 10px 0;">{{ item.event.description }}</p>
      {% endif %}
      <div style="margin-top: 10px;">
        <p style="margin: 5px 0; color: #555;"><strong>Date:</strong> {{ item.date_display }}{% if item.event.time %} {{ item.event.time }}{% endif %}</p>
        <p style="margin: 5px 0; color: #555;"><strong>Location:</strong> {{ item.event.location }}</p>
        {% if item.event.category %}
        <p style="margin: 5px 0; color: #555;"><strong>Category:</strong> {{ item.event.category }}</p>
        {% endif %}
        <p style="margin-top: 12px;">
          <a href="{{ item.calendar_url }}" style="display: inline-block; margin-right: 10px; padding: 8px 16px; background-color: #34a853; color: white; text-decoration: none; border-radius: 5px;">Add to Calendar</a>
          {% if item.event.source_url %}
          <a href="{{ item.event.source_url }}" style="display: inline-block; padding: 8px 16px; background-color: #007bff; color: white; text-decoration: none; border-radius: 5px;">Learn More</a>
          {% endif %}
        </p>
      </div>
    </div>
    {% endfor %}
    <hr style="margin: 30px 0; border: none; border-top: 1px solid #e0e0e0;">
    <p style="color: #666; font-size: 12px;">
      You're receiving this because you signed up for local event updates.
      <a href="{{ unsubscribe_url }}">Unsubscribe</a>
    </p>
  </body>
</html>
"""

_ENV = Environment(loader=BaseLoader(), autoescape=True)


def render_newsletter_html(
    recipient: str,
    events: Sequence[StoredEvent],
    frontend_url: str,
    window_days: int = 30,
) -> str:
    """Render the email body for up to 20 events, in the given order."""
    items = [
        {
            "event": event,
            "score_color": score_color(event.score),
            "category_color": category_color(event.category),
            "date_display": format_event_date(event.event_date),
            "calendar_url": calendar_url(event),
        }
        for event in events[:MAX_RENDERED_EVENTS]
    ]
    template = _ENV.from_string(NEWSLETTER_TEMPLATE)
    return template.render(
        recipient=recipient,
        items=items,
        window_days=window_days,
        unsubscribe_url=f"{frontend_url.rstrip('/')}/unsubscribe",
    )
