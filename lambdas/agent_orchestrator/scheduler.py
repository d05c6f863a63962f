# lambdas/agent_orchestrator/scheduler.py
"""
Scheduling decisions for the agent workflow. Everything here takes `now`
explicitly so the rules can be checked against any day of the week.
"""
from datetime import datetime, timedelta, timezone

DEFAULT_POSTING_DAYS = ['Monday', 'Wednesday', 'Friday']

PLATFORM_CONTENT_TYPES = [
    ('facebook', 'facebook_post'),
    ('blog', 'blog_post'),
    ('email', 'email'),
]


def _parse_timestamp(value) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def should_generate_content(campaign: dict, now: datetime) -> bool:
    """
    Whether the campaign's content schedule calls for new content on `now`'s day.
    At most one generation per calendar day.
    """
    schedule = campaign.get('contentSchedule') or {}
    if not schedule.get('autoGenerate'):
        return False

    last_generated = campaign.get('lastContentGenerated')
    if last_generated and str(last_generated)[:10] == now.date().isoformat():
        return False

    frequency = schedule.get('frequency')
    day_of_week = now.strftime('%A')

    if frequency == 'daily':
        return True
    if frequency == 'weekly':
        return day_of_week in (schedule.get('daysOfWeek') or [])
    if frequency == '3_times_per_week':
        return day_of_week in (schedule.get('daysOfWeek') or DEFAULT_POSTING_DAYS)
    return False


def determine_content_types(campaign: dict) -> list:
    """Content types to generate, one per scheduled platform; facebook_post when none match."""
    platforms = (campaign.get('contentSchedule') or {}).get('platforms') or []
    types = [content_type for platform, content_type in PLATFORM_CONTENT_TYPES if platform in platforms]
    return types or ['facebook_post']


def due_scheduled_content(items: list, now: datetime) -> list:
    """Scheduled items whose scheduledAt is at or before `now`."""
    due = []
    for item in items:
        scheduled_at = _parse_timestamp(item.get('scheduledAt'))
        if scheduled_at and scheduled_at <= now:
            due.append(item)
    return due


def recently_published(items: list, days: int, now: datetime) -> list:
    cutoff = now - timedelta(days=days)
    recent = []
    for item in items:
        published_at = _parse_timestamp(item.get('publishedAt'))
        if published_at and published_at >= cutoff:
            recent.append(item)
    return recent
