"""
Scout Cron — Slack notification service.

Best-effort: every failure is logged and swallowed, never surfaced to the
scout execution or the cron cycle.
"""

import asyncio
import logging
import math
import re
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import aiohttp

from scouts.config import settings
from scouts.database import async_session_factory
from scouts.errors import NotificationError, SlackCooldownError
from scouts.models.account import UserPreferences
from scouts.models.scout import Scout

logger = logging.getLogger(__name__)

# https://hooks.slack.com/services/T.../B.../...
SLACK_WEBHOOK_PATTERN = re.compile(
    r"^https://hooks\.slack\.com/services/T[A-Z0-9]+/B[A-Z0-9]+/[A-Za-z0-9]+$"
)

# Slack caps a text block at 3000 chars; keep a safe margin
MAX_TEXT_LENGTH = 2000
_TRUNCATED_SUFFIX = "\n\n...(truncated)"

# Detached notification tasks, held until they finish
_background_tasks: set[asyncio.Task] = set()


def is_valid_webhook_url(url: Optional[str]) -> bool:
    return bool(url) and bool(SLACK_WEBHOOK_PATTERN.match(url))


def escape_slack_text(text: str) -> str:
    """Escape characters that would break Slack mrkdwn formatting."""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def markdown_to_mrkdwn(text: str) -> str:
    """Convert the agent's markdown to Slack mrkdwn."""
    text = text.replace("## ", "*")
    text = re.sub(r"\*\*(.*?)\*\*", r"*\1*", text)
    text = re.sub(r"\[([^\]]+)\]\(([^)]+)\)", r"<\2|\1>", text)
    return text


def _local_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(settings.notification_timezone)).strftime("%Y/%m/%d %H:%M:%S")


def format_slack_message(scout: Scout, response: str, now: Optional[datetime] = None) -> dict:
    """Build the Block Kit payload for a scout that found results."""
    body = markdown_to_mrkdwn(response or "")
    if len(body) > MAX_TEXT_LENGTH:
        body = body[: MAX_TEXT_LENGTH - 15] + _TRUNCATED_SUFFIX

    safe_title = escape_slack_text(scout.title or "Untitled scout")
    safe_goal = escape_slack_text(scout.goal or "")
    city = escape_slack_text(scout.city or "No location")

    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"🔍 Scout Alert: {safe_title}", "emoji": True},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"Your scout *{safe_title}* found new results!"},
        },
        {"type": "section", "text": {"type": "mrkdwn", "text": f"*Goal:* {safe_goal}"}},
        {"type": "divider"},
        {"type": "section", "text": {"type": "mrkdwn", "text": body}},
        {"type": "divider"},
        {
            "type": "context",
            "elements": [
                {"type": "mrkdwn", "text": f"📍 {city} | ⏰ {_local_timestamp(now)}"},
            ],
        },
    ]

    return {"text": f"Scout Alert: {safe_title} found new results!", "blocks": blocks}


def format_test_message(now: Optional[datetime] = None) -> dict:
    return {
        "text": "Test notification from Open Scouts",
        "blocks": [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "🎉 Open Scouts Test Notification", "emoji": True},
            },
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        "Great news! Your Slack notifications are configured correctly.\n\n"
                        "When your scouts find results, you'll receive notifications here."
                    ),
                },
            },
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Sent at {_local_timestamp(now)}"}],
            },
        ],
    }


async def _post_webhook(webhook_url: str, payload: dict) -> None:
    """POST a payload to a Slack webhook; raises NotificationError on non-2xx."""
    timeout = aiohttp.ClientTimeout(total=settings.slack_timeout_secs)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.post(webhook_url, json=payload) as resp:
            if resp.status >= 300:
                body = await resp.text()
                raise NotificationError(f"Slack returned error: {resp.status} {body[:200]}")


async def _get_webhook_url(user_id: str) -> Optional[str]:
    async with async_session_factory() as db:
        prefs = await db.get(UserPreferences, user_id)
    return prefs.slack_webhook_url if prefs else None


async def send_slack_notification(scout: Scout, response: str) -> bool:
    """Send a scout-alert to the owner's webhook. Returns True on success, never raises."""
    try:
        webhook_url = await _get_webhook_url(scout.user_id)
        if not webhook_url:
            logger.info("[Slack] No webhook URL configured, skipping Slack notification")
            return False
        if not is_valid_webhook_url(webhook_url):
            logger.info("[Slack] Invalid webhook URL format, skipping")
            return False

        logger.info("[Slack] Sending notification for scout: %s", scout.title)
        await _post_webhook(webhook_url, format_slack_message(scout, response))
        logger.info("[Slack] Notification sent for scout %s", scout.id)
        return True
    except Exception as e:
        logger.error("[Slack] Error sending notification for scout %s: %s", scout.id, e)
        return False


def notify_in_background(scout: Scout, response: str) -> asyncio.Task:
    """Fire-and-forget ``send_slack_notification``; the caller never awaits it."""
    task = asyncio.create_task(send_slack_notification(scout, response))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_notifications() -> None:
    """Wait for in-flight notifications. Used at shutdown and in tests."""
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


async def send_test_slack_notification(user_id: str, webhook_url: Optional[str] = None) -> None:
    """
    Send a test message so a user can verify their webhook.
    Rate limited per user; records the send time in their preferences.

    Raises ``SlackCooldownError`` inside the cooldown and ``NotificationError``
    for a missing/invalid webhook or a Slack-side failure.
    """
    now = datetime.now(timezone.utc)

    async with async_session_factory() as db:
        prefs = await db.get(UserPreferences, user_id)
        webhook_url = webhook_url or (prefs.slack_webhook_url if prefs else None)

        if not webhook_url:
            raise NotificationError("No Slack webhook URL configured")
        if not is_valid_webhook_url(webhook_url):
            raise NotificationError(
                "Invalid webhook URL format. Must be a valid Slack webhook URL "
                "(https://hooks.slack.com/services/T.../B.../...)"
            )

        if prefs and prefs.last_test_slack_at:
            elapsed = (now - prefs.last_test_slack_at).total_seconds()
            cooldown = settings.slack_test_cooldown_secs
            if elapsed < cooldown:
                remaining = max(1, math.ceil(cooldown - elapsed))
                raise SlackCooldownError(remaining)

        try:
            await _post_webhook(webhook_url, format_test_message(now))
        except NotificationError:
            raise
        except Exception as e:
            raise NotificationError(str(e)) from e

        if prefs:
            prefs.last_test_slack_at = now
        else:
            db.add(UserPreferences(
                user_id=user_id,
                slack_webhook_url=webhook_url,
                last_test_slack_at=now,
            ))
        await db.commit()

    logger.info("[Slack] Test notification sent for user %s", user_id)
