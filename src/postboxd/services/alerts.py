"""Slack alerts for import runs and scraper health."""

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from postboxd.config import settings
from postboxd.scrapers.models import ImportRunRecord

logger = logging.getLogger(__name__)

ALERT_TIMEOUT = 10.0


def build_import_alert(record: ImportRunRecord) -> dict[str, Any]:
    """Slack blocks payload describing a failed or degraded import run."""
    header = "🚨 BFI Import Failed" if record.status == "failed" else "⚠️ BFI Import Degraded"
    failed_sources = [name for name, status in record.source_status.items() if status == "failed"]
    error_codes = ", ".join(f"`{code}`" for code in record.error_codes) or "None"

    return {
        "text": f"{header} ({record.run_type})",
        "blocks": [
            {"type": "header", "text": {"type": "plain_text", "text": header}},
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Run Type:*\n{record.run_type}"},
                    {"type": "mrkdwn", "text": f"*Status:*\n{record.status}"},
                    {"type": "mrkdwn", "text": f"*Triggered By:*\n{record.triggered_by}"},
                    {"type": "mrkdwn", "text": f"*Duration:*\n{record.duration_ms} ms"},
                ],
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*PDF Source:*\n{record.source_status.get('pdf', 'skipped')}"},
                    {
                        "type": "mrkdwn",
                        "text": f"*Changes Source:*\n{record.source_status.get('programme_changes', 'skipped')}",
                    },
                    {"type": "mrkdwn", "text": f"*Total Screenings:*\n{record.total_screenings}"},
                    {"type": "mrkdwn", "text": f"*Failed Sources:*\n{', '.join(failed_sources) or 'none'}"},
                ],
            },
            {"type": "section", "text": {"type": "mrkdwn", "text": f"*Error Codes:* {error_codes}"}},
        ],
    }


def build_health_alert(messages: Sequence[str], critical: bool = False) -> dict[str, Any]:
    """Slack blocks payload listing cinemas whose listings look unhealthy."""
    header = "🚨 Scraper Health: Critical Issues Detected" if critical else "⚠️ Scraper Health: Warnings"
    return {
        "text": f"{header} ({len(messages)} cinemas)",
        "blocks": [
            {"type": "header", "text": {"type": "plain_text", "text": header}},
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": "\n".join(f"• {message}" for message in messages)},
            },
        ],
    }


async def post_to_slack(payload: dict[str, Any], webhook_url: str | None = None) -> bool:
    """
    Post a payload to the Slack incoming webhook.

    Returns False when no webhook is configured or Slack rejects the payload.
    Network errors propagate to the caller.
    """
    webhook_url = webhook_url or settings.slack_webhook_url
    if not webhook_url:
        logger.debug("Slack webhook not configured, skipping alert")
        return False

    async with httpx.AsyncClient(timeout=ALERT_TIMEOUT) as client:
        response = await client.post(webhook_url, json=payload)

    if response.is_success:
        return True
    logger.warning(f"Slack webhook returned {response.status_code}: {response.text[:200]}")
    return False


async def send_import_alert(record: ImportRunRecord) -> bool:
    """Alert on a run that did not succeed. Successful runs are never posted."""
    if record.status == "success":
        return False
    return await post_to_slack(build_import_alert(record))


async def send_health_alert(messages: Sequence[str], critical: bool = False) -> bool:
    if not messages:
        return False
    return await post_to_slack(build_health_alert(messages, critical))
