"""
Operator alerts for the intake pipeline.

Two producers raise alerts: poll runs that hit ManyReach or per-prospect
errors, and shadow migrations that fail outright or only partly succeed.
Each alert is logged, then fanned out to Slack (SLACK_WEBHOOK_URL) and,
for critical alerts only, to email (ALERT_EMAIL).
"""
import logging
import os

import requests

logger = logging.getLogger("alerting")

SOURCE_LABEL = "Publisher Intake"
MAX_DETAIL_LINES = 20

_SEVERITY_EMOJI = {
    "critical": ":red_circle:",
    "warning": ":warning:",
}


def _clip(lines, limit=MAX_DETAIL_LINES):
    lines = list(lines)
    if len(lines) > limit:
        lines = lines[:limit] + [f"... and {len(lines) - limit} more"]
    return "\n".join(lines)


def send_alert(severity: str, title: str, detail: str = "", facts=None) -> None:
    """
    Log an alert and push it to the configured channels.

    ``facts`` is an optional ordered mapping rendered as a one-line
    "key: value" header above ``detail``.
    """
    header = " | ".join(f"{key}: {value}" for key, value in (facts or {}).items())
    body = "\n".join(part for part in (header, detail) if part)

    log_fn = {
        "critical": logger.critical,
        "warning": logger.warning,
    }.get(severity, logger.info)
    log_fn(f"ALERT [{severity.upper()}]: {title} -- {body}")

    webhook = os.environ.get("SLACK_WEBHOOK_URL")
    if webhook:
        emoji = _SEVERITY_EMOJI.get(severity, ":information_source:")
        try:
            requests.post(
                webhook,
                json={"text": f"{emoji} *[{SOURCE_LABEL}] {title}*\n{body}"},
                timeout=5,
            )
        except requests.RequestException:
            logger.exception("Failed to send Slack alert")

    alert_email = os.environ.get("ALERT_EMAIL")
    if alert_email and severity == "critical":
        from django.core.mail import send_mail
        send_mail(
            subject=f"[{SOURCE_LABEL} CRITICAL] {title}",
            message=body or title,
            from_email=None,
            recipient_list=[alert_email],
            fail_silently=True,
        )


# ---------------------------------------------------------------------------
# Pipeline alerts
# ---------------------------------------------------------------------------

def alert_poll_run(run) -> bool:
    """Warn about a poll run's errors. Returns False when the run was clean."""
    errors = run.errors
    if not errors:
        return False

    totals = run.totals()
    failed_campaigns = [c.campaign_id for c in run.campaigns if c.error]
    severity = "critical" if failed_campaigns and len(failed_campaigns) == len(run.campaigns) else "warning"
    send_alert(
        severity,
        f"ManyReach poll {run.run_id}: {len(errors)} error(s)",
        _clip(errors),
        facts={
            "campaigns": totals["campaigns"],
            "replied": totals["replied"],
            "processed": totals["success"],
            "skipped": totals["skipped"],
            "errors": totals["error"] + len(failed_campaigns),
        },
    )
    return True


def alert_migration_failed(publisher_id, error) -> None:
    """A publisher's migration rolled back; nothing was canonicalized."""
    send_alert(
        "critical",
        f"Shadow migration failed for publisher {publisher_id}",
        str(error),
        facts={"publisher": publisher_id, "outcome": "rolled back"},
    )


def alert_migration_partial(result) -> bool:
    """Warn when some shadow rows failed. Returns False when none did."""
    if not result.errors:
        return False
    send_alert(
        "warning",
        f"Shadow migration partial failure for publisher {result.publisher_id}",
        _clip(f"{e.domain} (shadow {e.shadow_id}): {e.message}" for e in result.errors),
        facts={
            "publisher": result.publisher_id,
            "migrated": result.websites_migrated,
            "skipped": result.skipped,
            "failed": len(result.errors),
        },
    )
    return True
