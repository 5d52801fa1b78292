"""Publish notifications over Slack webhooks and ntfy.

Notifications are best effort: a failed send is logged and swallowed so
it can never undo or fail a publish that already committed.  Publishing
hands notices to ``dispatch``, which sends them off the calling thread.
"""

from __future__ import annotations

import json
import logging
import threading
import urllib.request
from dataclasses import dataclass

from inkpress.config import NotificationConfig

logger = logging.getLogger(__name__)


@dataclass
class PublishNotice:
    """What was published, for the notification text."""

    title: str
    slug: str
    commit_url: str | None = None
    post_url: str | None = None
    scheduled: bool = False
    pr_url: str | None = None

    @property
    def summary(self) -> str:
        method = "automatically (scheduled)" if self.scheduled else "manually"
        lines = [f"New blog post published {method}: {self.title}"]
        if self.post_url:
            lines.append(self.post_url)
        if self.commit_url:
            lines.append(f"Commit: {self.commit_url}")
        if self.pr_url:
            lines.append(f"Pull request: {self.pr_url}")
        return "\n".join(lines)


class Notifier:
    """Sends a short message to every configured channel."""

    def __init__(self, config: NotificationConfig) -> None:
        self.config = config

    def _post(self, url: str, body: bytes, headers: dict[str, str]) -> None:
        req = urllib.request.Request(url, data=body, method="POST", headers=headers)
        with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
            resp.read()

    def _send_slack(self, notice: PublishNotice) -> None:
        body = json.dumps({"text": notice.summary}).encode("utf-8")
        self._post(self.config.slack_webhook, body, {"Content-Type": "application/json"})

    def _send_ntfy(self, notice: PublishNotice) -> None:
        url = f"{self.config.ntfy_url.rstrip('/')}/{self.config.ntfy_topic}"
        headers = {"Title": f"Published: {notice.title}"[:250].encode("ascii", "replace").decode()}
        if notice.post_url:
            headers["Click"] = notice.post_url
        self._post(url, notice.summary.encode("utf-8"), headers)

    def notify_published(self, notice: PublishNotice) -> int:
        """Send *notice* to each channel; return how many sends succeeded."""
        if not self.config.is_configured:
            logger.debug("No notification channel configured, skipping")
            return 0

        sent = 0
        channels = []
        if self.config.slack_webhook:
            channels.append(("slack", self._send_slack))
        if self.config.ntfy_url:
            channels.append(("ntfy", self._send_ntfy))

        for name, send in channels:
            try:
                send(notice)
                sent += 1
            except Exception:
                logger.warning("Failed to send %s notification for %s", name, notice.slug, exc_info=True)
        return sent

    def dispatch(self, notice: PublishNotice) -> threading.Thread | None:
        """Send *notice* on a background thread and return without waiting.

        The thread is not a daemon, so a short-lived CLI process still
        finishes the send before the interpreter exits.
        """
        if not self.config.is_configured:
            return None
        thread = threading.Thread(
            target=self.notify_published, args=(notice,), name=f"notify-{notice.slug}"
        )
        thread.start()
        return thread
