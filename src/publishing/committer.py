"""Commit a finished draft to the site repository.

A draft becomes ``published`` only after GitHub confirms the commit.  A
draft that is missing its title, body or slug is marked ``failed``
without touching the repository; any failure of the write itself leaves
the draft exactly as it was so the next run can retry.

Scheduled publishes commit straight to the default branch.  Manual
publishes open a pull request from a per-slug branch unless the
repository is configured for direct commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from inkpress.config import ManualPublishMode, SiteConfig
from inkpress.content.models import Draft, utcnow
from inkpress.content.store import ContentStore
from inkpress.publishing.frontmatter import render_document
from inkpress.publishing.github import GitHubContentStore
from inkpress.publishing.notify import Notifier, PublishNotice
from inkpress.shared.errors import PreconditionError, StoreError

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    """Where a published draft ended up."""

    commit_url: str
    revision_id: str
    path: str
    draft_id: str
    slug: str
    branch: str = ""
    pr_url: str | None = None


class PublicationCommitter:
    """Renders a draft to a file and commits it to the site repository."""

    def __init__(
        self,
        store: ContentStore,
        github: GitHubContentStore,
        *,
        notifier: Notifier | None = None,
        site: SiteConfig | None = None,
    ) -> None:
        self.store = store
        self.github = github
        self.notifier = notifier
        self.site = site or SiteConfig()

    def file_path(self, slug: str) -> str:
        config = self.github.config
        return f"{config.content_dir.strip('/')}/{slug}.{config.extension}"

    def post_url(self, slug: str) -> str | None:
        if not self.site.base_url:
            return None
        return f"{self.site.base_url.rstrip('/')}/blog/{slug}"

    def _keywords_for(self, draft: Draft) -> list[str]:
        if not draft.topic_id:
            return []
        topic = self.store.get_topic(draft.topic_id)
        return list(topic.keywords) if topic is not None else []

    def uses_pull_request(self, scheduled: bool) -> bool:
        return not scheduled and self.github.config.manual_publish_mode == ManualPublishMode.PULL_REQUEST

    @staticmethod
    def _pull_request_body(draft: Draft, path: str) -> str:
        return (
            f"**Post:** {draft.title}\n"
            f"**Slug:** `/blog/{draft.slug}`\n"
            f"**File:** `{path}`\n\n"
            "Opened by inkpress."
        )

    def commit(self, draft: Draft, *, scheduled: bool = True, today: date | None = None) -> CommitResult:
        """Publish *draft* and record the commit against it.

        Raises:
            PreconditionError: If the draft is missing required fields.
                The draft is marked failed.
            ConfigurationError: If GitHub credentials are missing.
            PublishError: If the repository write failed.  The draft is
                left untouched.
            StoreError: If the commit landed but the draft row could not
                be updated.  Retrying overwrites the same file.
        """
        missing = draft.missing_required_fields
        if missing:
            self.store.mark_draft_failed(draft.id)
            raise PreconditionError(
                f"Draft {draft.title or draft.id!r} is missing required fields: {', '.join(missing)}"
            )

        self.github.ensure_configured()

        path = self.file_path(draft.slug)
        document = render_document(draft, self._keywords_for(draft), today)
        prefix = "Scheduled blog" if scheduled else "Publish blog"
        message = f"{prefix}: {draft.title}"
        use_pr = self.uses_pull_request(scheduled)
        config = self.github.config
        branch = f"{config.pr_branch_prefix}{draft.slug}" if use_pr else config.default_branch

        logger.info("Publishing draft %s to %s on %s", draft.id, path, branch)
        if use_pr:
            self.github.create_branch(branch, self.github.get_branch_sha(config.default_branch))
        existing_sha = self.github.get_file_sha(path, branch)
        ref = self.github.put_file(path, document, message, sha=existing_sha, branch=branch)

        pr_url = None
        if use_pr:
            pr = self.github.open_pull_request(
                f"New Blog: {draft.title}",
                branch,
                body=self._pull_request_body(draft, path),
                base=config.default_branch,
            )
            pr_url = pr.url

        updated = self.store.mark_draft_published(
            draft.id, ref.url, utcnow(), expected=draft.status, pr_url=pr_url
        )
        if not updated:
            raise StoreError(
                f"Draft {draft.id} changed while publishing; commit {ref.url} was not recorded"
            )

        if self.notifier is not None:
            self.notifier.dispatch(
                PublishNotice(
                    title=draft.title,
                    slug=draft.slug,
                    commit_url=ref.url,
                    post_url=self.post_url(draft.slug),
                    scheduled=scheduled,
                    pr_url=pr_url,
                )
            )

        return CommitResult(
            commit_url=ref.url,
            revision_id=ref.sha,
            path=path,
            draft_id=draft.id,
            slug=draft.slug,
            branch=branch,
            pr_url=pr_url,
        )
