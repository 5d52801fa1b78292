"""Publishing: front-matter rendering, GitHub commits and notifications."""

from inkpress.publishing.committer import CommitResult, PublicationCommitter
from inkpress.publishing.frontmatter import build_frontmatter, escape_value, render_document
from inkpress.publishing.github import CommitRef, GitHubContentStore
from inkpress.publishing.notify import Notifier, PublishNotice

__all__ = [
    "CommitRef",
    "CommitResult",
    "GitHubContentStore",
    "Notifier",
    "PublicationCommitter",
    "PublishNotice",
    "build_frontmatter",
    "escape_value",
    "render_document",
]
