"""Decide whether a GitHub event should trigger a deployment.

``classify`` is pure: it decodes the raw body into typed models and returns
one of the decision dataclasses below. Decoding failures surface as
``MalformedPayload`` instead of exceptions so the HTTP layer can answer 400.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import ValidationError

from app.schemas.webhooks import PushPayload

BRANCH_REF_PREFIX = "refs/heads/"
SHORT_COMMIT_LENGTH = 7


@dataclass(frozen=True)
class Deploy:
    """Push to the target branch; a deployment should run."""

    branch: str
    commit_id: str
    commit_message: str

    @property
    def short_commit(self) -> str:
        return self.commit_id[:SHORT_COMMIT_LENGTH]


@dataclass(frozen=True)
class Pong:
    """GitHub ``ping`` delivery sent when a webhook is created."""


@dataclass(frozen=True)
class Ignored:
    """Authenticated event that does not warrant a deployment."""

    reason: str
    event: str | None = None
    branch: str | None = None


@dataclass(frozen=True)
class MalformedPayload(Ignored):
    """Push body that could not be decoded."""

    reason: str = "malformed payload"


Decision = Deploy | Pong | Ignored


def branch_from_ref(ref: str | None) -> str | None:
    """Return the branch name of a ``refs/heads/<branch>`` ref, else None."""
    if not isinstance(ref, str) or not ref.startswith(BRANCH_REF_PREFIX):
        return None
    branch = ref[len(BRANCH_REF_PREFIX):]
    return branch or None


def classify(
    event_type: str | None,
    raw_body: bytes,
    target_branch: str = "main",
) -> Decision:
    """Classify a webhook delivery from its event header and raw body."""
    if event_type == "ping":
        return Pong()
    if event_type != "push":
        return Ignored(reason="unsupported event", event=event_type)

    try:
        payload = PushPayload.model_validate_json(raw_body)
    except ValidationError:
        return MalformedPayload(event=event_type)

    branch = branch_from_ref(payload.ref)
    if branch is None:
        return Ignored(reason="not a branch push", event=event_type)
    if branch != target_branch:
        return Ignored(reason=f"not {target_branch} branch", event=event_type, branch=branch)
    if payload.deleted:
        return Ignored(reason="branch deleted", event=event_type, branch=branch)
    if payload.head_commit is None:
        return Ignored(reason="no head commit", event=event_type, branch=branch)

    return Deploy(
        branch=branch,
        commit_id=payload.head_commit.id,
        commit_message=payload.head_commit.message,
    )
