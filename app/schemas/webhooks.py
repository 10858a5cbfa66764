"""Pydantic models for GitHub webhook payloads and responses."""

from pydantic import BaseModel


class HeadCommit(BaseModel):
    """The most recent commit of a push event."""

    id: str
    message: str


class PushPayload(BaseModel):
    """The subset of a GitHub push event needed to decide on a deployment.

    Reference: https://docs.github.com/en/webhooks/webhook-events-and-payloads#push
    """

    ref: str
    head_commit: HeadCommit | None = None
    deleted: bool = False


class WebhookResponse(BaseModel):
    """Body returned for every authenticated webhook delivery."""

    status: str
    reason: str | None = None
    event: str | None = None
    commit: str | None = None
    message: str | None = None
