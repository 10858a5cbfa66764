"""GitHub webhook router: authenticate, classify, hand off to the deployer."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.config import Settings
from app.dependencies import get_append_log, get_deployer, get_settings, read_limited_body
from app.schemas.webhooks import WebhookResponse
from app.services.append_log import AppendLogger
from app.services.classifier import Ignored, MalformedPayload, Pong, classify
from app.services.deployer import Deployer, build_context
from app.services.signature import is_verification_disabled, verify_signature

logger = structlog.get_logger()

router = APIRouter(tags=["webhooks"])


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
)
async def github_webhook(
    raw_body: Annotated[bytes, Depends(read_limited_body)],
    settings: Annotated[Settings, Depends(get_settings)],
    append_log: Annotated[AppendLogger, Depends(get_append_log)],
    deployer: Annotated[Deployer, Depends(get_deployer)],
    x_hub_signature_256: Annotated[str | None, Header()] = None,
    x_github_event: Annotated[str | None, Header()] = None,
) -> WebhookResponse:
    """Receive a GitHub webhook delivery.

    Pushes to the target branch start a deployment without waiting for it;
    every other authenticated event is acknowledged with 200.

    Raises:
        HTTPException: 401 on a missing or invalid signature, 400 when a push
            body cannot be decoded.
    """
    event_label = x_github_event or "unknown"
    append_log.write(f"webhook received: {event_label}")

    if is_verification_disabled(settings.webhook_secret):
        logger.warning("webhook_signature_check_disabled", event=x_github_event)
    elif not verify_signature(raw_body, x_hub_signature_256, settings.webhook_secret):
        append_log.write("invalid signature, webhook rejected")
        logger.warning("webhook_rejected", reason="invalid_signature", event=x_github_event)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature",
        )

    decision = classify(x_github_event, raw_body, settings.target_branch)

    if isinstance(decision, MalformedPayload):
        append_log.write("could not parse push payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        )

    if isinstance(decision, Pong):
        append_log.write("ping received from GitHub")
        return WebhookResponse(status="pong")

    if isinstance(decision, Ignored):
        if decision.branch is not None:
            append_log.write(f"push on {decision.branch} ignored ({decision.reason})")
        else:
            append_log.write(f"event {event_label} ignored ({decision.reason})")
        return WebhookResponse(status="ignored", reason=decision.reason, event=decision.event)

    append_log.write(f"push on {decision.branch} detected - commit {decision.short_commit}")
    append_log.write(f"message: {decision.commit_message}")

    context = build_context(
        settings.deploy_dir,
        settings.deploy_command,
        branch=decision.branch,
        commit=decision.commit_id,
    )
    if deployer.trigger(context) is None:
        return WebhookResponse(
            status="ignored",
            reason="deployment already in progress",
            commit=decision.commit_id,
        )

    return WebhookResponse(
        status="deploying",
        commit=decision.commit_id,
        message=decision.commit_message,
    )
