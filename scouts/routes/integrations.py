"""
Scout Cron — Slack and Firecrawl integration routes.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from scouts.errors import NotificationError, SlackCooldownError
from scouts.routes import error_response
from scouts.schemas import FirecrawlKeyRequest, FirecrawlKeyResponse, SlackTestRequest
from scouts.services.credentials import provision_in_background, regenerate_firecrawl_key
from scouts.services.notify import send_test_slack_notification

logger = logging.getLogger(__name__)

integrations_router = APIRouter(tags=["integrations"])


@integrations_router.post("/slack/test")
async def send_test_slack(req: SlackTestRequest):
    try:
        await send_test_slack_notification(req.user_id, req.webhook_url)
    except SlackCooldownError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": str(e), "cooldownRemaining": e.remaining_secs},
        )
    except NotificationError as e:
        return error_response(str(e), e.status_code)
    except Exception as e:
        logger.error("[send-test-slack] Error: %s", e)
        return error_response(str(e) or "Internal server error", 500)

    return {"success": True, "message": "Test notification sent successfully"}


@integrations_router.post("/firecrawl/regenerate", response_model=FirecrawlKeyResponse)
async def regenerate_firecrawl(req: FirecrawlKeyRequest):
    result = await regenerate_firecrawl_key(req.user_id, req.email)
    if not result.success:
        return error_response(result.error or "Failed to regenerate API key", 500)
    return FirecrawlKeyResponse(success=True, already_existed=result.already_existed)


@integrations_router.post("/firecrawl/ensure", status_code=202)
async def ensure_firecrawl(req: FirecrawlKeyRequest):
    """Called after a sign-in; provisioning runs detached from the request."""
    provision_in_background(req.user_id, req.email)
    return {"success": True, "message": "Provisioning scheduled"}
