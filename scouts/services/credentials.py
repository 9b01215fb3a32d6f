"""
Firecrawl credential provisioning.

Each account gets its own Firecrawl API key minted through the partner API.
Provisioning is idempotent and runs out-of-band after a sign-in; failures
are recorded on the user's preferences and logged, never raised.

Key status lifecycle (``user_preferences.firecrawl_key_status``):
  pending  → no key requested yet
  active   → key minted and in use
  fallback → partner integration unavailable, shared key in use
  failed   → key creation failed (see ``firecrawl_key_error``)
  invalid  → key revoked/regenerated
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import aiohttp

from scouts.config import settings
from scouts.database import async_session_factory
from scouts.errors import CredentialProvisioningError
from scouts.models.account import UserPreferences

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()


@dataclass
class ProvisionResult:
    success: bool
    already_existed: bool = False
    error: Optional[str] = None


async def _request_partner_key(user_id: str, email: str) -> str:
    """Mint a key through the partner API. Raises CredentialProvisioningError."""
    if not settings.firecrawl_partner_key:
        raise CredentialProvisioningError("Firecrawl partner key not configured")

    timeout = aiohttp.ClientTimeout(total=15)
    headers = {"Authorization": f"Bearer {settings.firecrawl_partner_key}"}
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(
                settings.firecrawl_api_url,
                json={"userId": user_id, "email": email},
                headers=headers,
            ) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    raise CredentialProvisioningError(f"Firecrawl API {resp.status}: {body[:200]}")
                data = await resp.json()
    except aiohttp.ClientError as e:
        raise CredentialProvisioningError(f"Firecrawl API unreachable: {e}") from e

    api_key = (data or {}).get("apiKey")
    if not api_key:
        raise CredentialProvisioningError("Firecrawl API returned no key")
    return api_key


async def _provision(user_id: str, email: str, force: bool) -> ProvisionResult:
    async with async_session_factory() as db:
        prefs = await db.get(UserPreferences, user_id)
        if prefs is None:
            prefs = UserPreferences(user_id=user_id, firecrawl_key_status="pending")
            db.add(prefs)

        if not force and prefs.firecrawl_api_key and prefs.firecrawl_key_status == "active":
            return ProvisionResult(success=True, already_existed=True)

        if force and prefs.firecrawl_api_key:
            prefs.firecrawl_key_status = "invalid"

        try:
            api_key = await _request_partner_key(user_id, email)
        except CredentialProvisioningError as e:
            no_partner = not settings.firecrawl_partner_key
            prefs.firecrawl_key_status = "fallback" if no_partner else "failed"
            prefs.firecrawl_key_error = str(e)[:500]
            await db.commit()
            logger.warning("Firecrawl key provisioning failed for %s: %s", user_id, e)
            return ProvisionResult(success=False, error=str(e))

        prefs.firecrawl_api_key = api_key
        prefs.firecrawl_key_status = "active"
        prefs.firecrawl_key_created_at = datetime.now(timezone.utc)
        prefs.firecrawl_key_error = None
        await db.commit()

    logger.info("🔑 Firecrawl key %s for user %s", "regenerated" if force else "created", user_id)
    return ProvisionResult(success=True, already_existed=False)


async def ensure_firecrawl_key(user_id: str, email: str) -> ProvisionResult:
    """Make sure ``user_id`` has an active key. Safe to call repeatedly; never raises."""
    try:
        return await _provision(user_id, email, force=False)
    except Exception as e:
        logger.error("Firecrawl key check failed for %s: %s", user_id, e)
        return ProvisionResult(success=False, error=str(e))


async def regenerate_firecrawl_key(user_id: str, email: str) -> ProvisionResult:
    """Replace the user's key with a freshly minted one."""
    try:
        return await _provision(user_id, email, force=True)
    except Exception as e:
        logger.error("Firecrawl key regeneration failed for %s: %s", user_id, e)
        return ProvisionResult(success=False, error=str(e))


def provision_in_background(user_id: str, email: str) -> asyncio.Task:
    """Fire-and-forget ``ensure_firecrawl_key`` after a sign-in."""
    task = asyncio.create_task(ensure_firecrawl_key(user_id, email))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
