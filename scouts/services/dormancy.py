"""
Dormancy Sweeper — disable scouts owned by accounts nobody signs in to.

Each cycle:
  1. snapshot the distinct owners of active scouts
  2. look up each owner's last sign-in through the account directory
  3. an owner is dormant when the last sign-in is older than the threshold,
     or when the directory no longer knows the account
  4. deactivate every still-active scout of the dormant owners in one update

A lookup failure for one account skips that account only. Idempotent, safe
to run every cycle.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from scouts.database import async_session_factory
from scouts.errors import AccountNotFoundError
from scouts.models.account import Account
from scouts.models.scout import Scout

logger = logging.getLogger("scouts.dormancy")


class AccountDirectory(Protocol):
    async def get_last_sign_in(self, account_id: str) -> Optional[datetime]:
        """Last sign-in of ``account_id``; raises ``AccountNotFoundError``."""
        ...


class SqlAccountDirectory:
    """Reads account activity from the ``accounts`` table."""

    async def get_last_sign_in(self, account_id: str) -> Optional[datetime]:
        async with async_session_factory() as db:
            account = await db.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account.last_sign_in_at


async def _active_owner_ids() -> list[str]:
    async with async_session_factory() as db:
        result = await db.execute(
            select(Scout.user_id).where(Scout.is_active.is_(True)).distinct()
        )
        return [row[0] for row in result.all()]


async def find_dormant_accounts(
    account_ids: list[str],
    cutoff: datetime,
    directory: AccountDirectory,
) -> list[str]:
    """Return the subset of ``account_ids`` whose last sign-in predates ``cutoff``."""
    dormant: list[str] = []
    for account_id in account_ids:
        try:
            last_sign_in = await directory.get_last_sign_in(account_id)
        except AccountNotFoundError:
            logger.info("Account %s no longer exists, treating as dormant", account_id)
            dormant.append(account_id)
            continue
        except Exception as e:
            logger.error("Error checking account %s: %s", account_id, e)
            continue

        if last_sign_in is not None and last_sign_in < cutoff:
            dormant.append(account_id)
    return dormant


async def sweep_dormant_accounts(
    now: datetime,
    threshold: timedelta,
    directory: Optional[AccountDirectory] = None,
) -> int:
    """Deactivate active scouts of dormant accounts. Returns scouts deactivated."""
    directory = directory or SqlAccountDirectory()
    cutoff = now - threshold

    logger.info("💤 Checking for inactive accounts (no sign-in since %s)...", cutoff.isoformat())
    try:
        owner_ids = await _active_owner_ids()
    except SQLAlchemyError as e:
        logger.error("Error fetching active scout owners: %s", e)
        return 0

    if not owner_ids:
        logger.info("No active scouts to check")
        return 0

    dormant = await find_dormant_accounts(owner_ids, cutoff, directory)
    if not dormant:
        logger.info("No inactive accounts found among %d active scout owner(s)", len(owner_ids))
        return 0

    logger.info("Found %d inactive account(s), disabling their scouts...", len(dormant))
    try:
        async with async_session_factory() as db:
            result = await db.execute(
                update(Scout)
                .where(Scout.user_id.in_(dormant), Scout.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
    except SQLAlchemyError as e:
        logger.error("Error disabling scouts for inactive accounts: %s", e)
        return 0

    deactivated = result.rowcount or 0
    logger.info("Disabled %d scout(s) for inactive accounts", deactivated)
    return deactivated
