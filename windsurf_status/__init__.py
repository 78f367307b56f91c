import logging

from .core.credits import (
    CreditsSummary,
    build_credits_summary,
    get_display_email,
    get_plan_badge,
    get_usage,
)
from .core.user_status import RawStatusSummary, decode
from .core.windsurf_session import (
    WindsurfError,
    WindsurfSession,
    merge_local_auth_status,
    read_local_auth_status,
)

_LOGGER = logging.getLogger(__name__)


async def async_update_credits(
    session: WindsurfSession, auth_token: str = None, local_auth_status: dict = None
) -> CreditsSummary:
    """Fetch remote status and return credits summary for one account."""
    account = await session.fetch_account(auth_token)
    account = merge_local_auth_status(account, local_auth_status)
    summary = build_credits_summary(account)
    _LOGGER.debug(f"Credits: {summary}")
    return summary
