"""Credits summary for a stored Windsurf account.

Every value is looked up in this order:
1. JSON `planStatus` / `planInfo` from GetUserStatus or GetPlanStatus
2. binary `userStatusProtoBinaryBase64` blob from local auth status
3. legacy `key=value;...` prefix of the copilot token
"""
import base64
import binascii
import logging
import math
from dataclasses import dataclass
from datetime import datetime

from .const import FREE_LIMITED_CHAT_TOTAL, PLAN_BADGES, PROTO_BASE64_PATHS
from .user_status import RawStatusSummary, decode, normalize_credits

_LOGGER = logging.getLogger(__name__)

PROMPT_LEFT_PATHS = [["availablePromptCredits"], ["available_prompt_credits"]]
PROMPT_USED_PATHS = [["usedPromptCredits"], ["used_prompt_credits"]]
PROMPT_MONTHLY_PATHS = [["monthlyPromptCredits"], ["monthly_prompt_credits"]]

FLEX_LEFT_PATHS = [
    ["availableFlexCredits"],
    ["available_flex_credits"],
    ["flexCreditsAvailable"],
    ["flex_credits_available"],
    ["availableAddOnCredits"],
    ["available_add_on_credits"],
    ["addOnCreditsAvailable"],
    ["add_on_credits_available"],
    ["availableTopUpCredits"],
    ["available_top_up_credits"],
    ["topUpCreditsAvailable"],
    ["top_up_credits_available"],
]
FLEX_USED_PATHS = [
    ["usedFlexCredits"],
    ["used_flex_credits"],
    ["usedAddOnCredits"],
    ["used_add_on_credits"],
    ["usedTopUpCredits"],
    ["used_top_up_credits"],
]
FLEX_MONTHLY_PATHS = [
    ["monthlyFlexCreditPurchaseAmount"],
    ["monthly_flex_credit_purchase_amount"],
    ["monthlyAddOnCredits"],
    ["monthly_add_on_credits"],
    ["monthlyTopUpCredits"],
    ["monthly_top_up_credits"],
]

PLAN_START_KEYS = ["planStart", "plan_start", "currentPeriodStart", "current_period_start"]
PLAN_END_KEYS = ["planEnd", "plan_end", "currentPeriodEnd", "current_period_end"]
PLAN_NAME_PATHS = [["planName"], ["plan_name"], ["teamsTier"], ["teams_tier"]]

TIMESTAMP_KEYS = ["seconds", "unixSeconds", "unix", "timestamp", "value"]


@dataclass(frozen=True)
class CreditsSummary:
    plan_name: str | None = None
    credits_left: float | None = None
    prompt_credits_left: float | None = None
    prompt_credits_used: float | None = None
    prompt_credits_total: float | None = None
    add_on_credits: float | None = None
    add_on_credits_used: float | None = None
    add_on_credits_total: float | None = None
    plan_starts_at: int | None = None
    plan_ends_at: int | None = None


def get_path(root, path: list):
    for key in path:
        if not isinstance(root, dict):
            return None
        root = root.get(key)
    return root


def get_string(value) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    return None


def is_finite(value: int | float) -> bool:
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for float
        return False


def get_number(value) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if is_finite(value) else None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
        return value if math.isfinite(value) else None
    return None


def first(*values):
    return next((v for v in values if v is not None), None)


def string_from_paths(root, paths: list) -> str | None:
    return first(*[get_string(get_path(root, p)) for p in paths])


def number_from_paths(root, paths: list) -> int | float | None:
    return first(*[get_number(get_path(root, p)) for p in paths])


def first_dict(*values) -> dict | None:
    return next((v for v in values if isinstance(v, dict)), None)


def parse_timestamp_seconds(value) -> int | None:
    """Support unix seconds, milliseconds, numeric or ISO strings and
    `{"seconds": ...}` like objects.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not is_finite(value):
            return None
        ts = math.floor(value / 1000 if value > 1e12 else value)
        return ts if ts > 0 else None
    if isinstance(value, str):
        if not (value := value.strip()):
            return None
        if (number := get_number(value)) is not None:
            return parse_timestamp_seconds(number)
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return math.floor(dt.timestamp())
    if isinstance(value, dict):
        return first(*[parse_timestamp_seconds(value.get(k)) for k in TIMESTAMP_KEYS])
    return None


def parse_token_map(token: str) -> dict[str, str]:
    """Parse `tid=xxx;sku=free_limited;cq=2000;rd=1700000000:signature`."""
    res = {}
    prefix = token.split(":", 1)[0]
    for part in prefix.split(";"):
        k, *v = part.split("=")
        if k := k.strip():
            res[k] = v[0].strip() if v else ""
    return res


def resolve_plan_status(account: dict) -> dict | None:
    plan_status = account.get("windsurf_plan_status")
    user_status = account.get("windsurf_user_status")
    snapshots = account.get("copilot_quota_snapshots")
    return first_dict(
        get_path(plan_status, ["planStatus"]),
        plan_status,
        get_path(snapshots, ["windsurfPlanStatus", "planStatus"]),
        get_path(snapshots, ["windsurfPlanStatus"]),
        get_path(user_status, ["userStatus", "planStatus"]),
        get_path(user_status, ["planStatus"]),
        get_path(snapshots, ["windsurfUserStatus", "userStatus", "planStatus"]),
        get_path(snapshots, ["windsurfUserStatus", "planStatus"]),
    )


def resolve_plan_info(account: dict, plan_status: dict | None) -> dict | None:
    user_status = account.get("windsurf_user_status")
    snapshots = account.get("copilot_quota_snapshots")
    return first_dict(
        get_path(plan_status, ["planInfo"]),
        get_path(account.get("windsurf_plan_status"), ["planStatus", "planInfo"]),
        get_path(account.get("windsurf_plan_status"), ["planInfo"]),
        get_path(snapshots, ["windsurfPlanInfo"]),
        get_path(snapshots, ["windsurfPlanStatus", "planStatus", "planInfo"]),
        get_path(snapshots, ["windsurfPlanStatus", "planInfo"]),
        get_path(user_status, ["userStatus", "planInfo"]),
        get_path(user_status, ["planInfo"]),
        get_path(snapshots, ["windsurfUserStatus", "userStatus", "planInfo"]),
    )


def resolve_remote_plan_name(account: dict) -> str | None:
    plan_status = resolve_plan_status(account)
    plan_info = resolve_plan_info(account, plan_status)
    return string_from_paths(plan_info, PLAN_NAME_PATHS + [["name"]]) or (
        string_from_paths(plan_status, PLAN_NAME_PATHS)
    )


def parse_proto_summary(account: dict) -> RawStatusSummary | None:
    value = string_from_paths(account.get("windsurf_auth_status_raw"), PROTO_BASE64_PATHS)
    if not value:
        return None

    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        _LOGGER.debug(f"Wrong user status base64: {e}")
        return None

    return decode(raw) if raw else None


def get_plan_display_name(plan: str | None) -> str:
    """Short plan name for UI, unknown names are shown as is."""
    if not plan:
        return "UNKNOWN"
    upper = plan.upper()
    if "FREE" in upper:
        return "FREE"
    if "INDIVIDUAL_PRO" in upper or upper == "PRO":
        return "PRO"
    if "INDIVIDUAL" in upper:
        return "INDIVIDUAL"
    if "BUSINESS" in upper:
        return "BUSINESS"
    if "ENTERPRISE" in upper:
        return "ENTERPRISE"
    return upper


def plan_name_to_badge(plan: str | None) -> str:
    name = get_plan_display_name(plan)
    return name if name in PLAN_BADGES else "UNKNOWN"


def sku_to_badge(sku: str) -> str | None:
    lower = sku.lower()
    if not lower:
        return None
    if "free_limited" in lower or "no_auth_limited" in lower:
        return "FREE"
    if lower in ("free", "windsurf"):
        return "FREE"
    if "enterprise" in lower:
        return "ENTERPRISE"
    if "business" in lower:
        return "BUSINESS"
    if "individual_pro" in lower or lower == "pro" or "_pro" in lower:
        return "PRO"
    if "individual" in lower:
        return "INDIVIDUAL"
    return None


def get_plan_badge(account: dict) -> str:
    token_map = parse_token_map(get_string(account.get("copilot_token")) or "")
    if badge := sku_to_badge(token_map.get("sku", "")):
        return badge

    badge = plan_name_to_badge(get_string(account.get("copilot_plan")))
    if badge != "UNKNOWN":
        return badge

    return plan_name_to_badge(resolve_remote_plan_name(account))


def get_display_email(account: dict) -> str | None:
    if email := get_string(account.get("github_email")):
        return email

    if (proto := parse_proto_summary(account)) and proto.email:
        return proto.email

    email = (
        string_from_paths(
            account.get("windsurf_user_status"), [["userStatus", "email"], ["email"]]
        )
        or string_from_paths(account.get("windsurf_auth_status_raw"), [["email"]])
        or string_from_paths(
            account.get("copilot_quota_snapshots"),
            [
                ["windsurfCurrentUser", "email"],
                ["windsurfUserStatus", "userStatus", "email"],
                ["windsurfUserStatus", "email"],
            ],
        )
    )
    return email or account.get("github_login")


def clamp_percent(value: float) -> int:
    return round(min(max(value, 0), 100))


def calc_used_percent(total, remaining) -> int | None:
    if total is None or remaining is None or total <= 0:
        return None
    # remaining can be greater than total on some plans
    return clamp_percent(max(0, total - remaining) / total * 100)


def get_premium_snapshot(account: dict) -> dict | None:
    snapshots = account.get("copilot_quota_snapshots")
    if not isinstance(snapshots, dict):
        return None
    return first_dict(
        snapshots.get("premium_interactions"), snapshots.get("premium_models")
    )


def pick_allowance_reset_at(account: dict, token_map: dict) -> int | None:
    reset_date = account.get("copilot_limited_user_reset_date")
    if isinstance(reset_date, (int, float)) and not isinstance(reset_date, bool):
        return reset_date

    reset_date = get_string(account.get("copilot_quota_reset_date"))
    if reset_date and (ts := parse_timestamp_seconds(reset_date)):
        return ts

    if rd := token_map.get("rd"):
        return get_number(rd.split(":", 1)[0])

    return None


def get_usage(account: dict) -> dict:
    """Legacy completions/chat allowance for accounts without credits."""
    token_map = parse_token_map(get_string(account.get("copilot_token")) or "")
    free_limited = "free_limited" in token_map.get("sku", "").lower() or (
        "free_limited" in (get_string(account.get("copilot_plan")) or "").lower()
    )
    reset_at = pick_allowance_reset_at(account, token_map)

    # paid users: premium interactions snapshot has priority
    if not free_limited and (snapshot := get_premium_snapshot(account)):
        entitlement = get_number(snapshot.get("entitlement"))
        percent_remaining = get_number(snapshot.get("percent_remaining"))

        if snapshot.get("unlimited") is True:
            used_percent = 0
        elif entitlement is not None and entitlement < 0:
            used_percent = 0
        elif percent_remaining is not None:
            used_percent = clamp_percent(100 - percent_remaining)
        else:
            used_percent = None

        if entitlement and entitlement > 0 and percent_remaining is not None:
            remaining = max(0, round(entitlement * percent_remaining / 100))
        else:
            remaining = None

        return {
            "inline_suggestions_used_percent": used_percent,
            "chat_messages_used_percent": used_percent,
            "allowance_reset_at": reset_at,
            "remaining_completions": remaining,
            "remaining_chat": remaining,
            "total_completions": entitlement,
            "total_chat": entitlement,
        }

    quotas = account.get("copilot_limited_user_quotas")
    if not isinstance(quotas, dict):
        quotas = {}
    remaining_completions = get_number(quotas.get("completions"))
    remaining_chat = get_number(quotas.get("chat"))

    total_completions = first(get_number(token_map.get("cq")), remaining_completions)
    total_chat = get_number(token_map.get("tq"))
    if total_chat is None:
        if free_limited and remaining_chat is not None:
            total_chat = FREE_LIMITED_CHAT_TOTAL
        else:
            total_chat = remaining_chat

    return {
        "inline_suggestions_used_percent": calc_used_percent(
            total_completions, remaining_completions
        ),
        "chat_messages_used_percent": calc_used_percent(total_chat, remaining_chat),
        "allowance_reset_at": reset_at,
        "remaining_completions": remaining_completions,
        "remaining_chat": remaining_chat,
        "total_completions": total_completions,
        "total_chat": total_chat,
    }


def merge_pool(left, used, total) -> tuple:
    if left is not None and used is not None:
        total = max(0, left + used)
    if total is None:
        total = left
    if total is not None and left is not None and total < left:
        total = left
    if used is None and left is not None:
        used = max(0, total - left)
    return left, used, total


def first_timestamp(plan_status: dict | None, keys: list) -> int | None:
    return first(*[parse_timestamp_seconds(get_path(plan_status, [k])) for k in keys])


def build_credits_summary(account: dict) -> CreditsSummary:
    usage = get_usage(account)
    plan_status = resolve_plan_status(account)
    plan_info = resolve_plan_info(account, plan_status)
    proto = parse_proto_summary(account) or RawStatusSummary()

    def json_credits(root, paths):
        return normalize_credits(number_from_paths(root, paths))

    prompt_left, prompt_used, prompt_total = merge_pool(
        first(
            json_credits(plan_status, PROMPT_LEFT_PATHS),
            proto.prompt_credits_left,
            normalize_credits(usage["remaining_completions"]),
        ),
        first(json_credits(plan_status, PROMPT_USED_PATHS), proto.prompt_credits_used),
        first(
            json_credits(plan_info, PROMPT_MONTHLY_PATHS),
            proto.prompt_credits_total,
            normalize_credits(usage["total_completions"]),
        ),
    )

    flex_left, flex_used, flex_total = merge_pool(
        first(json_credits(plan_status, FLEX_LEFT_PATHS), proto.add_on_credits_left, 0),
        first(json_credits(plan_status, FLEX_USED_PATHS), proto.add_on_credits_used),
        first(json_credits(plan_info, FLEX_MONTHLY_PATHS), proto.add_on_credits_total),
    )

    plan_starts_at = first(
        first_timestamp(plan_status, PLAN_START_KEYS), proto.plan_starts_at
    )
    plan_ends_at = first(
        first_timestamp(plan_status, PLAN_END_KEYS),
        proto.plan_ends_at,
        parse_timestamp_seconds(account.get("copilot_limited_user_reset_date")),
        parse_timestamp_seconds(account.get("copilot_quota_reset_date")),
    )

    plan_name = first(
        resolve_remote_plan_name(account),
        proto.plan_name,
        get_string(account.get("copilot_plan")),
        get_string(account.get("plan_type")),
    )

    return CreditsSummary(
        plan_name=plan_name,
        credits_left=prompt_left,
        prompt_credits_left=prompt_left,
        prompt_credits_used=prompt_used,
        prompt_credits_total=prompt_total,
        add_on_credits=flex_left,
        add_on_credits_used=flex_used,
        add_on_credits_total=flex_total,
        plan_starts_at=plan_starts_at,
        plan_ends_at=plan_ends_at,
    )
