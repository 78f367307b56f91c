"""Decoder for the binary `userStatusProtoBinaryBase64` blob.

There is no public schema for this message. Field numbers below were
observed in real responses:

    UserStatus
      3  name (string)
      7  email (string)
      13 PlanStatus
           1  PlanInfo
                2  plan_name (string)
                12 monthly_prompt_credits
                14 monthly_flex_credit_purchase_amount
           2  plan_start (Timestamp)
           3  plan_end (Timestamp)
           4  available_flex_credits
           6  used_prompt_credits
           7  used_flex_credits
           8  available_prompt_credits
    Timestamp
      1  seconds
"""
from dataclasses import dataclass

from .protobuf import LEN, VARINT, iter_fields

USER_STATUS = {
    3: (LEN, "name"),
    7: (LEN, "email"),
    13: (LEN, "plan_status"),
}

PLAN_STATUS = {
    1: (LEN, "plan_info"),
    2: (LEN, "plan_start"),
    3: (LEN, "plan_end"),
    4: (VARINT, "flex_available"),
    6: (VARINT, "prompt_used"),
    7: (VARINT, "flex_used"),
    8: (VARINT, "prompt_available"),
}

PLAN_INFO = {
    2: (LEN, "plan_name"),
    12: (VARINT, "monthly_prompt"),
    14: (VARINT, "monthly_flex"),
}

TIMESTAMP = {
    1: (VARINT, "seconds"),
}


@dataclass(frozen=True)
class RawStatusSummary:
    name: str | None = None
    email: str | None = None
    plan_name: str | None = None
    plan_starts_at: int | None = None
    plan_ends_at: int | None = None
    prompt_credits_left: float | None = None
    prompt_credits_used: float | None = None
    prompt_credits_total: float | None = None
    add_on_credits_left: float | None = None
    add_on_credits_used: float | None = None
    add_on_credits_total: float | None = None


def extract(raw: bytes | None, fields: dict) -> dict:
    """Pick known fields from a message. Unknown numbers and fields with an
    unexpected wire type are skipped. Repeated fields - last one wins.
    """
    res = {}
    if not raw:
        return res
    for tag, typ, v in iter_fields(raw):
        if (field := fields.get(tag)) and field[0] == typ:
            res[field[1]] = v
    return res


def decode_text(raw: bytes | None) -> str | None:
    if raw is None:
        return None
    return raw.decode("utf-8", "replace").strip() or None


def decode_timestamp(raw: bytes | None) -> int | None:
    # first `seconds` wins, unlike other messages
    for tag, typ, v in iter_fields(raw or b""):
        if TIMESTAMP.get(tag) == (typ, "seconds"):
            return v
    return None


def normalize_credits(value: int | float | None) -> int | float | None:
    """Heuristic: some counters come as hundredths of a credit, others as
    plain counts, and nothing in the message tells them apart.

    Known limitation: a real round count like 300 is read as 3.
    """
    if value is None:
        return None
    if value >= 1000:
        return value / 100
    if value >= 100 and value % 100 == 0:
        return value / 100
    return value


def reconcile_pool(
    available: int | None, used: int | None, monthly: int | None
) -> tuple:
    """Return normalized (left, used, total) for one credit pool."""
    left = normalize_credits(available if available is not None else monthly)
    used = normalize_credits(used)
    monthly = normalize_credits(monthly)

    if left is not None and used is not None:
        total = max(0, left + used)
    else:
        total = monthly if monthly is not None else left

    if total is not None and left is not None and total < left:
        total = left

    if used is None and total is not None and left is not None:
        used = max(0, total - left)

    return left, used, total


def decode(raw: bytes) -> RawStatusSummary:
    user_status = extract(raw, USER_STATUS)
    plan_status = extract(user_status.get("plan_status"), PLAN_STATUS)
    plan_info = extract(plan_status.get("plan_info"), PLAN_INFO)

    summary = {
        "name": decode_text(user_status.get("name")),
        "email": decode_text(user_status.get("email")),
        "plan_name": decode_text(plan_info.get("plan_name")),
        "plan_starts_at": decode_timestamp(plan_status.get("plan_start")),
        "plan_ends_at": decode_timestamp(plan_status.get("plan_end")),
    }

    if "plan_status" in user_status:
        (
            summary["prompt_credits_left"],
            summary["prompt_credits_used"],
            summary["prompt_credits_total"],
        ) = reconcile_pool(
            plan_status.get("prompt_available"),
            plan_status.get("prompt_used"),
            plan_info.get("monthly_prompt"),
        )
        (
            summary["add_on_credits_left"],
            summary["add_on_credits_used"],
            summary["add_on_credits_total"],
        ) = reconcile_pool(
            plan_status.get("flex_available"),
            plan_status.get("flex_used"),
            plan_info.get("monthly_flex"),
        )

    return RawStatusSummary(**summary)
