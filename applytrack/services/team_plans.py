"""
ApplyTrack - Team plans, roles and permissions.

Plan pricing/limits, role permission defaults (a member's own
`permissions` dict overrides them key by key), slug generation, and
subscription period math.
"""
import re
from datetime import datetime, timedelta
from typing import Dict, Optional

TRIAL_DAYS = 14
INVITATION_DAYS = 7

PLAN_CONFIGS = {
    "free": {
        "monthly": 0,
        "annual": 0,
        "limits": {"max_members": 5, "max_candidates": 5, "max_mentors": 1, "max_reports_per_month": 10},
    },
    "starter": {
        "monthly": 29,
        "annual": 290,
        "limits": {"max_members": 15, "max_candidates": 10, "max_mentors": 3, "max_reports_per_month": 50},
    },
    "professional": {
        "monthly": 99,
        "annual": 990,
        "limits": {"max_members": 50, "max_candidates": 40, "max_mentors": 10, "max_reports_per_month": 200},
    },
    "enterprise": {
        "monthly": 299,
        "annual": 2990,
        "limits": {"max_members": 999, "max_candidates": 500, "max_mentors": 50, "max_reports_per_month": 999},
    },
}

PERMISSIONS = (
    "view_candidates", "manage_candidates", "view_resumes", "edit_resumes",
    "view_applications", "edit_applications", "view_interviews", "edit_interviews",
    "view_analytics", "invite_members", "remove_members", "manage_roles",
    "manage_team_settings", "send_messages", "create_reports", "share_feedback",
    "manage_billing",
)


def _grant(*names) -> Dict[str, bool]:
    return {p: p in names for p in PERMISSIONS}


_STAFF = (
    "view_candidates", "view_resumes", "view_applications", "view_interviews",
    "view_analytics", "send_messages", "create_reports", "share_feedback",
)

ROLE_PERMISSIONS = {
    "owner": _grant(*_STAFF, "manage_candidates", "invite_members", "remove_members",
                    "manage_roles", "manage_team_settings", "manage_billing"),
    "admin": _grant(*_STAFF, "manage_candidates", "invite_members", "remove_members",
                    "manage_team_settings"),
    "mentor": _grant(*_STAFF),
    "coach": _grant(*_STAFF),
    "candidate": _grant("view_resumes", "edit_resumes", "view_applications", "edit_applications",
                        "view_interviews", "edit_interviews", "view_analytics", "send_messages"),
    "viewer": _grant("view_candidates", "view_analytics"),
}


def has_permission(member, permission: str) -> bool:
    """Role default unless the member's own permissions set this key."""
    if member is None or member.status != "active":
        return False
    overrides = member.permissions or {}
    if overrides.get(permission) is not None:
        return bool(overrides[permission])
    return ROLE_PERMISSIONS.get(member.role, ROLE_PERMISSIONS["viewer"]).get(permission, False)


def effective_permissions(member) -> Dict[str, bool]:
    return {p: has_permission(member, p) for p in PERMISSIONS}


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:60] or "team"


def unique_slug(db, name: str, model, exclude_id: Optional[int] = None) -> str:
    """Slug from name, suffixed -1, -2, ... until no other team row uses it."""
    base = slugify(name)
    slug = base
    counter = 1
    while True:
        query = db.query(model.id).filter(model.slug == slug)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is None:
            break
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def plan_price(plan: str, billing_cycle: str = "monthly") -> float:
    config = PLAN_CONFIGS[plan]
    return float(config["annual"] if billing_cycle == "annual" else config["monthly"])


def period_end(start: datetime, billing_cycle: str) -> datetime:
    return start + timedelta(days=365 if billing_cycle == "annual" else 30)


def apply_plan(subscription, plan: str, billing_cycle: Optional[str] = None,
               now: Optional[datetime] = None) -> None:
    """Move a subscription onto a plan and start a fresh billing period."""
    if plan not in PLAN_CONFIGS:
        raise ValueError(f"Invalid plan: {plan}")
    now = now or datetime.utcnow()
    cycle = billing_cycle or subscription.billing_cycle or "monthly"
    subscription.plan = plan
    subscription.billing_cycle = cycle
    subscription.price = plan_price(plan, cycle)
    subscription.limits = dict(PLAN_CONFIGS[plan]["limits"])
    subscription.status = "active"
    subscription.cancel_at_period_end = False
    subscription.cancelled_at = None
    subscription.current_period_start = now
    subscription.current_period_end = None if plan == "free" else period_end(now, cycle)


def member_limit(subscription) -> int:
    limits = (subscription.limits if subscription is not None else None) or PLAN_CONFIGS["free"]["limits"]
    return int(limits.get("max_members", PLAN_CONFIGS["free"]["limits"]["max_members"]))


def settle_cancellation(subscription, now: Optional[datetime] = None) -> bool:
    """
    Revert a cancelled subscription to free once its period has ended.

    Returns True when the subscription changed.
    """
    now = now or datetime.utcnow()
    if not subscription.cancel_at_period_end:
        return False
    if subscription.current_period_end and subscription.current_period_end > now:
        return False
    apply_plan(subscription, "free", "monthly", now)
    return True
