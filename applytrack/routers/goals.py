"""
ApplyTrack - SMART career goals.

Goals carry a measurable target or a list of milestones. Every progress
update re-derives the status from progress against elapsed time.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date, datetime
import uuid

from ..database import get_db
from ..models import Goal
from ..schemas import (
    GoalCreate, GoalUpdate, GoalResponse, GoalProgressUpdate, MilestoneCreate,
)
from ..auth.dependencies import get_current_active_user
from ..auth.models import User
from ..query_helpers import user_query, get_owned_or_404, append_json
from ..rate_limit import limiter, RATE_LIMIT_GENERAL

router = APIRouter()

# Progress may trail elapsed time by this many points before a goal is at risk
AT_RISK_LAG_POINTS = 20
CLOSED_STATUSES = ("completed", "abandoned")


def elapsed_percent(goal: Goal, today: Optional[date] = None) -> Optional[float]:
    """Share of the start..target window already used, or None without a timeline."""
    if not goal.start_date or not goal.target_date:
        return None
    today = today or date.today()
    total = (goal.target_date - goal.start_date).days
    if total <= 0:
        return 100.0
    return max(0.0, min(100.0, (today - goal.start_date).days / total * 100))


def derive_status(goal: Goal, today: Optional[date] = None) -> str:
    """completed at 100%, at_risk when lagging elapsed time by >20 points, else on_track."""
    progress = goal.progress_percent
    if progress >= 100:
        return "completed"
    elapsed = elapsed_percent(goal, today)
    if elapsed is not None and elapsed - progress > AT_RISK_LAG_POINTS:
        return "at_risk"
    return "on_track"


def _apply_status(goal: Goal) -> None:
    goal.status = derive_status(goal)
    if goal.status == "completed" and not goal.completed_at:
        goal.completed_at = datetime.utcnow()


def _milestone(data: MilestoneCreate) -> dict:
    return {
        "id": uuid.uuid4().hex[:12],
        "title": data.title,
        "target_date": data.target_date.isoformat() if data.target_date else None,
        "completed": False,
        "completed_at": None,
    }


def _open_goal(db: Session, goal_id: int, user: User) -> Goal:
    goal = get_owned_or_404(db, Goal, goal_id, user, "Goal")
    if goal.status == "abandoned":
        raise HTTPException(status_code=400, detail="Goal has been abandoned")
    return goal


@router.get("/", response_model=List[GoalResponse])
def list_goals(
    status: Optional[str] = None,
    category: Optional[str] = None,
    include_closed: bool = True,
    sort_by: Optional[str] = Query(None, pattern="^(target_date|priority|created_at|title)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = user_query(db, Goal, current_user)
    if status:
        query = query.filter(Goal.status == status)
    if category:
        query = query.filter(Goal.category == category)
    if not include_closed:
        query = query.filter(Goal.status.notin_(CLOSED_STATUSES))
    if sort_by:
        query = query.order_by(getattr(Goal, sort_by).asc())
    else:
        query = query.order_by(Goal.created_at.desc())
    return query.all()


@router.get("/stats")
def get_goal_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Counts by status and category, completion rate and overdue goals."""
    goals = user_query(db, Goal, current_user).all()
    today = date.today()

    by_status = {}
    by_category = {}
    for goal in goals:
        by_status[goal.status] = by_status.get(goal.status, 0) + 1
        by_category[goal.category] = by_category.get(goal.category, 0) + 1

    completed = by_status.get("completed", 0)
    overdue = [
        g for g in goals
        if g.target_date and g.target_date < today and g.status not in CLOSED_STATUSES
    ]
    open_goals = [g for g in goals if g.status not in CLOSED_STATUSES]

    return {
        "total": len(goals),
        "by_status": by_status,
        "by_category": by_category,
        "completed": completed,
        "completion_rate": round(completed / len(goals) * 100, 1) if goals else 0.0,
        "overdue": len(overdue),
        "overdue_goals": [{"id": g.id, "title": g.title, "target_date": g.target_date} for g in overdue],
        "average_progress": (
            round(sum(g.progress_percent for g in open_goals) / len(open_goals), 1) if open_goals else 0.0
        ),
    }


@router.get("/{goal_id}", response_model=GoalResponse)
def get_goal(
    goal_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return get_owned_or_404(db, Goal, goal_id, current_user, "Goal")


@router.post("/", response_model=GoalResponse, status_code=201)
@limiter.limit(RATE_LIMIT_GENERAL)
def create_goal(
    request: Request,
    goal: GoalCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    data = goal.model_dump(exclude={"milestones", "category"})
    data["start_date"] = data["start_date"] or date.today()
    db_goal = Goal(
        **data,
        category=goal.category.value,
        user_id=current_user.id,
        milestones=[_milestone(m) for m in goal.milestones],
        progress_updates=[],
    )
    if db_goal.current_value:
        _apply_status(db_goal)
    db.add(db_goal)
    db.commit()
    db.refresh(db_goal)
    return db_goal


@router.patch("/{goal_id}", response_model=GoalResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def update_goal(
    request: Request,
    goal_id: int,
    goal: GoalUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Edit a goal. An explicit status (e.g. abandoned) overrides the derived one."""
    db_goal = get_owned_or_404(db, Goal, goal_id, current_user, "Goal")
    update_data = goal.model_dump(exclude_unset=True)
    for key in ("category", "status"):
        if update_data.get(key) is not None:
            update_data[key] = update_data[key].value
    if update_data.get("target_date") and db_goal.start_date and update_data["target_date"] < db_goal.start_date:
        raise HTTPException(status_code=400, detail="target_date cannot be before start_date")

    for key, value in update_data.items():
        setattr(db_goal, key, value)

    if "status" in update_data:
        if db_goal.status == "completed" and not db_goal.completed_at:
            db_goal.completed_at = datetime.utcnow()
    elif db_goal.status not in CLOSED_STATUSES and ("target_value" in update_data or "target_date" in update_data):
        _apply_status(db_goal)

    db.commit()
    db.refresh(db_goal)
    return db_goal


@router.delete("/{goal_id}")
@limiter.limit(RATE_LIMIT_GENERAL)
def delete_goal(
    request: Request,
    goal_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_goal = get_owned_or_404(db, Goal, goal_id, current_user, "Goal")
    db.delete(db_goal)
    db.commit()
    return {"message": "Goal deleted"}


@router.post("/{goal_id}/progress", response_model=GoalResponse)
@limiter.limit(RATE_LIMIT_GENERAL)
def add_progress(
    request: Request,
    goal_id: int,
    data: GoalProgressUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Record the goal's new current value and re-derive its status."""
    db_goal = _open_goal(db, goal_id, current_user)
    db_goal.current_value = data.value
    append_json(db_goal, "progress_updates", {
        "value": data.value,
        "notes": data.notes,
        "at": datetime.utcnow().isoformat(),
    })
    _apply_status(db_goal)
    db.commit()
    db.refresh(db_goal)
    return db_goal


@router.post("/{goal_id}/milestones", response_model=GoalResponse, status_code=201)
def add_milestone(
    goal_id: int,
    data: MilestoneCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_goal = _open_goal(db, goal_id, current_user)
    append_json(db_goal, "milestones", _milestone(data))
    if not db_goal.target_value and db_goal.status == "completed":
        db_goal.completed_at = None
        _apply_status(db_goal)
    db.commit()
    db.refresh(db_goal)
    return db_goal


@router.patch("/{goal_id}/milestones/{milestone_id}/complete", response_model=GoalResponse)
def complete_milestone(
    goal_id: int,
    milestone_id: str,
    completed: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Mark a milestone done (or not). Goals without a numeric target track progress by milestones."""
    db_goal = _open_goal(db, goal_id, current_user)
    milestones = [dict(m) for m in db_goal.milestones or []]
    for milestone in milestones:
        if milestone.get("id") == milestone_id:
            milestone["completed"] = completed
            milestone["completed_at"] = datetime.utcnow().isoformat() if completed else None
            break
    else:
        raise HTTPException(status_code=404, detail="Milestone not found")

    db_goal.milestones = milestones
    if not db_goal.target_value:
        if not completed:
            db_goal.completed_at = None
        _apply_status(db_goal)
    db.commit()
    db.refresh(db_goal)
    return db_goal
