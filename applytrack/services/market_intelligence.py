"""
ApplyTrack - Market intelligence from the user's tracked jobs.

Everything here is computed from the jobs a user has saved: which skills
keep showing up, where and in which industries the roles are, what they
pay, and how hiring activity moves week to week.
"""
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .salary_benchmarks import normalize_industry
from .skill_gap import SKILL_CATEGORY, extract_skills

TOP_SKILLS = 20
ACTIVITY_WEEKS = 12


def _job_skills(job) -> List[str]:
    text = " ".join(job.requirements or []) + " " + (job.description or "")
    return extract_skills(text)


def skill_demand(jobs: List, user_skills: List[Dict], previous_cutoff: Optional[datetime] = None) -> List[Dict]:
    """
    Skill frequency across jobs, with user coverage and a trend.

    The trend compares mentions in jobs added after `previous_cutoff`
    against jobs added before it.
    """
    previous_cutoff = previous_cutoff or (datetime.utcnow() - timedelta(days=30))
    have = {s["name"].lower() for s in user_skills if s.get("name")}
    counts, recent, older = Counter(), Counter(), Counter()
    for job in jobs:
        for skill in _job_skills(job):
            counts[skill] += 1
            if job.created_at and job.created_at >= previous_cutoff:
                recent[skill] += 1
            else:
                older[skill] += 1

    total = len(jobs) or 1
    demand = []
    for skill, count in counts.most_common(TOP_SKILLS):
        if recent[skill] > older[skill]:
            trend = "rising"
        elif recent[skill] < older[skill]:
            trend = "declining"
        else:
            trend = "stable"
        demand.append({
            "skill": skill,
            "category": SKILL_CATEGORY.get(skill.lower(), "other"),
            "job_count": count,
            "percentage": round(count / total * 100, 1),
            "user_has_skill": skill.lower() in have,
            "trend": trend,
        })
    return demand


def distribution(jobs: List, attr: str) -> List[Dict]:
    counts = Counter((getattr(job, attr) or "unspecified") for job in jobs)
    total = len(jobs) or 1
    return [
        {"name": name, "count": count, "percentage": round(count / total * 100, 1)}
        for name, count in counts.most_common()
    ]


def salary_by_industry(jobs: List) -> List[Dict]:
    grouped = defaultdict(list)
    for job in jobs:
        low, high = job.salary_min, job.salary_max
        if not low and not high:
            continue
        midpoint = ((low or high) + (high or low)) / 2
        grouped[normalize_industry(job.industry) if job.industry else "unspecified"].append((low or high, high or low, midpoint))

    result = []
    for industry, rows in grouped.items():
        mids = sorted(r[2] for r in rows)
        n = len(mids)
        median = mids[n // 2] if n % 2 else (mids[n // 2 - 1] + mids[n // 2]) / 2
        result.append({
            "industry": industry,
            "job_count": n,
            "min": min(r[0] for r in rows),
            "max": max(r[1] for r in rows),
            "average": round(sum(mids) / n),
            "median": round(median),
        })
    return sorted(result, key=lambda r: r["median"], reverse=True)


def hiring_activity(jobs: List, now: Optional[datetime] = None, weeks: int = ACTIVITY_WEEKS) -> List[Dict]:
    """Jobs added per week for the last `weeks` weeks, oldest first."""
    now = now or datetime.utcnow()
    week_start = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    buckets = []
    for i in range(weeks - 1, -1, -1):
        start = week_start - timedelta(weeks=i)
        end = start + timedelta(weeks=1)
        added = [j for j in jobs if j.created_at and start <= j.created_at < end]
        buckets.append({
            "week_start": start.date().isoformat(),
            "jobs_added": len(added),
            "applications": sum(1 for j in added if j.status != "interested"),
        })
    return buckets


def recommendations(demand: List[Dict], industries: List[Dict]) -> List[Dict]:
    recs = []
    missing = [d for d in demand if not d["user_has_skill"]]
    for item in missing[:5]:
        priority = "high" if item["percentage"] >= 40 else "medium" if item["percentage"] >= 20 else "low"
        recs.append({
            "type": "skill",
            "priority": priority,
            "title": f"Learn {item['skill']}",
            "description": f"{item['skill']} appears in {item['percentage']}% of the jobs you're tracking.",
        })
    rising = [d for d in demand if d["trend"] == "rising" and d["user_has_skill"]]
    for item in rising[:2]:
        recs.append({
            "type": "highlight",
            "priority": "medium",
            "title": f"Feature {item['skill']} on your resume",
            "description": f"Demand for {item['skill']} is rising in your recent saved jobs and you already have it.",
        })
    if industries and industries[0]["name"] != "unspecified" and industries[0]["percentage"] >= 50:
        recs.append({
            "type": "focus",
            "priority": "low",
            "title": f"Most of your search is in {industries[0]['name']}",
            "description": "Consider whether adjacent industries could widen your pipeline.",
        })
    return recs


def market_overview(jobs: List, user_skills: List[Dict], now: Optional[datetime] = None) -> Dict:
    now = now or datetime.utcnow()
    demand = skill_demand(jobs, user_skills, now - timedelta(days=30))
    industries = distribution(jobs, "industry")
    covered = sum(1 for d in demand if d["user_has_skill"])
    return {
        "total_jobs": len(jobs),
        "skill_demand": demand,
        "skill_coverage": round(covered / len(demand) * 100, 1) if demand else 0,
        "industries": industries,
        "locations": distribution(jobs, "location"),
        "work_modes": distribution(jobs, "work_mode"),
        "salary_by_industry": salary_by_industry(jobs),
        "hiring_activity": hiring_activity(jobs, now),
        "recommendations": recommendations(demand, industries),
        "generated_at": now.isoformat(),
    }
