"""
ApplyTrack - Salary benchmarks, offer evaluation, and offer comparison.

Market numbers come from a built-in industry x experience-level table,
adjusted for cost of living by location and for company size. Benchmarks
are cached per (job title, location) in SalaryBenchmarkCache for 30 days.
"""
from datetime import datetime
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from ..models import SalaryBenchmarkCache

logger = logging.getLogger("applytrack.salary")

EXPERIENCE_LEVELS = ["entry", "mid", "senior", "executive"]

# Annual base salary (USD) by industry and level, plus typical benefits value
INDUSTRY_BENCHMARKS = {
    "technology": {
        "entry": {"min": 60000, "max": 85000, "median": 72500, "benefits": 15000},
        "mid": {"min": 85000, "max": 130000, "median": 107500, "benefits": 25000},
        "senior": {"min": 130000, "max": 200000, "median": 165000, "benefits": 40000},
        "executive": {"min": 200000, "max": 400000, "median": 300000, "benefits": 80000},
    },
    "finance": {
        "entry": {"min": 55000, "max": 75000, "median": 65000, "benefits": 12000},
        "mid": {"min": 75000, "max": 120000, "median": 97500, "benefits": 22000},
        "senior": {"min": 120000, "max": 180000, "median": 150000, "benefits": 35000},
        "executive": {"min": 180000, "max": 350000, "median": 265000, "benefits": 70000},
    },
    "healthcare": {
        "entry": {"min": 50000, "max": 70000, "median": 60000, "benefits": 18000},
        "mid": {"min": 70000, "max": 110000, "median": 90000, "benefits": 28000},
        "senior": {"min": 110000, "max": 170000, "median": 140000, "benefits": 42000},
        "executive": {"min": 170000, "max": 320000, "median": 245000, "benefits": 75000},
    },
    "education": {
        "entry": {"min": 40000, "max": 55000, "median": 47500, "benefits": 10000},
        "mid": {"min": 55000, "max": 85000, "median": 70000, "benefits": 18000},
        "senior": {"min": 85000, "max": 130000, "median": 107500, "benefits": 28000},
        "executive": {"min": 130000, "max": 220000, "median": 175000, "benefits": 45000},
    },
    "manufacturing": {
        "entry": {"min": 45000, "max": 65000, "median": 55000, "benefits": 12000},
        "mid": {"min": 65000, "max": 100000, "median": 82500, "benefits": 20000},
        "senior": {"min": 100000, "max": 150000, "median": 125000, "benefits": 32000},
        "executive": {"min": 150000, "max": 280000, "median": 215000, "benefits": 60000},
    },
    "retail": {
        "entry": {"min": 35000, "max": 50000, "median": 42500, "benefits": 8000},
        "mid": {"min": 50000, "max": 80000, "median": 65000, "benefits": 15000},
        "senior": {"min": 80000, "max": 125000, "median": 102500, "benefits": 25000},
        "executive": {"min": 125000, "max": 250000, "median": 187500, "benefits": 50000},
    },
    "marketing": {
        "entry": {"min": 45000, "max": 65000, "median": 55000, "benefits": 10000},
        "mid": {"min": 65000, "max": 100000, "median": 82500, "benefits": 18000},
        "senior": {"min": 100000, "max": 150000, "median": 125000, "benefits": 30000},
        "executive": {"min": 150000, "max": 300000, "median": 225000, "benefits": 65000},
    },
    "consulting": {
        "entry": {"min": 60000, "max": 80000, "median": 70000, "benefits": 12000},
        "mid": {"min": 80000, "max": 125000, "median": 102500, "benefits": 22000},
        "senior": {"min": 125000, "max": 190000, "median": 157500, "benefits": 38000},
        "executive": {"min": 190000, "max": 380000, "median": 285000, "benefits": 75000},
    },
    "other": {
        "entry": {"min": 45000, "max": 65000, "median": 55000, "benefits": 10000},
        "mid": {"min": 65000, "max": 100000, "median": 82500, "benefits": 18000},
        "senior": {"min": 100000, "max": 150000, "median": 125000, "benefits": 30000},
        "executive": {"min": 150000, "max": 280000, "median": 215000, "benefits": 60000},
    },
}

# Cost-of-living adjustment, matched as a substring of the location
LOCATION_MULTIPLIERS = {
    "san francisco": 1.35,
    "new york": 1.30,
    "seattle": 1.25,
    "boston": 1.22,
    "los angeles": 1.20,
    "washington dc": 1.18,
    "chicago": 1.10,
    "austin": 1.08,
    "denver": 1.05,
    "atlanta": 1.00,
    "dallas": 0.98,
    "phoenix": 0.95,
    "miami": 0.95,
    "remote": 1.00,
}

# Used when no city matches
STATE_MULTIPLIERS = {
    "california": 1.25,
    "new york": 1.25,
    "massachusetts": 1.20,
    "washington": 1.20,
    "texas": 0.98,
}

COMPANY_SIZE_MULTIPLIERS = {
    "startup": 0.85,
    "small": 0.95,
    "medium": 1.00,
    "large": 1.10,
    "enterprise": 1.20,
}

KNOWN_ENTERPRISE = [
    "google", "microsoft", "amazon", "apple", "facebook", "meta",
    "netflix", "tesla", "oracle", "ibm", "salesforce", "adobe",
]
KNOWN_LARGE = ["stripe", "shopify", "square", "twilio", "datadog", "snowflake"]

ANNUAL_GROWTH_RATE = 0.04


def normalize_level(level: Optional[str]) -> str:
    level = (level or "mid").lower()
    return level if level in EXPERIENCE_LEVELS else "mid"


def normalize_industry(industry: Optional[str]) -> str:
    industry = (industry or "other").lower()
    return industry if industry in INDUSTRY_BENCHMARKS else "other"


def location_multiplier(location: Optional[str]) -> float:
    """Cost-of-living multiplier for a free-text location (1.0 when unknown)."""
    if not location:
        return 1.0
    location_lower = location.lower()
    for city, multiplier in LOCATION_MULTIPLIERS.items():
        if city in location_lower:
            return multiplier
    for state, multiplier in STATE_MULTIPLIERS.items():
        if state in location_lower:
            return multiplier
    return 1.0


def estimate_company_size(company: Optional[str], declared: Optional[str] = None) -> str:
    """Use the declared size when valid, else guess from well-known names."""
    if declared and declared.lower() in COMPANY_SIZE_MULTIPLIERS:
        return declared.lower()
    company_lower = (company or "").lower()
    if any(name in company_lower for name in KNOWN_ENTERPRISE):
        return "enterprise"
    if any(name in company_lower for name in KNOWN_LARGE):
        return "large"
    return "medium"


def _scale(benchmark: Dict, multiplier: float, keys=("min", "max", "median", "benefits")) -> Dict:
    return {k: round(benchmark[k] * multiplier) for k in keys if k in benchmark}


def base_benchmark(industry: Optional[str], level: Optional[str]) -> Dict:
    return dict(INDUSTRY_BENCHMARKS[normalize_industry(industry)][normalize_level(level)])


def market_research(
    industry: Optional[str],
    level: Optional[str],
    location: Optional[str] = None,
    company: Optional[str] = None,
    company_size: Optional[str] = None,
) -> Dict:
    """
    Market salary picture for one role.

    Applies the location multiplier to the base table row, then the company
    size multiplier to salary figures (benefits stay location-adjusted only).
    """
    benchmark = base_benchmark(industry, level)
    loc_mult = location_multiplier(location)
    location_adjusted = _scale(benchmark, loc_mult)

    size = estimate_company_size(company, company_size)
    size_mult = COMPANY_SIZE_MULTIPLIERS[size]
    adjusted = _scale(location_adjusted, size_mult, keys=("min", "max", "median"))
    adjusted["benefits"] = location_adjusted["benefits"]

    total_compensation = {
        k: adjusted[k] + adjusted["benefits"] for k in ("min", "max", "median")
    }

    current_year = datetime.utcnow().year
    historical_trends = []
    for years_ago in range(4, -1, -1):
        factor = (1 + ANNUAL_GROWTH_RATE) ** -years_ago
        historical_trends.append({
            "year": current_year - years_ago,
            **_scale(adjusted, factor, keys=("min", "max", "median")),
        })

    return {
        "base_benchmark": benchmark,
        "location_adjusted": location_adjusted,
        "adjusted": adjusted,
        "total_compensation": total_compensation,
        "factors": {
            "industry": normalize_industry(industry),
            "experience_level": normalize_level(level),
            "location": location,
            "location_multiplier": loc_mult,
            "company_size": size,
            "company_size_multiplier": size_mult,
        },
        "historical_trends": historical_trends,
        "negotiation_range": {
            "conservative": round(adjusted["median"] * 0.95),
            "target": adjusted["median"],
            "ambitious": round(adjusted["median"] * 1.10),
        },
    }


def _percentiles(low: int, high: int) -> Dict:
    spread = high - low
    return {
        "p10": low,
        "p25": round(low + spread * 0.25),
        "p50": round(low + spread * 0.5),
        "p75": round(low + spread * 0.75),
        "p90": high,
    }


def compute_benchmark(job_title: str, location: Optional[str],
                      industry: Optional[str], level: Optional[str]) -> Dict:
    """Benchmark payload stored in the cache: min/max/median/mean plus percentiles."""
    row = _scale(base_benchmark(industry, level), location_multiplier(location))
    return {
        "job_title": job_title,
        "location": location,
        "industry": normalize_industry(industry),
        "experience_level": normalize_level(level),
        "min": row["min"],
        "max": row["max"],
        "median": row["median"],
        "mean": round((row["min"] + row["max"]) / 2),
        "benefits": row["benefits"],
        "percentiles": _percentiles(row["min"], row["max"]),
        "location_multiplier": location_multiplier(location),
    }


def get_benchmark(db: Session, job_title: str, location: Optional[str] = None,
                  industry: Optional[str] = None, level: Optional[str] = None,
                  refresh: bool = False) -> Dict:
    """
    Cache-first benchmark lookup.

    A hit bumps hit_count; a miss (or refresh) computes and stores a new row.
    """
    if not refresh:
        cached = SalaryBenchmarkCache.find_cached(db, job_title, location)
        if cached:
            cached.hit_count = (cached.hit_count or 0) + 1
            db.commit()
            return {
                "data": cached.salary_data,
                "cached": True,
                "data_source": cached.data_source,
                "age_days": cached.age_days(),
                "expires_at": cached.expires_at,
            }

    data = compute_benchmark(job_title, location, industry, level)
    row = SalaryBenchmarkCache.store(db, job_title, location, data)
    logger.info(f"Stored salary benchmark for '{row.job_title}' / '{row.location_key}'")
    return {
        "data": data,
        "cached": False,
        "data_source": row.data_source,
        "age_days": 0,
        "expires_at": row.expires_at,
    }


# -----------------------------------------------------------------------------
# Offer evaluation
# -----------------------------------------------------------------------------

def evaluate_offer(offer: int, minimum: Optional[int], target: Optional[int],
                   ideal: Optional[int]) -> Dict:
    """
    Compare an offer with the user's minimum / target / ideal numbers.

    Missing thresholds are filled in from the ones present: target defaults
    to minimum * 1.1 (or ideal / 1.15), ideal to target * 1.15, minimum to
    target * 0.9.
    """
    if target is None and minimum is not None:
        target = round(minimum * 1.1)
    if target is None and ideal is not None:
        target = round(ideal / 1.15)
    if minimum is None and target is not None:
        minimum = round(target * 0.9)
    if ideal is None and target is not None:
        ideal = round(target * 1.15)
    if target is None:
        raise ValueError("At least one of minimum_acceptable, target_salary, ideal_salary is required")

    gap_from_target = target - offer
    reasoning = []

    if offer >= ideal:
        recommendation = "Accept"
        reasoning.append("The offer meets or exceeds your ideal salary.")
        counter = None
    elif offer >= target:
        recommendation = "Consider Accepting or Minor Counter"
        reasoning.append("The offer meets your target salary.")
        reasoning.append("A small counter toward your ideal number is reasonable but optional.")
        counter = min(ideal, round(offer * 1.05))
    elif offer >= minimum:
        recommendation = "Counter Offer Recommended"
        reasoning.append(f"The offer is {gap_from_target:,} below your target salary.")
        reasoning.append("It is above your minimum, so there is room to negotiate without walking away.")
        counter = min(ideal, round(offer + gap_from_target * 1.2))
    else:
        recommendation = "Counter Offer Strongly Recommended"
        reasoning.append(f"The offer is {minimum - offer:,} below your minimum acceptable salary.")
        reasoning.append("Consider negotiating non-salary benefits if base salary cannot move.")
        counter = min(ideal, round(offer + gap_from_target * 1.2))

    return {
        "offer": offer,
        "thresholds": {"minimum_acceptable": minimum, "target_salary": target, "ideal_salary": ideal},
        "recommendation": recommendation,
        "reasoning": reasoning,
        "counter_offer": counter,
        "gap_from_target": gap_from_target,
        "percent_of_target": round(offer / target * 100, 1),
    }


def compare_offers(offers: List[Dict]) -> List[Dict]:
    """
    Rank offers by location-adjusted total compensation, best first.

    The adjustment divides by the cost-of-living multiplier, so the same
    salary in a cheaper city ranks higher.
    """
    ranked = []
    for offer in offers:
        total = offer["base_salary"] + offer.get("bonus", 0) + offer.get("equity", 0) + offer.get("benefits", 0)
        multiplier = location_multiplier(offer.get("location"))
        ranked.append({
            **offer,
            "total_compensation": total,
            "location_multiplier": multiplier,
            "adjusted_total": round(total / multiplier),
        })

    ranked.sort(key=lambda o: o["adjusted_total"], reverse=True)
    best = ranked[0]["adjusted_total"] if ranked else 0
    for rank, offer in enumerate(ranked, start=1):
        offer["rank"] = rank
        offer["difference_from_best"] = best - offer["adjusted_total"]
    return ranked


def progression_summary(records: List) -> Dict:
    """Growth of total compensation across the user's offer history (oldest first)."""
    ordered = sorted(records, key=lambda r: (r.offer_date or r.created_at.date()))
    if not ordered:
        return {"count": 0, "history": [], "total_growth": 0, "total_growth_percent": 0.0,
                "negotiated_count": 0, "average_negotiation_gain": 0}

    history = [
        {
            "id": r.id,
            "company": r.company,
            "role": r.role,
            "offer_date": r.offer_date,
            "base_salary": r.base_salary,
            "total_compensation": r.total_compensation,
        }
        for r in ordered
    ]
    first, last = ordered[0].total_compensation, ordered[-1].total_compensation
    gains = [
        r.base_salary - r.initial_offer
        for r in ordered
        if r.negotiated and r.initial_offer
    ]
    return {
        "count": len(ordered),
        "history": history,
        "total_growth": last - first,
        "total_growth_percent": round((last - first) / first * 100, 1) if first else 0.0,
        "negotiated_count": sum(1 for r in ordered if r.negotiated),
        "average_negotiation_gain": round(sum(gains) / len(gains)) if gains else 0,
        "highest_total_compensation": max(r.total_compensation for r in ordered),
    }
