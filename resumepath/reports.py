import datetime
from typing import Any, Dict, List, Optional

from resumepath import settings
from resumepath.analysis import (
    as_parsed,
    course_recommendations,
    job_matches,
    personality_analysis,
    skill_gap_analysis,
)
from resumepath.catalog import Catalog, get_catalog
from resumepath.parser import all_skills

DEFAULT_NEXT_STEPS = [
    "Explore technical leadership opportunities",
    "Contribute to open source projects",
    "Build a portfolio project that showcases your strongest skills",
    "Network with professionals in your target role",
]


def _latest(assessments: List[Dict[str, Any]], kind: str) -> Optional[Dict[str, Any]]:
    rows = [a for a in assessments or [] if a.get("assessment_type") == kind and a.get("results")]
    rows.sort(key=lambda a: a.get("created_at") or "", reverse=True)
    return rows[0] if rows else None


def next_steps(gaps: List[Dict[str, Any]], limit: int = 4) -> List[str]:
    steps = [
        f"Develop {g['skill']} from level {g['currentLevel']} to {g['requiredLevel']}"
        for g in gaps
        if g.get("priority") in ("high", "medium")
    ][:limit]
    for advice in DEFAULT_NEXT_STEPS:
        if len(steps) >= limit:
            break
        steps.append(advice)
    return steps


def build_report(resume_row: Optional[Dict[str, Any]], assessments: List[Dict[str, Any]],
                 report_type: Optional[str] = None, catalog: Optional[Catalog] = None) -> Dict[str, Any]:
    """Assemble the comprehensive report from the latest resume and stored assessments."""
    catalog = catalog or get_catalog()
    parsed = as_parsed((resume_row or {}).get("parsed_data"))
    skills = all_skills(parsed.skills) if parsed else []

    gap_row = _latest(assessments, "skill_gap")
    if gap_row:
        gaps = gap_row["results"].get("skillGaps") or []
    else:
        gaps = skill_gap_analysis(skills, settings.DEFAULT_TARGET_ROLE, parsed, catalog)["skillGaps"]

    level = parsed.analysis.experience_level if parsed else None
    jobs = job_matches(skills, None, level, resume=parsed, catalog=catalog)
    courses = course_recommendations(gaps, None, skills, limit=3, catalog=catalog)

    personality_row = _latest(assessments, "personality")
    if personality_row:
        personality = personality_row["results"].get("personality") or personality_row["results"]
    else:
        personality = personality_analysis({}, parsed, catalog)

    return {
        "resumeAnalysis": parsed.to_json() if parsed else None,
        "skillGaps": gaps,
        "careerMatches": [
            {"role": j["title"], "match": j["match"], "salary": j["salary"]} for j in jobs[:4]
        ],
        "courseRecommendations": courses,
        "personalityInsights": personality,
        "nextSteps": next_steps(gaps),
        "generatedAt": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "reportType": report_type or "comprehensive",
    }
