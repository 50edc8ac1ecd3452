"""
Deterministic career analysis over a parsed resume and the catalog.

- skill_gap_analysis: required skills of a target role vs estimated current levels
- job_matches: catalog jobs scored by requirement coverage and seniority fit
- course_recommendations: courses ranked by how many gaps they close
- personality_analysis: trait scores and career type from questionnaire answers
"""

import re
from typing import Any, Dict, List, Optional, Tuple, Union

from resumepath import skills as sk
from resumepath.catalog import Catalog, Role, get_catalog
from resumepath.parser import ParsedResume, all_skills

LEVELS = ["entry", "mid", "senior"]
PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}

ResumeLike = Union[ParsedResume, Dict[str, Any], None]


# --------------------------------------------------------------------------------------
# helpers
# --------------------------------------------------------------------------------------


def as_parsed(resume: ResumeLike) -> Optional[ParsedResume]:
    if resume is None or isinstance(resume, ParsedResume):
        return resume
    if isinstance(resume, dict) and resume:
        try:
            return ParsedResume.model_validate(resume)
        except ValueError:
            return None
    return None


def usage_text(parsed: Optional[ParsedResume]) -> str:
    """Free text where skills are *used* (experience and projects), not just listed."""
    if parsed is None:
        return ""
    parts: List[str] = []
    for e in parsed.experience:
        parts += [e.title, e.description] + e.achievements + e.technologies
    for p in parsed.projects:
        parts += [p.name, p.description] + p.technologies
    return " ".join(parts)


def _profile(current_skills: Any, parsed: Optional[ParsedResume]) -> Tuple[List[str], str, Optional[float]]:
    listed = all_skills(current_skills) if current_skills else []
    if parsed is not None:
        listed = all_skills(listed + all_skills(parsed.skills))
    years = parsed.analysis.total_years if parsed is not None else None
    return listed, usage_text(parsed), years


def experience_level_key(experience: Any) -> str:
    text = str(experience or "").lower()
    if any(w in text for w in ("senior", "5+", "lead", "principal", "staff")):
        return "senior"
    if any(w in text for w in ("entry", "junior", "graduate", "intern", "new to")):
        return "entry"
    if any(w in text for w in ("mid", "2-5", "intermediate")):
        return "mid"
    m = re.search(r"(\d+(?:\.\d+)?)", text)
    if m:
        years = float(m.group(1))
        return "senior" if years >= 5 else "mid" if years >= 2 else "entry"
    return "mid"


def _priority(gap: int) -> str:
    if gap >= 3:
        return "high"
    if gap == 2:
        return "medium"
    return "low"


# --------------------------------------------------------------------------------------
# skill gaps
# --------------------------------------------------------------------------------------


def skill_gap_analysis(current_skills: Any, target_role: Optional[str],
                       resume: ResumeLike = None, catalog: Optional[Catalog] = None) -> Dict[str, Any]:
    catalog = catalog or get_catalog()
    parsed = as_parsed(resume)
    role = catalog.find_role(target_role)
    listed, used, years = _profile(current_skills, parsed)

    gaps, held, required_total = [], 0, 0
    for skill, required in role.skills.items():
        info = catalog.skill(skill)
        current = sk.estimate_level(skill, listed, used, years, info.aliases)
        held += min(current, required)
        required_total += required
        if current >= required:
            continue
        gaps.append({
            "skill": skill,
            "currentLevel": current,
            "requiredLevel": required,
            "priority": _priority(required - current),
            "description": info.description,
            "resources": info.resources,
        })

    gaps.sort(key=lambda g: (PRIORITY_RANK[g["priority"]], -(g["requiredLevel"] - g["currentLevel"]), g["skill"]))
    return {
        "targetRole": role.name,
        "readiness": round(100.0 * held / max(1, required_total)),
        "skillGaps": gaps,
    }


def role_readiness(role: Role, listed: List[str], used: str, years: Optional[float], catalog: Catalog) -> int:
    held = sum(
        min(sk.estimate_level(s, listed, used, years, catalog.skill(s).aliases), req)
        for s, req in role.skills.items()
    )
    return round(100.0 * held / max(1, sum(role.skills.values())))


# --------------------------------------------------------------------------------------
# job matching
# --------------------------------------------------------------------------------------


def _level_fit(job_level: str, candidate_level: str) -> int:
    diff = abs(LEVELS.index(job_level) - LEVELS.index(candidate_level)) if job_level in LEVELS else 1
    return {0: 100, 1: 60}.get(diff, 30)


def job_matches(skills: Any, location: Optional[str] = None, experience: Any = None,
                remote_only: bool = False, resume: ResumeLike = None,
                catalog: Optional[Catalog] = None) -> List[Dict[str, Any]]:
    catalog = catalog or get_catalog()
    parsed = as_parsed(resume)
    listed, used, _ = _profile(skills, parsed)
    if not experience and parsed is not None:
        experience = parsed.analysis.experience_level
    candidate_level = experience_level_key(experience)
    aliases = catalog.aliases()

    out = []
    for job in catalog.jobs:
        if remote_only and not job.remote:
            continue
        matched = sk.coverage(job.requirements, listed, used, aliases)
        cov = 100.0 * len(matched) / max(1, len(job.requirements))
        score = round(0.8 * cov + 0.2 * _level_fit(job.level, candidate_level))
        row = job.model_dump()
        if job.remote and location:
            row["location"] = location
        row["match"] = score
        row["matchedSkills"] = matched
        row["missingSkills"] = [r for r in job.requirements if r not in matched]
        out.append(row)

    out.sort(key=lambda j: (-j["match"], int(j["id"]) if j["id"].isdigit() else 0, j["id"]))
    return out


# --------------------------------------------------------------------------------------
# courses
# --------------------------------------------------------------------------------------


def _gap_names(skill_gaps: Any) -> List[str]:
    names = []
    for g in skill_gaps or []:
        if isinstance(g, dict):
            g = g.get("skill")
        if g:
            names.append(str(g))
    return names


def course_recommendations(skill_gaps: Any, career_goals: Optional[str] = None,
                           current_skills: Any = None, limit: int = 5,
                           catalog: Optional[Catalog] = None) -> List[Dict[str, Any]]:
    catalog = catalog or get_catalog()
    gaps = _gap_names(skill_gaps)
    listed = all_skills(current_skills) if current_skills else []
    goals = career_goals or ""

    scored = []
    for course in catalog.courses:
        info = {s: catalog.skill(s).aliases for s in course.skills}
        if listed and all(sk.skill_in_list(s, listed, info[s]) for s in course.skills):
            continue
        closes = [s for s in course.skills if sk.skill_in_list(s, gaps, info[s])]
        goal_hits = sum(1 for s in course.skills if goals and sk.skill_in_text(s, goals, info[s]))
        if goals and sk.skill_in_text(course.category, goals):
            goal_hits += 1
        score = 2 * len(closes) + goal_hits
        scored.append((score, course, closes))

    relevant = [t for t in scored if t[0] > 0] or scored
    relevant.sort(key=lambda t: (-t[0], -t[1].rating, t[1].id))

    out = []
    for score, course, closes in relevant[:limit]:
        row = course.model_dump()
        row["relevance"] = score
        row["addressesGaps"] = closes
        out.append(row)
    return out


# --------------------------------------------------------------------------------------
# personality
# --------------------------------------------------------------------------------------

TRAIT_STRENGTHS = {
    "analytical_thinking": "Technical problem-solving",
    "creativity_score": "Creative problem-solving",
    "leadership_potential": "Team leadership",
    "communication_skills": "Clear communication",
    "teamwork": "Team collaboration",
    "adaptability": "Continuous learning",
}

CODE_FAMILIES = {
    "Investigative": ["software", "data", "architecture"],
    "Enterprising": ["management", "software"],
    "Artistic": ["frontend"],
    "Social": ["management"],
    "Conventional": ["data", "devops"],
}

WORK_STYLES = {
    "remote": "Autonomous, remote-first collaboration",
    "startup": "Fast feedback loops with broad ownership",
    "corporate": "Clear processes with defined responsibilities",
    "independent": "Deep focus work with minimal coordination",
}


def _scale(v: Any) -> Optional[int]:
    try:
        n = int(float(v))
    except (TypeError, ValueError):
        return None
    return n if 1 <= n <= 5 else None


def personality_analysis(responses: Optional[Dict[str, Any]], resume: ResumeLike = None,
                         catalog: Optional[Catalog] = None) -> Dict[str, Any]:
    catalog = catalog or get_catalog()
    responses = responses or {}
    t = _scale(responses.get("technical_interest"))
    ld = _scale(responses.get("leadership_interest"))
    risk = _scale(responses.get("risk_tolerance"))
    environment = str(responses.get("work_environment") or "Collaborative team environment")
    motivation = str(responses.get("career_motivation") or "Learning and personal growth")

    traits = {
        "leadership_potential": ld * 20 if ld else 70,
        "creativity_score": t * 15 + 25 if t else 85,
        "analytical_thinking": t * 18 + 10 if t else 92,
        "communication_skills": ld * 15 + 25 if ld else 80,
        "adaptability": 85,
        "teamwork": 90,
    }
    traits = {k: min(100, v) for k, v in traits.items()}

    codes = []
    if t and t >= 4:
        codes.append("Investigative")
    if ld and ld >= 4:
        codes.append("Enterprising")
    mot, env = motivation.lower(), environment.lower()
    if "creative" in mot or "innovation" in mot:
        codes.append("Artistic")
    if "helping" in mot or "impact" in mot:
        codes.append("Social")
    if "structured" in env:
        codes.append("Conventional")
    if not codes:
        codes = ["Investigative", "Enterprising"]
    career_type = " & ".join(codes[:2])

    ranked = sorted(traits.items(), key=lambda kv: -kv[1])
    strengths = [TRAIT_STRENGTHS[k] for k, _ in ranked[:4]]

    work_style = next((v for k, v in WORK_STYLES.items() if k in env), "Collaborative environment with autonomy")
    if risk and risk >= 4:
        ideal = "Fast-moving teams with room to experiment"
    elif risk and risk <= 2:
        ideal = "Stable, well-structured organisations"
    else:
        ideal = "Structured teams with innovation opportunities"

    families: List[str] = []
    for code in codes:
        for fam in CODE_FAMILIES.get(code, []):
            if fam not in families:
                families.append(fam)
    candidates = catalog.roles_in_families(families) or catalog.roles
    parsed = as_parsed(resume)
    if parsed is not None and all_skills(parsed.skills):
        listed, used, years = _profile(None, parsed)
        candidates = sorted(candidates, key=lambda r: -role_readiness(r, listed, used, years, catalog))

    return {
        "careerType": career_type,
        "hollandCodes": codes,
        "workStyle": work_style,
        "strengths": strengths,
        "idealEnvironment": ideal,
        "careerRecommendations": [r.name for r in candidates[:4]],
        "personalityTraits": traits,
        "workPreferences": {
            "environment": environment,
            "motivation": motivation,
            "riskTolerance": risk or 3,
        },
    }
