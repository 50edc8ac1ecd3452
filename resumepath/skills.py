import re
from typing import Dict, Iterable, List, Optional

from rapidfuzz import fuzz

# --------------------------------------------------------------------------------------
# Skill aliasing
# --------------------------------------------------------------------------------------

_ALIASES: Dict[str, str] = {
    "reactjs": "react", "react.js": "react",
    "nodejs": "node.js", "node": "node.js",
    "js": "javascript", "es6": "javascript",
    "ts": "typescript", "py": "python",
    "golang": "go", "k8s": "kubernetes",
    "postgres": "postgresql", "psql": "postgresql",
    "mongo": "mongodb", "gcp": "google cloud",
    "amazon web services": "aws", "ml": "machine learning",
    "c sharp": "c#", "cpp": "c++",
}

FUZZY_THRESHOLD = 90


def norm_token(s: str) -> str:
    s = re.sub(r"[^a-z0-9+\-.#/ ]", " ", (s or "").lower())
    return re.sub(r"\s+", " ", s).strip(" .")


def canonicalize(s: str) -> str:
    key = norm_token(s)
    return _ALIASES.get(key, key)


def skill_forms(skill: str, aliases: Optional[Iterable[str]] = None) -> List[str]:
    forms = {canonicalize(skill), norm_token(skill)}
    for a in aliases or []:
        forms.add(canonicalize(a))
    forms.update([k for k, v in _ALIASES.items() if v in forms])
    return sorted(f for f in forms if f)


def skill_in_list(skill: str, listed: Iterable[str], aliases: Optional[Iterable[str]] = None) -> bool:
    """Exact canonical hit, or a close fuzzy hit for multi-word skills."""
    forms = skill_forms(skill, aliases)
    canon_listed = [canonicalize(x) for x in listed if x]
    if any(f in canon_listed for f in forms):
        return True
    for f in forms:
        if " " not in f:
            continue
        for item in canon_listed:
            if fuzz.token_sort_ratio(f, item) >= FUZZY_THRESHOLD:
                return True
    return False


def skill_in_text(skill: str, text: str, aliases: Optional[Iterable[str]] = None) -> bool:
    bag = norm_token(text)
    for f in skill_forms(skill, aliases):
        if re.search(r"(?<![a-z0-9])" + re.escape(f) + r"(?![a-z0-9])", bag):
            return True
    return False


def coverage(required: List[str], listed: List[str], text: str = "",
             aliases: Optional[Dict[str, List[str]]] = None) -> List[str]:
    """Required skills found in the listed skills or, failing that, the free text."""
    aliases = aliases or {}
    matched = []
    for r in required:
        a = aliases.get(r)
        if skill_in_list(r, listed, a) or (text and skill_in_text(r, text, a)):
            matched.append(r)
    return matched


# --------------------------------------------------------------------------------------
# Proficiency estimate (0-5)
# --------------------------------------------------------------------------------------


def estimate_level(skill: str, listed: List[str], usage_text: str = "",
                   years: Optional[float] = None, aliases: Optional[Iterable[str]] = None) -> int:
    listed_hit = skill_in_list(skill, listed, aliases)
    used = bool(usage_text) and skill_in_text(skill, usage_text, aliases)
    if not (listed_hit or used):
        return 0
    level = 2
    if listed_hit and used:
        level += 1
    if used and years is not None:
        if years >= 3:
            level += 1
        if years >= 6:
            level += 1
    return min(level, 5)
