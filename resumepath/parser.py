# parser.py: deterministic resume parser
# - Works on plain text from extract.py (PDF / DOCX / TXT)
# - Section-driven: SUMMARY / EXPERIENCE / EDUCATION / SKILLS / CERTIFICATIONS / PROJECTS / LANGUAGES
# - Output keeps the camelCase JSON the frontend reads (personalInfo, graduationDate, ...)

import re
from datetime import date
from typing import List, Optional, Dict, Any, Tuple

import phonenumbers
from pydantic import BaseModel, Field, ConfigDict

from resumepath import skills as sk
from resumepath.catalog import get_catalog

# --------------------------------------------------------------------------------------
# Schema models
# --------------------------------------------------------------------------------------


class _Camel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class PersonalInfo(_Camel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None


class ExperienceItem(_Camel):
    title: str = ""
    company: str = ""
    location: str = ""
    duration: str = ""
    description: str = ""
    achievements: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)


class EducationItem(_Camel):
    degree: str = ""
    institution: str = ""
    graduation_date: str = Field("", alias="graduationDate")
    field: str = ""
    gpa: str = ""


class SkillsBlock(_Camel):
    technical: List[str] = Field(default_factory=list)
    programming: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    databases: List[str] = Field(default_factory=list)
    cloud: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    soft: List[str] = Field(default_factory=list)


class Certification(_Camel):
    name: str
    issuer: str = ""
    date: str = ""


class ProjectItem(_Camel):
    name: str
    description: str = ""
    technologies: List[str] = Field(default_factory=list)


class LanguageItem(_Camel):
    language: str
    proficiency: str = ""


class ResumeAnalysis(_Camel):
    experience_level: str = Field("Entry Level", alias="experienceLevel")
    total_years: Optional[float] = Field(None, alias="totalYears")
    career_progression: str = Field("New to workforce", alias="careerProgression")
    industry_focus: List[str] = Field(default_factory=lambda: ["Technology"], alias="industryFocus")
    key_strengths: List[str] = Field(default_factory=list, alias="keyStrengths")
    leadership_experience: bool = Field(False, alias="leadershipExperience")
    remote_work_experience: bool = Field(False, alias="remoteWorkExperience")
    international_experience: bool = Field(False, alias="internationalExperience")


class ParsedResume(_Camel):
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo, alias="personalInfo")
    summary: str = ""
    experience: List[ExperienceItem] = Field(default_factory=list)
    education: List[EducationItem] = Field(default_factory=list)
    skills: SkillsBlock = Field(default_factory=SkillsBlock)
    certifications: List[Certification] = Field(default_factory=list)
    projects: List[ProjectItem] = Field(default_factory=list)
    languages: List[LanguageItem] = Field(default_factory=list)
    awards: List[str] = Field(default_factory=list)
    volunteer_work: List[str] = Field(default_factory=list, alias="volunteerWork")
    analysis: ResumeAnalysis = Field(default_factory=ResumeAnalysis)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# --------------------------------------------------------------------------------------
# Heuristics
# --------------------------------------------------------------------------------------

EMAIL_RE = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
PHONE_RE = re.compile(r"(\+?1?[-.\s]?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4})")
LOCATION_RE = re.compile(r"^(?:location\s*[:\-]\s*)?([A-Z][A-Za-z .'\-]+,\s*[A-Z][A-Za-z .'\-]+)$", re.I)
YEAR_RANGE_RE = re.compile(r"((?:19|20)\d{2})\s*(?:-|–|—|to)\s*((?:19|20)\d{2}|present|current|now)", re.I)
YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")
YEARS_CLAIM_RE = re.compile(r"(\d+)\+?\s*(?:years|yrs)", re.I)
GPA_RE = re.compile(r"GPA:?\s*([0-9.]+)", re.I)
BULLET_RE = re.compile(r"^[•\-\*▪●◦]\s*")

DEGREE_WORDS = (
    "bachelor", "master", "associate", "doctor", "phd", "ph.d", "mba",
    "b.s", "b.a", "m.s", "m.a", "bsc", "msc", "b.tech", "m.tech", "btech", "mtech", "diploma",
)
INSTITUTION_WORDS = ("university", "college", "institute", "school", "academy")
SENIOR_TITLE_WORDS = ("senior", "lead", "principal", "staff", "manager", "head", "director", "architect")

# (section, keywords), checked in order; volunteer before experience
SECTION_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("volunteer", ("VOLUNTEER",)),
    ("summary", ("SUMMARY", "OBJECTIVE", "PROFILE")),
    ("experience", ("EXPERIENCE", "EMPLOYMENT", "HISTORY")),
    ("education", ("EDUCATION",)),
    ("skills", ("SKILL", "TECHNICAL", "COMPETENC", "PROFICIENC", "EXPERTISE")),
    ("certifications", ("CERTIFICATION", "LICENSE")),
    ("projects", ("PROJECT",)),
    ("languages", ("LANGUAGE",)),
    ("awards", ("AWARD", "HONOR")),
]

# lower-case words allowed inside a title-case header
HEADER_CONNECTORS = {"and", "&", "of", "the", "in", "for", "with", "/"}

SKILL_CATEGORY_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    ("soft", ("soft", "interpersonal")),
    ("programming", ("programming", "language")),
    ("frameworks", ("framework", "library", "libraries")),
    ("databases", ("database", "data store")),
    ("cloud", ("cloud", "aws", "azure", "gcp", "devops")),
    ("tools", ("tool",)),
]

INTERNATIONAL_HINTS = ("international", "global team", "overseas", "abroad", "relocated")

US_STATE = re.compile(r",\s*[A-Z]{2}$")


def _strip_bullet(line: str) -> str:
    return BULLET_RE.sub("", line).strip()


def _is_bullet(line: str) -> bool:
    return bool(BULLET_RE.match(line))


def _split_list(s: str) -> List[str]:
    return [x.strip(" .") for x in re.split(r",|;|\||•", s) if x.strip(" .")]


def _dedupe(items: List[str]) -> List[str]:
    seen, out = set(), []
    for it in items:
        key = it.lower()
        if key not in seen:
            seen.add(key)
            out.append(it)
    return out


def detect_section(line: str) -> Optional[str]:
    """Return the section a header line opens, or None for content lines."""
    raw = line.strip().rstrip(":").strip()
    if not raw or len(raw) > 40 or ":" in raw or "|" in raw or _is_bullet(raw):
        return None
    tokens = raw.split()
    words = [re.sub(r"[^A-Z]", "", t.upper()) for t in tokens]
    if not any(words) or len(tokens) > 4:
        return None
    all_caps = raw == raw.upper()
    # mixed case only counts as a header in title case ("Skills and Abilities")
    if not all_caps and not all(
        t.lower() in HEADER_CONNECTORS or not t[0].isalpha() or t[0].isupper() for t in tokens
    ):
        return None
    last = max(i for i, w in enumerate(words) if w)
    ends_in_keyword = _keyword_section(words[last]) is not None
    for i, word in enumerate(words):
        section = _keyword_section(word)
        if section is None:
            continue
        # mixed case: "Technical Lead" is a job title, "Technical Skills" a header
        if all_caps or ends_in_keyword or i == last or tokens[i + 1].lower() in HEADER_CONNECTORS:
            return section
    return None


def _keyword_section(word: str) -> Optional[str]:
    if not word:
        return None
    for section, keywords in SECTION_KEYWORDS:
        if any(word.startswith(k) for k in keywords):
            return section
    return None


def extract_email(text: str) -> Optional[str]:
    m = EMAIL_RE.search(text)
    return m.group(1) if m else None


def extract_phone(text: str, region: str = "US") -> Optional[str]:
    for match in phonenumbers.PhoneNumberMatcher(text, region):
        return phonenumbers.format_number(match.number, phonenumbers.PhoneNumberFormat.E164)
    m = PHONE_RE.search(text)
    return m.group(1).strip() if m else None


def _profile_url(line: str, site: str, path: str) -> str:
    """linkedin.com/in/<handle> or github.com/<handle> from a contact line."""
    url = re.search(r"https?://\S+", line)
    if url:
        return url.group(0).rstrip(").,")
    m = re.search(rf"{site}\.com/{path}([\w\-]+)", line, re.I)
    if m:
        handle = m.group(1)
    else:
        handle = re.sub(rf"(?i)^.*{site}\s*:?\s*", "", line).strip(" /")
    return f"https://{site}.com/{path}{handle}"


def _parse_personal_info(lines: List[str]) -> PersonalInfo:
    info = PersonalInfo()
    for i, line in enumerate(lines[:10]):
        lower = line.lower()
        if i == 0 and "@" not in line and "(" not in line and len(line) > 2 \
                and not re.search(r"\d", line) and detect_section(line) is None:
            info.name = line

        if not info.email:
            info.email = extract_email(line)

        if not info.phone and "@" not in line and not YEAR_RANGE_RE.search(line):
            info.phone = extract_phone(line)

        if "linkedin" in lower and not info.linkedin:
            info.linkedin = _profile_url(line, "linkedin", "in/")
        elif "github" in lower and not info.github:
            info.github = _profile_url(line, "github", "")

        if not info.location and "@" not in line and not re.search(r"\d", line):
            m = LOCATION_RE.match(line)
            if m and len(line) <= 40:
                info.location = m.group(1).strip()
    return info


# --------------------------------------------------------------------------------------
# Section parsers
# --------------------------------------------------------------------------------------


def _split_parts(line: str) -> List[str]:
    return [p.strip() for p in line.split("|")]


def _is_dateish(s: str) -> bool:
    return bool(YEAR_RE.search(s) or re.search(r"(?i)\b(present|current)\b", s))


def _fill_company_line(exp: ExperienceItem, parts: List[str]) -> None:
    exp.company = parts[0] if parts else ""
    rest = parts[1:]
    dates = [p for p in rest if _is_dateish(p)]
    places = [p for p in rest if not _is_dateish(p)]
    exp.duration = dates[0] if dates else ""
    exp.location = places[0] if places else ""


def _parse_experience(section: List[str]) -> List[ExperienceItem]:
    out: List[ExperienceItem] = []
    current: Optional[ExperienceItem] = None
    awaiting_company = False

    for i, line in enumerate(section):
        nxt = section[i + 1] if i + 1 < len(section) else ""
        if _is_bullet(line):
            if current:
                current.achievements.append(_strip_bullet(line))
            continue

        if "|" in line:
            parts = _split_parts(line)
            if current and awaiting_company:
                _fill_company_line(current, parts)
                awaiting_company = False
                continue
            if current:
                out.append(current)
            current = ExperienceItem(title=parts[0])
            _fill_company_line(current, parts[1:])
            continue

        if "|" in nxt and not _is_bullet(nxt):
            if current:
                out.append(current)
            current = ExperienceItem(title=line)
            awaiting_company = True
        elif current:
            current.description += (" " if current.description else "") + line
        else:
            current = ExperienceItem(title=line)

    if current:
        out.append(current)
    return out


def _parse_education(section: List[str]) -> List[EducationItem]:
    out: List[EducationItem] = []
    current: Optional[EducationItem] = None

    def push():
        if current:
            out.append(current)

    for line in section:
        text = _strip_bullet(line)
        lower = text.lower()

        gpa = GPA_RE.search(text)
        if gpa and current:
            current.gpa = gpa.group(1)
            continue

        is_degree = lower.startswith(DEGREE_WORDS)
        is_institution = any(w in lower for w in INSTITUTION_WORDS)

        if "|" in text:
            parts = _split_parts(text)
            if current and current.degree and not current.institution:
                current.institution = parts[0]
                dates = [p for p in parts[1:] if _is_dateish(p)]
                current.graduation_date = dates[0] if dates else ""
                continue
            push()
            current = EducationItem(degree=parts[0], institution=parts[1] if len(parts) > 1 else "")
            dates = [p for p in parts[2:] if _is_dateish(p)]
            current.graduation_date = dates[0] if dates else ""
        elif is_degree:
            push()
            current = EducationItem(degree=text)
        elif is_institution:
            if current and current.degree and not current.institution:
                current.institution = text
            else:
                push()
                current = EducationItem(institution=text)
        elif current and not current.graduation_date and _is_dateish(text):
            current.graduation_date = text

    push()
    for edu in out:
        m = re.search(r"\bin\s+([A-Z][\w &]+)$", edu.degree) or re.search(r"\bof\s+([A-Z][\w &]+)$", edu.degree)
        if m and not edu.field:
            edu.field = m.group(1).strip()
    return out


def _skill_bucket(category: str) -> str:
    c = category.lower()
    for bucket, words in SKILL_CATEGORY_RULES:
        if any(w in c for w in words):
            return bucket
    return "technical"


def _parse_skills(section: List[str]) -> SkillsBlock:
    block = SkillsBlock()
    for line in section:
        text = _strip_bullet(line)
        if ":" in text:
            category, _, rest = text.partition(":")
            getattr(block, _skill_bucket(category)).extend(_split_list(rest))
        elif text:
            block.technical.extend(_split_list(text))
    for name in SkillsBlock.model_fields:
        setattr(block, name, _dedupe(getattr(block, name)))
    return block


def _parse_certifications(section: List[str]) -> List[Certification]:
    out = []
    for line in section:
        text = _strip_bullet(line)
        parts = _split_parts(text)
        if len(parts) >= 3:
            out.append(Certification(name=parts[0], issuer=parts[1], date=parts[2]))
        elif len(parts) == 2:
            if _is_dateish(parts[1]):
                out.append(Certification(name=parts[0], date=parts[1]))
            else:
                out.append(Certification(name=parts[0], issuer=parts[1]))
        elif text:
            out.append(Certification(name=text))
    return out


def _parse_projects(section: List[str]) -> List[ProjectItem]:
    out: List[ProjectItem] = []
    for line in section:
        text = _strip_bullet(line)
        tech = re.match(r"(?i)^(?:technologies|tech stack|stack|built with)\s*:\s*(.+)$", text)
        if tech:
            if out:
                out[-1].technologies.extend(_split_list(tech.group(1)))
            continue
        if _is_bullet(line) and out:
            out[-1].description += (" " if out[-1].description else "") + text
        elif text:
            out.append(ProjectItem(name=text))
    return out


def _parse_languages(section: List[str]) -> List[LanguageItem]:
    out = []
    for line in section:
        for item in _split_list(_strip_bullet(line)):
            m = re.match(r"^([A-Za-z][A-Za-z \-]*?)\s*(?:\(([^)]+)\)|[-–:]\s*(.+))?$", item)
            if not m:
                continue
            out.append(LanguageItem(language=m.group(1).strip(), proficiency=(m.group(2) or m.group(3) or "").strip()))
    return out


# --------------------------------------------------------------------------------------
# Derived analysis
# --------------------------------------------------------------------------------------


def all_skills(skills: Any) -> List[str]:
    """Flatten a skills block (model, dict, list or comma separated string) into one ordered list."""
    if isinstance(skills, SkillsBlock):
        skills = skills.model_dump()
    if isinstance(skills, str):
        return _dedupe(_split_list(skills))
    if isinstance(skills, list):
        return _dedupe([str(s).strip() for s in skills if str(s).strip()])
    out: List[str] = []
    if isinstance(skills, dict):
        for v in skills.values():
            if isinstance(v, list):
                out.extend(str(x).strip() for x in v if str(x).strip())
            elif isinstance(v, str):
                out.extend(_split_list(v))
    return _dedupe(out)


def duration_years(duration: str, as_of: Optional[date] = None) -> float:
    as_of = as_of or date.today()
    total = 0.0
    for m in YEAR_RANGE_RE.finditer(duration or ""):
        start = int(m.group(1))
        end_raw = m.group(2).lower()
        end = as_of.year if end_raw in ("present", "current", "now") else int(end_raw)
        if end >= start:
            total += end - start
    return total


def total_experience_years(experience: List[ExperienceItem], summary: str = "",
                           as_of: Optional[date] = None) -> Optional[float]:
    years = sum(duration_years(e.duration, as_of) for e in experience)
    if years > 0:
        return round(years, 2)
    m = YEARS_CLAIM_RE.search(summary or "")
    if m:
        return float(m.group(1))
    return None


def experience_level_label(entries: int, years: Optional[float]) -> str:
    if years is not None:
        if years >= 5:
            return "Senior Level (5+ years)"
        if years >= 2:
            return "Mid Level (2-5 years)"
        return "Entry Level"
    if entries > 3:
        return "Senior Level (5+ years)"
    if entries > 1:
        return "Mid Level (2-5 years)"
    return "Entry Level"


def _experience_text(exp: ExperienceItem) -> str:
    return " ".join([exp.title, exp.description, exp.location] + exp.achievements).lower()


def _career_progression(experience: List[ExperienceItem]) -> str:
    if not experience:
        return "New to workforce"
    if len(experience) >= 2:
        latest = experience[0].title.lower()
        earlier = [e.title.lower() for e in experience[1:]]
        if any(w in latest for w in SENIOR_TITLE_WORDS) and not all(
            any(w in t for w in SENIOR_TITLE_WORDS) for t in earlier
        ):
            return "Upward career progression"
    return "Steady career progression"


def _industry_focus(skills: List[str], text: str) -> List[str]:
    """Families of the catalog roles whose required skills are at least half covered."""
    catalog = get_catalog()
    aliases = catalog.aliases()
    found: List[str] = []
    for role in catalog.roles:
        required = list(role.skills)
        matched = sk.coverage(required, skills, text, aliases)
        label = catalog.family_label(role.family)
        if required and 2 * len(matched) >= len(required) and label not in found:
            found.append(label)
    return ["Technology"] + found


def _international(experience: List[ExperienceItem], text: str) -> bool:
    if any(h in text.lower() for h in INTERNATIONAL_HINTS):
        return True
    places = {e.location.split(",")[-1].strip().lower() for e in experience if "," in e.location}
    foreign = {p for p in places if not US_STATE.search(", " + p.upper())}
    return bool(foreign) and len(places) > 1


def analyze(parsed: ParsedResume, as_of: Optional[date] = None) -> ResumeAnalysis:
    exp = parsed.experience
    years = total_experience_years(exp, parsed.summary, as_of)
    skills = all_skills(parsed.skills)
    exp_text = " ".join(_experience_text(e) for e in exp)
    leadership = any(any(w in e.title.lower() for w in ("senior", "lead", "manager", "head", "principal")) for e in exp) \
        or bool(re.search(r"\b(lead|led|mentor\w*|managed)\b", exp_text))
    return ResumeAnalysis(
        experience_level=experience_level_label(len(exp), years),
        total_years=years,
        career_progression=_career_progression(exp),
        industry_focus=_industry_focus(skills, exp_text),
        key_strengths=skills[:3],
        leadership_experience=leadership,
        remote_work_experience="remote" in exp_text,
        international_experience=_international(exp, exp_text + " " + parsed.summary),
    )


def catalog_skills_in(text: str) -> List[str]:
    """Catalog skills (by name or alias) mentioned in free text, in catalog order."""
    if not text:
        return []
    return [name for name, info in get_catalog().skills.items() if sk.skill_in_text(name, text, info.aliases)]


# --------------------------------------------------------------------------------------
# Entry point
# --------------------------------------------------------------------------------------


def parse_resume_content(text: str, filename: Optional[str] = None, as_of: Optional[date] = None) -> ParsedResume:
    lines = [ln.strip() for ln in (text or "").splitlines()]
    lines = [ln for ln in lines if ln]

    parsed = ParsedResume(personal_info=_parse_personal_info(lines))

    sections: Dict[str, List[str]] = {}
    current = ""
    for line in lines:
        header = detect_section(line)
        if header:
            current = header
            sections.setdefault(current, [])
            continue
        if current:
            sections[current].append(line)

    parsed.summary = " ".join(sections.get("summary", []))
    parsed.experience = _parse_experience(sections.get("experience", []))
    parsed.education = _parse_education(sections.get("education", []))
    parsed.skills = _parse_skills(sections.get("skills", []))
    parsed.certifications = _parse_certifications(sections.get("certifications", []))
    parsed.projects = _parse_projects(sections.get("projects", []))
    parsed.languages = _parse_languages(sections.get("languages", []))
    parsed.awards = [_strip_bullet(x) for x in sections.get("awards", [])]
    parsed.volunteer_work = [_strip_bullet(x) for x in sections.get("volunteer", [])]

    for exp in parsed.experience:
        exp.technologies = catalog_skills_in(_experience_text(exp))
    for proj in parsed.projects:
        if not proj.technologies:
            proj.technologies = catalog_skills_in(f"{proj.name} {proj.description}")

    if not parsed.personal_info.name and filename:
        stem = re.sub(r"(?i)[_\-]*(resume|cv)[_\-]*", " ", filename.rsplit(".", 1)[0])
        stem = re.sub(r"[_\-]+", " ", stem).strip()
        if stem and not re.search(r"\d", stem):
            parsed.personal_info.name = stem.title()

    parsed.analysis = analyze(parsed, as_of)
    return parsed


def extraction_quality(parsed: ParsedResume) -> Tuple[str, bool]:
    info = parsed.personal_info
    if info.name and info.email and parsed.experience and all_skills(parsed.skills):
        return "High Quality", True
    if info.name or info.email:
        return "Partial", False
    return "Basic", False
