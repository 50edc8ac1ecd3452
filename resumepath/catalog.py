import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field
from rapidfuzz import fuzz

from resumepath import settings


class SkillInfo(BaseModel):
    aliases: List[str] = Field(default_factory=list)
    description: str = ""
    resources: List[str] = Field(default_factory=list)


class Role(BaseModel):
    name: str
    aliases: List[str] = Field(default_factory=list)
    family: str = "software"
    skills: Dict[str, int] = Field(default_factory=dict)


class Job(BaseModel):
    id: str
    title: str
    company: str
    location: str
    salary: str
    description: str
    requirements: List[str] = Field(default_factory=list)
    remote: bool = False
    posted: str = ""
    level: str = "mid"


class Course(BaseModel):
    id: str
    title: str
    provider: str
    duration: str
    level: str
    rating: float
    price: str
    skills: List[str] = Field(default_factory=list)
    url: str
    description: str
    category: str


class Catalog(BaseModel):
    skills: Dict[str, SkillInfo] = Field(default_factory=dict)
    families: Dict[str, str] = Field(default_factory=dict)
    roles: List[Role] = Field(default_factory=list)
    jobs: List[Job] = Field(default_factory=list)
    courses: List[Course] = Field(default_factory=list)

    def aliases(self) -> Dict[str, List[str]]:
        return {name: info.aliases for name, info in self.skills.items()}

    def skill(self, name: str) -> SkillInfo:
        return self.skills.get(name) or SkillInfo()

    def family_label(self, family: str) -> str:
        return self.families.get(family) or family.title()

    def find_role(self, target: Optional[str]) -> Role:
        """Best catalog role for a free-text target, falling back to the default role."""
        default = next((r for r in self.roles if r.name == settings.DEFAULT_TARGET_ROLE), self.roles[0])
        text = (target or "").strip().lower()
        if not text:
            return default
        best, best_score = default, 0.0
        for role in self.roles:
            for label in [role.name] + role.aliases:
                label = label.lower()
                if label == text:
                    return role
                if re.search(r"\b" + re.escape(label) + r"\b", text):
                    score = 100 + len(label) / 100.0  # prefer the longest contained label
                else:
                    score = fuzz.ratio(label, text)
                if score > best_score:
                    best, best_score = role, score
        return best if best_score >= 80 else default

    def roles_in_families(self, families: List[str]) -> List[Role]:
        return [r for r in self.roles if r.family in families]


def load_catalog(path: Path) -> Catalog:
    with open(path, "r", encoding="utf-8") as f:
        data: Dict[str, Any] = yaml.safe_load(f) or {}
    catalog = Catalog(**data)
    if not catalog.roles:
        raise ValueError(f"Catalog {path} defines no roles")
    logging.info(
        f"Loaded catalog from {path}: {len(catalog.roles)} roles, {len(catalog.jobs)} jobs, {len(catalog.courses)} courses"
    )
    return catalog


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    return load_catalog(settings.CATALOG_PATH)
