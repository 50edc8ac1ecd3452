import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

import requests

from resumepath import settings
from resumepath.parser import ExperienceItem, ParsedResume, SkillsBlock, all_skills, analyze


class LLMError(Exception):
    """Raised when the model cannot be reached or returns nothing usable."""


# --------------------------------------------------------------------------------------
# Ollama (cloud or local)
# --------------------------------------------------------------------------------------


def _is_cloud_host(base_url: str) -> bool:
    return base_url.startswith("https://ollama.com")


def _normalize_model_tag(model: str, cloud: bool) -> str:
    # cloud wants the tag without "-cloud"
    if cloud and model.endswith("-cloud"):
        return model[:-6]
    return model


def generate_with_ollama(prompt: str, api_key: Optional[str] = None) -> str:
    """Call Ollama and return the plain-text response."""
    is_cloud = _is_cloud_host(settings.OLLAMA_BASE_URL)
    model = _normalize_model_tag(settings.OLLAMA_MODEL, is_cloud)
    url = f"{settings.OLLAMA_BASE_URL.rstrip('/')}/generate"

    headers = {"Content-Type": "application/json"}
    key = api_key or settings.OLLAMA_API_KEY
    if is_cloud and not key:
        raise LLMError("Missing OLLAMA_API_KEY for Ollama Cloud")
    if key:
        headers["Authorization"] = f"Bearer {key}"

    try:
        resp = requests.post(
            url,
            headers=headers,
            json={"model": model, "prompt": prompt, "stream": False},
            timeout=120,
        )
        resp.raise_for_status()
        text = resp.json().get("response")
    except requests.RequestException as e:
        raise LLMError(f"Ollama request failed: {e}") from e
    except ValueError as e:
        raise LLMError(f"Ollama returned invalid JSON: {e}") from e

    if not text:
        raise LLMError("Ollama returned empty response")
    return text


# --------------------------------------------------------------------------------------
# Safer JSON calling
# --------------------------------------------------------------------------------------


def _json_fragment(s: str) -> str:
    start = s.find("{")
    end = s.rfind("}")
    if start != -1 and end != -1 and end > start:
        return s[start:end + 1]
    return s


def _tidy_json(s: str) -> str:
    s = re.sub(r",\s*([}\]])", r"\1", s)
    s = re.sub(r"\bTrue\b", "true", s)
    s = re.sub(r"\bFalse\b", "false", s)
    s = re.sub(r"\bNone\b", "null", s)
    s = re.sub(r"[\x00-\x1F\x7F]", " ", s)
    return s


def call_json(prompt: str, api_key: Optional[str] = None, attempts: int = 2) -> Dict[str, Any]:
    last_err: Optional[Exception] = None
    for _ in range(attempts):
        try:
            raw = generate_with_ollama(prompt, api_key).strip()
        except LLMError as e:
            last_err = e
            continue
        frag = _json_fragment(raw)
        try:
            data = json.loads(frag)
        except json.JSONDecodeError:
            try:
                data = json.loads(_tidy_json(frag))
            except json.JSONDecodeError as e:
                last_err = e
                continue
        if isinstance(data, dict):
            return data
        last_err = LLMError("Model did not return a JSON object")
    raise LLMError(f"No usable JSON from model: {last_err}")


# --------------------------------------------------------------------------------------
# Resume enhancement
# --------------------------------------------------------------------------------------

ENHANCE_PROMPT = """
You are an expert resume parser.
From the resume below, return JSON only with these keys:
summary (string), skills (object with arrays: technical, programming, frameworks,
databases, cloud, tools, soft), experience (array of objects with title, company,
location, duration, description, achievements).
Use "" or [] for anything missing. Do not invent facts.

Resume:
{resume}
""".strip()


def _merge_skills(current: SkillsBlock, proposed: Any) -> SkillsBlock:
    if not isinstance(proposed, dict):
        return current
    merged = current.model_dump()
    for key in merged:
        extra = proposed.get(key)
        if isinstance(extra, list):
            merged[key] = all_skills(merged[key] + [str(x) for x in extra])
    return SkillsBlock(**merged)


def enhance_parsed_resume(parsed: ParsedResume, text: str,
                          api_key: Optional[str] = None) -> Tuple[ParsedResume, bool]:
    """
    Ask the model for the fields the heuristics most often miss and merge the
    non-empty ones. Any failure leaves the deterministic result untouched.
    """
    try:
        data = call_json(ENHANCE_PROMPT.format(resume=text[:12000]), api_key)
    except LLMError as e:
        logging.warning(f"LLM enhancement skipped: {e}")
        return parsed, False

    out = parsed.model_copy(deep=True)
    summary = data.get("summary")
    if isinstance(summary, str) and summary.strip() and not out.summary:
        out.summary = summary.strip()

    out.skills = _merge_skills(out.skills, data.get("skills"))

    exp = data.get("experience")
    if isinstance(exp, list) and not out.experience:
        items = []
        for e in exp:
            if not isinstance(e, dict):
                continue
            try:
                items.append(ExperienceItem.model_validate(e))
            except ValueError:
                continue
        out.experience = items

    out.analysis = analyze(out)
    logging.info("Resume enhanced with LLM output")
    return out, True
