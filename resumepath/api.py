import datetime
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from supabase import Client

from resumepath import settings, store
from resumepath.analysis import (
    course_recommendations,
    job_matches,
    personality_analysis,
    skill_gap_analysis,
)
from resumepath.api_keys import resolve_llm_key
from resumepath.auth import UserIdentity, get_current_user, get_optional_user, get_user_roles
from resumepath.db import get_supabase, get_supabase_optional
from resumepath.extract import ResumeExtractionError, UploadRejected, extract_text, validate_upload
from resumepath.llm import LLMError, enhance_parsed_resume, generate_with_ollama
from resumepath.parser import all_skills, extraction_quality, parse_resume_content
from resumepath.reports import build_report

router = APIRouter(prefix="/api", tags=["api"])

STARTED_AT = time.time()


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _effective_user_id(body_user_id: Optional[str], current_user: UserIdentity) -> str:
    if body_user_id and body_user_id != current_user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User ID does not match authenticated user")
    return current_user.user_id


def _fail(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------
class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")


class JobMatchRequest(_Body):
    skills: Any = None
    interests: Any = None
    location: Optional[str] = None
    experience: Optional[str] = None
    remote_only: bool = Field(False, alias="remoteOnly")


class CourseRequest(_Body):
    skill_gaps: List[Any] = Field(default_factory=list, alias="skillGaps")
    career_goals: Optional[str] = Field(None, alias="careerGoals")
    current_skills: Any = Field(None, alias="currentSkills")


class PersonalityRequest(_Body):
    responses: Dict[str, Any] = Field(default_factory=dict)
    resume_data: Optional[Dict[str, Any]] = Field(None, alias="resumeData")


class SkillGapRequest(_Body):
    current_skills: Any = Field(None, alias="currentSkills")
    target_role: Optional[str] = Field(None, alias="targetRole")


class ReportRequest(_Body):
    resume_id: Optional[str] = Field(None, alias="resumeId")
    assessment_id: Optional[str] = Field(None, alias="assessmentId")
    report_type: str = Field("comprehensive", alias="reportType")


# ---------------------------------------------------------------------------
# Health / system
# ---------------------------------------------------------------------------
@router.get("/health")
def health():
    return {
        "status": "OK",
        "message": "Resume Path API is running",
        "timestamp": _now_iso(),
        "uptime": round(time.time() - STARTED_AT, 3),
        "framework": "FastAPI",
        "version": settings.VERSION,
        "env": settings.ENV,
    }


@router.get("/validate/system")
def validate_system(sb: Optional[Client] = Depends(get_supabase_optional)):
    database = {"status": "not_configured", "connection": False}
    if sb is not None:
        try:
            sb.table("resumes").select("id", count="exact").limit(1).execute()
            database = {"status": "operational", "connection": True}
        except Exception as e:
            logging.error(f"Database check failed: {e}")
            database = {"status": "error", "connection": False, "error": str(e)}

    return {
        "timestamp": _now_iso(),
        "server": {
            "status": "operational",
            "uptime": round(time.time() - STARTED_AT, 3),
            "version": settings.VERSION,
            "framework": "FastAPI",
        },
        "database": database,
        "endpoints": {
            "health": {"status": "operational", "method": "GET"},
            "upload-resume": {"status": "operational", "method": "POST"},
            "validate-system": {"status": "operational", "method": "GET"},
        },
        "features": {
            "fileUpload": "operational",
            "resumeParsing": "operational",
            "textExtraction": "operational",
            "pdfParsing": "operational",
            "docxParsing": "operational",
            "llmEnhancement": "enabled" if settings.LLM_ENHANCE else "per-user",
        },
    }


# ---------------------------------------------------------------------------
# Resume upload
# ---------------------------------------------------------------------------
@router.post("/upload-resume")
async def upload_resume(
    resume: Optional[UploadFile] = File(None),
    user_id: Optional[str] = Form(None, alias="userId"),
    current_user: Optional[UserIdentity] = Depends(get_optional_user),
    sb: Optional[Client] = Depends(get_supabase_optional),
):
    if resume is None or not resume.filename:
        return _fail(400, "No file uploaded")
    if not user_id:
        return _fail(400, "Missing user ID")

    data = await resume.read()
    try:
        validate_upload(resume.filename, resume.content_type, len(data))
    except UploadRejected as e:
        return _fail(400, str(e))

    try:
        text = extract_text(data, resume.filename, resume.content_type)
    except ResumeExtractionError as e:
        logging.error(f"Resume processing error for {resume.filename}: {e}")
        return _fail(500, str(e))

    parsed = parse_resume_content(text, resume.filename)
    quality, ai_enhanced = extraction_quality(parsed)

    owner = current_user.user_id if current_user else None
    if owner and sb is not None:
        key = resolve_llm_key(sb, owner, "resume_parsing")
        if key is not None:
            parsed, enhanced = enhance_parsed_resume(parsed, text, key)
            ai_enhanced = ai_enhanced or enhanced

    resume_id = None
    if owner and owner != user_id:
        logging.warning(f"Upload userId {user_id} differs from token user {owner}; not persisting")
    elif owner and sb is not None:
        try:
            row = store.insert_resume(sb, owner, resume.filename, text, parsed.to_json())
            resume_id = (row or {}).get("id")
        except Exception as e:
            logging.error(f"Error saving resume for {owner}: {e}")

    logging.info(f"Parsed {resume.filename} ({len(data)} bytes): {quality}")
    return {
        "success": True,
        "message": "Resume analyzed successfully",
        "filename": resume.filename,
        "size": len(data),
        "extractionQuality": quality,
        "aiEnhanced": ai_enhanced,
        "parsedData": parsed.to_json(),
        "content": text,
        "uploadedAt": _now_iso(),
        "resumeId": resume_id,
    }


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------
@router.post("/job-matches")
async def find_job_matches(
    body: JobMatchRequest,
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    user_id = _effective_user_id(body.user_id, current_user)
    try:
        resume = store.latest_resume(sb, user_id) if not body.skills else None
        matches = job_matches(
            body.skills,
            body.location,
            body.experience,
            body.remote_only,
            resume=(resume or {}).get("parsed_data"),
        )
    except Exception as e:
        logging.exception(f"Job matching error: {e}")
        raise HTTPException(status_code=500, detail="Failed to find job matches")

    criteria = {
        "skills": body.skills,
        "interests": body.interests,
        "location": body.location,
        "experience": body.experience,
        "remoteOnly": body.remote_only,
    }
    store.insert_assessment(sb, user_id, "job_search", criteria, {"jobMatches": matches})
    return {"success": True, "jobMatches": matches, "aiEnhanced": False, "searchCriteria": criteria}


@router.post("/course-recommendations")
async def get_course_recommendations(
    body: CourseRequest,
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    user_id = _effective_user_id(body.user_id, current_user)
    try:
        courses = course_recommendations(body.skill_gaps, body.career_goals, body.current_skills)
    except Exception as e:
        logging.exception(f"Course recommendations error: {e}")
        raise HTTPException(status_code=500, detail="Failed to get course recommendations")

    criteria = {
        "skillGaps": body.skill_gaps,
        "careerGoals": body.career_goals,
        "currentSkills": body.current_skills,
    }
    store.insert_assessment(sb, user_id, "course_search", criteria, {"courseRecommendations": courses})
    return {"success": True, "courseRecommendations": courses, "aiEnhanced": False, "searchCriteria": criteria}


@router.post("/personality-analysis")
async def analyze_personality(
    body: PersonalityRequest,
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    user_id = _effective_user_id(body.user_id, current_user)
    try:
        insights = personality_analysis(body.responses, body.resume_data)
    except Exception as e:
        logging.exception(f"Personality analysis error: {e}")
        raise HTTPException(status_code=500, detail="Failed to analyze personality")

    store.insert_assessment(sb, user_id, "personality", body.responses, insights)
    return {"success": True, "personalityInsights": insights, "aiEnhanced": False, "analysisDate": _now_iso()}


@router.post("/skill-gap-analysis")
async def analyze_skill_gaps(
    body: SkillGapRequest,
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    user_id = _effective_user_id(body.user_id, current_user)
    try:
        resume = store.latest_resume(sb, user_id)
        result = skill_gap_analysis(body.current_skills, body.target_role, (resume or {}).get("parsed_data"))
    except Exception as e:
        logging.exception(f"Skill gap analysis error: {e}")
        raise HTTPException(status_code=500, detail="Failed to analyze skill gaps")

    responses = {"currentSkills": body.current_skills, "targetRole": body.target_role}
    store.insert_assessment(sb, user_id, "skill_gap", responses, result)
    return {
        "success": True,
        "skillGaps": result["skillGaps"],
        "targetRole": result["targetRole"],
        "readiness": result["readiness"],
        "aiEnhanced": False,
        "analysisDate": _now_iso(),
    }


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
SUMMARY_PROMPT = (
    "Write a career summary of at most 120 words for a candidate at \"{level}\" "
    "whose strongest skills are {skills}. Their closest matching roles are {roles} "
    "and the main gaps are {gaps}. Plain text only, second person."
)


def _career_summary(report: Dict[str, Any], api_key: Optional[str]) -> Optional[str]:
    analysis = (report.get("resumeAnalysis") or {}).get("analysis") or {}
    prompt = SUMMARY_PROMPT.format(
        level=analysis.get("experienceLevel") or "unknown level",
        skills=", ".join(analysis.get("keyStrengths") or []) or "not listed",
        roles=", ".join(m["role"] for m in report["careerMatches"]) or "none",
        gaps=", ".join(g["skill"] for g in report["skillGaps"][:4]) or "none",
    )
    try:
        return generate_with_ollama(prompt, api_key).strip()[:3000]
    except LLMError as e:
        logging.warning(f"Career summary unavailable: {e}")
        return None


@router.post("/generate-report")
async def generate_report(
    body: ReportRequest,
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    user_id = _effective_user_id(body.user_id, current_user)
    try:
        if body.resume_id:
            resume = store.get_resume(sb, user_id, body.resume_id)
        else:
            resume = store.latest_resume(sb, user_id)
        assessments = store.list_assessments(sb, user_id)
        report = build_report(resume, assessments, body.report_type)

        ai_enhanced = False
        key = resolve_llm_key(sb, user_id, "report_generation")
        if key is not None:
            summary = _career_summary(report, key)
            if summary:
                report["careerSummary"] = summary
                ai_enhanced = True

        row = store.insert_report(
            sb,
            user_id,
            (resume or {}).get("id"),
            body.assessment_id,
            report,
        )
    except HTTPException:
        raise
    except Exception as e:
        logging.exception(f"Report generation error: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate report")

    return {
        "success": True,
        "reportData": report,
        "reportId": (row or {}).get("id"),
        "aiEnhanced": ai_enhanced,
    }


# ---------------------------------------------------------------------------
# Dashboard / me
# ---------------------------------------------------------------------------
ACTIVITY_TITLES = {
    "resume_upload": "Uploaded resume",
    "assessment_completed": "Completed assessment",
    "report_generated": "Generated report",
}


@router.get("/dashboard")
async def dashboard(
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    user_id = current_user.user_id
    try:
        stats = {
            "resumesUploaded": store.count_rows(sb, "resumes", user_id),
            "assessmentsCompleted": store.count_rows(sb, "assessments", user_id),
            "reportsGenerated": store.count_rows(sb, "reports", user_id),
            "coursesRecommended": 3 * store.count_rows(sb, "assessments", user_id, assessment_type="course_search"),
        }
        latest = store.latest_resume(sb, user_id)
        events = store.activity_feed(sb, 10, user_id)
    except Exception as e:
        logging.error(f"Error loading dashboard for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load dashboard")

    latest_summary = None
    if latest:
        parsed = latest.get("parsed_data") or {}
        analysis = parsed.get("analysis") or {}
        latest_summary = {
            "id": latest.get("id"),
            "filename": latest.get("filename"),
            "uploadedAt": latest.get("created_at"),
            "experienceLevel": analysis.get("experienceLevel"),
            "skillsCount": len(all_skills(parsed.get("skills") or {})),
        }

    recent = []
    for e in events:
        title = ACTIVITY_TITLES[e["type"]]
        detail = e["details"].get("filename") or e["details"].get("assessment_type")
        recent.append({
            "id": e["id"],
            "type": e["type"],
            "title": f"{title}: {detail}" if detail else title,
            "date": e["created_at"],
        })

    return {
        "stats": stats,
        "latestResume": latest_summary,
        "recentActivity": recent,
        "hasResumeData": latest is not None,
    }


@router.get("/me/roles")
async def my_roles(
    current_user: UserIdentity = Depends(get_current_user),
    sb: Client = Depends(get_supabase),
):
    roles = get_user_roles(sb, current_user)
    return {"userId": current_user.user_id, "roles": roles, "isAdmin": "admin" in roles}
