# tests/conftest.py
"""
Global pytest fixtures for resumepath tests.
"""

import pytest
from fastapi.testclient import TestClient

from resumepath import settings
from resumepath.db import get_supabase, get_supabase_optional
from tests.mocks.fake_supabase import ADMIN_ID, USER_ID, FakeSupabase

SAMPLE_RESUME = """
John Smith
Senior Software Engineer
john.smith@techcorp.com
+1 (555) 987-6543
Seattle, WA
LinkedIn: linkedin.com/in/johnsmith
GitHub: github.com/johnsmith

PROFESSIONAL SUMMARY
Experienced full-stack developer with 8+ years of experience in building scalable web applications.

TECHNICAL SKILLS
Programming Languages: JavaScript, TypeScript, Python, Java
Frameworks: React, Node.js, Express, Django
Databases: PostgreSQL, MongoDB, Redis
Cloud: AWS, Docker, Kubernetes
Tools: Git, Jenkins, Terraform

PROFESSIONAL EXPERIENCE

Senior Software Engineer
TechCorp Solutions | Seattle, WA | 2021 - Present
• Led development of microservices architecture serving 2M+ users
• Implemented CI/CD pipelines reducing deployment time by 60%
• Mentored team of 5 junior developers

Software Engineer
StartupXYZ | San Francisco, CA | 2019 - 2021
• Built responsive web applications using React and Node.js
• Collaborated with design team to implement user-friendly interfaces
• Optimized database queries improving performance by 40%

EDUCATION
Bachelor of Science in Computer Science
University of Washington | Seattle, WA | 2019
GPA: 3.8/4.0

CERTIFICATIONS
AWS Certified Solutions Architect | 2022
Google Cloud Professional Developer | 2021

PROJECTS
E-commerce Platform
• Built full-stack e-commerce application using React, Node.js, and PostgreSQL
• Implemented payment processing with Stripe API
• Technologies: React, Node.js, PostgreSQL, Stripe

LANGUAGES
English (Native)
Spanish (Intermediate)
"""


@pytest.fixture
def sample_resume_text():
    """Plain-text resume with every section the parser understands."""
    return SAMPLE_RESUME


@pytest.fixture
def fake_sb():
    """In-memory Supabase with one regular user, one admin, and a token for each."""
    return FakeSupabase(
        users=[
            {"id": USER_ID, "email": "john@example.com", "created_at": "2024-01-01T00:00:00+00:00",
             "last_sign_in_at": "2024-03-01T00:00:00+00:00"},
            {"id": ADMIN_ID, "email": "admin@example.com", "created_at": "2024-01-01T00:00:00+00:00",
             "last_sign_in_at": None},
        ],
        tokens={"user-token": USER_ID, "admin-token": ADMIN_ID},
    )


@pytest.fixture
def admin_sb(fake_sb):
    """fake_sb with an active admin role for ADMIN_ID."""
    fake_sb.tables["user_roles"] = [
        {"user_id": ADMIN_ID, "role": "admin", "is_active": True,
         "granted_at": "2024-01-01T00:00:00+00:00", "expires_at": None},
    ]
    return fake_sb


@pytest.fixture
def client(fake_sb, monkeypatch):
    """TestClient wired to the fake Supabase; tokens are checked through auth.get_user."""
    from resumepath.main import app

    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", None)
    monkeypatch.setattr(settings, "LLM_ENHANCE", False)
    app.dependency_overrides[get_supabase] = lambda: fake_sb
    app.dependency_overrides[get_supabase_optional] = lambda: fake_sb
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers():
    return {"Authorization": "Bearer user-token"}


@pytest.fixture
def admin_headers():
    return {"Authorization": "Bearer admin-token"}
