"""
Unit tests for resumepath.parser module.
"""

from datetime import date

import pytest

from resumepath.parser import (
    ParsedResume,
    all_skills,
    detect_section,
    duration_years,
    experience_level_label,
    extract_phone,
    extraction_quality,
    parse_resume_content,
)

AS_OF = date(2024, 1, 1)


@pytest.fixture
def parsed(sample_resume_text) -> ParsedResume:
    return parse_resume_content(sample_resume_text, "john_smith_resume.txt", as_of=AS_OF)


class TestDetectSection:
    """Tests for section header detection."""

    @pytest.mark.parametrize("line,expected", [
        ("EXPERIENCE", "experience"),
        ("Work Experience", "experience"),
        ("PROFESSIONAL SUMMARY", "summary"),
        ("Skills:", "skills"),
        ("TECHNICAL SKILLS", "skills"),
        ("VOLUNTEER EXPERIENCE", "volunteer"),
        ("Certifications", "certifications"),
        ("Honors & Awards", "awards"),
        ("Education & Training", "education"),
        ("Skills and Abilities", "skills"),
        ("Technical Proficiencies", "skills"),
        ("Experience and Projects", "experience"),
        ("Volunteer Experience", "volunteer"),
        ("Education History", "education"),
    ])
    def test_headers(self, line, expected):
        """Short header lines map to their section."""
        assert detect_section(line) == expected

    @pytest.mark.parametrize("line", [
        "Experience with large teams",
        "Programming Languages: Python",
        "• Led the skills matrix rollout",
        "Bachelor of Science in Computer Science",
        "TechCorp Solutions | Seattle, WA | 2021 - Present",
        "Technical Lead",
        "Project Manager",
    ])
    def test_content_lines_are_not_headers(self, line):
        """Content lines that merely contain a keyword are not headers."""
        assert detect_section(line) is None


class TestPersonalInfo:
    """Tests for the contact block."""

    def test_contact_fields(self, parsed):
        info = parsed.personal_info
        assert info.name == "John Smith"
        assert info.email == "john.smith@techcorp.com"
        assert info.location == "Seattle, WA"
        assert info.linkedin == "https://linkedin.com/in/johnsmith"
        assert info.github == "https://github.com/johnsmith"

    def test_phone_kept(self, parsed):
        """Fictional 555 numbers still come through the regex fallback."""
        phone = parsed.personal_info.phone
        assert phone is not None
        assert "987" in phone and "6543" in phone

    def test_valid_number_is_e164(self):
        assert extract_phone("Call (206) 555-0100 or +1 415 867 5309") in ("+14158675309", "+12065550100")

    def test_name_from_filename(self):
        """Without a name line the filename stem is used."""
        parsed = parse_resume_content("jane@example.com\nEXPERIENCE\nEngineer", "jane_doe_resume.pdf")
        assert parsed.personal_info.name == "Jane Doe"


class TestSections:
    """Tests for individual section parsers on the sample resume."""

    def test_summary(self, parsed):
        assert parsed.summary.startswith("Experienced full-stack developer")

    def test_experience_entries(self, parsed):
        assert len(parsed.experience) == 2
        first, second = parsed.experience
        assert first.title == "Senior Software Engineer"
        assert first.company == "TechCorp Solutions"
        assert first.location == "Seattle, WA"
        assert first.duration == "2021 - Present"
        assert len(first.achievements) == 3
        assert second.company == "StartupXYZ"
        assert second.duration == "2019 - 2021"

    def test_experience_technologies(self, parsed):
        """Technologies are the catalog skills mentioned in the entry."""
        assert "React" in parsed.experience[1].technologies
        assert "Node.js" in parsed.experience[1].technologies

    def test_technologies_without_skills_section(self):
        text = "EXPERIENCE\nBackend Engineer | Acme | 2020 - 2022\n• Shipped services in Python with Docker and Kubernetes"
        exp = parse_resume_content(text, as_of=AS_OF).experience
        assert exp[0].technologies == ["Python", "Docker", "Kubernetes"]

    def test_pipe_title_line(self):
        text = "EXPERIENCE\nBackend Developer | Acme | 2018 - 2020\n- Built APIs"
        exp = parse_resume_content(text, as_of=AS_OF).experience
        assert len(exp) == 1
        assert exp[0].title == "Backend Developer"
        assert exp[0].company == "Acme"
        assert exp[0].duration == "2018 - 2020"
        assert exp[0].achievements == ["Built APIs"]

    def test_education(self, parsed):
        assert len(parsed.education) == 1
        edu = parsed.education[0]
        assert edu.degree == "Bachelor of Science in Computer Science"
        assert edu.institution == "University of Washington"
        assert edu.graduation_date == "2019"
        assert edu.gpa == "3.8"
        assert edu.field == "Computer Science"

    def test_skills_routed_by_category(self, parsed):
        skills = parsed.skills
        assert skills.programming == ["JavaScript", "TypeScript", "Python", "Java"]
        assert "React" in skills.frameworks
        assert "PostgreSQL" in skills.databases
        assert skills.cloud == ["AWS", "Docker", "Kubernetes"]
        assert "Terraform" in skills.tools

    def test_certifications(self, parsed):
        names = [(c.name, c.date) for c in parsed.certifications]
        assert names == [
            ("AWS Certified Solutions Architect", "2022"),
            ("Google Cloud Professional Developer", "2021"),
        ]

    def test_projects(self, parsed):
        assert len(parsed.projects) == 1
        project = parsed.projects[0]
        assert project.name == "E-commerce Platform"
        assert project.technologies == ["React", "Node.js", "PostgreSQL", "Stripe"]
        assert "Stripe API" in project.description

    def test_languages(self, parsed):
        assert [(l.language, l.proficiency) for l in parsed.languages] == [
            ("English", "Native"),
            ("Spanish", "Intermediate"),
        ]

    def test_plain_skill_lines_are_technical(self):
        parsed = parse_resume_content("SKILLS\nGo, Rust, go\n")
        assert parsed.skills.technical == ["Go", "Rust"]


class TestAnalysis:
    """Tests for the derived analysis block."""

    def test_years_and_level(self, parsed):
        assert parsed.analysis.total_years == 5
        assert parsed.analysis.experience_level == "Senior Level (5+ years)"

    def test_flags(self, parsed):
        analysis = parsed.analysis
        assert analysis.leadership_experience is True
        assert analysis.remote_work_experience is False
        assert analysis.international_experience is False
        assert analysis.career_progression == "Upward career progression"
        assert analysis.key_strengths == ["JavaScript", "TypeScript", "Python"]
        assert analysis.industry_focus[0] == "Technology"

    def test_industry_focus_from_covered_roles(self):
        """Families of roles whose required skills are at least half covered."""
        text = "SKILLS\nDocker, Kubernetes, CI/CD, Terraform, AWS, Linux"
        focus = parse_resume_content(text).analysis.industry_focus
        assert focus == ["Technology", "Solutions Architecture", "Cloud & DevOps"]

    def test_industry_focus_defaults_to_technology(self):
        assert parse_resume_content("Jane Doe\njane@example.com").analysis.industry_focus == ["Technology"]

    def test_duration_years(self):
        assert duration_years("2019 - 2021") == 2
        assert duration_years("2020 - Present", as_of=AS_OF) == 4
        assert duration_years("Summer internship") == 0

    def test_level_from_entry_count(self):
        """Entry counts decide only when no dates parse."""
        assert experience_level_label(4, None) == "Senior Level (5+ years)"
        assert experience_level_label(2, None) == "Mid Level (2-5 years)"
        assert experience_level_label(1, None) == "Entry Level"
        assert experience_level_label(4, 1.0) == "Entry Level"

    def test_years_claim_in_summary(self):
        text = "SUMMARY\nEngineer with 3 years of experience\nEXPERIENCE\nDeveloper\n"
        assert parse_resume_content(text).analysis.total_years == 3


class TestOutput:
    """Tests for the JSON shape and quality labels."""

    def test_camel_case_json(self, parsed):
        data = parsed.to_json()
        assert data["personalInfo"]["name"] == "John Smith"
        assert data["education"][0]["graduationDate"] == "2019"
        assert data["analysis"]["experienceLevel"] == "Senior Level (5+ years)"
        assert "volunteerWork" in data

    def test_round_trip_from_stored_json(self, parsed):
        """Rows read back from the database validate into the model again."""
        again = ParsedResume.model_validate(parsed.to_json())
        assert again.personal_info.email == parsed.personal_info.email

    def test_quality_levels(self, parsed):
        assert extraction_quality(parsed) == ("High Quality", True)
        assert extraction_quality(parse_resume_content("Jane Doe\njane@example.com")) == ("Partial", False)
        assert extraction_quality(parse_resume_content("")) == ("Basic", False)

    def test_all_skills_flattens(self, parsed):
        flat = all_skills(parsed.skills)
        assert flat[:3] == ["JavaScript", "TypeScript", "Python"]
        assert all_skills({"a": ["x", "X"], "b": "y, z"}) == ["x", "y", "z"]
        assert all_skills(["React", " ", "react"]) == ["React"]

    def test_all_skills_from_string(self):
        """A comma-separated string counts as a list of skills."""
        assert all_skills("Python, React") == ["Python", "React"]
        assert all_skills("Python; python") == ["Python"]
        assert all_skills("") == []
