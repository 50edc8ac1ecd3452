"""My Resume Path backend: resume parsing, skill-gap analysis, job matching and reports."""

__version__ = "1.0.0"
