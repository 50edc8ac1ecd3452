import os
import logging
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from resumepath import __version__

# ---------------------------------------------------------------------------
# env
# ---------------------------------------------------------------------------
load_dotenv()
logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

ENV = os.getenv("ENV", "local").lower()
PORT = int(os.getenv("PORT", "3001"))
VERSION = __version__

origins_env = os.getenv("ALLOW_ORIGINS", "http://localhost:5173,https://localhost:5173")
ALLOW_ORIGINS: List[str] = [o.strip() for o in origins_env.split(",") if o.strip()] or ["*"]

# ---------------------------------------------------------------------------
# Supabase
# ---------------------------------------------------------------------------
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY")
# when set, bearer tokens are verified locally instead of round-tripping to auth
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")

# ---------------------------------------------------------------------------
# uploads
# ---------------------------------------------------------------------------
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "10"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

ALLOWED_EXTENSIONS = {".txt", ".pdf", ".docx"}
MIME_TXT = "text/plain"
MIME_PDF = "application/pdf"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
ALLOWED_MIME_TYPES = {MIME_TXT, MIME_PDF, MIME_DOCX, "application/octet-stream"}

# ---------------------------------------------------------------------------
# Ollama (cloud OR local)
# ---------------------------------------------------------------------------
# Cloud:
#   OLLAMA_BASE_URL=https://ollama.com/api
#   OLLAMA_API_KEY=...
# Local:
#   OLLAMA_BASE_URL=http://localhost:11434
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "gemma3:4b")
OLLAMA_API_KEY = os.getenv("OLLAMA_API_KEY")
LLM_ENHANCE = os.getenv("LLM_ENHANCE", "false").strip().lower() in ("1", "true", "yes", "on")

# ---------------------------------------------------------------------------
# catalog
# ---------------------------------------------------------------------------
CATALOG_PATH = Path(os.getenv("CATALOG_PATH") or Path(__file__).parent / "data" / "catalog.yaml")
DEFAULT_TARGET_ROLE = "Senior Software Engineer"
