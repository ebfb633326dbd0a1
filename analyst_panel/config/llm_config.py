import os

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv())

# Credentials
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")

# OpenAI-compatible endpoints for each host
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"
)
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
GITHUB_MODELS_BASE_URL = os.getenv(
    "GITHUB_MODELS_BASE_URL", "https://models.github.ai/inference"
)

# Model Defaults
DEFAULT_GEMINI_MODEL = os.getenv("DEFAULT_GEMINI_MODEL", "gemini-2.5-flash")
DEFAULT_GROQ_MODEL = os.getenv("DEFAULT_GROQ_MODEL", "llama-3.3-70b-versatile")
SYNTHESIS_MODEL = os.getenv("SYNTHESIS_MODEL", DEFAULT_GEMINI_MODEL)

# Connection Settings
LLM_TIMEOUT = float(os.getenv("DEFAULT_LLM_TIMEOUT", "60"))
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "2"))

# Rate-limit persistence
RATE_LIMIT_DATABASE_URL = os.getenv(
    "RATE_LIMIT_DATABASE_URL", "sqlite:///./analyst_panel_rate_limits.db"
)

# Panel defaults
DEFAULT_QUORUM = int(os.getenv("ANALYST_PANEL_QUORUM", "2"))
