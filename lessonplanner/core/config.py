import os
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables from .env
load_dotenv()


# -------------------------
# AI settings
# -------------------------
class AIConfig(BaseSettings):
    """AI configuration with environment variable support"""

    api_url: str = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
    api_key: str = ""
    generation_model: str = "gemini-2.5-pro"  # full plan synthesis
    analysis_model: str = "gemini-2.5-flash"  # text analysis / extraction
    max_retries: int = 2
    timeout: float = 120.0
    backoff_base: float = 1.0

    class Config:
        env_prefix = "AI_"
        case_sensitive = False


# -------------------------
# Storage / export settings
# -------------------------
class StorageConfig(BaseSettings):
    data_dir: str = "./data"
    pdf_font_path: Optional[str] = None  # TTF with Arabic glyphs, e.g. Tahoma or Amiri
    pdf_font_name: str = "PlannerArabic"

    class Config:
        env_prefix = "PLANNER_"
        case_sensitive = False


ai_config = AIConfig()
storage_config = StorageConfig()

# CORS origins for the local front end
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "PLANNER_CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173,http://127.0.0.1:3000",
    ).split(",")
    if o.strip()
]
