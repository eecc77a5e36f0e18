import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[2] / ".env")

GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

GEMINI_MODELS = [
    name.strip()
    for name in os.getenv(
        "GEMINI_MODELS", "gemini-2.5-flash,gemini-2.5-pro,gemini-2.0-flash"
    ).split(",")
    if name.strip()
]

GENERATION_TIMEOUT = float(os.getenv("GENERATION_TIMEOUT", "120"))
PROVIDER_TIMEOUT = float(os.getenv("PROVIDER_TIMEOUT", "30"))

DEFAULT_MAX_ITEMS = 30
DEFAULT_MAX_COMMENTS = 100
COMMENTS_PER_ITEM = 20
COMMENT_PROMPT_LIMIT = 50
ANALYSIS_COMMENT_LIMIT = 15
ANALYSIS_COMMENTS_PER_ITEM = 3

TOP_N = 5
IDEA_COUNT = 3

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
