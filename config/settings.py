import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if it exists, for local development.
# In production, environment variables should be set directly.
if os.path.exists(".env"):
    from dotenv import load_dotenv
    load_dotenv()

DEFAULT_CONTENT_DIR = Path(__file__).resolve().parents[1] / "assets" / "quizzes"


class QuizEngineSettings(BaseSettings):
    content_dir: Path = DEFAULT_CONTENT_DIR
    log_level: str = "INFO"

    # Display shaping for result_totals
    display_max_value: float = 10.0
    gamma: float = 0.8
    boost: float = 1.12
    floor: float = 0.6

    confidence_precision: int = 3

    model_config = SettingsConfigDict(env_prefix='QUIZ_ENGINE_')


@lru_cache()
def get_settings() -> QuizEngineSettings:
    return QuizEngineSettings()
