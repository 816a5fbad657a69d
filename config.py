import os
import logging
from dotenv import load_dotenv

# Load the .env file
load_dotenv()

logger = logging.getLogger(__name__)


class Settings:
    """
    Application settings and environment variables.
    """
    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./hybrid.db")

    # Gemini (coach chat + intent classification)
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    GEMINI_CHAT_MODEL = os.getenv("GEMINI_CHAT_MODEL", "gemini-1.5-flash")
    GEMINI_CLASSIFIER_MODEL = os.getenv("GEMINI_CLASSIFIER_MODEL", "gemini-2.0-flash")

    # A hung request would otherwise leave the chat "thinking" forever
    LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

    # In-memory sessions not touched for this long are dropped
    CHAT_SESSION_IDLE_MINUTES = float(os.getenv("CHAT_SESSION_IDLE_MINUTES", "120"))
    TIMER_IDLE_MINUTES = float(os.getenv("TIMER_IDLE_MINUTES", "60"))

    # Stored user API keys are encrypted with this
    COACH_ENCRYPTION_SECRET = os.getenv(
        "COACH_ENCRYPTION_SECRET", "development-secret-key-change-in-production"
    )

    @classmethod
    def validate(cls):
        """
        Checks that the critical variables are loaded.
        """
        missing = []
        if not cls.GEMINI_API_KEY:
            missing.append("GEMINI_API_KEY")

        if missing:
            raise ValueError(f"Missing environment variables: {', '.join(missing)}")


# Validate settings (runs on import)
try:
    Settings.validate()
except ValueError as e:
    logger.warning(f"{e} (coach falls back to keyword-only intent detection)")
