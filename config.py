import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    # --- OpenAI / LLM ---
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-5.1")
    OPENAI_FALLBACK_MODEL = os.environ.get("OPENAI_FALLBACK_MODEL", "gpt-4o-mini")
    OPENAI_MAX_TOKENS = int(os.environ.get("OPENAI_MAX_TOKENS", "1000"))
    OPENAI_VERBOSITY = os.environ.get("OPENAI_VERBOSITY", "high")
    OPENAI_REASONING_EFFORT = os.environ.get("OPENAI_REASONING_EFFORT", "high")
    OPENAI_TIMEOUT = float(os.environ.get("OPENAI_TIMEOUT", "30"))
    # Retries after the first request; total requests per attempt = retries + 1.
    OPENAI_TRANSPORT_RETRIES = int(os.environ.get("OPENAI_TRANSPORT_RETRIES", "2"))

    # --- Telnyx (SMS) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_PUBLIC_KEY = os.environ.get("TELNYX_PUBLIC_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")

    # --- Conversation ---
    MAX_HISTORY = int(os.environ.get("MAX_HISTORY", "6"))
    # Only messages from this conversation are answered; unset means all.
    MONITORED_CONVERSATION = os.environ.get("MONITORED_CONVERSATION")

    # --- Reminders and Timezone ---
    REMINDERS_PATH = os.environ.get("REMINDERS_PATH", "./data/reminders.json")
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "Asia/Jakarta")

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


settings = Settings()
