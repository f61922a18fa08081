# src/config.py
import os
from dotenv import load_dotenv

load_dotenv()

# Configurações do Telegram
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")

# Configurações do Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Configurações do Gemini API
GOOGLE_API_KEY_ENV = "GOOGLE_API_KEY"


def load_google_api_key():
    """Lê a chave do Gemini do ambiente a cada chamada (o ApiKeyProvider mantém o cache)."""
    return os.getenv(GOOGLE_API_KEY_ENV)


GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_API_URL = os.getenv(
    "GEMINI_API_URL",
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
)
GEMINI_TIMEOUT_SECONDS = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "30"))
API_KEY_REFRESH_SECONDS = int(os.getenv("API_KEY_REFRESH_SECONDS", "3600"))

# Pipeline de insights
RUN_GATE_WINDOW_SECONDS = float(os.getenv("RUN_GATE_WINDOW_SECONDS", "30"))
DEDUP_WINDOW_DAYS = int(os.getenv("DEDUP_WINDOW_DAYS", "30"))
PRIOR_INSIGHT_DAYS = int(os.getenv("PRIOR_INSIGHT_DAYS", "14"))
INSIGHT_WINDOW = os.getenv("INSIGHT_WINDOW", "all")
UI_INSIGHT_COUNT = int(os.getenv("UI_INSIGHT_COUNT", "3"))
INSIGHT_CHECK_INTERVAL_SECONDS = int(os.getenv("INSIGHT_CHECK_INTERVAL_SECONDS", "21600"))
# Alertas por regra olham só lançamentos destes últimos dias
RULE_LOOKBACK_DAYS = int(os.getenv("RULE_LOOKBACK_DAYS", "7"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
