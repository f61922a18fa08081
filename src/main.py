# src/main.py
import atexit
import logging

from telegram import Update
from telegram.ext import Application

from src import config as settings
from src.bot.bot_setup import setup_and_run_bot
from src.bot.webhook import BackgroundApplication, create_flask_app
from src.core.db import get_supabase_client

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_application() -> Application:
    """Cria o cliente Supabase e a aplicação do python-telegram-bot."""
    supabase_client = get_supabase_client()
    logger.info("Cliente Supabase inicializado.")

    config = {
        "TELEGRAM_BOT_TOKEN": settings.TELEGRAM_BOT_TOKEN,
        "SUPABASE_CLIENT": supabase_client,
        "INSIGHT_CHECK_INTERVAL_SECONDS": settings.INSIGHT_CHECK_INTERVAL_SECONDS,
    }
    return setup_and_run_bot(config)


if __name__ == "__main__":
    # Execução local: polling, com JobQueue rodando a verificação periódica
    create_application().run_polling(allowed_updates=Update.ALL_TYPES)
else:
    # Gunicorn importa este módulo uma única vez por worker
    try:
        bot_runtime = BackgroundApplication(create_application())
        bot_runtime.start()
        atexit.register(bot_runtime.stop)
        logger.info("python-telegram-bot Application inicializada com sucesso!")
        wsgi_app = create_flask_app(bot_runtime)
    except Exception:
        logger.exception("Erro crítico durante a inicialização em src/main.py")
        raise
