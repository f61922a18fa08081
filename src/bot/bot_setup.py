# src/bot/bot_setup.py
import logging

from telegram.ext import Application, CommandHandler

from src.bot.commands import (
    start_command, help_command, insights_command, dicas_command,
    alertas_command, lido_command,
)
from src.bot.jobs import periodic_insight_check
from src.config import INSIGHT_CHECK_INTERVAL_SECONDS
from src.core.ai import ApiKeyProvider, GenerationClient
from src.core.insight_store import InsightStore
from src.core.notifier import Notifier
from src.core.pipeline import InsightPipeline

logger = logging.getLogger(__name__)


def build_pipeline(application: Application, supabase_client) -> InsightPipeline:
    """Monta o pipeline de insights com o bot da aplicação como canal de notificação."""
    store = InsightStore(supabase_client)
    return InsightPipeline(
        supabase_client=supabase_client,
        store=store,
        generation_client=GenerationClient(ApiKeyProvider()),
        notifier=Notifier(application.bot, supabase_client),
    )


def setup_and_run_bot(config: dict) -> Application:
    """
    Configura a aplicação do bot do Telegram (comandos e verificação periódica).
    Retorna o objeto Application configurado, pronto para ser usado por um servidor WSGI.
    """
    application = Application.builder().token(config["TELEGRAM_BOT_TOKEN"]).build()

    # Dependências compartilhadas ficam no bot_data para que os comandos possam acessá-las
    supabase_client = config["SUPABASE_CLIENT"]
    pipeline = build_pipeline(application, supabase_client)
    application.bot_data['supabase_client'] = supabase_client
    application.bot_data['insight_pipeline'] = pipeline
    application.bot_data['insight_store'] = pipeline.store

    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("insights", insights_command))
    application.add_handler(CommandHandler("dicas", dicas_command))
    application.add_handler(CommandHandler("alertas", alertas_command))
    application.add_handler(CommandHandler("lido", lido_command))

    # JobQueue só existe com o extra python-telegram-bot[job-queue]
    if application.job_queue is not None:
        application.job_queue.run_repeating(
            periodic_insight_check,
            interval=config.get("INSIGHT_CHECK_INTERVAL_SECONDS", INSIGHT_CHECK_INTERVAL_SECONDS),
            first=60,
            name="periodic_insight_check",
        )
    else:
        logger.warning("JobQueue indisponível: a verificação periódica de insights não foi agendada.")

    logger.info("Bot Telegram configurado. Pronto para ser rodado pelo WSGI ou por polling.")
    return application
