import asyncio
import logging

from telegram import Update
from telegram.ext import ContextTypes

from src.core import db

logger = logging.getLogger(__name__)


def user_id_from(update: Update) -> str:
    """O id do usuário no Telegram é a chave do usuário nas tabelas."""
    return str(update.effective_user.id)


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Registra o chat como canal de notificações e dispara uma análise."""
    supabase_client = context.bot_data["supabase_client"]
    pipeline = context.bot_data["insight_pipeline"]
    user_id = user_id_from(update)

    registered = await asyncio.to_thread(
        db.register_device_channel, supabase_client, user_id, str(update.effective_chat.id)
    )
    if not registered:
        await update.message.reply_text(
            "⚠️ Não consegui registrar este chat para receber alertas agora. Tente /start de novo mais tarde."
        )
        return

    await update.message.reply_text(
        "Olá! 👋 Sou seu assistente de insights financeiros. "
        "Vou analisar seus ganhos e gastos e te avisar por aqui quando tiver um **alerta** ⚠️ ou uma **dica** 💡.\n\n"
        "Comandos úteis:\n"
        "- `/insights` para gerar uma nova análise agora.\n"
        "- `/dicas [weekly|monthly|yearly]` para dicas rápidas do período.\n"
        "- `/alertas` para ver o resumo dos seus alertas e dicas.\n"
        "- `/lido [id]` para marcar um alerta como lido.\n"
        "- `/help` para mais informações."
    )
    context.application.create_task(pipeline.run(user_id))


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Envia uma mensagem quando o comando /help é emitido."""
    await update.message.reply_text(
        "**Como funciona:**\n"
        "De tempos em tempos eu analiso seus ganhos e gastos e gero no máximo um alerta e uma dica. "
        "Alertas repetidos nunca são enviados duas vezes.\n\n"
        "**Comandos:**\n"
        "- `/start`: Registra este chat para receber notificações.\n"
        "- `/help`: Mostra esta mensagem.\n"
        "- `/insights`: Gera uma análise agora (se outra já estiver rodando, aguarde alguns segundos).\n"
        "- `/dicas [weekly|monthly|yearly]`: Dicas rápidas do período (padrão: weekly). Não ficam salvas.\n"
        "- `/alertas`: Total de alertas e dicas, quantos não foram lidos e a mensagem mais recente.\n"
        "- `/lido [id]`: Marca um alerta como lido (o id aparece em `/alertas`)."
    )
