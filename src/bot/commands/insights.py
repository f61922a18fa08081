import asyncio
import logging
from collections import OrderedDict

from telegram import Update
from telegram.ext import ContextTypes

from src.bot.commands.utils import user_id_from
from src.core.aggregator import WINDOW_DAYS
from src.core.errors import DataReadError, InsightPipelineError
from src.core.live_view import LiveAggregateView
from src.core.models import InsightSummary, InsightType, RunStatus
from src.core.notifier import TYPE_ICONS

logger = logging.getLogger(__name__)

# Assinaturas ao vivo mantidas por processo; a menos usada é encerrada ao passar do limite
LIVE_VIEW_LIMIT = 200

UI_ICON_EMOJIS = {
    "alert": "⚠️",
    "advice": "💡",
    "info": "ℹ️",
    "trend": "📈",
    "progress": "📊",
    "default": "✨",
}


def get_live_view(context: ContextTypes.DEFAULT_TYPE, user_id: str) -> LiveAggregateView:
    """Uma assinatura contínua por usuário; o resumo mais recente fica em bot_data."""
    views = context.bot_data.setdefault("live_views", OrderedDict())
    view = views.get(user_id)
    if view is not None:
        views.move_to_end(user_id)
        return view

    summaries = context.bot_data.setdefault("insight_summaries", {})

    def publish(summary: InsightSummary) -> None:
        summaries[user_id] = summary

    view = LiveAggregateView(context.bot_data["insight_store"], user_id, publish)
    views[user_id] = view
    while len(views) > LIVE_VIEW_LIMIT:
        evicted_id, evicted = views.popitem(last=False)
        evicted.stop()
        summaries.pop(evicted_id, None)
    return view


async def insights_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Dispara o pipeline de insights para o usuário."""
    pipeline = context.bot_data["insight_pipeline"]
    user_id = user_id_from(update)

    await update.message.reply_text("🔎 Analisando seus ganhos e gastos, por favor aguarde...")
    outcome = await pipeline.run(user_id)

    if outcome.status == RunStatus.SKIPPED_BUSY:
        await update.message.reply_text("⏳ Já estou gerando uma análise para você. Tente de novo em alguns segundos.")
    elif outcome.status == RunStatus.SKIPPED_EMPTY:
        await update.message.reply_text(
            "Ainda não tenho dados suficientes para analisar. Registre alguns gastos e ganhos primeiro!"
        )
    elif outcome.status == RunStatus.FAILED:
        await update.message.reply_text("😕 Não consegui gerar insights agora. Seus alertas anteriores continuam em /alertas.")
    elif not outcome.stored:
        await update.message.reply_text("✅ Análise concluída. Nada de novo desde o último alerta!")
    else:
        await update.message.reply_text(f"✅ {len(outcome.stored)} novo(s) insight(s) enviado(s)!")


async def dicas_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Gera dicas rápidas para o período pedido (não ficam salvas)."""
    pipeline = context.bot_data["insight_pipeline"]
    user_id = user_id_from(update)

    window = (context.args[0].lower() if context.args else "weekly")
    if window not in WINDOW_DAYS:
        await update.message.reply_text("Uso: `/dicas [weekly|monthly|yearly|all]`")
        return

    try:
        tips = await pipeline.generate_ui_insights(user_id, window)
    except InsightPipelineError as e:
        logger.error(f"Erro ao gerar dicas para {user_id}: {e}")
        await update.message.reply_text("😕 Não consegui gerar dicas agora. Tente novamente mais tarde.")
        return

    if not tips:
        await update.message.reply_text("Ainda não tenho dados desse período para gerar dicas. 📭")
        return

    lines = [f"{UI_ICON_EMOJIS.get(tip.icon, UI_ICON_EMOJIS['default'])} {tip.text}" for tip in tips]
    await update.message.reply_text("\n\n".join(lines))


async def alertas_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Mostra o resumo ao vivo dos alertas e dicas do usuário."""
    store = context.bot_data["insight_store"]
    user_id = user_id_from(update)
    view = get_live_view(context, user_id)
    # relê sempre: outro processo pode ter gravado ou marcado insights como lidos
    summary = await asyncio.to_thread(view.refresh if view.active else view.start)

    if summary.total == 0:
        await update.message.reply_text("📭 Você ainda não tem alertas nem dicas.")
        return

    text = (
        f"{TYPE_ICONS[InsightType.ALERT]} Alertas: {summary.alert_count} ({summary.unread_alert_count} não lidos)\n"
        f"{TYPE_ICONS[InsightType.ADVICE]} Dicas: {summary.advice_count} ({summary.unread_advice_count} não lidas)\n\n"
        f"Mais recente: {summary.latest_message}"
    )
    try:
        records = await asyncio.to_thread(store.list_for_user, user_id)
    except DataReadError as e:
        logger.warning(f"Lista de não lidos de {user_id} indisponível: {e}")
        records = []
    unread = [r for r in records if not r.read][:5]
    if unread:
        text += "\n\nNão lidos:\n" + "\n".join(f"- `{r.id}` {r.title}" for r in unread)
    await update.message.reply_text(text)


async def lido_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Marca um insight como lido."""
    store = context.bot_data["insight_store"]
    user_id = user_id_from(update)

    if not context.args:
        await update.message.reply_text("Uso: `/lido [id]` (veja os ids em /alertas)")
        return

    insight_id = context.args[0].strip()
    if await asyncio.to_thread(store.mark_read, user_id, insight_id):
        await update.message.reply_text("✅ Marcado como lido.")
    else:
        await update.message.reply_text(f"⚠️ Não encontrei o insight `{insight_id}`.")
