# tests/test_commands.py
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from src.bot.commands.insights import get_live_view
from src.bot.commands import (
    alertas_command, dicas_command, insights_command, lido_command, start_command,
)
from src.core.errors import GenerationTransportError
from src.core.models import InsightRecord, InsightType, RunOutcome, RunStatus, UiInsight


def make_record(id_, type_=InsightType.ALERT, read=False):
    return InsightRecord(
        id=id_, user_id="42", type=type_, title=f"Título {id_}", body="Corpo",
        category=None, content_hash=f"h{id_}", created_at=datetime(2025, 7, 1, tzinfo=timezone.utc), read=read,
    )


class CommandTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.update = MagicMock()
        self.update.effective_user.id = 42
        self.update.effective_chat.id = 4242
        self.update.message.reply_text = AsyncMock()

        self.pipeline = MagicMock()
        self.pipeline.run = AsyncMock()
        self.pipeline.generate_ui_insights = AsyncMock()
        self.store = MagicMock()

        self.context = MagicMock()
        self.context.args = []
        self.context.bot_data = {
            "supabase_client": MagicMock(),
            "insight_pipeline": self.pipeline,
            "insight_store": self.store,
        }

    def last_reply(self):
        return self.update.message.reply_text.call_args[0][0]


class TestStartCommand(CommandTestCase):
    @patch("src.bot.commands.utils.db")
    async def test_registers_chat_and_triggers_run(self, mock_db):
        mock_db.register_device_channel.return_value = True

        await start_command(self.update, self.context)

        mock_db.register_device_channel.assert_called_once_with(self.context.bot_data["supabase_client"], "42", "4242")
        self.pipeline.run.assert_called_once_with("42")
        self.context.application.create_task.assert_called_once()
        self.context.application.create_task.call_args[0][0].close()

    @patch("src.bot.commands.utils.db")
    async def test_registration_failure(self, mock_db):
        mock_db.register_device_channel.return_value = False

        await start_command(self.update, self.context)

        self.pipeline.run.assert_not_called()
        self.assertIn("Não consegui registrar", self.last_reply())


class TestInsightsCommand(CommandTestCase):
    async def test_reports_each_status(self):
        cases = [
            (RunOutcome("42", RunStatus.SKIPPED_BUSY), "Já estou gerando"),
            (RunOutcome("42", RunStatus.SKIPPED_EMPTY), "Ainda não tenho dados"),
            (RunOutcome("42", RunStatus.FAILED, error=GenerationTransportError("x")), "Não consegui gerar"),
            (RunOutcome("42", RunStatus.COMPLETED, duplicates=2), "Nada de novo"),
            (RunOutcome("42", RunStatus.COMPLETED, stored=[make_record("1"), make_record("2")]), "2 novo(s)"),
        ]
        for outcome, expected in cases:
            self.pipeline.run.return_value = outcome
            await insights_command(self.update, self.context)
            self.assertIn(expected, self.last_reply())


class TestDicasCommand(CommandTestCase):
    async def test_lists_tips_with_icons(self):
        self.context.args = ["Monthly"]
        self.pipeline.generate_ui_insights.return_value = [UiInsight("Food somou R$95.00", "alert"), UiInsight("Boa!", "default")]

        await dicas_command(self.update, self.context)

        self.pipeline.generate_ui_insights.assert_awaited_once_with("42", "monthly")
        self.assertEqual(self.last_reply(), "⚠️ Food somou R$95.00\n\n✨ Boa!")

    async def test_invalid_window(self):
        self.context.args = ["daily"]
        await dicas_command(self.update, self.context)
        self.pipeline.generate_ui_insights.assert_not_awaited()
        self.assertIn("Uso:", self.last_reply())

    async def test_pipeline_error(self):
        self.pipeline.generate_ui_insights.side_effect = GenerationTransportError("offline")
        await dicas_command(self.update, self.context)
        self.assertIn("Não consegui gerar dicas", self.last_reply())


class TestAlertasCommand(CommandTestCase):
    async def test_summary_and_unread_list(self):
        records = [make_record("3", InsightType.ADVICE), make_record("2", read=True), make_record("1")]
        self.store.list_for_user.return_value = records
        self.store.subscribe.return_value = MagicMock()

        await alertas_command(self.update, self.context)

        reply = self.last_reply()
        self.assertIn("Alertas: 2 (1 não lidos)", reply)
        self.assertIn("Dicas: 1 (1 não lidas)", reply)
        self.assertIn("Mais recente: Título 3: Corpo", reply)
        self.assertIn("`1` Título 1", reply)
        self.assertNotIn("`2`", reply)
        self.assertIn("42", self.context.bot_data["insight_summaries"])
        self.store.subscribe.assert_called_once()

    async def test_empty(self):
        self.store.list_for_user.return_value = []
        await alertas_command(self.update, self.context)
        self.assertIn("ainda não tem alertas", self.last_reply())

    async def test_each_call_rereads_the_store(self):
        self.store.list_for_user.return_value = [make_record("1")]
        await alertas_command(self.update, self.context)
        self.assertIn("Alertas: 1 (1 não lidos)", self.last_reply())

        # outro worker marcou o alerta como lido
        self.store.list_for_user.return_value = [make_record("1", read=True)]
        await alertas_command(self.update, self.context)

        self.assertIn("Alertas: 1 (0 não lidos)", self.last_reply())
        self.store.subscribe.assert_called_once()


class TestLiveViewRegistry(CommandTestCase):
    @patch("src.bot.commands.insights.LIVE_VIEW_LIMIT", 2)
    def test_least_recently_used_view_is_stopped(self):
        unsubscribers = []

        def subscribe(listener):
            unsubscribers.append(MagicMock())
            return unsubscribers[-1]

        self.store.subscribe.side_effect = subscribe
        self.store.list_for_user.return_value = []

        get_live_view(self.context, "a").start()
        get_live_view(self.context, "b").start()
        get_live_view(self.context, "a")
        get_live_view(self.context, "c").start()

        views = self.context.bot_data["live_views"]
        self.assertEqual(list(views), ["a", "c"])
        unsubscribers[1].assert_called_once()
        unsubscribers[0].assert_not_called()
        self.assertNotIn("b", self.context.bot_data["insight_summaries"])


class TestLidoCommand(CommandTestCase):
    async def test_marks_read(self):
        self.context.args = ["7"]
        self.store.mark_read.return_value = True
        await lido_command(self.update, self.context)
        self.store.mark_read.assert_called_once_with("42", "7")
        self.assertIn("Marcado como lido", self.last_reply())

    async def test_unknown_id(self):
        self.context.args = ["404"]
        self.store.mark_read.return_value = False
        await lido_command(self.update, self.context)
        self.assertIn("Não encontrei", self.last_reply())

    async def test_missing_argument(self):
        await lido_command(self.update, self.context)
        self.store.mark_read.assert_not_called()


if __name__ == '__main__':
    unittest.main()
