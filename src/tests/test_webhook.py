# tests/test_webhook.py
import threading
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from telegram.ext import ExtBot

from src.bot.bot_setup import setup_and_run_bot
from src.bot.webhook import BackgroundApplication, create_flask_app


class TestBackgroundApplication(unittest.TestCase):
    def setUp(self):
        # sem rede: o bot não chama getMe nem fecha conexões HTTP
        for name in ("initialize", "shutdown"):
            patcher = patch.object(ExtBot, name, new_callable=AsyncMock)
            patcher.start()
            self.addCleanup(patcher.stop)

        self.application = setup_and_run_bot({"TELEGRAM_BOT_TOKEN": "123:ABC", "SUPABASE_CLIENT": MagicMock()})
        self.runtime = BackgroundApplication(self.application)
        self.addCleanup(self.runtime.stop)

    def test_start_runs_the_job_queue_scheduler(self):
        self.runtime.start()

        job_queue = self.application.job_queue
        self.assertIn("periodic_insight_check", [job.name for job in job_queue.jobs()])
        self.assertTrue(job_queue.scheduler.running)
        self.assertTrue(self.runtime.running)

    def test_tasks_created_by_handlers_keep_running(self):
        self.runtime.start()
        done = threading.Event()

        async def background():
            done.set()

        async def handler():
            self.application.create_task(background())

        self.runtime.submit(handler())

        self.assertTrue(done.wait(5))

    def test_stop_shuts_the_scheduler_down(self):
        self.runtime.start()
        self.runtime.stop()

        self.assertFalse(self.application.running)
        self.assertFalse(self.application.job_queue.scheduler.running)
        self.assertFalse(self.runtime.running)


class TestProcessUpdate(unittest.TestCase):
    def test_update_is_processed_on_the_bot_loop(self):
        application = MagicMock()
        for name in ("initialize", "start", "stop", "shutdown", "process_update"):
            setattr(application, name, AsyncMock())
        runtime = BackgroundApplication(application)
        runtime.start()
        self.addCleanup(runtime.stop)

        runtime.process_update({"update_id": 7})

        update = application.process_update.await_args[0][0]
        self.assertEqual(update.update_id, 7)
        application.start.assert_awaited_once()


class TestWebhookRoute(unittest.TestCase):
    def setUp(self):
        self.runtime = MagicMock(spec=BackgroundApplication)
        self.client = create_flask_app(self.runtime).test_client()

    def test_update_is_handed_to_the_runtime(self):
        response = self.client.post("/webhook", json={"update_id": 1})

        self.assertEqual(response.status_code, 200)
        self.runtime.process_update.assert_called_once_with({"update_id": 1})

    def test_rejects_non_json(self):
        response = self.client.post("/webhook", data="oi", content_type="text/plain")

        self.assertEqual(response.status_code, 400)
        self.runtime.process_update.assert_not_called()

    def test_processing_failure(self):
        self.runtime.process_update.side_effect = RuntimeError("bot parado")

        response = self.client.post("/webhook", json={"update_id": 1})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["status"], "error")


if __name__ == '__main__':
    unittest.main()
