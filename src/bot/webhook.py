# src/bot/webhook.py
"""
Execução do bot atrás de um servidor WSGI (Gunicorn + Flask).

O Flask atende cada requisição de forma síncrona, mas a Application do
python-telegram-bot, o JobQueue e as tarefas criadas com create_task
precisam de um event loop que continue vivo entre as requisições. O
BackgroundApplication mantém esse loop numa thread própria e todas as
corrotinas do bot são enviadas para ele.
"""
import asyncio
import logging
import threading
from typing import Optional

from flask import Flask, request, jsonify
from telegram import Update
from telegram.ext import Application

logger = logging.getLogger(__name__)

WEBHOOK_PATH_SUFFIX = "/webhook"
UPDATE_TIMEOUT_SECONDS = 60


class BackgroundApplication:
    """Roda a Application (e o JobQueue) num event loop de longa duração."""

    def __init__(self, application: Application):
        self.application = application
        self.loop = asyncio.new_event_loop()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self.application.running

    def submit(self, coro, timeout: Optional[float] = None):
        """Agenda a corrotina no loop do bot e espera o resultado na thread de quem chamou."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.loop.run_forever, name="telegram-bot-loop", daemon=True)
        self._thread.start()
        self.submit(self.application.initialize())
        # start() também liga o agendador do JobQueue
        self.submit(self.application.start())
        logger.info("Application do Telegram iniciada em loop de fundo.")

    def stop(self) -> None:
        if self._thread is None:
            return
        try:
            if self.application.running:
                self.submit(self.application.stop())
            self.submit(self.application.shutdown())
        finally:
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join()
            self._thread = None
            self.loop.close()
        logger.info("Application do Telegram encerrada.")

    def process_update(self, update_json: dict, timeout: float = UPDATE_TIMEOUT_SECONDS) -> None:
        update = Update.de_json(update_json, self.application.bot)
        self.submit(self.application.process_update(update), timeout)


def create_flask_app(runtime: BackgroundApplication) -> Flask:
    flask_app = Flask(__name__)

    @flask_app.route(WEBHOOK_PATH_SUFFIX, methods=['POST'])
    def telegram_webhook():
        if not request.is_json:
            logger.error("Webhook recebeu uma requisição que não é JSON.")
            return jsonify({"status": "error", "message": "Request must be JSON"}), 400

        try:
            runtime.process_update(request.get_json())
            return jsonify({"status": "ok"}), 200
        except Exception:
            logger.exception("Falha ao processar atualização do Telegram")
            return jsonify({"status": "error", "message": "Failed to process update"}), 500

    return flask_app
