# src/core/ai.py
import logging
import threading
import time
from typing import Callable, Dict, Any, Optional

import requests

from src.config import (
    API_KEY_REFRESH_SECONDS,
    GEMINI_API_URL,
    GEMINI_MODEL,
    GEMINI_TIMEOUT_SECONDS,
    load_google_api_key,
)
from src.core.errors import (
    ConfigurationError,
    GenerationEmptyResponse,
    GenerationServiceError,
    GenerationTransportError,
)

logger = logging.getLogger(__name__)


class ApiKeyProvider:
    """
    Resolve a chave da API do Gemini e mantém em cache.

    A chave é relida da fonte no máximo uma vez a cada `refresh_seconds`
    (padrão: 1 hora).
    """

    def __init__(self, loader: Callable[[], Optional[str]] = load_google_api_key,
                 refresh_seconds: float = API_KEY_REFRESH_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self._loader = loader
        self._refresh_seconds = refresh_seconds
        self._clock = clock
        self._cached: Optional[str] = None
        self._loaded_at: Optional[float] = None
        self._lock = threading.Lock()

    def get(self) -> str:
        with self._lock:
            now = self._clock()
            expired = self._loaded_at is None or now - self._loaded_at >= self._refresh_seconds
            if expired:
                key = self._loader()
                if key:
                    self._cached = key
                    self._loaded_at = now
            if not self._cached:
                raise ConfigurationError("GOOGLE_API_KEY não configurada.")
            return self._cached


def build_request_body(prompt: str) -> Dict[str, Any]:
    """Envelope esperado pelo endpoint generateContent."""
    return {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}


class GenerationClient:
    """
    Envia um prompt ao Gemini e devolve o corpo bruto da resposta.

    Não faz retry: cada chamada é cobrada, e a decisão de tentar de novo é de
    quem orquestra o pipeline.
    """

    def __init__(self, api_key_provider: ApiKeyProvider, model: str = GEMINI_MODEL,
                 timeout: float = GEMINI_TIMEOUT_SECONDS, api_url: str = GEMINI_API_URL):
        self.api_key_provider = api_key_provider
        self.model = model
        self.timeout = timeout
        self.api_url = api_url

    @property
    def endpoint(self) -> str:
        return self.api_url.format(model=self.model)

    def generate(self, prompt: str) -> str:
        api_key = self.api_key_provider.get()
        try:
            response = requests.post(
                self.endpoint,
                params={"key": api_key},
                headers={"Content-Type": "application/json"},
                json=build_request_body(prompt),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Erro ao conectar com Gemini: {e}")
            raise GenerationTransportError(f"Falha de transporte ao chamar o Gemini: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Gemini respondeu {response.status_code}")
            raise GenerationServiceError(response.status_code, (response.text or "")[:200])

        body = response.text
        if not body or not body.strip():
            raise GenerationEmptyResponse("Gemini retornou um corpo vazio.")
        logger.debug(f"DEBUG Gemini response raw: {body}")
        return body
