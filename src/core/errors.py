# src/core/errors.py
from typing import Optional


class InsightPipelineError(Exception):
    """Erro base de uma execução do pipeline de insights."""

    retryable = False


class ConfigurationError(InsightPipelineError):
    """Configuração obrigatória ausente (ex: chave da API do Gemini)."""


class DataReadError(InsightPipelineError):
    """Falha ao ler gastos/ganhos. Nenhum número parcial deve ser usado."""

    retryable = True


class GenerationError(InsightPipelineError):
    """Falha na chamada ao serviço de geração de texto."""


class GenerationTransportError(GenerationError):
    """Erro de rede/transporte (timeout, conexão recusada...)."""

    retryable = True


class GenerationServiceError(GenerationError):
    """O serviço respondeu com status HTTP fora da faixa 2xx."""

    def __init__(self, status_code: int, message: str = ""):
        super().__init__(f"Gemini respondeu com status {status_code}: {message}".strip())
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


class GenerationEmptyResponse(GenerationError):
    """Resposta vazia ou sem texto de candidato."""


class InsightParseError(InsightPipelineError):
    """O texto do modelo não pôde ser interpretado como insights estruturados."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class StoreWriteError(InsightPipelineError):
    """Falha ao gravar um insight. Afeta apenas o candidato em questão."""


class NotifyDeliveryError(InsightPipelineError):
    """Falha ao entregar a notificação. Nunca é escalada."""
