# src/core/parser.py
"""
Interpreta a resposta do Gemini.

A resposta deveria ser um array JSON, mas o modelo às vezes manda cercas de
markdown, texto em volta ou um objeto solto. A decodificação segue sempre a
mesma ordem: array -> objeto (embrulhado em lista de um elemento) -> erro.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Union

from src.core.errors import GenerationEmptyResponse, InsightParseError
from src.core.models import InsightCandidate, InsightType, UiInsight
from src.core.prompts import UI_ICONS
from src.utils.text_utils import content_hash, strip_code_fences

logger = logging.getLogger(__name__)

Envelope = Union[str, bytes, Dict[str, Any]]


def extract_reply_text(envelope: Envelope) -> str:
    """Concatena o texto das partes do primeiro candidato do envelope."""
    if isinstance(envelope, (str, bytes)):
        try:
            envelope = json.loads(envelope)
        except (json.JSONDecodeError, ValueError) as e:
            raise InsightParseError(f"Envelope do Gemini não é JSON: {e}", raw_text=str(envelope)) from e

    if not isinstance(envelope, dict):
        raise InsightParseError("Envelope do Gemini com formato inesperado.", raw_text=str(envelope))

    candidates = envelope.get("candidates") or []
    if not candidates:
        raise GenerationEmptyResponse("Gemini não retornou nenhum candidato.")

    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise GenerationEmptyResponse("O candidato do Gemini não tem texto.")
    return text


def _loads_slice(text: str, open_char: str, close_char: str) -> Optional[Any]:
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(text[start:end + 1])
    except (json.JSONDecodeError, ValueError):
        return None


def _decode_array(text: str) -> Optional[List[Any]]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        brace = text.find("{")
        # um objeto que aparece antes do primeiro "[" não é um array embrulhado em texto
        if brace != -1 and brace < text.find("["):
            return None
        data = _loads_slice(text, "[", "]")
    return data if isinstance(data, list) else None


def _decode_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        data = _loads_slice(text, "{", "}")
    return data if isinstance(data, dict) else None


def decode_items(text: str) -> List[Dict[str, Any]]:
    """Texto do modelo -> lista de objetos JSON."""
    cleaned = strip_code_fences(text)

    items = _decode_array(cleaned)
    if items is None:
        obj = _decode_object(cleaned)
        if obj is None:
            logger.warning(f"Resposta do Gemini não pôde ser decodificada: {text!r}")
            raise InsightParseError("A resposta do modelo não é um array nem um objeto JSON.", raw_text=text)
        items = [obj]

    for item in items:
        if not isinstance(item, dict):
            raise InsightParseError(f"Elemento inesperado na resposta do modelo: {item!r}", raw_text=text)
    return items


def _required_text(item: Dict[str, Any], key: str, raw_text: str) -> str:
    value = item.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InsightParseError(f"Campo obrigatório '{key}' ausente ou vazio.", raw_text=raw_text)
    return value.strip()


def parse_candidates_text(text: str) -> List[InsightCandidate]:
    """Modo alerta/conselho: campos type/title/body/category."""
    candidates = []
    for item in decode_items(text):
        title = _required_text(item, "title", text)
        body = _required_text(item, "body", text)
        category = item.get("category")
        if not isinstance(category, str) or not category.strip():
            category = None
        candidates.append(InsightCandidate(
            type=InsightType.from_raw(item.get("type")),
            title=title,
            body=body,
            category=category,
            content_hash=content_hash(title, body),
        ))
    return candidates


def parse_ui_text(text: str) -> List[UiInsight]:
    """Modo de dicas da interface: campos text/icon."""
    insights = []
    for item in decode_items(text):
        icon = item.get("icon")
        icon = icon.strip().lower() if isinstance(icon, str) else ""
        insights.append(UiInsight(
            text=_required_text(item, "text", text),
            icon=icon if icon in UI_ICONS else "default",
        ))
    return insights


def parse_candidates(envelope: Envelope) -> List[InsightCandidate]:
    return parse_candidates_text(extract_reply_text(envelope))


def parse_ui_insights(envelope: Envelope) -> List[UiInsight]:
    return parse_ui_text(extract_reply_text(envelope))
