# tests/test_parser.py
import json
import unittest

from src.core import parser
from src.core.errors import GenerationEmptyResponse, InsightParseError
from src.core.models import InsightType, UiInsight
from src.utils.text_utils import content_hash

CLEAN = '[{"type": "Alert", "title": "Gasto alto", "body": "Food somou R$95.00", "category": "Food"}, ' \
        '{"type": "Advice", "title": "Guarde mais", "body": "Separe R$50.00 por semana", "category": null}]'


def envelope(*texts):
    return json.dumps({"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]})


class TestExtractReplyText(unittest.TestCase):
    def test_concatenates_parts(self):
        self.assertEqual(parser.extract_reply_text(envelope('[{"a":', ' 1}]')), '[{"a": 1}]')

    def test_accepts_dict_and_bytes(self):
        raw = envelope("oi")
        self.assertEqual(parser.extract_reply_text(json.loads(raw)), "oi")
        self.assertEqual(parser.extract_reply_text(raw.encode("utf-8")), "oi")

    def test_no_candidates(self):
        with self.assertRaises(GenerationEmptyResponse):
            parser.extract_reply_text('{"candidates": []}')

    def test_candidate_without_text(self):
        with self.assertRaises(GenerationEmptyResponse):
            parser.extract_reply_text('{"candidates": [{"content": {"parts": []}}]}')

    def test_envelope_not_json(self):
        with self.assertRaises(InsightParseError) as ctx:
            parser.extract_reply_text("<html>erro</html>")
        self.assertEqual(ctx.exception.raw_text, "<html>erro</html>")


class TestParseCandidates(unittest.TestCase):
    def test_clean_array(self):
        candidates = parser.parse_candidates_text(CLEAN)
        self.assertEqual(len(candidates), 2)
        alert, advice = candidates
        self.assertEqual(alert.type, InsightType.ALERT)
        self.assertEqual(alert.category, "Food")
        self.assertEqual(alert.content_hash, content_hash("Gasto alto", "Food somou R$95.00"))
        self.assertEqual(advice.type, InsightType.ADVICE)
        self.assertIsNone(advice.category)

    def test_fenced_reply_equals_clean_reply(self):
        fenced = f"```json\n{CLEAN}\n```"
        self.assertEqual(parser.parse_candidates_text(fenced), parser.parse_candidates_text(CLEAN))

    def test_backticks_in_body_survive_fence_stripping(self):
        reply = '```json\n[{"type": "Advice", "title": "Exportar", "body": "Use o comando ```json para exportar"}]\n```'
        candidates = parser.parse_candidates_text(reply)
        self.assertEqual(candidates[0].body, "Use o comando ```json para exportar")
        self.assertEqual(candidates[0].content_hash, content_hash("Exportar", "Use o comando ```json para exportar"))

    def test_text_around_array(self):
        wrapped = f"Aqui estão os insights:\n{CLEAN}\nEspero ter ajudado!"
        self.assertEqual(parser.parse_candidates_text(wrapped), parser.parse_candidates_text(CLEAN))

    def test_single_object_is_wrapped(self):
        obj = '{"type": "Alert", "title": "Gasto alto", "body": "Food somou R$95.00", "category": "Food"}'
        self.assertEqual(parser.parse_candidates_text(obj), parser.parse_candidates_text(f"[{obj}]"))

    def test_object_with_inner_array_is_not_sliced(self):
        obj = 'Resposta: {"type": "Alert", "title": "Meses", "body": "Veja [jan, fev]", "category": null}'
        candidates = parser.parse_candidates_text(obj)
        self.assertEqual(len(candidates), 1)
        self.assertEqual(candidates[0].body, "Veja [jan, fev]")

    def test_unknown_or_missing_type_defaults_to_advice(self):
        candidates = parser.parse_candidates_text('[{"type": "Tip", "title": "a", "body": "b"}, {"title": "c", "body": "d"}]')
        self.assertEqual([c.type for c in candidates], [InsightType.ADVICE, InsightType.ADVICE])

    def test_type_is_case_insensitive(self):
        candidates = parser.parse_candidates_text('[{"type": "alert", "title": "a", "body": "b"}]')
        self.assertEqual(candidates[0].type, InsightType.ALERT)

    def test_missing_required_field(self):
        with self.assertRaises(InsightParseError):
            parser.parse_candidates_text('[{"type": "Alert", "title": "sem corpo"}]')

    def test_non_object_element(self):
        with self.assertRaises(InsightParseError):
            parser.parse_candidates_text('["Gasto alto", "Guarde mais"]')

    def test_garbage_keeps_raw_text(self):
        with self.assertRaises(InsightParseError) as ctx:
            parser.parse_candidates_text("Desculpe, não posso ajudar com isso.")
        self.assertEqual(ctx.exception.raw_text, "Desculpe, não posso ajudar com isso.")

    def test_empty_array(self):
        self.assertEqual(parser.parse_candidates_text("[]"), [])

    def test_from_envelope(self):
        candidates = parser.parse_candidates(envelope("```json\n", CLEAN, "\n```"))
        self.assertEqual(len(candidates), 2)


class TestParseUiInsights(unittest.TestCase):
    def test_icons(self):
        text = '[{"text": "Você gastou R$95.00 em Food", "icon": "ALERT"}, {"text": "Saldo positivo", "icon": "rocket"}, {"text": "Sem ícone"}]'
        self.assertEqual(parser.parse_ui_text(text), [
            UiInsight("Você gastou R$95.00 em Food", "alert"),
            UiInsight("Saldo positivo", "default"),
            UiInsight("Sem ícone", "default"),
        ])

    def test_missing_text(self):
        with self.assertRaises(InsightParseError):
            parser.parse_ui_text('[{"icon": "info"}]')

    def test_from_envelope(self):
        insights = parser.parse_ui_insights(envelope('{"text": "Economize", "icon": "trend"}'))
        self.assertEqual(insights, [UiInsight("Economize", "trend")])


if __name__ == '__main__':
    unittest.main()
