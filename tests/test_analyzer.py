"""Tests for the LLM-backed Analyzer (network calls mocked)."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from notes.errors import AnalysisError
from processing.analyzer import MAX_NOTE_CHARS, Analyzer
from processing.prompts import format_strategy_prompt


def _ollama_response(text):
    response = MagicMock()
    response.json.return_value = {"response": text}
    response.raise_for_status.return_value = None
    return response


class TestPrompt:
    def test_placeholder_filled(self):
        prompt = format_strategy_prompt("we sell {bikes}")
        assert "we sell {bikes}" in prompt
        assert "{transcription}" not in prompt


class TestAnalyzer:
    def test_ollama(self):
        analyzer = Analyzer(provider="ollama", ollama_model="llama3")
        with patch("processing.analyzer.requests.post",
                   return_value=_ollama_response("Raise prices")) as post:
            result = analyzer.analyze("our prices are low")
        assert result == {"strategy": "Raise prices", "model": "llama3"}
        assert "our prices are low" in post.call_args.kwargs["json"]["prompt"]

    def test_ollama_falls_back_to_anthropic(self):
        analyzer = Analyzer(provider="ollama", api_key="key", model="claude-x")
        with patch("processing.analyzer.requests.post",
                   side_effect=requests.ConnectionError("down")), \
                patch.object(Analyzer, "_call_anthropic", return_value="From Claude") as call:
            result = analyzer.analyze("text")
        assert result == {"strategy": "From Claude", "model": "claude-x"}
        call.assert_called_once()

    def test_ollama_failure_without_key(self):
        analyzer = Analyzer(provider="ollama")
        with patch("processing.analyzer.requests.post",
                   side_effect=requests.ConnectionError("down")):
            with pytest.raises(AnalysisError):
                analyzer.analyze("text")

    def test_anthropic_preferred_with_key(self):
        analyzer = Analyzer(provider="anthropic", api_key="key", model="claude-x")
        with patch.object(Analyzer, "_call_anthropic", return_value="Plan") as call, \
                patch("processing.analyzer.requests.post") as post:
            assert analyzer.analyze("text")["strategy"] == "Plan"
        call.assert_called_once()
        post.assert_not_called()

    def test_empty_input(self):
        with pytest.raises(AnalysisError):
            Analyzer(provider="ollama").analyze("  ")

    def test_empty_output(self):
        with patch("processing.analyzer.requests.post", return_value=_ollama_response("")):
            with pytest.raises(AnalysisError):
                Analyzer(provider="ollama").analyze("text")

    def test_long_note_is_chunked_and_consolidated(self):
        analyzer = Analyzer(provider="ollama")
        replies = [_ollama_response("part a"), _ollama_response("part b"),
                   _ollama_response("final")]
        with patch("processing.analyzer.requests.post", side_effect=replies) as post:
            result = analyzer.analyze("x" * (MAX_NOTE_CHARS + 10))
        assert result["strategy"] == "final"
        assert post.call_count == 3
