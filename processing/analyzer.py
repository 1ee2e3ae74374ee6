import logging

import requests

from notes.errors import AnalysisError
from processing.prompts import STRATEGY_SYSTEM_PROMPT, format_strategy_prompt

logger = logging.getLogger(__name__)

MAX_NOTE_CHARS = 100_000


class Analyzer:
    """Turns a business note into a strategy narrative through an LLM.

    Ollama is tried first when configured (or when no Anthropic key is set);
    if it fails and an Anthropic key is available, Anthropic is used instead.
    """

    def __init__(self, provider: str = "anthropic", api_key: str = None,
                 model: str = None, ollama_url: str = None, ollama_model: str = None):
        self.provider = provider
        self.api_key = api_key
        self.model = model or "claude-sonnet-4-5-20250929"
        self.ollama_url = ollama_url or "http://localhost:11434"
        self.ollama_model = ollama_model or "llama3"

    def analyze(self, text: str) -> dict:
        if not text or not text.strip():
            raise AnalysisError("La nota esta vacia")

        try:
            if len(text) > MAX_NOTE_CHARS:
                strategy, model = self._analyze_long(text)
            else:
                strategy, model = self._call_llm(format_strategy_prompt(text))
        except AnalysisError:
            raise
        except Exception as e:
            raise AnalysisError(f"Fallo el analisis: {e}") from e

        if not strategy or not strategy.strip():
            raise AnalysisError("El modelo no devolvio ningun analisis")

        logger.info("Analisis generado con %s (%d caracteres)", model, len(strategy))
        return {"strategy": strategy, "model": model}

    def _analyze_long(self, text: str) -> tuple[str, str]:
        # Split into chunks and analyze each, then consolidate
        chunks = [text[i : i + MAX_NOTE_CHARS] for i in range(0, len(text), MAX_NOTE_CHARS)]

        partials = []
        for idx, chunk in enumerate(chunks):
            logger.info("Analizando parte %d/%d...", idx + 1, len(chunks))
            partial, _ = self._call_llm(format_strategy_prompt(chunk))
            partials.append(partial)

        combined = "\n\n---\n\n".join(partials)
        consolidation_prompt = (
            "Below are several partial strategic analyses of the same conversation. "
            "Consolidate them into a single analysis with the same structure, "
            "removing redundancy.\n\n" + combined
        )
        return self._call_llm(consolidation_prompt)

    def _call_llm(self, user_prompt: str) -> tuple[str, str]:
        if self.provider == "anthropic" and self.api_key:
            return self._call_anthropic(user_prompt), self.model

        if self.provider == "ollama" or not self.api_key:
            try:
                return self._call_ollama(user_prompt), self.ollama_model
            except Exception as e:
                if self.api_key:
                    logger.warning("Ollama fallo (%s), intentando con Anthropic...", e)
                    return self._call_anthropic(user_prompt), self.model
                raise

        return self._call_anthropic(user_prompt), self.model

    def _call_anthropic(self, user_prompt: str) -> str:
        import anthropic

        client = anthropic.Anthropic(api_key=self.api_key)
        message = client.messages.create(
            model=self.model,
            max_tokens=4096,
            system=STRATEGY_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": user_prompt}],
        )
        return message.content[0].text

    def _call_ollama(self, user_prompt: str) -> str:
        response = requests.post(
            f"{self.ollama_url}/api/generate",
            json={
                "model": self.ollama_model,
                "system": STRATEGY_SYSTEM_PROMPT,
                "prompt": user_prompt,
                "stream": False,
            },
            timeout=300,
        )
        response.raise_for_status()
        return response.json()["response"]
