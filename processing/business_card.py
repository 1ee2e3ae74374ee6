import base64
import binascii
import logging
import re

import requests

from notes.errors import InvalidInput, NoteError
from notes.models import BusinessCard, utc_now
from processing.prompts import CARD_OCR_PROMPT

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
PHONE_RE = re.compile(r"(\+?\d{1,2}\s?)?(\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4})")
NAME_RE = re.compile(r"^[A-Za-z\s.'-]+$")
DATA_URL_RE = re.compile(r"^data:(image/\w+);base64,")


class CardReadError(NoteError):
    status_code = 502


def decode_image_data(image_data: str) -> tuple[bytes, str]:
    """Return (image bytes, media type) from a data URL or bare base64 string."""
    if not image_data:
        raise InvalidInput("No se recibio ninguna imagen")
    media_type = "image/png"
    m = DATA_URL_RE.match(image_data)
    if m:
        media_type = m.group(1)
        image_data = image_data[m.end():]
    try:
        return base64.b64decode(image_data, validate=True), media_type
    except (binascii.Error, ValueError) as e:
        raise InvalidInput(f"Imagen base64 invalida: {e}") from e


def parse_business_card_text(text: str) -> dict:
    """Assign OCR lines to contact fields.

    Each line fills at most one field, checked in order: email, phone, a
    name-like line, then company and role from whatever is left.
    """
    lines = [line.strip() for line in text.split("\n")]
    lines = [line for line in lines if line]

    fields = {"name": "", "email": "", "phone": "", "company": "", "role": ""}
    for line in lines:
        if not fields["email"] and EMAIL_RE.search(line):
            fields["email"] = EMAIL_RE.search(line).group(0)
        elif not fields["phone"] and PHONE_RE.search(line):
            fields["phone"] = PHONE_RE.search(line).group(0)
        elif not fields["name"] and NAME_RE.match(line) and len(line) > 2:
            fields["name"] = line
        elif not fields["company"] and len(line) > 2:
            fields["company"] = line
        elif not fields["role"] and len(line) > 2:
            fields["role"] = line
    return fields


class BusinessCardReader:
    """Reads the printed text of a card photo with a vision-capable LLM."""

    def __init__(self, provider: str = "anthropic", api_key: str = None,
                 model: str = None, ollama_url: str = None, ollama_model: str = None):
        self.provider = provider
        self.api_key = api_key
        self.model = model or "claude-sonnet-4-5-20250929"
        self.ollama_url = ollama_url or "http://localhost:11434"
        self.ollama_model = ollama_model or "llava"

    def read_text(self, image: bytes, media_type: str = "image/png") -> str:
        encoded = base64.b64encode(image).decode("ascii")
        try:
            if self.provider == "anthropic" and self.api_key:
                return self._read_anthropic(encoded, media_type)
            return self._read_ollama(encoded)
        except Exception as e:
            raise CardReadError(f"No se pudo leer la tarjeta: {e}") from e

    def _read_anthropic(self, encoded: str, media_type: str) -> str:
        import anthropic

        client = anthropic.Anthropic(api_key=self.api_key)
        message = client.messages.create(
            model=self.model,
            max_tokens=1024,
            messages=[{
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {"type": "base64", "media_type": media_type, "data": encoded},
                    },
                    {"type": "text", "text": CARD_OCR_PROMPT},
                ],
            }],
        )
        return message.content[0].text

    def _read_ollama(self, encoded: str) -> str:
        response = requests.post(
            f"{self.ollama_url}/api/generate",
            json={
                "model": self.ollama_model,
                "prompt": CARD_OCR_PROMPT,
                "images": [encoded],
                "stream": False,
            },
            timeout=300,
        )
        response.raise_for_status()
        return response.json()["response"]


def process_business_card(reader, cards, image_data: str) -> BusinessCard:
    """Decode, read, parse and store one card photo."""
    image, media_type = decode_image_data(image_data)
    raw_text = reader.read_text(image, media_type)
    if not raw_text or not raw_text.strip():
        raise InvalidInput("No se detecto texto en la imagen")

    card = BusinessCard(
        **parse_business_card_text(raw_text),
        rawText=raw_text,
        imageData=f"data:{media_type};base64,{base64.b64encode(image).decode('ascii')}",
        createdAt=utc_now(),
    )
    card.id = cards.add(card.model_dump(exclude={"id"}))
    logger.info("Tarjeta guardada: %s (%s)", card.id, card.name or "sin nombre")
    return card
