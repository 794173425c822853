"""
Cliente para interacción con Gemini API (modelo de visión)
"""

import logging
import os
import re
from typing import Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from config import Config, PromptTemplates
from core.exceptions import ConfigurationError, RateLimitExceeded, TransportError

logger = logging.getLogger(__name__)

# Ej. "Please retry in 18.8s" dentro del mensaje de un 429
_RETRY_DELAY_RE = re.compile(r"retry[^\d]*(\d+(?:\.\d+)?)\s*s", re.IGNORECASE)


def _parse_retry_delay(error: Exception) -> Optional[float]:
    """Extrae el tiempo de espera sugerido por un error 429, si viene"""
    delay = getattr(error, "retry_delay", None)
    if isinstance(delay, (int, float)):
        return float(delay)
    match = _RETRY_DELAY_RE.search(str(error))
    if match:
        return float(match.group(1))
    return None


def _es_limite_de_tasa(error: genai_errors.APIError) -> bool:
    return error.code == 429 or getattr(error, "status", None) == "RESOURCE_EXHAUSTED"


class GeminiClient:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 temperature: Optional[float] = None,
                 max_output_tokens: Optional[int] = None,
                 system_prompt: Optional[str] = None):
        self.api_key = api_key or Config.GEMINI_API_KEY or os.environ.get("GEMINI_API_KEY")
        if not self.api_key:
            raise ConfigurationError("API Key de Gemini no encontrada (GEMINI_API_KEY)")

        self.client = genai.Client(api_key=self.api_key)
        self.model = model or Config.GEMINI_MODEL
        self.temperature = Config.GEMINI_TEMPERATURE if temperature is None else temperature
        self.max_output_tokens = max_output_tokens or Config.GEMINI_MAX_OUTPUT_TOKENS
        self.system_prompt = system_prompt or PromptTemplates.SISTEMA

    def enviar_imagen(self, imagen_bytes: bytes, instruccion: str,
                      mime_type: Optional[str] = None) -> Optional[str]:
        """
        Envía una imagen de página con su instrucción y devuelve el texto crudo
        de la respuesta (se espera JSON). Una sola petición, sin reintentos:
        la política de reintentos vive en el orquestador.

        Raises:
            RateLimitExceeded: el proveedor respondió 429 / RESOURCE_EXHAUSTED
            TransportError: cualquier otra falla de red o del proveedor
        """
        parts = [
            types.Part.from_bytes(
                mime_type=mime_type or self._detect_image_mime(imagen_bytes),
                data=imagen_bytes
            ),
            types.Part.from_text(text=instruccion),
        ]

        contents = [
            types.Content(role="user", parts=parts)
        ]

        config = types.GenerateContentConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            thinking_config=types.ThinkingConfig(thinking_budget=Config.GEMINI_THINKING_BUDGET),
            response_mime_type="application/json",
            system_instruction=[
                types.Part.from_text(text=self.system_prompt)
            ]
        )

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=contents,
                config=config
            )
        except genai_errors.APIError as e:
            if _es_limite_de_tasa(e):
                delay = _parse_retry_delay(e)
                logger.warning("Límite de tasa de Gemini (retry sugerido: %s)", delay)
                raise RateLimitExceeded(f"Límite de tasa de Gemini: {e}", retry_delay=delay) from e
            raise TransportError(f"Error de la API de Gemini ({e.code}): {e}") from e
        except (httpx.HTTPError, ConnectionError, TimeoutError, OSError) as e:
            raise TransportError(f"Error de red al contactar Gemini: {e}") from e

        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            logger.debug("Tokens usados: prompt=%s respuesta=%s",
                         getattr(usage, "prompt_token_count", None),
                         getattr(usage, "candidates_token_count", None))

        return response.text

    def _detect_image_mime(self, imagen_bytes: bytes) -> str:
        """Detecta tipo MIME de imagen por sus bytes iniciales"""
        if imagen_bytes.startswith(b"\xff\xd8\xff"):
            return "image/jpeg"
        elif imagen_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
            return "image/png"
        elif imagen_bytes[:4] == b"RIFF" and imagen_bytes[8:12] == b"WEBP":
            return "image/webp"
        else:
            return "image/jpeg"  # Default
