"""
Extracción de un fragmento estructurado a partir de la imagen de una página
"""

import json
import logging
import re
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import ValidationError

from config import PromptTemplates
from core.exceptions import MalformedExtractionError, PaginaError
from .models_extraccion import (FragmentoActaConstitutiva, FragmentoListaBloqueados,
                                FragmentoPagina, TipoDocumento)

logger = logging.getLogger(__name__)

# ```json ... ``` o ``` ... ``` envolviendo toda la respuesta
_CERCA_MARKDOWN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

PROMPTS_POR_TIPO: Dict[TipoDocumento, str] = {
    TipoDocumento.ACTA_CONSTITUTIVA: PromptTemplates.ACTA_CONSTITUTIVA_PAGINA,
    TipoDocumento.LISTA_BLOQUEADOS: PromptTemplates.LISTA_BLOQUEADOS_PAGINA,
}

_MODELOS_POR_TIPO = {
    TipoDocumento.ACTA_CONSTITUTIVA: FragmentoActaConstitutiva,
    TipoDocumento.LISTA_BLOQUEADOS: FragmentoListaBloqueados,
}


def limpiar_respuesta(texto: str) -> str:
    """Quita espacios y las cercas de markdown que a veces agrega el modelo"""
    texto = texto.strip()
    match = _CERCA_MARKDOWN.match(texto)
    if match:
        return match.group(1).strip()
    return texto


class ExtractorPagina:
    """
    Envía una página al modelo de visión y valida su respuesta.

    El extractor no guarda estado entre llamadas: se puede compartir entre
    hilos mientras el cliente también lo permita.
    """

    def __init__(self, cliente, prompts: Optional[Dict[TipoDocumento, str]] = None):
        self.cliente = cliente
        self.prompts = dict(PROMPTS_POR_TIPO)
        if prompts:
            self.prompts.update({TipoDocumento.desde_valor(k): v for k, v in prompts.items()})

    def extraer(self, imagen: Union[bytes, str, Path], numero_pagina: int,
                tipo_documento: Union[TipoDocumento, str]) -> Optional[FragmentoPagina]:
        """
        Extrae el fragmento de una página.

        Args:
            imagen: Bytes de la imagen ya preparada, o ruta a la imagen
            numero_pagina: Número de página (desde 1), solo para logs y errores
            tipo_documento: Selector del tipo de documento

        Returns:
            El fragmento validado, o None si el modelo no devolvió nada

        Raises:
            UnsupportedDocumentType: Tipo desconocido (antes de llamar al modelo)
            MalformedExtractionError: Respuesta no parseable o con forma inesperada
            RateLimitExceeded, TransportError: Propagados desde el cliente
        """
        tipo = TipoDocumento.desde_valor(tipo_documento)
        if isinstance(numero_pagina, bool) or not isinstance(numero_pagina, int) or numero_pagina < 1:
            raise ValueError(f"numero_pagina debe ser un entero positivo (valor: {numero_pagina!r})")

        if isinstance(imagen, (str, Path)):
            imagen = Path(imagen).read_bytes()

        logger.debug("Enviando página %d (%s) al modelo", numero_pagina, tipo.value)
        try:
            respuesta = self.cliente.enviar_imagen(imagen, self.prompts[tipo])
        except PaginaError as e:
            raise e.con_pagina(numero_pagina)

        if respuesta is None or not respuesta.strip():
            logger.info("Página %d: respuesta vacía del modelo", numero_pagina)
            return None

        contenido = limpiar_respuesta(respuesta)
        if not contenido:
            logger.info("Página %d: bloque de código vacío en la respuesta", numero_pagina)
            return None
        datos = self._parsear_json(contenido, numero_pagina, respuesta)
        self._validar_forma(datos, tipo, numero_pagina, respuesta)

        try:
            fragmento = _MODELOS_POR_TIPO[tipo].model_validate(datos)
        except ValidationError as e:
            logger.warning("Página %d: respuesta no cumple el esquema (%d errores)",
                           numero_pagina, e.error_count())
            logger.debug("Página %d: contenido recibido: %s", numero_pagina, respuesta)
            raise MalformedExtractionError(
                f"Página {numero_pagina}: la respuesta no cumple el esquema de "
                f"{tipo.value}: {e.errors(include_url=False)}",
                numero_pagina, respuesta
            ) from e

        return fragmento

    @staticmethod
    def _parsear_json(contenido: str, numero_pagina: int, respuesta: str):
        try:
            return json.loads(contenido)
        except json.JSONDecodeError as e:
            logger.warning("Página %d: JSON inválido en la respuesta del modelo: %s",
                           numero_pagina, e)
            logger.debug("Página %d: contenido recibido: %s", numero_pagina, respuesta)
            raise MalformedExtractionError(
                f"Página {numero_pagina}: JSON inválido ({e.msg}, posición {e.pos})",
                numero_pagina, respuesta
            ) from e

    @staticmethod
    def _validar_forma(datos, tipo: TipoDocumento, numero_pagina: int, respuesta: str) -> None:
        if not isinstance(datos, dict):
            raise MalformedExtractionError(
                f"Página {numero_pagina}: se esperaba un objeto JSON, "
                f"se recibió {type(datos).__name__}",
                numero_pagina, respuesta
            )
        if tipo is TipoDocumento.LISTA_BLOQUEADOS and not isinstance(datos.get("entries"), list):
            raise MalformedExtractionError(
                f"Página {numero_pagina}: la respuesta no contiene la lista 'entries'",
                numero_pagina, respuesta
            )
