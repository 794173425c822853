"""
Fixtures compartidas: cliente de modelo guionado (sin red) y configuración rápida
"""

import json
import threading

import pytest

from config import ConfiguracionProcesamiento
from extraccion_kyc.orquestador import ProcesadorDocumentos


class ClienteFalso:
    """
    Cliente de modelo guionado por imagen.

    `guion` mapea los bytes de cada página a su respuesta: un string (texto
    crudo), un dict (se serializa a JSON), una excepción (se lanza), un
    callable (se invoca) o una lista de las anteriores para llamadas
    sucesivas; el último elemento se repite.
    """

    def __init__(self, guion):
        self.guion = {k: (list(v) if isinstance(v, list) else v) for k, v in guion.items()}
        self.llamadas = []
        self._lock = threading.Lock()

    def enviar_imagen(self, imagen_bytes, instruccion, mime_type=None):
        with self._lock:
            self.llamadas.append((imagen_bytes, instruccion))
            respuesta = self.guion[imagen_bytes]
            if isinstance(respuesta, list):
                respuesta = respuesta.pop(0) if len(respuesta) > 1 else respuesta[0]

        if isinstance(respuesta, BaseException):
            raise respuesta
        if callable(respuesta):
            respuesta = respuesta()
        if isinstance(respuesta, (dict, list)):
            return json.dumps(respuesta, ensure_ascii=False)
        return respuesta

    def llamadas_por_imagen(self, imagen_bytes):
        return sum(1 for imagen, _ in self.llamadas if imagen == imagen_bytes)


class ImageProcessorIdentidad:
    """Deja pasar los bytes sin tocarlos (las pruebas no usan imágenes reales)"""

    def preparar_imagen(self, imagen_bytes):
        return imagen_bytes


@pytest.fixture
def config_rapida():
    return ConfiguracionProcesamiento(
        max_workers=4,
        max_reintentos=2,
        pausa_entre_reintentos_segundos=0,
        timeout_documento_segundos=10,
        abortar_por_limite_tasa=False,
        reintentos_limpieza=2,
        pausa_limpieza_segundos=0,
        politica_nombre="mas-largo",
    )


@pytest.fixture
def crear_procesador(config_rapida):
    """Fábrica: crear_procesador(guion, **overrides) -> (procesador, cliente)"""
    def _crear(guion, **overrides):
        config = config_rapida
        if overrides:
            valores = dict(vars(config_rapida))
            valores.update(overrides)
            config = ConfiguracionProcesamiento(**valores)
        cliente = ClienteFalso(guion)
        procesador = ProcesadorDocumentos(
            cliente=cliente,
            config=config,
            image_processor=ImageProcessorIdentidad(),
        )
        return procesador, cliente
    return _crear
