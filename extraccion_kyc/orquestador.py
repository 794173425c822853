"""
Orquestador del procesamiento de un documento completo.

documento -> imágenes por página -> fragmentos (en paralelo) -> registro fusionado
"""

import hashlib
import logging
import shutil
import tempfile
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from tqdm import tqdm

from config import Config, ConfiguracionProcesamiento
from core.exceptions import (MalformedExtractionError, NoDataExtracted, ProcessingTimeout,
                             RasterizationFailed, RateLimitExceeded, TransportError)
from core.models import BitacoraPagina, DocumentoMetadata
from processors.image_processor import ImageProcessor
from processors.pdf_processor import PDFProcessor, ordenar_paginas
from .extractor_pagina import ExtractorPagina
from .fusion import fusionar_fragmentos, obtener_politica_nombre
from .models_extraccion import (FragmentoPagina, RegistroFusionado, ResultadoProcesamiento,
                                TipoDocumento)

logger = logging.getLogger(__name__)

ImagenPagina = Union[bytes, str, Path]


def _eliminar_directorio(ruta: Path, reintentos: int, pausa_segundos: float) -> bool:
    """Elimina un directorio con reintentos acotados. Nunca lanza: solo registra."""
    for intento in range(1, max(reintentos, 1) + 1):
        try:
            shutil.rmtree(ruta)
            logger.debug("Directorio temporal eliminado: %s", ruta)
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning("Intento %d/%d de limpieza de %s falló: %s",
                           intento, reintentos, ruta, e)
            if intento < reintentos:
                time.sleep(pausa_segundos)

    logger.error("No se pudo eliminar el directorio temporal %s", ruta)
    return False


@contextmanager
def directorio_temporal(reintentos: int = Config.REINTENTOS_LIMPIEZA,
                        pausa_segundos: float = Config.PAUSA_LIMPIEZA_SEGUNDOS,
                        prefijo: str = "kyc_") -> Iterator[Path]:
    """Directorio exclusivo por petición; se elimina en toda salida, con o sin error"""
    ruta = Path(tempfile.mkdtemp(prefix=prefijo))
    try:
        yield ruta
    finally:
        _eliminar_directorio(ruta, reintentos, pausa_segundos)


def calcular_hash_archivo(ruta_archivo: Path) -> str:
    """Calcula hash SHA256 del archivo"""
    sha256_hash = hashlib.sha256()
    with open(ruta_archivo, "rb") as f:
        for byte_block in iter(lambda: f.read(4096), b""):
            sha256_hash.update(byte_block)
    return sha256_hash.hexdigest()


class ProcesadorDocumentos:
    def __init__(self, cliente=None, config: Optional[ConfiguracionProcesamiento] = None,
                 pdf_processor: Optional[PDFProcessor] = None,
                 image_processor: Optional[ImageProcessor] = None,
                 mostrar_progreso: bool = False):
        self.config = config or ConfiguracionProcesamiento()
        if cliente is None:
            # Import diferido: las pruebas inyectan su propio cliente sin google-genai
            from core.gemini_client import GeminiClient
            cliente = GeminiClient()
        self.cliente = cliente
        self.extractor = ExtractorPagina(self.cliente)
        self.pdf_processor = pdf_processor or PDFProcessor(dpi=self.config.raster_dpi)
        self.image_processor = image_processor or ImageProcessor()
        self.politica_nombre = obtener_politica_nombre(self.config.politica_nombre)
        self.mostrar_progreso = mostrar_progreso

    def procesar_documento(self, imagenes: Sequence[ImagenPagina],
                           tipo_documento: Union[TipoDocumento, str]) -> RegistroFusionado:
        """
        Extrae y fusiona un documento ya rasterizado.

        Args:
            imagenes: Una imagen por página, en orden de página
            tipo_documento: Selector del tipo de documento

        Raises:
            UnsupportedDocumentType, NoDataExtracted, ProcessingTimeout,
            RateLimitExceeded (solo con abortar_por_limite_tasa)
        """
        registro, _ = self._procesar_paginas(imagenes, TipoDocumento.desde_valor(tipo_documento))
        return registro

    def procesar_archivo(self, ruta_archivo: Union[str, Path],
                         tipo_documento: Union[TipoDocumento, str]) -> ResultadoProcesamiento:
        """
        Procesa un archivo PDF o de imagen de principio a fin.

        Las imágenes de página viven en un directorio temporal propio de la
        petición, que se elimina al terminar aunque haya errores.
        """
        tipo = TipoDocumento.desde_valor(tipo_documento)
        ruta_archivo = Path(ruta_archivo)
        extension = ruta_archivo.suffix.lower()

        if not ruta_archivo.is_file():
            raise RasterizationFailed(f"El archivo {ruta_archivo} no existe")
        if extension not in Config.EXTENSIONES_SOPORTADAS:
            raise RasterizationFailed(
                f"Formato no soportado: {extension}",
                mensaje_usuario=f"Formato de archivo no soportado: {extension or 'sin extensión'}"
            )

        start_time = time.time()
        logger.info("Procesando %s como %s", ruta_archivo.name, tipo.value)

        with directorio_temporal(self.config.reintentos_limpieza,
                                 self.config.pausa_limpieza_segundos) as carpeta:
            if extension == ".pdf":
                paginas = self.pdf_processor.convertir_a_imagenes(ruta_archivo, carpeta)
            else:
                paginas = self.pdf_processor.imagen_como_pagina(ruta_archivo, carpeta)

            registro, bitacora = self._procesar_paginas(ordenar_paginas(paginas), tipo)

        stats = ruta_archivo.stat()
        metadata = DocumentoMetadata(
            nombre_archivo=ruta_archivo.name,
            formato=extension,
            tamano_bytes=stats.st_size,
            tipo_documento=tipo.value,
            fecha_procesamiento=datetime.now(),
            hash_archivo=calcular_hash_archivo(ruta_archivo),
            total_paginas=len(bitacora),
            tiempo_procesamiento=time.time() - start_time
        )

        return ResultadoProcesamiento(
            tipo_documento=tipo,
            registro=registro,
            bitacora=bitacora,
            metadata=metadata
        )

    # --- Procesamiento por página ---

    def _procesar_paginas(self, imagenes: Sequence[ImagenPagina], tipo: TipoDocumento
                          ) -> Tuple[RegistroFusionado, List[BitacoraPagina]]:
        total = len(imagenes)
        fragmentos: List[Optional[FragmentoPagina]] = [None] * total
        bitacora: List[Optional[BitacoraPagina]] = [None] * total

        timeout = self.config.timeout_documento_segundos
        limite = time.monotonic() + timeout if timeout else None

        # Se activa si el documento se abandona; los workers en vuelo salen en su siguiente intento
        cancelado = threading.Event()
        executor = ThreadPoolExecutor(max_workers=max(1, self.config.max_workers),
                                      thread_name_prefix="pagina")
        futuros = {
            executor.submit(self._procesar_pagina, imagen, indice + 1, tipo, cancelado): indice
            for indice, imagen in enumerate(imagenes)
        }

        completado = False
        try:
            with tqdm(total=total, desc="Páginas", disable=not self.mostrar_progreso) as pbar:
                pendientes = set(futuros)
                while pendientes:
                    restante = None
                    if limite is not None:
                        restante = limite - time.monotonic()
                        if restante <= 0:
                            logger.error("Timeout de %ss con %d páginas pendientes",
                                         timeout, len(pendientes))
                            raise ProcessingTimeout(timeout, len(pendientes))

                    hechos, pendientes = wait(pendientes, timeout=restante,
                                              return_when=FIRST_COMPLETED)
                    for futuro in hechos:
                        indice = futuros[futuro]
                        # Solo propaga RateLimitExceeded cuando la política es abortar
                        fragmentos[indice], bitacora[indice] = futuro.result()
                        pbar.update(1)
            completado = True
        finally:
            if not completado:
                cancelado.set()
                for futuro in futuros:
                    futuro.cancel()
            executor.shutdown(wait=completado, cancel_futures=not completado)

        exitosas = sum(1 for fragmento in fragmentos if fragmento is not None)
        logger.info("%d/%d páginas aportaron datos", exitosas, total)
        if exitosas == 0:
            raise NoDataExtracted(total)

        registro = fusionar_fragmentos(tipo, fragmentos, politica_nombre=self.politica_nombre)
        return registro, bitacora

    def _procesar_pagina(self, imagen: ImagenPagina, numero_pagina: int, tipo: TipoDocumento,
                         cancelado: Optional[threading.Event] = None
                         ) -> Tuple[Optional[FragmentoPagina], BitacoraPagina]:
        """
        Procesa una página de forma aislada. Los errores de la página se
        registran en la bitácora y la página no aporta datos; solo un límite
        de tasa con abortar_por_limite_tasa escapa de aquí.
        """
        start_time = time.time()
        intentos = 0
        cancelado = cancelado or threading.Event()

        try:
            if cancelado.is_set():
                return None, self._entrada_abandonada(numero_pagina, intentos, start_time)
            datos = imagen if isinstance(imagen, bytes) else Path(imagen).read_bytes()
            preparada = self.image_processor.preparar_imagen(datos)

            while True:
                if cancelado.is_set():
                    return None, self._entrada_abandonada(numero_pagina, intentos, start_time)
                intentos += 1
                try:
                    fragmento = self.extractor.extraer(preparada, numero_pagina, tipo)
                    break
                except (TransportError, RateLimitExceeded) as e:
                    if intentos > self.config.max_reintentos:
                        raise
                    espera = self._espera_reintento(e, intentos)
                    logger.warning("Página %d: %s. Reintento %d/%d en %.1fs",
                                   numero_pagina, e.message, intentos,
                                   self.config.max_reintentos, espera)
                    cancelado.wait(espera)

        except RateLimitExceeded as e:
            if self.config.abortar_por_limite_tasa:
                logger.error("Página %d: límite de tasa, se aborta el documento", numero_pagina)
                raise
            return None, self._entrada_error(numero_pagina, e, intentos, start_time)
        except (MalformedExtractionError, TransportError, RasterizationFailed) as e:
            return None, self._entrada_error(numero_pagina, e, intentos, start_time)
        except OSError as e:
            return None, self._entrada_error(numero_pagina, e, intentos, start_time)

        if fragmento is None:
            return None, BitacoraPagina(
                numero_pagina=numero_pagina,
                status="vacia",
                mensaje="El modelo no devolvió contenido",
                intentos=intentos,
                tiempo_procesamiento=time.time() - start_time
            )

        return fragmento, BitacoraPagina(
            numero_pagina=numero_pagina,
            status="success",
            mensaje="Página procesada exitosamente",
            intentos=intentos,
            tiempo_procesamiento=time.time() - start_time
        )

    def _espera_reintento(self, error: Exception, intento: int) -> float:
        sugerida = getattr(error, "retry_delay", None)
        if sugerida is not None:
            return float(sugerida)
        return self.config.pausa_entre_reintentos_segundos * (2 ** (intento - 1))

    @staticmethod
    def _entrada_abandonada(numero_pagina: int, intentos: int,
                            start_time: float) -> BitacoraPagina:
        logger.info("Página %d abandonada: el documento ya no se procesa", numero_pagina)
        return BitacoraPagina(
            numero_pagina=numero_pagina,
            status="error",
            mensaje="Página abandonada por timeout o cancelación del documento",
            intentos=max(intentos, 1),
            tipo_error="Cancelada",
            tiempo_procesamiento=time.time() - start_time
        )

    @staticmethod
    def _entrada_error(numero_pagina: int, error: Exception, intentos: int,
                       start_time: float) -> BitacoraPagina:
        logger.warning("Página %d omitida: %s", numero_pagina, error)
        return BitacoraPagina(
            numero_pagina=numero_pagina,
            status="error",
            mensaje=str(error),
            intentos=max(intentos, 1),
            tipo_error=type(error).__name__,
            tiempo_procesamiento=time.time() - start_time
        )
