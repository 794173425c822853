# processors/image_processor.py
"""
Procesador para imágenes de página: las prepara antes de enviarlas al modelo
"""

import io
import logging
from typing import Optional

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from config import Config
from core.exceptions import RasterizationFailed

logger = logging.getLogger(__name__)


class ImageProcessor:
    def __init__(self, max_lado: Optional[int] = None, calidad_jpeg: Optional[int] = None):
        self.max_lado = max_lado or Config.MAX_LADO_IMAGEN
        self.calidad_jpeg = calidad_jpeg or Config.CALIDAD_JPEG

    def preparar_imagen(self, imagen_bytes: bytes) -> bytes:
        """
        Ajusta la imagen dentro de max_lado x max_lado sin agrandarla, la
        enfoca, normaliza el contraste y la recodifica como JPEG.
        Si el procesamiento falla, intenta una recodificación simple a JPEG.

        Raises:
            RasterizationFailed: Ni siquiera la recodificación simple fue posible
        """
        try:
            with Image.open(io.BytesIO(imagen_bytes)) as imagen:
                imagen = self._a_rgb(imagen)
                imagen.thumbnail((self.max_lado, self.max_lado))
                imagen = imagen.filter(ImageFilter.SHARPEN)
                imagen = ImageOps.autocontrast(imagen)
                return self._a_jpeg(imagen, self.calidad_jpeg)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning("Error en procesamiento de imagen: %s", e)

        # Segundo intento: convertir a JPEG sin procesamiento adicional
        try:
            with Image.open(io.BytesIO(imagen_bytes)) as imagen:
                return self._a_jpeg(self._a_rgb(imagen))
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise RasterizationFailed(f"Imagen de página ilegible: {e}") from e

    @staticmethod
    def _a_rgb(imagen: Image.Image) -> Image.Image:
        # JPEG no admite transparencia ni paletas
        if imagen.mode not in ("RGB", "L"):
            return imagen.convert("RGB")
        return imagen

    @staticmethod
    def _a_jpeg(imagen: Image.Image, calidad: Optional[int] = None) -> bytes:
        salida = io.BytesIO()
        if calidad:
            imagen.save(salida, format="JPEG", quality=calidad)
        else:
            imagen.save(salida, format="JPEG")
        return salida.getvalue()
