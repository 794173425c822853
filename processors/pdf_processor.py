# processors/pdf_processor.py
"""
Procesador para archivos PDF: rasteriza cada página a una imagen PNG
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

from pdf2image import convert_from_path
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image, UnidentifiedImageError

from config import Config
from core.exceptions import RasterizationFailed

logger = logging.getLogger(__name__)

_NOMBRE_PAGINA = re.compile(r"^page_(\d+)\.png$")


def nombre_pagina(numero: int) -> str:
    return f"page_{numero}.png"


def numero_de_pagina(ruta: Path) -> Optional[int]:
    """Número de página a partir de un nombre page_<n>.png, o None"""
    match = _NOMBRE_PAGINA.match(Path(ruta).name)
    return int(match.group(1)) if match else None


def ordenar_paginas(rutas: List[Path]) -> List[Path]:
    """Orden numérico de página (page_10 va después de page_9)"""
    return sorted(rutas, key=lambda r: (numero_de_pagina(r) is None, numero_de_pagina(r) or 0, r.name))


class PDFProcessor:
    def __init__(self, dpi: Optional[int] = None):
        self.dpi = dpi or Config.RASTER_DPI

    def convertir_a_imagenes(self, ruta_pdf: Path, carpeta_salida: Path) -> List[Path]:
        """
        Rasteriza un PDF página por página

        Returns:
            List[Path]: Rutas page_1.png ... page_N.png en orden de página

        Raises:
            RasterizationFailed: PDF dañado, protegido, vacío o sin poppler
        """
        ruta_pdf = Path(ruta_pdf)
        carpeta_salida = Path(carpeta_salida)
        carpeta_salida.mkdir(parents=True, exist_ok=True)

        try:
            paginas = convert_from_path(str(ruta_pdf), dpi=self.dpi, fmt="png")
        except PDFInfoNotInstalledError as e:
            raise RasterizationFailed(
                f"Poppler no está instalado o no está en el PATH: {e}",
                mensaje_usuario="El servidor no tiene disponible el convertidor de PDF."
            ) from e
        except (PDFPageCountError, PDFSyntaxError) as e:
            raise RasterizationFailed(f"No se pudo leer el PDF {ruta_pdf.name}: {e}") from e
        except OSError as e:
            raise RasterizationFailed(f"Error de E/S rasterizando {ruta_pdf.name}: {e}") from e

        if not paginas:
            raise RasterizationFailed(f"El PDF {ruta_pdf.name} no produjo ninguna página")

        rutas = []
        for numero, pagina in enumerate(paginas, start=1):
            ruta = carpeta_salida / nombre_pagina(numero)
            pagina.save(ruta, format="PNG")
            rutas.append(ruta)

        logger.info("%s rasterizado: %d páginas a %d dpi", ruta_pdf.name, len(rutas), self.dpi)
        return rutas

    def imagen_como_pagina(self, ruta_imagen: Path, carpeta_salida: Path) -> List[Path]:
        """Una imagen suelta se trata como documento de una sola página"""
        ruta_imagen = Path(ruta_imagen)
        carpeta_salida = Path(carpeta_salida)
        carpeta_salida.mkdir(parents=True, exist_ok=True)

        destino = carpeta_salida / nombre_pagina(1)
        try:
            with Image.open(ruta_imagen) as imagen:
                imagen.save(destino, format="PNG")
        except (UnidentifiedImageError, OSError) as e:
            raise RasterizationFailed(f"No se pudo leer la imagen {ruta_imagen.name}: {e}") from e

        return [destino]
