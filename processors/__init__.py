# processors/__init__.py
"""
Módulo de procesadores de documentos
"""

from .pdf_processor import PDFProcessor
from .image_processor import ImageProcessor

__all__ = [
    'PDFProcessor',
    'ImageProcessor'
]
