from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DocumentoMetadata(BaseModel):
    """Metadata del documento original"""
    nombre_archivo: str
    formato: str
    tamano_bytes: int
    tipo_documento: str
    fecha_procesamiento: datetime
    hash_archivo: Optional[str] = None
    total_paginas: Optional[int] = None
    tiempo_procesamiento: Optional[float] = None


class BitacoraPagina(BaseModel):
    """Entrada de bitácora: qué pasó con una página"""
    numero_pagina: int = Field(..., ge=1)
    status: str  # 'success', 'vacia', 'error'
    mensaje: str
    intentos: int = Field(1, ge=1)
    tipo_error: Optional[str] = None
    tiempo_procesamiento: Optional[float] = None
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def aporto_datos(self) -> bool:
        return self.status == "success"
