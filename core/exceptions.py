# core/exceptions.py
"""
Excepciones del extractor KYC

Jerarquía:
    ExtraccionError (base)
    ├── ConfigurationError
    ├── UnsupportedDocumentType
    ├── RasterizationFailed
    ├── NoDataExtracted
    ├── ProcessingTimeout
    └── PaginaError (errores por página, se recuperan localmente)
        ├── MalformedExtractionError
        ├── RateLimitExceeded
        └── TransportError
"""

from typing import Any, Dict, Optional


class ExtraccionError(Exception):
    """
    Base de todos los errores del sistema.

    Attributes:
        message: Mensaje técnico (va a los logs)
        mensaje_usuario: Mensaje seguro para mostrar a quien llamó
        details: Contexto adicional para diagnóstico
    """

    mensaje_usuario_default = "Ocurrió un error inesperado al procesar el documento."

    def __init__(self, message: str, mensaje_usuario: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.mensaje_usuario = mensaje_usuario or self.mensaje_usuario_default
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Detalles: {self.details}"
        return self.message


class ConfigurationError(ExtraccionError):
    """Configuración incompleta o inválida"""
    mensaje_usuario_default = "El servicio no está configurado correctamente."


class UnsupportedDocumentType(ExtraccionError):
    """Selector de tipo de documento no reconocido"""

    def __init__(self, tipo: Any):
        self.tipo = tipo
        super().__init__(
            f"Tipo de documento no soportado: {tipo!r}",
            mensaje_usuario="Tipo de documento inválido o no especificado.",
            details={"tipo": repr(tipo)},
        )


class RasterizationFailed(ExtraccionError):
    """El documento no pudo convertirse a imágenes (dañado, protegido o vacío)"""
    mensaje_usuario_default = (
        "No se pudieron generar imágenes a partir del documento. "
        "Asegúrate de que el archivo no esté protegido por contraseña y sea un PDF válido."
    )


class NoDataExtracted(ExtraccionError):
    """Ninguna página aportó datos"""
    mensaje_usuario_default = (
        "No se pudo extraer información estructurada de ninguna página del documento. "
        "Es posible que el documento no sea legible."
    )

    def __init__(self, total_paginas: int):
        self.total_paginas = total_paginas
        super().__init__(
            f"Ninguna de las {total_paginas} páginas produjo datos",
            details={"total_paginas": total_paginas},
        )


class ProcessingTimeout(ExtraccionError):
    """Se agotó el tiempo máximo para procesar el documento"""
    mensaje_usuario_default = "El procesamiento del documento excedió el tiempo máximo permitido."

    def __init__(self, timeout_segundos: float, paginas_pendientes: int):
        self.timeout_segundos = timeout_segundos
        self.paginas_pendientes = paginas_pendientes
        super().__init__(
            f"Timeout de {timeout_segundos}s con {paginas_pendientes} páginas pendientes",
            details={"timeout_segundos": timeout_segundos,
                     "paginas_pendientes": paginas_pendientes},
        )


class PaginaError(ExtraccionError):
    """Error acotado a una sola página"""

    def __init__(self, message: str, numero_pagina: Optional[int] = None,
                 mensaje_usuario: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.numero_pagina = numero_pagina
        details = dict(details or {})
        if numero_pagina is not None:
            details["pagina"] = numero_pagina
        super().__init__(message, mensaje_usuario=mensaje_usuario, details=details)

    def con_pagina(self, numero_pagina: int) -> "PaginaError":
        """Asocia la página si el error se originó antes de conocerla (p. ej. en el cliente)"""
        if self.numero_pagina is None:
            self.numero_pagina = numero_pagina
            self.details["pagina"] = numero_pagina
        return self


class MalformedExtractionError(PaginaError):
    """La respuesta del modelo no es JSON válido o no tiene la forma esperada"""
    mensaje_usuario_default = "La respuesta del modelo no tenía un formato JSON válido."

    def __init__(self, message: str, numero_pagina: Optional[int], contenido: Optional[str]):
        self.contenido = contenido
        super().__init__(message, numero_pagina=numero_pagina)


class RateLimitExceeded(PaginaError):
    """El proveedor del modelo rechazó la petición por límite de tasa o cuota"""
    mensaje_usuario_default = (
        "Se excedió el límite de peticiones al modelo. Intenta de nuevo más tarde."
    )

    def __init__(self, message: str, numero_pagina: Optional[int] = None,
                 retry_delay: Optional[float] = None):
        self.retry_delay = retry_delay
        super().__init__(message, numero_pagina=numero_pagina,
                         details={"retry_delay": retry_delay} if retry_delay is not None else None)


class TransportError(PaginaError):
    """Falla de red o del proveedor distinta al límite de tasa"""
    mensaje_usuario_default = "Error de comunicación con el modelo de extracción."
