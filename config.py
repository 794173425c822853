"""
Configuración del Extractor KYC de documentos legales mexicanos
"""

import os
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv

from core.exceptions import ConfigurationError

load_dotenv(Path(__file__).resolve().parent / ".env")


def _env_int(nombre: str, default: int) -> int:
    valor = os.environ.get(nombre)
    return int(valor) if valor else default


def _env_float(nombre: str, default: float) -> float:
    valor = os.environ.get(nombre)
    return float(valor) if valor else default


def _env_bool(nombre: str, default: bool) -> bool:
    valor = os.environ.get(nombre)
    if valor is None or valor == "":
        return default
    return valor.strip().lower() in ("1", "true", "si", "sí", "yes")


class Config:
    """Configuración general del sistema"""

    # API Keys
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")

    # Configuración de Gemini
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_TEMPERATURE = 0.1
    GEMINI_THINKING_BUDGET = 0
    GEMINI_MAX_OUTPUT_TOKENS = 2048

    # Rasterización
    RASTER_DPI = _env_int("RASTER_DPI", 200)
    MAX_LADO_IMAGEN = 2000
    CALIDAD_JPEG = 90

    # Extensiones de archivo soportadas
    EXTENSIONES_SOPORTADAS = {
        '.pdf': 'application/pdf',
        '.jpg': 'image/jpeg',
        '.jpeg': 'image/jpeg',
        '.png': 'image/png',
        '.tiff': 'image/tiff',
        '.tif': 'image/tiff',
        '.webp': 'image/webp'
    }

    # Configuración de procesamiento
    MAX_WORKERS = _env_int("MAX_WORKERS", 4)
    MAX_REINTENTOS = _env_int("MAX_REINTENTOS", 2)
    PAUSA_ENTRE_REINTENTOS_SEGUNDOS = _env_float("PAUSA_ENTRE_REINTENTOS_SEGUNDOS", 5.0)
    TIMEOUT_DOCUMENTO_SEGUNDOS = _env_float("TIMEOUT_DOCUMENTO_SEGUNDOS", 600.0)
    ABORTAR_POR_LIMITE_TASA = _env_bool("ABORTAR_POR_LIMITE_TASA", False)

    # Limpieza de temporales
    REINTENTOS_LIMPIEZA = 3
    PAUSA_LIMPIEZA_SEGUNDOS = 1.0

    # Conciliación de nombres de socios: 'mas-largo' o 'primero'
    POLITICA_NOMBRE = os.environ.get("POLITICA_NOMBRE", "mas-largo")
    POLITICAS_NOMBRE_VALIDAS = ("mas-largo", "primero")

    @classmethod
    def validar_configuracion(cls):
        """Valida que la configuración esté completa"""
        errores = []

        if not cls.GEMINI_API_KEY:
            errores.append("GEMINI_API_KEY no está configurada en las variables de entorno")

        if cls.MAX_WORKERS < 1:
            errores.append(f"MAX_WORKERS debe ser al menos 1 (valor: {cls.MAX_WORKERS})")

        if cls.MAX_REINTENTOS < 0:
            errores.append(f"MAX_REINTENTOS no puede ser negativo (valor: {cls.MAX_REINTENTOS})")

        if cls.POLITICA_NOMBRE not in cls.POLITICAS_NOMBRE_VALIDAS:
            errores.append(
                f"POLITICA_NOMBRE debe ser una de {cls.POLITICAS_NOMBRE_VALIDAS} "
                f"(valor: {cls.POLITICA_NOMBRE!r})"
            )

        if errores:
            raise ConfigurationError(
                "Errores de configuración:\n" + "\n".join(f"- {error}" for error in errores),
                details={"errores": errores}
            )

        return True

    @classmethod
    def get_configuracion_procesamiento(cls) -> Dict:
        """Retorna configuración para el procesamiento de documentos"""
        return {
            'max_workers': cls.MAX_WORKERS,
            'max_reintentos': cls.MAX_REINTENTOS,
            'pausa_entre_reintentos_segundos': cls.PAUSA_ENTRE_REINTENTOS_SEGUNDOS,
            'timeout_documento_segundos': cls.TIMEOUT_DOCUMENTO_SEGUNDOS,
            'abortar_por_limite_tasa': cls.ABORTAR_POR_LIMITE_TASA,
            'reintentos_limpieza': cls.REINTENTOS_LIMPIEZA,
            'pausa_limpieza_segundos': cls.PAUSA_LIMPIEZA_SEGUNDOS,
            'politica_nombre': cls.POLITICA_NOMBRE,
            'raster_dpi': cls.RASTER_DPI
        }


class ConfiguracionProcesamiento:
    """Parámetros configurables del procesamiento de un documento"""
    def __init__(self, **overrides):
        valores = Config.get_configuracion_procesamiento()
        desconocidos = set(overrides) - set(valores)
        if desconocidos:
            raise ConfigurationError(
                f"Parámetros de procesamiento desconocidos: {sorted(desconocidos)}"
            )
        valores.update(overrides)

        self.max_workers = valores['max_workers']
        self.max_reintentos = valores['max_reintentos']
        self.pausa_entre_reintentos_segundos = valores['pausa_entre_reintentos_segundos']
        self.timeout_documento_segundos = valores['timeout_documento_segundos']
        self.abortar_por_limite_tasa = valores['abortar_por_limite_tasa']
        self.reintentos_limpieza = valores['reintentos_limpieza']
        self.pausa_limpieza_segundos = valores['pausa_limpieza_segundos']
        self.politica_nombre = valores['politica_nombre']
        self.raster_dpi = valores['raster_dpi']


class PromptTemplates:
    """Templates de prompts para Gemini"""

    SISTEMA = (
        "Eres un asistente experto en extracción de datos de documentos legales mexicanos. "
        "Analiza la imagen de la página proporcionada y devuelve la información solicitada "
        "ÚNICAMENTE en formato JSON válido. No incluyas explicaciones ni texto fuera del JSON."
    )

    ACTA_CONSTITUTIVA_PAGINA = """Analiza la imagen de ESTA PÁGINA de un acta constitutiva mexicana. Extrae SOLAMENTE la información CLAVE que encuentres VISIBLE EN ESTA PÁGINA y devuélvela en formato JSON.

Campos a extraer SI ESTÁN PRESENTES EN ESTA PÁGINA (usa estas claves exactas en inglés):
- "companyName": Razón o denominación social completa si aparece claramente.
- "companyRfc": El RFC de la sociedad (12 caracteres) si aparece claramente asociado a la razón social.
- "incorporationDate": Fecha de constitución si se menciona explícitamente en esta página.
- "partners": Un array de objetos, SOLO para los socios cuyos detalles aparezcan EN ESTA PÁGINA. Incluye solo los campos encontrados en esta página:
    - "name": Nombre completo.
    - "rfc": RFC (13 caracteres).
    - "curp": CURP (18 caracteres).
    - "nationality": Nacionalidad.
    - "address": Domicilio.
    - "contribution": Aporte.
- "businessPurposeChunk": Fragmento del objeto social descrito EN ESTA PÁGINA.
- "capital": Un objeto con "amount", "currency", "description" SI se define el capital social EN ESTA PÁGINA.
- "duration": Duración de la sociedad si se especifica EN ESTA PÁGINA.
- "managementBodyChunk": Descripción del órgano de administración o nombres de miembros mencionados EN ESTA PÁGINA.
- "legalRepresentativeNames": Array con los nombres de representantes legales o apoderados mencionados EN ESTA PÁGINA.
- "notaryInfo": Objeto con "name", "number", "location" SI se menciona información del notario o corredor EN ESTA PÁGINA.
- "registrationDataChunk": Datos de inscripción en el Registro Público de Comercio mencionados EN ESTA PÁGINA.

MUY IMPORTANTE:
- Si un campo NO aparece en esta página específica, usa null. Si no hay socios en esta página, devuelve "partners": [].
- NO inventes información ni intentes recordar datos de otras páginas. Analiza solo la imagen proporcionada.
- Tu respuesta debe ser únicamente el objeto JSON válido, sin explicaciones, comentarios, ni formato markdown."""

    LISTA_BLOQUEADOS_PAGINA = """Analiza la imagen de ESTA PÁGINA de una lista de personas bloqueadas (LPB) o sancionadas. Extrae TODAS las entradas de personas o entidades que encuentres VISIBLES EN ESTA PÁGINA y devuélvelas como un array JSON dentro de la clave "entries".

Para cada entrada encontrada EN ESTA PÁGINA incluye un objeto con los siguientes campos (usa estas claves exactas en inglés):
- "fullName": Nombre completo de la persona o entidad.
- "type": Tipo ('Persona Física' o 'Entidad/Empresa'). Infiere si no está explícito.
- "aliases": Array de strings con los alias o nombres alternativos encontrados EN ESTA PÁGINA para esta entrada.
- "rfc": RFC si se encuentra EN ESTA PÁGINA para esta entrada.
- "curp": CURP si se encuentra EN ESTA PÁGINA para esta entrada.
- "birthDate": Fecha de nacimiento si se encuentra EN ESTA PÁGINA para esta entrada.
- "address": Domicilio o dirección si se encuentra EN ESTA PÁGINA para esta entrada.
- "reason": Motivo del bloqueo o sanción si se menciona EN ESTA PÁGINA para esta entrada.
- "sourceList": Nombre o referencia de la lista de origen si se menciona EN ESTA PÁGINA.

MUY IMPORTANTE:
- Si no encuentras NINGUNA entrada en esta página, devuelve {"entries": []}.
- Si para una entrada no encuentras alguno de los campos, usa null para ese campo.
- NO inventes información ni intentes recordar datos de otras páginas. Analiza solo la imagen proporcionada.
- Tu respuesta debe ser únicamente el objeto JSON válido (con la clave "entries"), sin explicaciones, comentarios, ni formato markdown."""


# Mensajes del sistema
MENSAJES = {
    'inicio': "🚀 Extractor KYC de documentos legales",
    'archivo_no_existe': "❌ Error: El archivo {ruta} no existe",
    'procesando': "📄 Procesando {archivo} como {tipo}",
    'paginas_generadas': "🖼️ {total} páginas generadas",
    'procesamiento_exitoso': "✅ Documento procesado: {exitosas}/{total} páginas con datos",
    'procesamiento_error': "❌ Error procesando documento: {error}",
    'resultado_guardado': "💾 Resultado guardado en {ruta}",
    'word_generado': "📝 Reporte Word generado en {ruta}",
    'bitacora_guardada': "📋 Bitácora guardada en {ruta}",
    'proceso_interrumpido': "⚠️ Proceso interrumpido por el usuario"
}
