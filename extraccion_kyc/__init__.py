"""
Módulo de extracción KYC de actas constitutivas y listas de personas bloqueadas
"""

from .models_extraccion import (ActaConstitutiva, EntradaBloqueada, ResultadoProcesamiento,
                                TipoDocumento, cargar_registro, serializar_registro)
from .normalizacion import normalizar_nombre
from .fusion import fusionar_acta_constitutiva, fusionar_lista_bloqueados
from .extractor_pagina import ExtractorPagina
from .orquestador import ProcesadorDocumentos

__all__ = [
    'ActaConstitutiva',
    'EntradaBloqueada',
    'ResultadoProcesamiento',
    'TipoDocumento',
    'cargar_registro',
    'serializar_registro',
    'normalizar_nombre',
    'fusionar_acta_constitutiva',
    'fusionar_lista_bloqueados',
    'ExtractorPagina',
    'ProcesadorDocumentos'
]
