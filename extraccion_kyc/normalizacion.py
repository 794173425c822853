"""
Normalización de nombres e identificadores para conciliar entidades entre páginas
"""

import re
import unicodedata
from typing import Any

_NO_PERMITIDOS = re.compile(r"[^A-Z0-9\s]")
_ESPACIOS = re.compile(r"\s+")


def normalizar_nombre(nombre: Any) -> str:
    """
    Calcula la clave de identidad de un nombre.

    Descompone en NFD, elimina las marcas diacríticas, pasa a mayúsculas,
    elimina todo lo que no sea letra latina, dígito o espacio y colapsa
    los espacios. Nunca falla: None o vacío producen "".

    >>> normalizar_nombre("  José  Pérez-Núñez ")
    'JOSE PEREZNUNEZ'
    """
    if not nombre or not isinstance(nombre, str):
        return ""

    descompuesto = unicodedata.normalize("NFD", nombre)
    sin_acentos = "".join(c for c in descompuesto if not unicodedata.combining(c))
    texto = _NO_PERMITIDOS.sub("", sin_acentos.upper())
    return _ESPACIOS.sub(" ", texto).strip()


def clave_identificador(valor: Any) -> str:
    """Clave para RFC/CURP: como el nombre normalizado pero sin ningún espacio"""
    return normalizar_nombre(valor).replace(" ", "")
