"""
Fusión de fragmentos por página en un solo registro por documento.

Cada página se extrae sin contexto de las demás, así que la misma persona
puede aparecer varias veces, con acentos distintos o con datos parciales.
Aquí se concilian esas observaciones. Los fragmentos deben llegar en orden
de página: el primer valor encontrado gana y la política de nombres depende
de ese orden.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from core.exceptions import ConfigurationError
from .models_extraccion import (ActaConstitutiva, EntradaBloqueada, EntradaParcial,
                                FragmentoActaConstitutiva, FragmentoListaBloqueados,
                                RegistroFusionado, Socio, SocioParcial, TipoDocumento)
from .normalizacion import clave_identificador, normalizar_nombre

logger = logging.getLogger(__name__)

# (nombre_actual, nombre_entrante) -> nombre que se conserva
PoliticaNombre = Callable[[str, str], str]


def preferir_nombre_mas_largo(nombre_actual: str, nombre_entrante: str) -> str:
    """
    Conserva el nombre estrictamente más largo.

    Heurística: el nombre más largo suele traer más detalle (segundos nombres,
    segundo apellido), pero también puede ser un artefacto de OCR.
    """
    if len(nombre_entrante) > len(nombre_actual):
        return nombre_entrante
    return nombre_actual


def conservar_primer_nombre(nombre_actual: str, nombre_entrante: str) -> str:
    """El primer nombre visto nunca se reemplaza"""
    return nombre_actual


POLITICAS_NOMBRE: Dict[str, PoliticaNombre] = {
    "mas-largo": preferir_nombre_mas_largo,
    "primero": conservar_primer_nombre,
}


def obtener_politica_nombre(nombre: str) -> PoliticaNombre:
    try:
        return POLITICAS_NOMBRE[nombre]
    except KeyError:
        raise ConfigurationError(
            f"Política de nombre desconocida: {nombre!r}. "
            f"Opciones: {', '.join(POLITICAS_NOMBRE)}"
        ) from None


# --- Acta constitutiva ---

_CAMPOS_SOCIO = ("name", "rfc", "curp", "nationality", "address", "contribution")
_CAMPOS_ESCALARES_ACTA = ("company_name", "company_rfc", "incorporation_date",
                          "capital", "duration", "notary_info")
_CAMPOS_TEXTO_ACTA = {
    "business_purpose_chunk": "business_purpose",
    "management_body_chunk": "management_body",
    "registration_data_chunk": "registration_data",
}


class _RegistroSocios:
    """
    Arena de socios con un índice por tipo de clave (RFC, CURP, nombre
    normalizado). Todas las claves de un socio apuntan al mismo slot, y una
    clave registrada nunca se reasigna a otro socio.
    """

    def __init__(self, politica_nombre: PoliticaNombre):
        self._politica_nombre = politica_nombre
        self._socios: List[Dict[str, Optional[str]]] = []
        self._por_rfc: Dict[str, int] = {}
        self._por_curp: Dict[str, int] = {}
        self._por_nombre: Dict[str, int] = {}

    def agregar(self, parcial: SocioParcial) -> None:
        if not parcial.tiene_identificador():
            logger.debug("Socio sin nombre, RFC ni CURP descartado: %s", parcial)
            return

        datos = {campo: getattr(parcial, campo) for campo in _CAMPOS_SOCIO}
        for campo in ("rfc", "curp"):
            if datos[campo]:
                datos[campo] = datos[campo].upper()

        claves = self._claves(datos)
        slot = self._buscar(datos, *claves)

        if slot is None:
            self._socios.append(datos)
            slot = len(self._socios) - 1
        else:
            self._completar(self._socios[slot], datos)

        # Claves del socio ya fusionado (p. ej. un RFC recién completado) más la
        # variante de nombre entrante; un RFC o CURP en conflicto no se indexa
        self._registrar(slot, *self._claves(self._socios[slot]))
        self._registrar(slot, "", "", claves[2])

    def socios(self) -> List[Socio]:
        return [Socio(**datos) for datos in self._socios]

    @staticmethod
    def _claves(datos: Dict[str, Optional[str]]) -> Tuple[str, str, str]:
        return (clave_identificador(datos["rfc"]),
                clave_identificador(datos["curp"]),
                normalizar_nombre(datos["name"]))

    def _buscar(self, datos: Dict[str, Optional[str]], clave_rfc: str,
                clave_curp: str, clave_nombre: str) -> Optional[int]:
        if clave_rfc and clave_rfc in self._por_rfc:
            return self._por_rfc[clave_rfc]
        if clave_curp and clave_curp in self._por_curp:
            return self._por_curp[clave_curp]
        if clave_nombre and clave_nombre in self._por_nombre:
            slot = self._por_nombre[clave_nombre]
            if self._identificadores_en_conflicto(self._socios[slot], datos):
                logger.debug("Mismo nombre con RFC/CURP distinto, se conservan separados: %s",
                             clave_nombre)
                return None
            return slot
        return None

    @staticmethod
    def _identificadores_en_conflicto(existente: Dict[str, Optional[str]],
                                      entrante: Dict[str, Optional[str]]) -> bool:
        for campo in ("rfc", "curp"):
            actual = clave_identificador(existente[campo])
            nuevo = clave_identificador(entrante[campo])
            if actual and nuevo and actual != nuevo:
                return True
        return False

    def _completar(self, existente: Dict[str, Optional[str]],
                   entrante: Dict[str, Optional[str]]) -> None:
        for campo in _CAMPOS_SOCIO:
            if existente[campo] is None and entrante[campo] is not None:
                existente[campo] = entrante[campo]

        if entrante["name"] and existente["name"] != entrante["name"]:
            existente["name"] = self._politica_nombre(existente["name"], entrante["name"])

    def _registrar(self, slot: int, clave_rfc: str, clave_curp: str, clave_nombre: str) -> None:
        if clave_rfc:
            self._por_rfc.setdefault(clave_rfc, slot)
        if clave_curp:
            self._por_curp.setdefault(clave_curp, slot)
        if clave_nombre:
            self._por_nombre.setdefault(clave_nombre, slot)


def fusionar_acta_constitutiva(
        fragmentos: Iterable[Optional[FragmentoActaConstitutiva]],
        politica_nombre: PoliticaNombre = preferir_nombre_mas_largo) -> ActaConstitutiva:
    """
    Fusiona los fragmentos de un acta constitutiva, en orden de página.

    - Escalares (razón social, RFC, fecha, capital, duración, notario): el
      primer valor no nulo gana.
    - Fragmentos de texto (objeto social, administración, inscripción): se
      concatenan con salto de línea en orden de página.
    - Socios: se concilian por RFC, CURP y nombre normalizado, completando
      campos faltantes; `politica_nombre` decide qué nombre se conserva.
    - Representantes legales: únicos por coincidencia exacta.
    """
    escalares: Dict[str, object] = {campo: None for campo in _CAMPOS_ESCALARES_ACTA}
    textos: Dict[str, List[str]] = {destino: [] for destino in _CAMPOS_TEXTO_ACTA.values()}
    representantes: List[str] = []
    registro_socios = _RegistroSocios(politica_nombre)
    paginas = 0

    for fragmento in fragmentos:
        if fragmento is None:
            continue
        paginas += 1

        for campo in _CAMPOS_ESCALARES_ACTA:
            valor = getattr(fragmento, campo)
            if escalares[campo] is None and valor is not None:
                # Capital y notario son modelos: se copian para no compartirlos con el fragmento
                escalares[campo] = valor.model_copy() if hasattr(valor, "model_copy") else valor

        for origen, destino in _CAMPOS_TEXTO_ACTA.items():
            fragmento_texto = getattr(fragmento, origen)
            if fragmento_texto:
                textos[destino].append(fragmento_texto)

        for socio in fragmento.partners:
            registro_socios.agregar(socio)

        for representante in fragmento.legal_representatives:
            nombre = representante.strip()
            if nombre and nombre not in representantes:
                representantes.append(nombre)

    socios = registro_socios.socios()
    logger.debug("Acta fusionada de %d páginas: %d socios, %d representantes",
                 paginas, len(socios), len(representantes))

    return ActaConstitutiva(
        **escalares,
        partners=socios,
        legal_representatives=representantes,
        **{destino: ("\n".join(partes).strip() or None) for destino, partes in textos.items()},
    )


# --- Lista de personas bloqueadas ---

_CAMPOS_ESCALARES_ENTRADA = ("entity_type", "rfc", "curp", "birth_date",
                             "address", "reason", "source_list")


def _clave_entrada(entrada: EntradaParcial) -> Tuple[str, str]:
    """RFC, si no CURP, si no nombre completo; con espacio de nombres para no cruzarlos"""
    clave_rfc = clave_identificador(entrada.rfc)
    if clave_rfc:
        return ("rfc", clave_rfc)
    clave_curp = clave_identificador(entrada.curp)
    if clave_curp:
        return ("curp", clave_curp)
    return ("nombre", normalizar_nombre(entrada.full_name) or entrada.full_name.strip().upper())


def _agregar_alias(aliases: List[str], nuevos: Iterable[str]) -> None:
    for alias in nuevos:
        alias = alias.strip()
        if alias and alias not in aliases:
            aliases.append(alias)


def fusionar_lista_bloqueados(
        fragmentos: Iterable[Optional[FragmentoListaBloqueados]]) -> List[EntradaBloqueada]:
    """
    Fusiona las entradas de todas las páginas de una lista de bloqueados.

    Las entradas sin fullName se descartan. Las que comparten clave se unen:
    alias en unión sin duplicados y el resto de campos con el primer valor
    no nulo. El orden de salida es el de primera aparición.
    """
    entradas: List[Dict[str, object]] = []
    indice: Dict[Tuple[str, str], int] = {}

    for fragmento in fragmentos:
        if fragmento is None:
            continue

        for entrada in fragmento.entries:
            if not entrada.full_name:
                logger.debug("Entrada sin fullName descartada: %s", entrada)
                continue

            clave = _clave_entrada(entrada)
            slot = indice.get(clave)

            if slot is None:
                aliases: List[str] = []
                _agregar_alias(aliases, entrada.aliases)
                nueva = {campo: getattr(entrada, campo) for campo in _CAMPOS_ESCALARES_ENTRADA}
                nueva.update(full_name=entrada.full_name, aliases=aliases)
                entradas.append(nueva)
                indice[clave] = len(entradas) - 1
                continue

            existente = entradas[slot]
            _agregar_alias(existente["aliases"], entrada.aliases)
            for campo in _CAMPOS_ESCALARES_ENTRADA:
                valor = getattr(entrada, campo)
                if existente[campo] is None and valor is not None:
                    existente[campo] = valor

    logger.debug("Lista fusionada: %d entradas únicas", len(entradas))
    return [EntradaBloqueada(**datos) for datos in entradas]


def fusionar_fragmentos(
        tipo_documento: Union[TipoDocumento, str],
        fragmentos: Iterable[Optional[Union[FragmentoActaConstitutiva, FragmentoListaBloqueados]]],
        politica_nombre: PoliticaNombre = preferir_nombre_mas_largo) -> RegistroFusionado:
    """Selecciona la estrategia de fusión según el tipo de documento"""
    tipo = TipoDocumento.desde_valor(tipo_documento)
    if tipo is TipoDocumento.ACTA_CONSTITUTIVA:
        return fusionar_acta_constitutiva(fragmentos, politica_nombre=politica_nombre)
    return fusionar_lista_bloqueados(fragmentos)
