from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import (AfterValidator, AliasChoices, BaseModel, BeforeValidator, ConfigDict,
                      Field, TypeAdapter)

from core.exceptions import UnsupportedDocumentType
from core.models import BitacoraPagina, DocumentoMetadata

# --- CATÁLOGO DE TIPOS DE DOCUMENTO (Enum) ---
# El valor es el selector que usan el CLI y los llamadores.


class TipoDocumento(str, Enum):
    ACTA_CONSTITUTIVA = "acta-constitutiva"
    LISTA_BLOQUEADOS = "lista-bloqueados"

    @classmethod
    def desde_valor(cls, valor: Any) -> "TipoDocumento":
        """Convierte un selector (enum o string) o lanza UnsupportedDocumentType"""
        if isinstance(valor, cls):
            return valor
        try:
            return cls(valor)
        except ValueError:
            raise UnsupportedDocumentType(valor) from None


# --- Coerciones en la frontera con el modelo ---
# Las respuestas del modelo son ruidosas: strings vacíos, números donde se
# esperaba texto, listas entregadas como un solo string.

def _texto_opcional(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError("se esperaba texto, no un booleano")
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def _como_lista(v: Any) -> Any:
    if v is None:
        return []
    if isinstance(v, (str, dict)):
        return [v]
    if isinstance(v, list):
        return [item for item in v if item is not None]
    return v


def _sin_vacios(v: List[Optional[str]]) -> List[str]:
    return [item for item in v if item]


def _objeto_desde_texto(campo_texto: str):
    """Objeto opcional: un string suelto va a `campo_texto`; un objeto sin datos es None"""
    def coercer(v: Any) -> Any:
        if isinstance(v, (str, int, float)) and not isinstance(v, bool):
            texto = _texto_opcional(v)
            return {campo_texto: texto} if texto else None
        if isinstance(v, dict):
            if all(_texto_opcional(valor) is None for valor in v.values()
                   if not isinstance(valor, (dict, list))):
                return None
        return v
    return coercer


TextoOpcional = Annotated[Optional[str], BeforeValidator(_texto_opcional)]
ListaTextos = Annotated[List[TextoOpcional], BeforeValidator(_como_lista), AfterValidator(_sin_vacios)]


class _ModeloBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _FragmentoBase(BaseModel):
    """Los fragmentos son inmutables una vez producidos por el extractor"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


# --- Modelos de Soporte ---

class Capital(_ModeloBase):
    """Capital social"""
    amount: TextoOpcional = Field(None, description="Monto del capital social.")
    currency: TextoOpcional = Field(None, description="Moneda (ej. MXN).")
    description: TextoOpcional = Field(None, description="Descripción textual del capital.")


class DatosNotario(_ModeloBase):
    """Notario o corredor público ante quien se otorgó el acta"""
    name: TextoOpcional = Field(None, description="Nombre del notario o corredor.")
    number: TextoOpcional = Field(None, description="Número de notaría o correduría.")
    location: TextoOpcional = Field(None, description="Plaza o entidad federativa.")


CapitalOpcional = Annotated[Optional[Capital], BeforeValidator(_objeto_desde_texto("description"))]
NotarioOpcional = Annotated[Optional[DatosNotario], BeforeValidator(_objeto_desde_texto("name"))]


# --- Fragmentos por página ---

class SocioParcial(_FragmentoBase):
    """
    Socio tal como aparece en UNA página. Cualquier subconjunto de campos
    puede estar presente; ningún campo garantiza la identidad entre páginas.
    """
    name: TextoOpcional = None
    rfc: TextoOpcional = None
    curp: TextoOpcional = None
    nationality: TextoOpcional = None
    address: TextoOpcional = None
    contribution: TextoOpcional = None

    def tiene_identificador(self) -> bool:
        return bool(self.name or self.rfc or self.curp)


class FragmentoActaConstitutiva(_FragmentoBase):
    """Datos de un acta constitutiva visibles en una sola página"""
    company_name: TextoOpcional = Field(None, alias="companyName")
    company_rfc: TextoOpcional = Field(None, alias="companyRfc")
    incorporation_date: TextoOpcional = Field(None, alias="incorporationDate")
    partners: Annotated[List[SocioParcial], BeforeValidator(_como_lista)] = Field(default_factory=list)
    business_purpose_chunk: TextoOpcional = Field(None, alias="businessPurposeChunk")
    capital: CapitalOpcional = None
    duration: TextoOpcional = None
    management_body_chunk: TextoOpcional = Field(None, alias="managementBodyChunk")
    legal_representatives: ListaTextos = Field(
        default_factory=list,
        validation_alias=AliasChoices("legalRepresentativeNames", "legalRepresentativesChunk",
                                      "legal_representatives"),
        serialization_alias="legalRepresentativeNames",
    )
    notary_info: NotarioOpcional = Field(None, alias="notaryInfo")
    registration_data_chunk: TextoOpcional = Field(None, alias="registrationDataChunk")


class EntradaParcial(_FragmentoBase):
    """Entrada de la lista de bloqueados vista en una página. Sin fullName no es identificable."""
    full_name: TextoOpcional = Field(None, alias="fullName")
    entity_type: TextoOpcional = Field(None, alias="type")
    aliases: ListaTextos = Field(default_factory=list)
    rfc: TextoOpcional = None
    curp: TextoOpcional = None
    birth_date: TextoOpcional = Field(None, alias="birthDate")
    address: TextoOpcional = None
    reason: TextoOpcional = None
    source_list: TextoOpcional = Field(None, alias="sourceList")


class FragmentoListaBloqueados(_FragmentoBase):
    """Entradas de personas o entidades bloqueadas visibles en una sola página"""
    entries: List[EntradaParcial] = Field(..., description="Entradas encontradas en la página.")


FragmentoPagina = Union[FragmentoActaConstitutiva, FragmentoListaBloqueados]


# --- Registros fusionados ---

class Socio(_ModeloBase):
    name: Optional[str] = None
    rfc: Optional[str] = None
    curp: Optional[str] = None
    nationality: Optional[str] = None
    address: Optional[str] = None
    contribution: Optional[str] = None


class ActaConstitutiva(_ModeloBase):
    """
    Resultado de fusionar todas las páginas de un acta constitutiva.
    Los campos escalares son el primer valor no nulo encontrado; los textos
    largos son la concatenación de los fragmentos en orden de página.
    """
    company_name: Optional[str] = Field(None, alias="companyName")
    company_rfc: Optional[str] = Field(None, alias="companyRfc")
    incorporation_date: Optional[str] = Field(None, alias="incorporationDate")
    partners: List[Socio] = Field(default_factory=list)
    business_purpose: Optional[str] = Field(None, alias="businessPurpose")
    capital: Optional[Capital] = None
    duration: Optional[str] = None
    management_body: Optional[str] = Field(None, alias="managementBody")
    legal_representatives: List[str] = Field(default_factory=list, alias="legalRepresentatives")
    notary_info: Optional[DatosNotario] = Field(None, alias="notaryInfo")
    registration_data: Optional[str] = Field(None, alias="registrationData")


class EntradaBloqueada(_ModeloBase):
    full_name: str = Field(..., alias="fullName")
    entity_type: Optional[str] = Field(None, alias="type")
    aliases: List[str] = Field(default_factory=list)
    rfc: Optional[str] = None
    curp: Optional[str] = None
    birth_date: Optional[str] = Field(None, alias="birthDate")
    address: Optional[str] = None
    reason: Optional[str] = None
    source_list: Optional[str] = Field(None, alias="sourceList")


RegistroFusionado = Union[ActaConstitutiva, List[EntradaBloqueada]]

_ADAPTADOR_ENTRADAS = TypeAdapter(List[EntradaBloqueada])


def serializar_registro(registro: RegistroFusionado) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
    """Convierte un registro fusionado a estructuras JSON (claves camelCase)"""
    if isinstance(registro, ActaConstitutiva):
        return registro.model_dump(mode="json", by_alias=True)
    return _ADAPTADOR_ENTRADAS.dump_python(registro, mode="json", by_alias=True)


def cargar_registro(datos: Any, tipo_documento: Union[TipoDocumento, str]) -> RegistroFusionado:
    """Operación inversa de serializar_registro"""
    tipo = TipoDocumento.desde_valor(tipo_documento)
    if tipo is TipoDocumento.ACTA_CONSTITUTIVA:
        return ActaConstitutiva.model_validate(datos)
    return _ADAPTADOR_ENTRADAS.validate_python(datos)


class ResultadoProcesamiento(BaseModel):
    """Registro fusionado junto con la bitácora por página y la metadata del archivo"""
    tipo_documento: TipoDocumento
    registro: Union[ActaConstitutiva, List[EntradaBloqueada]]
    bitacora: List[BitacoraPagina] = Field(default_factory=list)
    metadata: Optional[DocumentoMetadata] = None

    @property
    def total_paginas(self) -> int:
        return len(self.bitacora)

    @property
    def paginas_exitosas(self) -> int:
        return sum(1 for entrada in self.bitacora if entrada.aporto_datos)

    def registro_json(self) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        return serializar_registro(self.registro)
