# core/word_generator.py
"""
Generador de reportes Word para registros KYC extraídos
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

from docx import Document
from docx.enum.style import WD_STYLE_TYPE
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import parse_xml
from docx.shared import Inches, Pt

from core.models import DocumentoMetadata

logger = logging.getLogger(__name__)

SIN_DATO = "N/D"

_W_NS = 'xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main"'


def _texto(valor) -> str:
    if valor is None or valor == "":
        return SIN_DATO
    return str(valor)


class KYCWordGenerator:
    """Genera un .docx con tablas a partir de un acta constitutiva o una lista de bloqueados"""

    def __init__(self):
        self.doc = None

    def crear_reporte_acta(self, acta, archivo_salida: Path,
                           metadata: Optional[DocumentoMetadata] = None) -> Path:
        self._nuevo_documento("Reporte KYC: Acta Constitutiva", metadata)

        self._agregar_subtitulo("Datos generales")
        capital = acta.capital
        notario = acta.notary_info
        self._agregar_tabla_campos([
            ("Razón social", acta.company_name),
            ("RFC", acta.company_rfc),
            ("Fecha de constitución", acta.incorporation_date),
            ("Duración", acta.duration),
            ("Capital social", self._describir_capital(capital)),
            ("Notario / corredor", self._describir_notario(notario)),
        ])

        self._agregar_subtitulo("Socios")
        if acta.partners:
            self._agregar_tabla(
                ["Nombre", "RFC", "CURP", "Nacionalidad", "Domicilio", "Aportación"],
                [[s.name, s.rfc, s.curp, s.nationality, s.address, s.contribution]
                 for s in acta.partners]
            )
        else:
            self._agregar_parrafo("No se identificaron socios en el documento.")

        self._agregar_subtitulo("Representantes legales")
        if acta.legal_representatives:
            for nombre in acta.legal_representatives:
                self.doc.add_paragraph(nombre, style="List Bullet")
        else:
            self._agregar_parrafo("No se identificaron representantes legales.")

        for titulo, texto in (("Objeto social", acta.business_purpose),
                              ("Órgano de administración", acta.management_body),
                              ("Datos de inscripción", acta.registration_data)):
            self._agregar_subtitulo(titulo)
            self._agregar_parrafo(texto or "Sin información en el documento.")

        return self._guardar(archivo_salida)

    def crear_reporte_lista(self, entradas: Sequence, archivo_salida: Path,
                            metadata: Optional[DocumentoMetadata] = None) -> Path:
        self._nuevo_documento("Reporte KYC: Lista de Personas Bloqueadas", metadata)

        self._agregar_subtitulo(f"Entradas encontradas: {len(entradas)}")
        if entradas:
            self._agregar_tabla(
                ["Nombre", "Tipo", "Alias", "RFC", "CURP", "Fecha de nacimiento",
                 "Domicilio", "Motivo", "Lista de origen"],
                [[e.full_name, e.entity_type, ", ".join(e.aliases), e.rfc, e.curp,
                  e.birth_date, e.address, e.reason, e.source_list] for e in entradas]
            )
        else:
            self._agregar_parrafo("No se encontraron entradas en el documento.")

        return self._guardar(archivo_salida)

    # --- Estructura del documento ---

    def _nuevo_documento(self, titulo: str, metadata: Optional[DocumentoMetadata]):
        self.doc = Document()
        self._configurar_estilos()
        self._configurar_pagina()

        p = self.doc.add_paragraph(style="TituloPrincipal")
        p.add_run(titulo)

        if metadata is not None:
            self._agregar_parrafo(
                f"Archivo: {metadata.nombre_archivo} | Páginas: {_texto(metadata.total_paginas)} | "
                f"Procesado: {metadata.fecha_procesamiento.strftime('%Y-%m-%d %H:%M')}"
            )

    def _configurar_estilos(self):
        """Estilos propios del reporte (Arial, como el resto de documentos generados)"""
        titulo = self._estilo("TituloPrincipal")
        titulo.font.name = 'Arial'
        titulo.font.size = Pt(14)
        titulo.font.bold = True
        titulo.paragraph_format.alignment = WD_ALIGN_PARAGRAPH.CENTER
        titulo.paragraph_format.space_after = Pt(12)

        subtitulo = self._estilo("SubtituloH2")
        subtitulo.font.name = 'Arial'
        subtitulo.font.size = Pt(12)
        subtitulo.font.bold = True
        subtitulo.paragraph_format.space_before = Pt(12)
        subtitulo.paragraph_format.space_after = Pt(6)

        texto = self._estilo("TextoNormal")
        texto.font.name = 'Arial'
        texto.font.size = Pt(10)
        texto.paragraph_format.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
        texto.paragraph_format.space_after = Pt(6)

        nota = self._estilo("NotaPie")
        nota.font.name = 'Arial'
        nota.font.size = Pt(8)
        nota.font.italic = True
        nota.paragraph_format.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _estilo(self, nombre: str):
        styles = self.doc.styles
        if nombre in styles:
            return styles[nombre]
        return styles.add_style(nombre, WD_STYLE_TYPE.PARAGRAPH)

    def _configurar_pagina(self):
        """Márgenes y numeración de páginas en el pie"""
        for section in self.doc.sections:
            section.top_margin = Inches(0.8)
            section.bottom_margin = Inches(0.8)
            section.left_margin = Inches(0.8)
            section.right_margin = Inches(0.8)

            footer_para = section.footer.paragraphs[0]
            footer_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
            footer_para._p.append(parse_xml(f'<w:fldChar w:fldCharType="begin" {_W_NS}/>'))
            footer_para._p.append(parse_xml(f'<w:instrText {_W_NS}> PAGE </w:instrText>'))
            footer_para._p.append(parse_xml(f'<w:fldChar w:fldCharType="end" {_W_NS}/>'))

    def _agregar_subtitulo(self, texto: str):
        self.doc.add_paragraph(texto, style="SubtituloH2")

    def _agregar_parrafo(self, texto: str):
        self.doc.add_paragraph(texto, style="TextoNormal")

    def _agregar_tabla_campos(self, filas: List[tuple]):
        tabla = self.doc.add_table(rows=0, cols=2)
        tabla.style = 'Table Grid'
        for campo, valor in filas:
            celdas = tabla.add_row().cells
            celdas[0].text = campo
            celdas[1].text = _texto(valor)
            for run in celdas[0].paragraphs[0].runs:
                run.font.bold = True
        return tabla

    def _agregar_tabla(self, encabezados: List[str], filas: List[list]):
        tabla = self.doc.add_table(rows=1, cols=len(encabezados))
        tabla.style = 'Table Grid'

        for cell, encabezado in zip(tabla.rows[0].cells, encabezados):
            cell.text = encabezado
            for para in cell.paragraphs:
                for run in para.runs:
                    run.font.bold = True
                    run.font.size = Pt(9)
                para.alignment = WD_ALIGN_PARAGRAPH.CENTER

        for fila in filas:
            celdas = tabla.add_row().cells
            for cell, valor in zip(celdas, fila):
                cell.text = _texto(valor)
                for run in cell.paragraphs[0].runs:
                    run.font.size = Pt(9)
        return tabla

    @staticmethod
    def _describir_capital(capital) -> Optional[str]:
        if capital is None:
            return None
        partes = [p for p in (capital.amount, capital.currency) if p]
        if capital.description:
            partes.append(f"({capital.description})" if partes else capital.description)
        return " ".join(partes) or None

    @staticmethod
    def _describir_notario(notario) -> Optional[str]:
        if notario is None:
            return None
        partes = [notario.name]
        if notario.number:
            partes.append(f"Notaría {notario.number}")
        partes.append(notario.location)
        return ", ".join(p for p in partes if p) or None

    def _guardar(self, archivo_salida: Path) -> Path:
        self.doc.add_paragraph(
            "Reporte generado automáticamente a partir de imágenes del documento. "
            f"Fecha de generación: {datetime.now().strftime('%Y-%m-%d %H:%M')}. "
            "Revisión humana requerida antes de su uso.",
            style="NotaPie"
        )
        archivo_salida = Path(archivo_salida)
        archivo_salida.parent.mkdir(parents=True, exist_ok=True)
        self.doc.save(archivo_salida)
        logger.info("Reporte Word guardado en %s", archivo_salida)
        return archivo_salida


def generar_reporte_word(registro: Union[object, Sequence], tipo_documento,
                         archivo_salida: Path,
                         metadata: Optional[DocumentoMetadata] = None) -> Path:
    """
    Función utilitaria: elige el formato del reporte según el tipo de documento

    Args:
        registro: ActaConstitutiva o lista de EntradaBloqueada
        tipo_documento: TipoDocumento o su valor ('acta-constitutiva', 'lista-bloqueados')
        archivo_salida: Ruta del .docx a generar

    Returns:
        Path: Ruta del archivo Word generado
    """
    # Import local: extraccion_kyc depende de core, no al revés
    from extraccion_kyc.models_extraccion import TipoDocumento

    tipo = TipoDocumento.desde_valor(tipo_documento)
    generator = KYCWordGenerator()
    if tipo is TipoDocumento.ACTA_CONSTITUTIVA:
        return generator.crear_reporte_acta(registro, archivo_salida, metadata)
    return generator.crear_reporte_lista(registro, archivo_salida, metadata)
