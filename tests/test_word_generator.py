from datetime import datetime

from docx import Document

from core.models import DocumentoMetadata
from core.word_generator import SIN_DATO, generar_reporte_word
from extraccion_kyc.models_extraccion import ActaConstitutiva, EntradaBloqueada


def textos_de_tabla(tabla):
    return [[cell.text for cell in fila.cells] for fila in tabla.rows]


def test_reporte_acta(tmp_path):
    acta = ActaConstitutiva.model_validate({
        "companyName": "Acme, S.A. de C.V.",
        "companyRfc": "ACM010101AAA",
        "capital": {"amount": "50,000", "currency": "MXN"},
        "notaryInfo": {"name": "Lic. Ramos", "number": "12", "location": "CDMX"},
        "partners": [{"name": "Juan Pérez", "rfc": "PEJU800101AAA"}],
        "legalRepresentatives": ["Ana Gómez"],
        "businessPurpose": "Comercio en general",
    })
    metadata = DocumentoMetadata(nombre_archivo="acta.pdf", formato=".pdf", tamano_bytes=10,
                                 tipo_documento="acta-constitutiva",
                                 fecha_procesamiento=datetime(2024, 5, 1, 10, 30),
                                 total_paginas=4)

    ruta = generar_reporte_word(acta, "acta-constitutiva", tmp_path / "reporte.docx", metadata)

    doc = Document(ruta)
    texto = "\n".join(p.text for p in doc.paragraphs)
    assert "Reporte KYC: Acta Constitutiva" in texto
    assert "Archivo: acta.pdf" in texto
    assert "Ana Gómez" in texto
    assert "Comercio en general" in texto

    datos_generales, socios = doc.tables
    filas = dict(tuple(fila) for fila in textos_de_tabla(datos_generales))
    assert filas["Razón social"] == "Acme, S.A. de C.V."
    assert filas["Capital social"] == "50,000 MXN"
    assert filas["Notario / corredor"] == "Lic. Ramos, Notaría 12, CDMX"
    assert filas["Duración"] == SIN_DATO
    assert textos_de_tabla(socios)[1][:3] == ["Juan Pérez", "PEJU800101AAA", SIN_DATO]


def test_reporte_lista(tmp_path):
    entradas = [
        EntradaBloqueada(full_name="María Soto", aliases=["La Jefa", "MS"], reason="Fraude"),
        EntradaBloqueada(full_name="Comercializadora X", rfc="CXX010101AAA"),
    ]

    ruta = generar_reporte_word(entradas, "lista-bloqueados", tmp_path / "sub" / "lista.docx")

    doc = Document(ruta)
    (tabla,) = doc.tables
    filas = textos_de_tabla(tabla)
    assert filas[0][0] == "Nombre"
    assert filas[1][0] == "María Soto"
    assert filas[1][2] == "La Jefa, MS"
    assert filas[2][3] == "CXX010101AAA"


def test_reporte_lista_vacia(tmp_path):
    ruta = generar_reporte_word([], "lista-bloqueados", tmp_path / "vacia.docx")

    doc = Document(ruta)
    assert doc.tables == []
    assert any("No se encontraron entradas" in p.text for p in doc.paragraphs)
