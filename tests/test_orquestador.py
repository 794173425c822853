import threading
import time
from pathlib import Path

import pytest

from core.exceptions import (NoDataExtracted, ProcessingTimeout, RasterizationFailed,
                             RateLimitExceeded, TransportError, UnsupportedDocumentType)
from extraccion_kyc import orquestador
from extraccion_kyc.models_extraccion import (ActaConstitutiva, ResultadoProcesamiento,
                                              TipoDocumento)
from extraccion_kyc.orquestador import ProcesadorDocumentos, directorio_temporal

from conftest import ClienteFalso, ImageProcessorIdentidad


def demorado(segundos, respuesta):
    def _responder():
        time.sleep(segundos)
        return respuesta
    return _responder


def test_orden_de_pagina_aunque_terminen_desordenadas(crear_procesador):
    procesador, _ = crear_procesador({
        b"p1": demorado(0.3, {"companyName": "Primera SA", "businessPurposeChunk": "uno"}),
        b"p2": demorado(0.1, {"companyName": "Segunda SA", "businessPurposeChunk": "dos"}),
        b"p3": {"businessPurposeChunk": "tres"},
    })

    acta = procesador.procesar_documento([b"p1", b"p2", b"p3"], "acta-constitutiva")

    assert acta.company_name == "Primera SA"
    assert acta.business_purpose == "uno\ndos\ntres"


def test_pagina_malformada_no_aborta_el_documento(crear_procesador):
    procesador, _ = crear_procesador({
        b"p1": "no es json",
        b"p2": {"entries": [{"fullName": "Juan Pérez"}]},
    })

    entradas = procesador.procesar_documento([b"p1", b"p2"], "lista-bloqueados")

    assert [e.full_name for e in entradas] == ["Juan Pérez"]


def test_todas_las_paginas_fallan(crear_procesador):
    procesador, _ = crear_procesador({
        b"p1": "no es json",
        b"p2": "",
        b"p3": TransportError("sin red"),
    })

    with pytest.raises(NoDataExtracted) as exc_info:
        procesador.procesar_documento([b"p1", b"p2", b"p3"], "acta-constitutiva")

    assert exc_info.value.total_paginas == 3


def test_documento_sin_paginas(crear_procesador):
    procesador, _ = crear_procesador({})

    with pytest.raises(NoDataExtracted):
        procesador.procesar_documento([], "acta-constitutiva")


def test_lista_sin_entradas_no_es_falta_de_datos(crear_procesador):
    procesador, _ = crear_procesador({b"p1": {"entries": []}})

    assert procesador.procesar_documento([b"p1"], "lista-bloqueados") == []


def test_tipo_no_soportado(crear_procesador):
    procesador, cliente = crear_procesador({b"p1": {}})

    with pytest.raises(UnsupportedDocumentType):
        procesador.procesar_documento([b"p1"], "pasaporte")

    assert cliente.llamadas == []


def test_reintenta_errores_transitorios(crear_procesador):
    procesador, cliente = crear_procesador({
        b"p1": [TransportError("timeout"), RateLimitExceeded("429", retry_delay=0),
                {"companyName": "Acme"}],
    })

    acta = procesador.procesar_documento([b"p1"], "acta-constitutiva")

    assert acta.company_name == "Acme"
    assert cliente.llamadas_por_imagen(b"p1") == 3


def test_reintentos_agotados_la_pagina_se_omite(crear_procesador):
    procesador, cliente = crear_procesador({
        b"p1": TransportError("caído"),
        b"p2": {"companyName": "Acme"},
    }, max_reintentos=1)

    acta = procesador.procesar_documento([b"p1", b"p2"], "acta-constitutiva")

    assert acta.company_name == "Acme"
    assert cliente.llamadas_por_imagen(b"p1") == 2


def test_respuesta_malformada_no_se_reintenta(crear_procesador):
    procesador, cliente = crear_procesador({
        b"p1": ["no es json", {"companyName": "Acme"}],
        b"p2": {"companyName": "Otra"},
    })

    acta = procesador.procesar_documento([b"p1", b"p2"], "acta-constitutiva")

    assert acta.company_name == "Otra"
    assert cliente.llamadas_por_imagen(b"p1") == 1


def test_limite_de_tasa_se_omite_por_defecto(crear_procesador):
    procesador, _ = crear_procesador({
        b"p1": RateLimitExceeded("429"),
        b"p2": {"entries": [{"fullName": "Ana"}]},
    }, max_reintentos=0)

    entradas = procesador.procesar_documento([b"p1", b"p2"], "lista-bloqueados")

    assert [e.full_name for e in entradas] == ["Ana"]


def test_limite_de_tasa_aborta_si_se_configura(crear_procesador):
    procesador, _ = crear_procesador({
        b"p1": RateLimitExceeded("429"),
        b"p2": {"entries": [{"fullName": "Ana"}]},
    }, max_reintentos=0, abortar_por_limite_tasa=True)

    with pytest.raises(RateLimitExceeded) as exc_info:
        procesador.procesar_documento([b"p1", b"p2"], "lista-bloqueados")

    assert exc_info.value.numero_pagina == 1


def test_timeout_del_documento(crear_procesador):
    liberar = threading.Event()

    def bloqueada():
        liberar.wait(5)
        return {"companyName": "Tarde"}

    procesador, _ = crear_procesador({
        b"p1": bloqueada,
        b"p2": {"companyName": "Acme"},
    }, timeout_documento_segundos=0.2)

    try:
        with pytest.raises(ProcessingTimeout) as exc_info:
            procesador.procesar_documento([b"p1", b"p2"], "acta-constitutiva")
    finally:
        liberar.set()

    assert exc_info.value.paginas_pendientes >= 1


def test_timeout_detiene_reintentos_de_paginas_en_vuelo(crear_procesador):
    procesador, cliente = crear_procesador({
        b"p1": TransportError("conexión caída"),
    }, timeout_documento_segundos=0.2, max_reintentos=5, pausa_entre_reintentos_segundos=0.15)

    with pytest.raises(ProcessingTimeout):
        procesador.procesar_documento([b"p1"], "acta-constitutiva")
    llamadas_al_timeout = cliente.llamadas_por_imagen(b"p1")
    time.sleep(1.5)

    assert cliente.llamadas_por_imagen(b"p1") == llamadas_al_timeout


def test_pagina_cancelada_no_llama_al_modelo(crear_procesador):
    procesador, cliente = crear_procesador({b"p1": {"companyName": "Acme"}})
    cancelado = threading.Event()
    cancelado.set()

    fragmento, entrada = procesador._procesar_pagina(
        b"p1", 1, TipoDocumento.ACTA_CONSTITUTIVA, cancelado)

    assert fragmento is None
    assert entrada.status == "error"
    assert entrada.tipo_error == "Cancelada"
    assert cliente.llamadas == []


def test_max_workers_limita_paginas_en_vuelo(crear_procesador):
    en_vuelo = []
    maximo = []
    lock = threading.Lock()

    def pagina():
        with lock:
            en_vuelo.append(1)
            maximo.append(len(en_vuelo))
        time.sleep(0.05)
        with lock:
            en_vuelo.pop()
        return {"entries": []}

    procesador, _ = crear_procesador({bytes([i]): pagina for i in range(8)}, max_workers=2)

    procesador.procesar_documento([bytes([i]) for i in range(8)], "lista-bloqueados")

    assert max(maximo) <= 2


def test_politica_de_nombre_configurable(crear_procesador):
    guion = {
        b"p1": {"partners": [{"name": "Juan Pérez", "rfc": "ABC123"}]},
        b"p2": {"partners": [{"name": "Juan Pérez Hernández", "rfc": "ABC123"}]},
    }

    procesador, _ = crear_procesador(guion, politica_nombre="primero")
    acta = procesador.procesar_documento([b"p1", b"p2"], "acta-constitutiva")

    assert acta.partners[0].name == "Juan Pérez"


# --- procesar_archivo y directorio temporal ---

class PDFProcessorFalso:
    """Escribe una imagen por página en la carpeta temporal, en desorden"""

    def __init__(self, paginas):
        self.paginas = paginas
        self.carpetas = []

    def convertir_a_imagenes(self, ruta_pdf, carpeta_salida):
        self.carpetas.append(Path(carpeta_salida))
        rutas = []
        for numero in reversed(range(1, len(self.paginas) + 1)):
            ruta = Path(carpeta_salida) / f"page_{numero}.png"
            ruta.write_bytes(self.paginas[numero - 1])
            rutas.append(ruta)
        return rutas

    def imagen_como_pagina(self, ruta_imagen, carpeta_salida):
        self.carpetas.append(Path(carpeta_salida))
        ruta = Path(carpeta_salida) / "page_1.png"
        ruta.write_bytes(Path(ruta_imagen).read_bytes())
        return [ruta]


def procesador_de_archivos(config, guion, paginas):
    pdf = PDFProcessorFalso(paginas)
    procesador = ProcesadorDocumentos(
        cliente=ClienteFalso(guion),
        config=config,
        pdf_processor=pdf,
        image_processor=ImageProcessorIdentidad(),
    )
    return procesador, pdf


def test_procesar_archivo_pdf(tmp_path, config_rapida):
    ruta = tmp_path / "acta.pdf"
    ruta.write_bytes(b"%PDF-1.4 falso")
    paginas = [b"p%d" % i for i in range(1, 12)]
    guion = {p: {"businessPurposeChunk": p.decode()} for p in paginas}
    guion[b"p1"] = {"companyName": "Acme", "businessPurposeChunk": "p1"}
    procesador, pdf = procesador_de_archivos(config_rapida, guion, paginas)

    resultado = procesador.procesar_archivo(ruta, "acta-constitutiva")

    assert isinstance(resultado, ResultadoProcesamiento)
    assert isinstance(resultado.registro, ActaConstitutiva)
    # page_10 y page_11 van después de page_9
    assert resultado.registro.business_purpose.split("\n") == [p.decode() for p in paginas]
    assert resultado.total_paginas == 11
    assert resultado.paginas_exitosas == 11
    assert [e.numero_pagina for e in resultado.bitacora] == list(range(1, 12))
    assert resultado.metadata.nombre_archivo == "acta.pdf"
    assert resultado.metadata.hash_archivo
    assert not pdf.carpetas[0].exists()


def test_bitacora_registra_fallas(tmp_path, config_rapida):
    ruta = tmp_path / "lista.pdf"
    ruta.write_bytes(b"%PDF")
    guion = {b"a": {"entries": [{"fullName": "Ana"}]}, b"b": "roto", b"c": None}
    procesador, _ = procesador_de_archivos(config_rapida, guion, [b"a", b"b", b"c"])

    resultado = procesador.procesar_archivo(ruta, "lista-bloqueados")

    assert [e.status for e in resultado.bitacora] == ["success", "error", "vacia"]
    assert resultado.bitacora[1].tipo_error == "MalformedExtractionError"
    assert resultado.paginas_exitosas == 1


def test_imagen_suelta_es_documento_de_una_pagina(tmp_path, config_rapida):
    ruta = tmp_path / "lista.jpg"
    ruta.write_bytes(b"imagen")
    procesador, _ = procesador_de_archivos(
        config_rapida, {b"imagen": {"entries": [{"fullName": "Ana"}]}}, [])

    resultado = procesador.procesar_archivo(ruta, "lista-bloqueados")

    assert [e.full_name for e in resultado.registro] == ["Ana"]


def test_directorio_temporal_se_limpia_aunque_falle(tmp_path, config_rapida):
    ruta = tmp_path / "acta.pdf"
    ruta.write_bytes(b"%PDF")
    procesador, pdf = procesador_de_archivos(config_rapida, {b"x": "roto"}, [b"x"])

    with pytest.raises(NoDataExtracted):
        procesador.procesar_archivo(ruta, "acta-constitutiva")

    assert not pdf.carpetas[0].exists()


@pytest.mark.parametrize("nombre", ["acta.docx", "acta"])
def test_formato_no_soportado(tmp_path, config_rapida, nombre):
    ruta = tmp_path / nombre
    ruta.write_bytes(b"x")
    procesador, _ = procesador_de_archivos(config_rapida, {}, [])

    with pytest.raises(RasterizationFailed):
        procesador.procesar_archivo(ruta, "acta-constitutiva")


def test_archivo_inexistente(tmp_path, config_rapida):
    procesador, _ = procesador_de_archivos(config_rapida, {}, [])

    with pytest.raises(RasterizationFailed):
        procesador.procesar_archivo(tmp_path / "no-existe.pdf", "acta-constitutiva")


def test_directorio_temporal_reintenta_y_no_lanza(monkeypatch):
    intentos = []
    rmtree_real = orquestador.shutil.rmtree

    def rmtree_que_falla(ruta, *args, **kwargs):
        intentos.append(ruta)
        if len(intentos) < 2:
            raise PermissionError("archivo en uso")
        rmtree_real(ruta, *args, **kwargs)

    monkeypatch.setattr(orquestador.shutil, "rmtree", rmtree_que_falla)

    with directorio_temporal(reintentos=3, pausa_segundos=0) as carpeta:
        (carpeta / "page_1.png").write_bytes(b"x")

    assert len(intentos) == 2
    assert not carpeta.exists()


def test_directorio_temporal_falla_persistente_solo_se_registra(monkeypatch, caplog):
    def rmtree_siempre_falla(ruta, *args, **kwargs):
        raise PermissionError("archivo en uso")

    monkeypatch.setattr(orquestador.shutil, "rmtree", rmtree_siempre_falla)

    with directorio_temporal(reintentos=2, pausa_segundos=0) as carpeta:
        pass

    assert "No se pudo eliminar el directorio temporal" in caplog.text
    monkeypatch.undo()
    orquestador.shutil.rmtree(carpeta)
