#!/usr/bin/env python3
"""
Extractor KYC de documentos legales mexicanos - Versión Consola
Extrae datos estructurados de actas constitutivas y listas de personas bloqueadas
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config import Config, ConfiguracionProcesamiento, MENSAJES
from core.exceptions import ExtraccionError
from core.word_generator import generar_reporte_word
from extraccion_kyc.models_extraccion import ResultadoProcesamiento, TipoDocumento
from extraccion_kyc.orquestador import ProcesadorDocumentos

logger = logging.getLogger(__name__)


def _mensaje(texto: str):
    # stdout queda libre para el JSON cuando no se usa --salida
    print(texto, file=sys.stderr)


def configurar_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def crear_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Extractor KYC de documentos legales mexicanos')
    parser.add_argument('archivo', type=str,
                        help='Ruta al PDF o imagen del documento')
    parser.add_argument('--tipo', required=True,
                        choices=[tipo.value for tipo in TipoDocumento],
                        help='Tipo de documento')
    parser.add_argument('--salida', type=str, default=None,
                        help='Archivo JSON de salida (default: stdout)')
    parser.add_argument('--word', type=str, default=None,
                        help='Genera además un reporte Word en esta ruta')
    parser.add_argument('--bitacora', type=str, default=None,
                        help='Guarda la bitácora por página en esta ruta JSON')
    parser.add_argument('--workers', type=int, default=Config.MAX_WORKERS,
                        help=f'Páginas en paralelo (default: {Config.MAX_WORKERS})')
    parser.add_argument('--timeout', type=float, default=Config.TIMEOUT_DOCUMENTO_SEGUNDOS,
                        help=f'Timeout por documento en segundos (default: {Config.TIMEOUT_DOCUMENTO_SEGUNDOS:g})')
    parser.add_argument('--reintentos', type=int, default=Config.MAX_REINTENTOS,
                        help=f'Número máximo de reintentos por página (default: {Config.MAX_REINTENTOS})')
    parser.add_argument('--abortar-por-limite', action='store_true',
                        default=Config.ABORTAR_POR_LIMITE_TASA,
                        help='Aborta el documento si una página agota el límite de tasa')
    parser.add_argument('--politica-nombre', choices=Config.POLITICAS_NOMBRE_VALIDAS,
                        default=Config.POLITICA_NOMBRE,
                        help='Qué nombre conservar al fusionar socios (default: %(default)s)')
    parser.add_argument('--verbose', action='store_true',
                        help='Logging a nivel DEBUG')
    return parser


def crear_procesador(args: argparse.Namespace) -> ProcesadorDocumentos:
    """Valida la configuración y arma el procesador con los parámetros del CLI"""
    Config.validar_configuracion()

    config = ConfiguracionProcesamiento(
        max_workers=args.workers,
        timeout_documento_segundos=args.timeout,
        max_reintentos=args.reintentos,
        abortar_por_limite_tasa=args.abortar_por_limite,
        politica_nombre=args.politica_nombre
    )
    return ProcesadorDocumentos(config=config, mostrar_progreso=True)


def guardar_bitacora(resultado: ResultadoProcesamiento, ruta_bitacora: Path):
    """Guarda la bitácora por página con un resumen del documento"""
    bitacora_completa = {
        "resumen_documento": {
            "metadata": resultado.metadata.model_dump(mode="json") if resultado.metadata else None,
            "tipo_documento": resultado.tipo_documento.value,
            "total_paginas": resultado.total_paginas,
            "paginas_exitosas": resultado.paginas_exitosas,
            "paginas_fallidas": sum(1 for e in resultado.bitacora if e.status == "error"),
        },
        "bitacora_detallada": [entrada.model_dump(mode="json") for entrada in resultado.bitacora]
    }

    ruta_bitacora.parent.mkdir(parents=True, exist_ok=True)
    with open(ruta_bitacora, 'w', encoding='utf-8') as f:
        json.dump(bitacora_completa, f, indent=2, ensure_ascii=False)


def mostrar_resumen_final(resultado: ResultadoProcesamiento):
    """Muestra resumen final del procesamiento"""
    errores = [e for e in resultado.bitacora if e.status == "error"]

    _mensaje("=" * 80)
    _mensaje(MENSAJES['procesamiento_exitoso'].format(
        exitosas=resultado.paginas_exitosas, total=resultado.total_paginas))
    for entrada in errores:
        _mensaje(f"   ⚠️ Página {entrada.numero_pagina}: {entrada.tipo_error}")
    if resultado.metadata and resultado.metadata.tiempo_procesamiento is not None:
        _mensaje(f"⏱️ Tiempo total de procesamiento: {resultado.metadata.tiempo_procesamiento:.2f} segundos")
    _mensaje("=" * 80)


def main(argv: Optional[List[str]] = None) -> int:
    """Función principal"""
    args = crear_parser().parse_args(argv)
    configurar_logging(args.verbose)

    archivo = Path(args.archivo)
    if not archivo.exists():
        _mensaje(MENSAJES['archivo_no_existe'].format(ruta=archivo))
        return 1

    _mensaje(MENSAJES['inicio'])
    _mensaje(MENSAJES['procesando'].format(archivo=archivo.name, tipo=args.tipo))

    try:
        procesador = crear_procesador(args)
        resultado = procesador.procesar_archivo(archivo, args.tipo)
    except KeyboardInterrupt:
        _mensaje("\n" + MENSAJES['proceso_interrumpido'])
        return 130
    except ExtraccionError as e:
        logger.error("Error procesando %s: %s", archivo.name, e)
        _mensaje(MENSAJES['procesamiento_error'].format(error=e.mensaje_usuario))
        return 1

    mostrar_resumen_final(resultado)

    contenido = json.dumps(resultado.registro_json(), indent=2, ensure_ascii=False)
    if args.salida:
        ruta_salida = Path(args.salida)
        ruta_salida.parent.mkdir(parents=True, exist_ok=True)
        ruta_salida.write_text(contenido + "\n", encoding='utf-8')
        _mensaje(MENSAJES['resultado_guardado'].format(ruta=ruta_salida))
    else:
        print(contenido)

    if args.word:
        ruta_word = generar_reporte_word(resultado.registro, resultado.tipo_documento,
                                         Path(args.word), metadata=resultado.metadata)
        _mensaje(MENSAJES['word_generado'].format(ruta=ruta_word))

    if args.bitacora:
        ruta_bitacora = Path(args.bitacora)
        guardar_bitacora(resultado, ruta_bitacora)
        _mensaje(MENSAJES['bitacora_guardada'].format(ruta=ruta_bitacora))

    return 0


if __name__ == "__main__":
    sys.exit(main())
