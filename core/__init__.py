"""
Núcleo: cliente del modelo, modelos de bitácora, excepciones y reporte Word
"""
