"""Ventana: traducción de documentos por prioridad de lectura."""
