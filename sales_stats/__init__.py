"""Estadisticas de ventas distribuidas: coordinador, workers y error collector sobre colas de mensajes."""

__version__ = "0.1.0"
