from .extraction import ExtractionMetrics

__all__ = ["ExtractionMetrics"]
