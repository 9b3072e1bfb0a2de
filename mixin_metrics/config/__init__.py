from .runtime_config import DEFAULT_OUTPUT_FILE, ExtractionConfig, Mode

__all__ = ["DEFAULT_OUTPUT_FILE", "ExtractionConfig", "Mode"]
