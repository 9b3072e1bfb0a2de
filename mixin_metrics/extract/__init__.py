"""Query location, normalization, metric extraction and reporting."""
from .pipeline import extract_directory, extract_file, process_expression
from .report import DirectoryReport, FileReport, MetricSet

__all__ = [
    "DirectoryReport",
    "FileReport",
    "MetricSet",
    "extract_directory",
    "extract_file",
    "process_expression",
]
