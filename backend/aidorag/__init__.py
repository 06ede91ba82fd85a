"""AIDORag document ingestion backend."""

__version__ = "0.1.0"
