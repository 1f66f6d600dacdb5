from .service import ApkExtractionService, ExtractionInput, ExtractionOutput

__all__ = ["ApkExtractionService", "ExtractionInput", "ExtractionOutput"]
