from .service import ApkSetSizeService, SizeInput, SizeOutput, format_size

__all__ = ["ApkSetSizeService", "SizeInput", "SizeOutput", "format_size"]
