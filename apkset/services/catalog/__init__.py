from .service import CatalogLoader

__all__ = ["CatalogLoader"]
