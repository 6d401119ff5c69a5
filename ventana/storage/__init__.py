# storage/__init__.py
from ventana.storage.repository import Repository

__all__ = ["Repository"]
