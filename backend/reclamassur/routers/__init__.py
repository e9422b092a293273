"""ReclamAssur - API Routers"""
from .auth import router as auth_router
from .dossiers import router as dossiers_router
from .storage import router as storage_router
from .courriers import router as courriers_router
from .admin import router as admin_router
from .functions import router as functions_router

__all__ = [
    "auth_router",
    "dossiers_router",
    "storage_router",
    "courriers_router",
    "admin_router",
    "functions_router",
]
