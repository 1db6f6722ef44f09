"""
Point d'entrée principal de l'API SchoolERP (module présences).
Démarrage : uvicorn school_erp.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

import school_erp.models  # noqa: F401  (enregistre tous les modèles dans Base.metadata avant les routers)
from school_erp.config import settings
from school_erp.routers import attendance

logger = logging.getLogger(__name__)

app = FastAPI(
    title="SchoolERP API",
    description="API d'administration scolaire : appel, statistiques et rapports de présences",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# CORS : localhost en développement, à surcharger via CORS_ORIGIN_REGEX en production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(attendance.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Corps ou paramètres invalides → 400 avec un message unique
    (premier champ en erreur), au lieu du 422 détaillé de FastAPI.
    """
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Requête invalide.")
        detail = f"{field} : {message}" if field else message
    else:
        detail = "Requête invalide."
    return JSONResponse(status_code=400, content={"detail": detail})


@app.exception_handler(SQLAlchemyError)
async def store_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Échec de la base de données hors des chemins déjà traduits en StoreError."""
    logger.error("Erreur base de données : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Erreur d'accès à la base de données."},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "SchoolERP API", "version": "0.1.0"}
