"""
Point d'entrée principal de l'API HuntRoute.
Démarrage : uvicorn app.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import app.models  # noqa: F401  enregistre tous les modèles dans Base.metadata avant les routers
from app.routers import events, teams

logger = logging.getLogger(__name__)

app = FastAPI(
    title="HuntRoute API",
    description="Moteur de parcours et de progression des équipes pour chasses au trésor",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# CORS : autorise tous les ports localhost en développement (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(events.router)
app.include_router(teams.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées (dont les erreurs BDD propagées
    après rollback) pour renvoyer une réponse 500 JSON qui passe par CORSMiddleware.
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "HuntRoute API", "version": "0.1.0"}
