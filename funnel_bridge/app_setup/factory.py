"""
Factory d'application pour les entrypoints (ex: funnel_bridge.asgi).
"""
from fastapi import FastAPI
from .lifespan import lifespan
from .exception_handlers import register_exception_handlers
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - gestionnaires d'exceptions (BridgeError => JSON)
      - tous les routers /api/v1/funnel
    Pas de CORS ni de pages: les funnels appellent ce service côté serveur ou via leur propre proxy.
    """
    app = FastAPI(title="Funnel Bridge", lifespan=lifespan)
    register_exception_handlers(app)
    register_routers(app)
    return app
