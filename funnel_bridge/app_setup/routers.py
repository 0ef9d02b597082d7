"""
Registre central des routers (API v1 du funnel).
"""
from fastapi import FastAPI
from funnel_bridge.pricing import views as pricing_views
from funnel_bridge.payments import views as payments_views
from funnel_bridge.orders import views as orders_views
from funnel_bridge.refunds import views as refunds_views
from funnel_bridge.funnels import views as funnels_views
from funnel_bridge.customers import views as customers_views
from funnel_bridge.catalog import views as catalog_views

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    - Tous partagent le préfixe /api/v1/funnel; l'ordre n'a pas d'impact.
    """
    app.include_router(pricing_views.router)
    app.include_router(payments_views.router)
    app.include_router(orders_views.router)
    app.include_router(refunds_views.router)
    app.include_router(funnels_views.router)
    app.include_router(customers_views.router)
    app.include_router(catalog_views.router)
