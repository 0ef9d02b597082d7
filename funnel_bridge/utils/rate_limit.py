from fastapi import Request, Response

def _client_key(req: Request) -> str:
    # Pas de session côté funnel: IP (ou X-Forwarded-For du proxy) + chemin
    forwarded = (req.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    ip = forwarded or (req.client.host if req.client else "local")
    return f"ip:{ip}:{req.url.path}"

def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance de rate limiting tolérante.
    - Désactivée si le lifespan n'a pas pu initialiser FastAPILimiter.
    - Sinon délègue à fastapi_limiter.RateLimiter (429 au-delà de `times` par `seconds`).
    """
    async def _dep(request: Request, response: Response):
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return
        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req)

        return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
    return _dep
