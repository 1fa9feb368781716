"""
FastAPI application.

Provides HTTP endpoints required for Heroku web dyno health checks and
basic operational visibility. The bot process and this web server share
the same asyncio event loop (wired together in main.py).
"""

from fastapi import FastAPI
from fastapi.responses import JSONResponse

# relay_service and user_store are injected at startup from main.py so the
# /status endpoint can read live state without circular imports.
_relay_service = None
_user_store = None


def create_app(relay_service=None, user_store=None):
    global _relay_service, _user_store
    _relay_service = relay_service
    _user_store = user_store

    app = FastAPI(title="Zipline Relay Bot API", docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/status")
    async def status():
        if _relay_service is None:
            return JSONResponse({"error": "service not initialised"}, status_code=503)

        body = {
            "status": "ok",
            "active_transfers": _relay_service.active_transfers,
            "chunk_threshold_bytes": _relay_service.threshold,
            "chunk_size_bytes": _relay_service.chunk_size,
        }
        if _user_store is not None:
            body["members_with_token"] = await _user_store.count()
        return body

    return app
