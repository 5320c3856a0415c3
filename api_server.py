"""
HTTP API — position valuation over GET /analyze
================================================

  GET /analyze?chain=bsc&protocol=pancake&tokenId=123[&costUsd=1000]
      200 {"success": true,  "data": {...valuation...}}
      400 {"success": false, "error": "..."}   bad input / unsupported pair
      502 {"success": false, "error": "..."}   RPC / transport failure
  GET /              API information
  GET /favicon.ico   204
  anything else      404 {"success": false, "error": "Endpoint not found. Use / or /analyze"}

One SnapshotCache lives on app.state and is handed to every reader.
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from lp_analyzer.central_config import PROJECT_VERSION, settings
from lp_analyzer.errors import ValuationError
from lp_analyzer.snapshot_cache import SnapshotCache
from position_reader import analyze_position

NOT_FOUND_MESSAGE = "Endpoint not found. Use / or /analyze"
MISSING_PARAMS_MESSAGE = "Missing required parameters: chain, protocol, tokenId"


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_app(
    cache: Optional[SnapshotCache] = None,
    analyzer: Callable[..., Awaitable[dict]] = analyze_position,
) -> FastAPI:
    """
    Build the API application.

    Args:
        cache: Shared token/pool cache (default: new one, TTL from settings).
        analyzer: Coroutine doing read + valuation; swapped out in tests.
    """
    app = FastAPI(
        title=settings.API_TITLE,
        description=settings.API_DESCRIPTION,
        version=PROJECT_VERSION,
        docs_url="/docs",
        redoc_url=None,
    )
    app.state.cache = cache if cache is not None else SnapshotCache(ttl_seconds=settings.CACHE_TTL_SECONDS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request, exc):
        if exc.status_code == 404:
            return _failure(404, NOT_FOUND_MESSAGE)
        return _failure(exc.status_code, str(exc.detail))

    @app.get("/")
    async def root():
        """API information"""
        return {
            "name": settings.API_TITLE,
            "version": PROJECT_VERSION,
            "description": settings.API_DESCRIPTION,
            "endpoints": {
                "analyze": "/analyze?chain=<chain>&protocol=<protocol>&tokenId=<id>[&costUsd=<usd>]",
                "docs": "/docs",
            },
            "cache": app.state.cache.stats(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    @app.get("/analyze")
    async def analyze(
        chain: Optional[str] = None,
        protocol: Optional[str] = None,
        tokenId: Optional[str] = None,
        costUsd: Optional[str] = None,
    ):
        """Value one position."""
        if not chain or not protocol or not tokenId:
            return _failure(400, MISSING_PARAMS_MESSAGE)
        if not (tokenId.isascii() and tokenId.isdigit()):
            return _failure(400, "tokenId must be a non-negative integer")

        print(f"[API Request] Analyzing {chain}/{protocol} TokenID: {tokenId}...")
        try:
            data = await analyzer(
                chain,
                protocol,
                int(tokenId),
                cost_usd=costUsd or None,
                cache=app.state.cache,
            )
        except ValuationError as e:
            print(f"[API Error] {e}")
            return _failure(400, str(e))
        except (RuntimeError, httpx.HTTPError) as e:
            print(f"[API Error] {e}")
            return _failure(502, str(e) or type(e).__name__)
        except Exception as e:  # noqa: BLE001
            print(f"[API Error] {type(e).__name__}: {e}")
            return _failure(500, "Internal error while analyzing position")

        return {"success": True, "data": data}

    return app


app = create_app()


def serve(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API with uvicorn (blocking)."""
    import uvicorn

    host = host or settings.HOST
    port = port or settings.PORT
    print(f"🚀 Starting {settings.API_TITLE} v{PROJECT_VERSION}")
    print(f"   Server is running on http://{host}:{port}")
    print(f"   API Endpoint:   http://{host}:{port}/analyze")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    serve()
