# /riotbot/main.py

import os
import time
import uvicorn
from fastapi import FastAPI, Request

from riotbot.config.settings import settings
from riotbot.utils.lifecycle import lifespan
from riotbot.utils.metrics import response_time_histogram
from riotbot.routes import commands, public

app = FastAPI(
    title="riotbot onboarding tutorial",
    version="1.0.0",
    description="Scripted onboarding conversations for new chat users",
    lifespan=lifespan,
    openapi_url=f"/api/{settings.api_version}/openapi.json" if settings.environment != "production" else None,
    docs_url=f"/api/{settings.api_version}/docs" if settings.environment != "production" else None,
    redoc_url=None,
)

@app.middleware("http")
async def performance_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    # Label by route template so per-user paths don't explode the label set
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    response_time_histogram.labels(endpoint=endpoint).observe(process_time)
    response.headers["X-Process-Time"] = str(process_time)
    return response

# --- API Routers ---
app.include_router(public.router)
app.include_router(commands.router, prefix=f"/api/{settings.api_version}")

# --- Main Entry Point for Uvicorn (for local development) ---
if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "127.0.0.1")

    uvicorn.run(
        "riotbot.main:app",
        host=host,
        port=port,
        reload=True if settings.environment == "development" else False,
        # Tutorial sessions live in process memory
        workers=1
    )
