from __future__ import annotations

from datetime import UTC, datetime
from dotenv import load_dotenv
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..config import load_settings
from .routers.chat import router as chat_router
from ..observability.metrics import metrics_middleware_factory

load_dotenv()  # Load environment variables from .env if present (OPENAI_API_KEY, CONCIERGE_*)

app = FastAPI(title="Art Concierge API", version="0.1.0")

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

# Routers; the web client calls the /api prefixed paths
app.include_router(chat_router)
app.include_router(chat_router, prefix="/api")

# CORS (for the Next.js dev server on localhost:3000 by default)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(load_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"name": "Art Concierge API", "version": "0.1.0"}


@app.get("/health")
def health():
    settings = load_settings()
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "upstream": "configured" if settings.api_key else "missing-key",
        },
    }


@app.get("/metrics")
def metrics() -> Response:
    # Expose Prometheus metrics
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
