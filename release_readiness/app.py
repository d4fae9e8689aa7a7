import os
from typing import Any, Dict

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import router as readiness_router


# Load .env if present (local dev)
load_dotenv()

APP_NAME = "release-readiness"

app = FastAPI(title=APP_NAME)

# CORS for the local dashboard UI
_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()] or [
    "http://localhost:8000",
    "http://127.0.0.1:8000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(readiness_router)


@app.get("/api/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "service": APP_NAME}
