# File: civictrack\main.py
# Project: civictrack

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from civictrack.core import notices
from civictrack.core.config import cors_origins_list, settings
from civictrack.core.ratelimit import limiter
from civictrack.routers import admin, auth, geocode, issues, public

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="CivicTrack API")
app.state.limiter = limiter
notices.install(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
def health():
    return {"ok": True}

app.include_router(auth.router)
app.include_router(issues.router)
app.include_router(geocode.router)
app.include_router(public.router)
app.include_router(admin.router)
