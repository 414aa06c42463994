"""FastAPI application entry point."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stormintel.api.routes import hail, storms
from stormintel.config import settings

logging.basicConfig(level=settings.log_level)

app = FastAPI(
    title="Storm Intel",
    description="Hail, wind and tornado history with canvassing hot zones",
    version="0.1.0",
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(hail.router)
app.include_router(storms.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
