from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from appboot.bootstrap.context import HttpConfig

CORS_ALLOW_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def cors_allow_origins(http_config: HttpConfig) -> list[str]:
    raw = http_config.cors_allow_origin or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


def register_core_middleware(api: FastAPI, http_config: HttpConfig) -> None:
    origins = cors_allow_origins(http_config)
    if not origins:
        return
    api.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=["*"],
    )
