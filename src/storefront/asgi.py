from __future__ import annotations

from typing import Sequence

from fastapi import FastAPI

from storefront.adapters.inbound.web.fastapi_app import create_app as create_fastapi_app
from storefront.bootstrap import UseCases, build_usecases
from storefront.config import DEFAULT_CORS_ORIGINS, Settings


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.load_from_env()
    return app_for(build_usecases(settings), cors_origins=settings.cors_origins)


def app_for(
    usecases: UseCases, cors_origins: Sequence[str] = DEFAULT_CORS_ORIGINS
) -> FastAPI:
    return create_fastapi_app(
        usecases.place_order,
        usecases.get_order,
        usecases.list_orders,
        usecases.catalog,
        usecases.register_user,
        cors_origins=cors_origins,
    )
