from typing import Iterable

from fastapi import APIRouter
from scitrera_app_framework import get_extensions, Plugin, Variables as Variables

from ..api import EXT_MULTI_API_ROUTERS
from .fastapi import EXT_FASTAPI_SERVER
from .cors import EXT_CORS

EXT_ROUTES = 'tieredmemory-server-fastapi-routes'


class RoutesPlugin(Plugin):
    """
    Mount every registered API router on the application.

    Routers are mounted in extension-name order so the generated OpenAPI document is
    stable between runs.
    """

    def extension_point_name(self, v: Variables) -> str:
        return EXT_ROUTES

    def initialize(self, v, logger) -> object | None:
        app = self.get_extension(EXT_FASTAPI_SERVER, v)

        routers: dict[str, APIRouter] = get_extensions(EXT_MULTI_API_ROUTERS, v)
        for ext_name in sorted(routers):
            router = routers[ext_name]
            app.include_router(router)
            logger.info('Mounted %s (%d routes, prefix=%r)', ext_name, len(router.routes), router.prefix or '/')

        return

    def get_dependencies(self, v: Variables) -> Iterable[str] | None:
        # routers are collected at init time, so this must run after the router plugins
        return (
            EXT_FASTAPI_SERVER,
            EXT_CORS,
        )
