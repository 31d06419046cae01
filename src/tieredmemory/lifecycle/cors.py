from typing import Iterable

from fastapi.middleware.cors import CORSMiddleware
from scitrera_app_framework import Variables as Variables
from scitrera_app_framework.api import Plugin, ext_parse_bool, ext_parse_csv

from .fastapi import EXT_FASTAPI_SERVER

TIEREDMEMORY_SERVER_CORS_ALLOW_ORIGINS = 'TIEREDMEMORY_SERVER_CORS_ALLOW_ORIGINS'
TIEREDMEMORY_SERVER_CORS_ALLOW_CREDENTIALS = 'TIEREDMEMORY_SERVER_CORS_ALLOW_CREDENTIALS'
TIEREDMEMORY_SERVER_CORS_MAX_AGE = 'TIEREDMEMORY_SERVER_CORS_MAX_AGE'

# browsers reject a wildcard origin combined with credentials
DEFAULT_CORS_ALLOW_ORIGINS = ['*']
DEFAULT_CORS_ALLOW_CREDENTIALS = False
DEFAULT_CORS_MAX_AGE = 600

# the API only reads, appends, and erases; nothing is updated in place over HTTP
CORS_ALLOW_METHODS = ['GET', 'POST', 'DELETE']
# quota errors carry Retry-After, which scripts cannot read unless exposed
CORS_EXPOSE_HEADERS = ['Retry-After']

EXT_CORS = 'tieredmemory-server-fastapi-middleware-cors'


class CORSMiddlewarePlugin(Plugin):
    """Browser access to the memory API for assistant front-ends served from other origins."""

    def extension_point_name(self, v: Variables) -> str:
        return EXT_CORS

    def initialize(self, v, logger) -> object | None:
        app = self.get_extension(EXT_FASTAPI_SERVER, v)

        allow_origins = v.environ(TIEREDMEMORY_SERVER_CORS_ALLOW_ORIGINS,
                                  default=DEFAULT_CORS_ALLOW_ORIGINS, type_fn=ext_parse_csv)
        allow_credentials = v.environ(TIEREDMEMORY_SERVER_CORS_ALLOW_CREDENTIALS,
                                      default=DEFAULT_CORS_ALLOW_CREDENTIALS, type_fn=ext_parse_bool)
        if allow_credentials and '*' in allow_origins:
            logger.warning('CORS credentials enabled with a wildcard origin; browsers will refuse credentialed calls')

        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_credentials=allow_credentials,
            allow_methods=CORS_ALLOW_METHODS,
            allow_headers=['*'],
            expose_headers=CORS_EXPOSE_HEADERS,
            max_age=v.environ(TIEREDMEMORY_SERVER_CORS_MAX_AGE, default=DEFAULT_CORS_MAX_AGE, type_fn=int),
        )
        logger.debug('CORS enabled for origins: %s', allow_origins)

        return

    def get_dependencies(self, v: Variables) -> Iterable[str] | None:
        return (EXT_FASTAPI_SERVER,)
