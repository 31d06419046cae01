"""
FastAPI application stub for the tiered memory engine.

This provides compatibility with typical uvicorn/gunicorn deployment setups.
"""

from tieredmemory.dependencies import preconfigure
from tieredmemory.lifecycle.fastapi import fastapi_app_factory, get_logger, get_variables_dep

v, _ = preconfigure()
app = fastapi_app_factory(v)

__all__ = (
    'app', 'get_logger', 'get_variables_dep',
)
