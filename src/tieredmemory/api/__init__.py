"""HTTP API routers, registered through the multi-extension point below."""

EXT_MULTI_API_ROUTERS = 'tieredmemory-server-api-routers'
