"""Remote store infrastructure package."""

from .postgrest_gateway import PostgrestRemoteGateway

__all__ = ["PostgrestRemoteGateway"]
