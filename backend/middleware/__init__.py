"""Middleware package for the provider router backend."""

from .request_id import CORRELATION_HEADER, CorrelationIdMiddleware

__all__ = ["CORRELATION_HEADER", "CorrelationIdMiddleware"]
