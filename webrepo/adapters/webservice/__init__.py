"""Webservice transport adapters."""

from ._base import WebserviceBase, WebserviceProtocol
from .memory import MemoryWebservice

__all__ = [
    "MemoryWebservice",
    "WebserviceBase",
    "WebserviceProtocol",
]
