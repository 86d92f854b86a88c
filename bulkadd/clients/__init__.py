"""Clients for external API interactions."""
from bulkadd.clients.doof_client import DoofApiClient

__all__ = ["DoofApiClient"]
