"""Downstream API wrappers."""

from src.infrastructure.downstream.vat_api_client import HmrcVatApiClient

__all__ = ["HmrcVatApiClient"]
