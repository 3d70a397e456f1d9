"""Texts and the corpus ingestion pipeline."""

from .schemas import SchemeParams, TextParams, TokenRecord

__all__ = ["SchemeParams", "TextParams", "TokenRecord"]
