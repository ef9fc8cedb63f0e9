"""Pydantic request/response schemas for the EdShare API."""
