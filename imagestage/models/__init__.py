"""Pydantic models for helper configuration and API payloads."""
