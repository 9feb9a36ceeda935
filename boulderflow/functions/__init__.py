"""Serverless functions service (FastAPI)."""

from boulderflow.functions.app import create_app

__all__ = ["create_app"]
