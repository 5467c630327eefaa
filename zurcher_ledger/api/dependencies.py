"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from zurcher_ledger.infrastructure.clients.storage import AttachmentStorageClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_storage_client() -> AttachmentStorageClient:
    """Provide receipt storage client instance"""
    return AttachmentStorageClient()
