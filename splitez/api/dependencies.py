"""Dependency injection for FastAPI endpoints"""

import secrets
from typing import Optional
from fastapi import Header, HTTPException, Request
from splitez.config import settings
from splitez.infrastructure.clients.gamification import GamificationClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_account_id(x_account_id: Optional[str] = Header(None)) -> str:
    """Account id asserted by the identity layer in front of this service"""
    if not x_account_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_account_id


def require_service_token(x_service_token: Optional[str] = Header(None)) -> None:
    """Gate for collaborator callbacks that act on behalf of any account"""
    if not x_service_token:
        raise HTTPException(status_code=401, detail="Service token required")
    if not settings.service_api_token or not secrets.compare_digest(x_service_token, settings.service_api_token):
        raise HTTPException(status_code=403, detail="Invalid service token")


def get_gamification_client() -> GamificationClient:
    """Provide gamification webhook client instance"""
    return GamificationClient()
