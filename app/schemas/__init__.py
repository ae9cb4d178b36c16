"""Pydantic schemas for API request/response validation."""

from app.schemas.approval import ApprovalDecision, ApprovalRead

__all__ = ["ApprovalDecision", "ApprovalRead"]
