"""
Routes for the node control API.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException

from peerchat.common.exceptions import ChatError
from peerchat.common.models import (
    ApproveRequest,
    ChatRequest,
    FriendRequest,
    StartSessionRequest,
)

from .services import NodeService


class NodeRoutes:
    """Handles FastAPI routes for the control API."""

    def __init__(self, service: NodeService):
        self.service = service

    def setup_routes(self, app: FastAPI) -> None:
        """Setup API routes on the FastAPI app."""

        app.get("/health")(self.health)
        app.get("/sessions")(self.sessions)
        app.post("/sessions")(self.start_session)
        app.get("/messages")(self.inbox)
        app.post("/messages")(self.send_chat)
        app.get("/friends")(self.friends)
        app.post("/friends")(self.add_friend)
        app.get("/friend-requests")(self.friend_requests)
        app.post("/friend-requests/{request_id}/approve")(self.approve)
        app.post("/friend-requests/{request_id}/reject")(self.reject)

    async def health(self) -> dict[str, Any]:
        """Handle /health endpoint."""
        return self.service.health()

    async def sessions(self) -> list[dict[str, Any]]:
        return self.service.sessions()

    def start_session(self, req: StartSessionRequest) -> dict[str, Any]:
        """Handle POST /sessions endpoint."""
        try:
            return self.service.start_session(req)
        except ChatError as e:
            raise HTTPException(e.status_code, str(e)) from e

    async def inbox(self) -> list[dict[str, Any]]:
        return self.service.inbox()

    def send_chat(self, req: ChatRequest) -> dict[str, Any]:
        """Handle POST /messages endpoint."""
        try:
            return self.service.send_chat(req)
        except ChatError as e:
            raise HTTPException(e.status_code, str(e)) from e

    async def friends(self) -> list[dict[str, Any]]:
        return self.service.friends()

    def add_friend(self, req: FriendRequest) -> dict[str, Any]:
        """Handle POST /friends endpoint."""
        try:
            return self.service.add_friend(req)
        except ChatError as e:
            raise HTTPException(e.status_code, str(e)) from e

    async def friend_requests(self) -> list[dict[str, Any]]:
        return self.service.friend_requests()

    def approve(self, request_id: str, req: ApproveRequest) -> dict[str, Any]:
        """Handle POST /friend-requests/{request_id}/approve endpoint."""
        try:
            return self.service.approve(request_id, req)
        except ChatError as e:
            raise HTTPException(e.status_code, str(e)) from e

    async def reject(self, request_id: str) -> dict[str, Any]:
        """Handle POST /friend-requests/{request_id}/reject endpoint."""
        try:
            return self.service.reject(request_id)
        except ChatError as e:
            raise HTTPException(e.status_code, str(e)) from e
