"""Business logic services for the control API.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from peerchat.common.models import (
        ApproveRequest,
        ChatRequest,
        FriendRequest,
        StartSessionRequest,
    )

    from .core import ChatServer


class NodeService:
    """Exposes the chat node's operations as JSON-ready results."""

    def __init__(self, server: ChatServer):
        self.server = server

    def health(self) -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "ok",
            "timestamp": int(time.time()),
            "user": self.server.user.model_dump(),
            "port": self.server.port,
        }

    def sessions(self) -> list[dict[str, Any]]:
        return [s.model_dump(mode="json") for s in self.server.session_snapshot()]

    def start_session(self, req: StartSessionRequest) -> dict[str, Any]:
        started = self.server.start_session(req.peer, req.protocol)
        return {"peer": req.peer, "started": started}

    def send_chat(self, req: ChatRequest) -> dict[str, Any]:
        self.server.send_chat_message(req.peer, req.text)
        return {"peer": req.peer, "sent": True}

    def inbox(self) -> list[dict[str, Any]]:
        return [line.model_dump() for line in self.server.inbox()]

    def friends(self) -> list[dict[str, Any]]:
        return [c.model_dump() for c in self.server.directory.all()]

    def add_friend(self, req: FriendRequest) -> dict[str, Any]:
        contact = self.server.send_friend_request(
            req.ip, req.mac, req.username, req.display_name
        )
        return contact.model_dump()

    def friend_requests(self) -> list[dict[str, Any]]:
        return [r.model_dump() for r in self.server.pending_friend_requests()]

    def approve(self, request_id: str, req: ApproveRequest) -> dict[str, Any]:
        contact = self.server.approve_friend_request(request_id, req.display_name)
        return contact.model_dump()

    def reject(self, request_id: str) -> dict[str, Any]:
        self.server.reject_friend_request(request_id)
        return {"request_id": request_id, "rejected": True}
