"""
HTTP client for a running node's control API.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from peerchat.common.config import Config
from peerchat.common.models import (
    ApproveRequest,
    ChatRequest,
    FriendRequest,
    ProtocolKind,
    StartSessionRequest,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


class ControlError(Exception):
    """Exception for control API calls the node refused."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ControlClient:
    """Talks to the control API of a local chat node."""

    def __init__(self, control_url: str | None = None):
        self.control_url = (control_url or Config().CONTROL_URL).rstrip("/")

    def _get(self, path: str) -> Any:
        r = requests.get(f"{self.control_url}{path}", timeout=REQUEST_TIMEOUT)
        return self._result(r)

    def _post(self, path: str, payload: dict[str, Any] | None = None) -> Any:
        r = requests.post(
            f"{self.control_url}{path}", json=payload or {}, timeout=REQUEST_TIMEOUT
        )
        return self._result(r)

    @staticmethod
    def _result(r: requests.Response) -> Any:
        if r.status_code >= 400:  # noqa: PLR2004
            try:
                detail = r.json().get("detail", r.text)
            except ValueError:
                detail = r.text
            raise ControlError(str(detail), r.status_code)
        return r.json()

    def health(self) -> dict[str, Any]:
        return self._get("/health")

    def sessions(self) -> list[dict[str, Any]]:
        return self._get("/sessions")

    def start_session(self, peer: str, protocol: ProtocolKind | None = None) -> bool:
        req = StartSessionRequest(peer=peer, protocol=protocol)
        return bool(self._post("/sessions", req.model_dump(mode="json"))["started"])

    def send(self, peer: str, text: str) -> None:
        self._post("/messages", ChatRequest(peer=peer, text=text).model_dump())
        logger.debug("Sent chat message to %s", peer)

    def inbox(self) -> list[dict[str, Any]]:
        return self._get("/messages")

    def friends(self) -> list[dict[str, Any]]:
        return self._get("/friends")

    def add_friend(
        self, ip: str, mac: str, username: str, display_name: str
    ) -> dict[str, Any]:
        req = FriendRequest(ip=ip, mac=mac, username=username, display_name=display_name)
        return self._post("/friends", req.model_dump())

    def friend_requests(self) -> list[dict[str, Any]]:
        return self._get("/friend-requests")

    def approve(self, request_id: str, display_name: str) -> dict[str, Any]:
        req = ApproveRequest(display_name=display_name)
        return self._post(f"/friend-requests/{request_id}/approve", req.model_dump())

    def reject(self, request_id: str) -> None:
        self._post(f"/friend-requests/{request_id}/reject")
