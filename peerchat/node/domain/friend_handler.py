"""Friend request handler for the chat node.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import TYPE_CHECKING, Callable

from peerchat.common.exceptions import ProtocolViolationError, UnknownFriendError
from peerchat.common.models import (
    Contact,
    FriendMessage,
    Identity,
    PendingFriendRequest,
)

if TYPE_CHECKING:
    from peerchat.common.interfaces import IContactDirectory, IDisplay
    from peerchat.common.models import Message

logger = logging.getLogger(__name__)


def require_friend(
    directory: IContactDirectory, identity: Identity, source_ip: str, what: str
) -> Contact:
    """Return the contact for a sender, refreshing its address. Non-friends are refused."""
    contact = directory.get(identity)
    if contact is None:
        msg = f"{what} message from non-friend {identity}"
        raise ProtocolViolationError(msg)
    if contact.ip != source_ip:
        directory.update_ip(identity, source_ip)
    return contact


class FriendRequestQueue:
    """Friend requests waiting for the local user's decision."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: dict[str, PendingFriendRequest] = {}

    def add(self, identity: Identity, ip: str) -> PendingFriendRequest:
        """Queue a request. A repeated request from the same peer refreshes its address."""
        with self._lock:
            for request_id, request in self._requests.items():
                if request.identity == identity:
                    updated = request.model_copy(update={"ip": ip})
                    self._requests[request_id] = updated
                    return updated
            request = PendingFriendRequest(
                request_id=str(uuid.uuid4()),
                identity=identity,
                ip=ip,
                received_at=int(time.time()),
            )
            self._requests[request.request_id] = request
            return request

    def get(self, request_id: str) -> PendingFriendRequest:
        with self._lock:
            request = self._requests.get(request_id)
        if request is None:
            msg = f"no pending friend request {request_id}"
            raise UnknownFriendError(msg)
        return request

    def remove(self, request_id: str) -> None:
        with self._lock:
            self._requests.pop(request_id, None)

    def all(self) -> list[PendingFriendRequest]:
        with self._lock:
            return list(self._requests.values())


class FriendHandler:
    """Handles friend requests in both directions."""

    def __init__(
        self,
        user: Identity,
        directory: IContactDirectory,
        requests: FriendRequestQueue,
        display: IDisplay,
        send: Callable[[str, Message], None],
    ):
        self.user = user
        self.directory = directory
        self.requests = requests
        self.display = display
        self.send = send

    def handle(self, message: FriendMessage, source_ip: str) -> None:
        """Queue a request from a stranger; a reply from a friend only refreshes its address."""
        peer = message.source
        if self.directory.is_friend(peer):
            self.directory.update_ip(peer, source_ip)
            logger.info("Friendship with %s confirmed", peer)
            return

        request = self.requests.add(peer, source_ip)
        logger.info("Friend request %s from %s pending", request.request_id, peer)
        self.display.show(
            f"Friend request from {peer.username} ({peer.mac}) at {source_ip}, "
            f"id {request.request_id}"
        )

    def send_request(self, ip: str, mac: str, username: str, display_name: str) -> Contact:
        """Register a peer locally and ask it to become a friend."""
        contact = Contact(mac=mac, username=username, display_name=display_name, ip=ip)
        self.directory.add(contact)
        self.send(ip, FriendMessage.addressed(self.user, contact.identity))
        return contact

    def approve(self, request_id: str, display_name: str) -> Contact:
        request = self.requests.get(request_id)
        contact = Contact(
            mac=request.identity.mac,
            username=request.identity.username,
            display_name=display_name,
            ip=request.ip,
        )
        self.directory.add(contact)
        self.requests.remove(request_id)
        self.send(contact.ip, FriendMessage.addressed(self.user, contact.identity))
        return contact

    def reject(self, request_id: str) -> None:
        request = self.requests.get(request_id)
        self.requests.remove(request_id)
        logger.info("Rejected friend request from %s", request.identity)
