# Message handlers
from .chat_handler import ChatHandler as ChatHandler
from .friend_handler import FriendHandler as FriendHandler
from .friend_handler import FriendRequestQueue as FriendRequestQueue
from .handshake_handler import HandshakeHandler as HandshakeHandler

__all__ = ["ChatHandler", "FriendHandler", "FriendRequestQueue", "HandshakeHandler"]
