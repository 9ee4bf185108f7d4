"""
Entry point for the chat node.
"""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from peerchat.common.config import Config
from peerchat.common.logging_utils import configure_logging
from peerchat.common.models import Contact

from .contacts import ContactDirectory
from .core import ChatServer
from .routes import NodeRoutes
from .services import NodeService

logger = logging.getLogger(__name__)


def create_app(server: ChatServer) -> FastAPI:
    """Build the control API for a chat node."""
    app = FastAPI(title="peerchat node")
    NodeRoutes(NodeService(server)).setup_routes(app)
    return app


def start_node(config: Config | None = None) -> None:
    """Start the chat node and serve its control API until interrupted."""
    if config is None:
        config = Config()
    configure_logging(config)

    directory = ContactDirectory(config.CONTACTS_FILE_PATH)
    server = ChatServer(
        username=config.USERNAME,
        mac=config.MAC,
        directory=directory,
        config=config,
    )
    # Talking to yourself needs yourself as a friend
    if not directory.is_friend(server.user):
        directory.add(
            Contact(
                mac=config.MAC,
                username=config.USERNAME,
                display_name=config.USERNAME,
                ip=config.HOST,
            )
        )

    server.start()
    logger.info("Control API on %s", config.CONTROL_URL)
    try:
        uvicorn.run(
            create_app(server),
            host=config.CONTROL_HOST,
            port=config.CONTROL_PORT,
            log_level=logging.getLevelName(config.LOG_LEVEL).lower(),
        )
    finally:
        server.shutdown()


__all__ = ["ChatServer", "ContactDirectory", "create_app", "start_node"]
