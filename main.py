"""
Main API module for LinkKeep.

Responsibilities:
    - Expose the chat webhook: one inbound message in, one reply out
    - Expose per-user link listing and deletion
    - Own the link store for the app's lifetime and close it on shutdown

Architecture:
    - App Factory pattern (create_app) for test isolation and DI.
    - The store is built by the storage factory (LMDB or memory from env)
      unless one is injected; there is no module-level store.
    - LinkManager holds the chat rules; routes stay thin.
    - Run with `uvicorn main:create_app --factory`.

LLM Prompt Example:
    "Explain how to structure a FastAPI service with an application factory,
    an injected embedded store, and a clean shutdown that releases it."
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from linkkeep.config import settings
from linkkeep.context import OpContext
from linkkeep.errors import CancellationError, LinkStoreError, StoreClosedError, ValidationError
from linkkeep.manager.link_manager import LinkManager
from linkkeep.scraper.base import BaseScraper
from linkkeep.scraper.scraper import RequestsScraper
from linkkeep.storage.base import BaseLinkStore
from linkkeep.storage.storage_factory import get_storage


class MessageRequest(BaseModel):
    """Inbound chat message delivered by the transport."""
    user_id: int
    text: str


class MessageReply(BaseModel):
    reply: str


class LinkOut(BaseModel):
    url: str
    title: str
    description: str
    user_id: int
    timestamp: Optional[datetime]
    tags: List[str]
    read: bool
    preview_image_url: Optional[str]


def _store_error(err: LinkStoreError) -> HTTPException:
    """Map a store failure to an HTTP error without exposing internals."""
    if isinstance(err, ValidationError):
        return HTTPException(status_code=400, detail=err.message)
    if isinstance(err, StoreClosedError):
        return HTTPException(status_code=503, detail="Store unavailable")
    if isinstance(err, CancellationError):
        return HTTPException(status_code=504, detail="Request timed out")
    return HTTPException(status_code=500, detail="Internal storage error")


def create_app(store: Optional[BaseLinkStore] = None, scraper: Optional[BaseScraper] = None) -> FastAPI:
    """
    Factory function to build and configure a new FastAPI app instance.

    Args:
        store: Link store to use; built from configuration when omitted.
        scraper: Metadata scraper; a RequestsScraper when omitted.

    Returns:
        FastAPI: A fully configured application instance.

    Why an app factory?
        - Enables per-test isolation in pytest.
        - Lets tests inject an in-memory store and a static scraper.
        - Avoids a process-wide engine handle.
    """
    log = logging.getLogger("linkkeep.app")

    # basic console logging (optional)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    # ----------------------------------------------------------------
    # Per-app instances (isolated for tests, swappable for production)
    # ----------------------------------------------------------------
    store = store if store is not None else get_storage()
    scraper = scraper if scraper is not None else RequestsScraper()
    manager = LinkManager(store=store, scraper=scraper)
    log.info("LinkKeep storage backend: %s", store.backend_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        log.info("shutting down, closing link store")
        scraper.close()
        store.close()

    app = FastAPI(
        title="LinkKeep",
        description="Save links from chat with their page metadata, per user",
        docs_url="/docs",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.manager = manager

    def _ctx() -> OpContext:
        return OpContext.with_timeout(settings.REQUEST_TIMEOUT)

    # Health check
    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok" if not store.closed else "closed", "backend": store.backend_name}

    # ----------------------------------------------------------------
    # Routes
    # ----------------------------------------------------------------
    @app.post("/messages", response_model=MessageReply)
    def handle_message(req: MessageRequest) -> MessageReply:
        """
        Chat webhook: process one message and return the bot's reply.

        The scrape gets its own budget (LINKKEEP_SCRAPE_TIMEOUT) on top of
        the store call budget, since it happens before the save.
        """
        ctx = OpContext.with_timeout(settings.SCRAPE_TIMEOUT + settings.REQUEST_TIMEOUT)
        return MessageReply(reply=manager.handle_message(req.user_id, req.text, ctx=ctx))

    @app.get("/users/{user_id}/links", response_model=List[LinkOut])
    def list_links(user_id: int) -> List[LinkOut]:
        """Return every saved link of the user, newest first."""
        try:
            links = manager.list_links(user_id, ctx=_ctx())
        except LinkStoreError as err:
            log.error("listing failed user_id=%s: %s", user_id, err)
            raise _store_error(err)
        return [LinkOut(**link.model_dump()) for link in links]

    @app.delete("/users/{user_id}/links")
    def delete_link(user_id: int, url: str = Query(..., description="Exact saved URL.")) -> Dict[str, Any]:
        """Delete one saved link; deleting a missing link succeeds."""
        try:
            deleted = manager.delete_url(user_id, url, ctx=_ctx())
        except LinkStoreError as err:
            log.error("delete failed user_id=%s url=%s: %s", user_id, url, err)
            raise _store_error(err)
        return {"deleted": deleted, "url": url}

    return app
