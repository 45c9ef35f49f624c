from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional

from rehearsal import settings
from rehearsal.authentication.identity_authentication import IdentityAuthentication
from rehearsal.manager import ConnectionManager
from rehearsal.routers.live import live_router
from rehearsal.routers.rehearsal import rehearsal_router
from rehearsal.services.document_store import DocumentStore, create_document_store
from rehearsal.services.session_service import SessionService

logging.basicConfig(level=settings.log_level)


async def sweep_expired_identities(app: FastAPI) -> None:
    """Forget expired identities and free any roles they still hold."""
    expired = await app.state.identity_auth.delete_expired_identities()
    if expired:
        await app.state.session_service.release_roles(expired)


def create_app(store: Optional[DocumentStore] = None) -> FastAPI:
    store = store or create_document_store()

    @asynccontextmanager
    async def lifespan(app):
        """Start the identity sweep for the lifetime of the server."""
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            sweep_expired_identities,
            "interval",
            args=[app],
            hours=settings.sweep_interval_hours,
        )
        scheduler.start()
        try:
            yield
        finally:
            scheduler.shutdown()
            await store.close()
            logging.info("Stop Server")

    app = FastAPI(lifespan=lifespan)
    app.state.store = store
    app.state.session_service = SessionService(store)
    app.state.identity_auth = IdentityAuthentication(store)
    app.state.connection_manager = ConnectionManager()
    app.include_router(rehearsal_router)
    app.include_router(live_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
