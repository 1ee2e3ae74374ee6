from fastapi import FastAPI

from server.relay import create_relay_router
from server.routes import create_router


def create_app(store, manager, search, card_reader, relay) -> FastAPI:
    app = FastAPI(title="StrategyScribe", version="0.1.0")

    router = create_router(store, manager, search, card_reader, relay)
    app.include_router(router, prefix="/api")
    app.include_router(create_relay_router(relay))

    return app
