import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from .lib.elasticsearch import create_es_client, ensure_indices
from .routers import health, products
from .security import verify_api_key

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the AsyncElasticsearch client for the lifetime of the app.

    Tests set ``app.state.es`` to a fake directly and never enter the
    lifespan.
    """
    es = create_es_client()
    app.state.es = es
    try:
        await ensure_indices(es)
        yield
    finally:
        logger.info("Closing Elasticsearch client")
        await es.close()


app = FastAPI(
    title="Regrow API",
    description="Marketplace listing discovery: popular, personalized and newest listings",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(products.router)


@app.get("/", dependencies=[Depends(verify_api_key)])
async def root():
    return {"message": "Regrow API"}
