from typing import Any

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from promql_cache.api.dependencies import HandlerDep, lifespan
from promql_cache.config import settings
from promql_cache.dto import (
    HealthCheckResponse,
    HistoryResponse,
    MetricResponse,
    ServiceResponse,
    StatsResponse,
    TranslateQueryRequest,
    TranslateQueryResponse,
)

app = FastAPI(
    title="PromQL Semantic Cache API",
    description="Natural language to PromQL with a self-tuning semantic cache",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "PromQL Semantic Cache API",
        "version": "0.1.0",
        "description": "Natural language to PromQL with a self-tuning semantic cache",
        "endpoints": {
            "query": "/api/v1/query",
            "services": "/api/v1/services",
            "history": "/api/v1/history",
            "stats": "/api/v1/stats",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health", response_model=HealthCheckResponse)
async def health(handler: HandlerDep) -> HealthCheckResponse:
    """Health check endpoint."""
    return await handler.health_check()


@app.post("/api/v1/query", response_model=TranslateQueryResponse)
async def translate_query(request: TranslateQueryRequest, handler: HandlerDep) -> TranslateQueryResponse:
    """
    Translate a natural-language question into PromQL.

    Similar questions that have proven reliable are answered from the cache;
    everything else goes to the generator and is cached for next time.
    """
    return await handler.translate(request)


@app.get("/api/v1/services", response_model=list[ServiceResponse])
async def list_services(handler: HandlerDep) -> list[ServiceResponse]:
    return handler.list_services()


# Declared before /services/{name} so "search" is not taken as a name
@app.get("/api/v1/services/search", response_model=list[ServiceResponse])
async def search_services(handler: HandlerDep, q: str = Query(..., min_length=1)) -> list[ServiceResponse]:
    """Find services whose name or description contains the search term."""
    return handler.search_services(q)


@app.get("/api/v1/services/{name}", response_model=ServiceResponse)
async def get_service(name: str, handler: HandlerDep, namespace: str = "default") -> ServiceResponse:
    return handler.get_service(name, namespace)


@app.get("/api/v1/services/{name}/metrics", response_model=list[MetricResponse])
async def get_service_metrics(name: str, handler: HandlerDep, namespace: str = "default") -> list[MetricResponse]:
    return handler.get_service_metrics(name, namespace)


@app.get("/api/v1/history", response_model=HistoryResponse)
async def get_history(
    handler: HandlerDep,
    limit: int = Query(50, ge=1, le=1000),
    user_id: str | None = None,
) -> HistoryResponse:
    """Recent translation attempts, most recent first."""
    return handler.get_history(limit=limit, user_id=user_id)


@app.get("/api/v1/stats", response_model=StatsResponse)
async def get_stats(handler: HandlerDep) -> StatsResponse:
    """Get cache statistics and request counters."""
    return handler.get_stats()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "promql_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
