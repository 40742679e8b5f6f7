from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import balances, chains, health, routes
from .client import get_gasflow_client
from .config import settings
from .core.recovery.errors import (
    BridgeValidationError,
    IntentValidationError,
    NoViableRoute,
    UnsupportedChainError,
)
from .logging_config import setup_logging
from .types.responses import ErrorResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    yield
    await get_gasflow_client().aclose()


# Create FastAPI app
app = FastAPI(
    title="GasFlow API",
    description="Cross-chain gas payment routing with USDC",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])
app.include_router(chains.router, tags=["Chains"])
app.include_router(balances.router, tags=["Balances"])
app.include_router(routes.router, tags=["Routes"])


def _error_response(status_code: int, exc) -> JSONResponse:
    body = ErrorResponse(
        error=exc.message,
        code=exc.code,
        retryable=exc.retryable,
        details={k: v for k, v in exc.context.details.items() if v is not None},
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(NoViableRoute)
async def no_viable_route_handler(request: Request, exc: NoViableRoute) -> JSONResponse:
    return _error_response(422, exc)


@app.exception_handler(UnsupportedChainError)
@app.exception_handler(IntentValidationError)
@app.exception_handler(BridgeValidationError)
async def bad_request_handler(request: Request, exc) -> JSONResponse:
    return _error_response(400, exc)


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "GasFlow API",
        "version": "0.1.0",
        "testnet": settings.use_testnet,
        "docs": "/docs",
        "health": "/healthz",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "gasflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
