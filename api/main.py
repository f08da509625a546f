"""
Main FastAPI Application
FastAPI app creation, CORS configuration, exception handlers and startup/shutdown
"""
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
import logging

from storytests.config import Config
from storytests.logging_setup import setup_logging

from .dependencies import initialize_services
from .errors import register_exception_handlers
from .routes import api_router, health_router

logger = logging.getLogger(__name__)

API_TITLE = "User Story to Tests"
API_VERSION = "1.0.0"
API_DESCRIPTION = (
    "Generate structured QA test cases from user stories with an LLM, "
    "pull stories from Jira and produce sample data for test fixtures."
)


def _configure_cors(app: FastAPI, config: Config):
    server = config.get_server_settings()

    if server.is_development:
        logger.info("CORS: Running in development mode - allowing all origins")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=False,  # Must be False when using allow_origins=["*"]
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )
    else:
        logger.info(f"CORS: Running in production mode - allowing {len(server.cors_origins)} origins")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=server.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Build the application; services are created in the lifespan from ``config``"""
    config = config or Config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.get_logging_settings().level)
        config.validate()
        app.state.services = initialize_services(config)
        logger.info("Application started")
        yield
        logger.info("Application shutting down")
        jira_client = app.state.services.jira_client
        if jira_client is not None:
            jira_client.session.close()

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    _configure_cors(app, config)
    register_exception_handlers(app)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """Log each request with its outcome"""
        response = await call_next(request)
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code}")
        return response

    app.include_router(health_router)
    app.include_router(api_router, prefix=config.get_server_settings().api_prefix)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=API_TITLE,
            version=API_VERSION,
            description=app.description,
            routes=app.routes,
        )
        openapi_schema["tags"] = [
            {"name": "Health", "description": "Liveness and configuration status"},
            {"name": "Test Generation", "description": "LLM-generated test cases from a user story"},
            {"name": "Jira", "description": "Read-only story lookup and credential check"},
            {"name": "Mock Data", "description": "Sample data rows from a schema description"},
        ]
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8090, log_level="info")
