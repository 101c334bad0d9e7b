"""FastAPI application for Workflow Studio."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.endpoints import init_dependencies, router
from .config import AppConfig, get_config
from .core.coordinator import ExecutionCoordinator
from .core.logging import get_logger, setup_logging
from .services.generation import ContentGenerationService, ZhipuGenerationService
from .storage.database import create_tables, get_database_engine, get_session_factory
from .storage.result_store import ResultStore


def initialize_components(config: AppConfig, generation_service: Optional[ContentGenerationService] = None):
    """Build the result store, generation service and coordinator for one application."""
    engine = get_database_engine(config.database_url, echo=config.database_echo)
    create_tables(engine)

    result_store = ResultStore(get_session_factory(engine))
    if generation_service is None:
        generation_service = ZhipuGenerationService(config.generation_settings())

    coordinator = ExecutionCoordinator(
        generation_service,
        result_sink=result_store,
        config_loader=config.generation_settings,
        default_model=config.generation_model,
        default_temperature=config.agent_default_temperature,
        default_max_tokens=config.agent_default_max_tokens,
    )
    return coordinator, generation_service, result_store


def create_lifespan_handler(config: AppConfig, generation_service: Optional[ContentGenerationService] = None):
    """Create the application lifespan handler."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.log_structured,
            max_size=config.log_max_size,
            backup_count=config.log_backup_count
        )
        logger = get_logger(__name__)
        logger.info(f"Starting {config.app_name} v{config.app_version}")

        try:
            coordinator, service, result_store = initialize_components(config, generation_service)
        except Exception as e:
            logger.error(f"Application startup failed: {e}")
            raise

        init_dependencies(coordinator, service, result_store)
        app.state.coordinator = coordinator
        logger.info(f"Core components initialized (generation configured: {service.is_configured()})")

        yield

        # Shutdown
        logger.info(f"Shutting down {config.app_name}")
        if coordinator.stop_execution():
            logger.info("Cancelled the active workflow run")

    return lifespan


def create_app(config: Optional[AppConfig] = None,
               generation_service: Optional[ContentGenerationService] = None) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        config: Application configuration, loaded from the environment if not given
        generation_service: Generation backend, a Zhipu client built from config if not given
    """
    if config is None:
        config = get_config()

    app = FastAPI(
        title=config.app_name,
        description="Run visual AI workflows: input, agent and output nodes wired into a graph",
        version=config.app_version,
        debug=config.debug,
        lifespan=create_lifespan_handler(config, generation_service)
    )
    app.state.config = config

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {"message": f"{config.app_name} is running", "version": config.app_version}

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": config.app_name.lower().replace(" ", "-"),
            "version": config.app_version
        }

    return app


if __name__ == "__main__":
    import uvicorn

    from .config import load_config

    app_config = load_config()
    uvicorn.run("workflow_studio.main:create_app", factory=True, **app_config.get_uvicorn_config())
