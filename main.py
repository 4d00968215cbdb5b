"""
Main entrypoint: FastAPI server for AML Check.

The cache sweeper runs in a daemon thread started by the API lifespan; the API
runs in the main thread. On SIGINT/SIGTERM uvicorn shuts down and the lifespan
stops the sweeper.

Env: API_HOST, API_PORT, LOG_LEVEL, ETHERSCAN_API_KEY, BLOCKCYPHER_TOKEN, etc. (see .env.example)

Equivalent: uvicorn backend_amlcheck.api_server.app:app --host 0.0.0.0 --port 3000
"""

# Configure structured JSON logging before other imports that may log
from backend_amlcheck.amlcheck_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    from backend_amlcheck.api_server.server import create_app
    from backend_amlcheck.config.settings import get_settings
    import uvicorn

    settings = get_settings()
    app = create_app(settings)
    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        app_env=settings.app_env,
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
