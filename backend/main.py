"""
Provider Router API.

This is the main entry point for the FastAPI application.
All application configuration and setup is handled by the app factory.
"""

# Windows asyncio subprocess fix - must be set before any async code runs
import sys
if sys.platform == "win32":
    import asyncio
    # ProactorEventLoop is required for subprocess support on Windows
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

# Initialize settings and logging first
from core import get_settings, setup_logging

settings = get_settings()
setup_logging(debug_mode=settings.debug, json_output=settings.log_json)

# Create the FastAPI application
from core.app_factory import create_app

app = create_app()


if __name__ == "__main__":
    import uvicorn

    # Pass the app object directly so settings and logging are set up once
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="debug" if settings.debug else "info")
