"""Agent runtime entrypoint.

Run with ``python src/main.py`` or ``uvicorn main:application --app-dir src``.
"""

from api.app import create_app

application = create_app()


if __name__ == "__main__":
    import uvicorn

    from config import get_settings

    settings = get_settings()
    uvicorn.run(
        "main:application",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_reload,
        log_level=settings.app_log_level.lower(),
    )
