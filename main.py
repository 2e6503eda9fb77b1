"""Main entry point for running the FastAPI application with auto-reload."""
import uvicorn

from forge.api import app
from forge.config import settings

if __name__ == "__main__":
    print(f"Starting {settings.app_name} v{settings.version}")
    print(f"Environment: {settings.environment.value}")
    print(f"Database: {settings.db.url.split('@')[-1] if '@' in settings.db.url else 'SQLite'}")
    print(f"LLM model: {settings.llm.model_name}")
    print(f"Auto-reload: {'Enabled' if settings.debug else 'Disabled'}")
    print("-" * 50)

    uvicorn.run(
        "forge.api:app" if settings.debug else app,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        reload_dirs=["forge", "assist", "taxonomy"] if settings.debug else None,
        log_level=settings.logging.level.lower(),
    )
