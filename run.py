"""Application entry point.

Runs the chat API with uvicorn. Reload is only enabled in development.
"""

import uvicorn

from app.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="localhost",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
    )
