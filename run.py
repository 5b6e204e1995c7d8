"""
Entrypoint - Server Launcher
Serves the FlowFront HTTP API with uvicorn.
"""
import sys
from pathlib import Path
import uvicorn
from flowfront.core.config import settings

# Ensure the package is importable when run from a checkout
sys.path.insert(0, str(Path(__file__).parent))

if __name__ == "__main__":
    uvicorn.run(
        "flowfront.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "warning",
        access_log=settings.debug
    )
