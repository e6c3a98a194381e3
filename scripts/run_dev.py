#!/usr/bin/env python3
"""
Development server runner for the Tenant Database Gateway.

Starts uvicorn with hot reloading after loading the project's .env file.
"""

import sys
from pathlib import Path

# Add the src directory to the Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from dotenv import load_dotenv

env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"Loaded environment variables from {env_file}")
else:
    print(f"No .env file found at {env_file}")
    print("  DATABASE__DATABASE_URL and SECURITY__ENCRYPTION_KEY must be set")

if __name__ == "__main__":
    import uvicorn
    from tenant_gateway.config import get_settings

    server_config = get_settings().server

    print("Starting Tenant Database Gateway development server...")
    print(f"  API Documentation: http://{server_config.host}:{server_config.port}/docs")
    print(f"  Health Check:      http://{server_config.host}:{server_config.port}/health")
    print(f"  App:               {server_config.app_module}")
    print()

    uvicorn.run(
        server_config.app_module,
        host=server_config.host,
        port=server_config.port,
        reload=server_config.reload,
        workers=server_config.workers,
        reload_dirs=[str(src_path)],
        log_config=None,  # structlog owns logging
        access_log=False,  # request logging middleware
    )
