"""
API Server - Convenience Wrapper
Exposes the application for `uvicorn api_server:app`.

For new code, import directly from api.main:
    from api.main import app
"""
from api.main import app

__all__ = ["app"]

if __name__ == "__main__":
    import uvicorn
    from storytests.config import Config

    server = Config().get_server_settings()
    uvicorn.run(app, host=server.host, port=server.port, log_level="info")
