from fastapi import Request
import httpx

async def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    FastAPI dependency provider for the shared httpx.AsyncClient created at startup
    (`request.app.state.http_client`). Used for the AI webhook and the deletion procedure.
    """
    return request.app.state.http_client
