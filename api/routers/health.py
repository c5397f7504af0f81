"""Health check router."""

from fastapi import APIRouter

from shared.clients.sandbox import SandboxClient, SandboxHealthCheck

from ..config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/health/sandbox", response_model=SandboxHealthCheck)
async def sandbox_health() -> SandboxHealthCheck:
    """Check that sandboxes can be created from the configured template."""
    settings = get_settings()
    client = SandboxClient(
        api_key=settings.e2b_api_key,
        template=settings.sandbox_template,
        template_id=settings.sandbox_template_id,
    )
    return await client.check_health()
