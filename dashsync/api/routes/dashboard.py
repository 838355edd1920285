from typing import Any

from fastapi import APIRouter, Depends

from dashsync.api.dependencies import Repository, verify_api_token

router = APIRouter(prefix="/api", tags=["dashboard"], dependencies=[Depends(verify_api_token)])


@router.get("/dashboard", summary="Load every dashboard widget's data in one request")
def load_dashboard(repo: Repository) -> dict[str, Any]:
    """Combined payload keyed by `todos`, `sales`, `calendar`, `quickLinks`."""
    return repo.dashboard()
