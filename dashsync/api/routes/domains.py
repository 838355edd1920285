"""
GET/POST routes for every dashboard domain: `/api/<domain>/neon`.

GET returns the stored document; POST replaces it wholesale.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request

from dashsync.api.dependencies import Repository, verify_api_token
from dashsync.core.errors import ValidationError
from dashsync.repos.snapshot_repo import DOMAIN_COLLECTIONS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["domains"], dependencies=[Depends(verify_api_token)])


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except json.JSONDecodeError as exc:
        raise ValidationError("Invalid data format", details={"reason": str(exc)}) from exc


def _add_domain_routes(domain: str) -> None:
    path = f"/{domain}/neon"

    @router.get(path, summary=f"Load {domain}", name=f"load_{domain}")
    def load(repo: Repository) -> dict[str, Any]:
        return repo.get(domain)

    @router.post(path, summary=f"Replace {domain}", name=f"save_{domain}")
    async def save(request: Request, repo: Repository) -> dict[str, Any]:
        body = await _read_json(request)
        repo.replace(domain, body)
        return {"success": True}


for _domain in DOMAIN_COLLECTIONS:
    _add_domain_routes(_domain)
