import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from pawpath.api.dependencies import get_optional_repo
from pawpath.core.repository import MongoDBRepo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/policies", tags=["policies"])


def _require_repo(repo: MongoDBRepo | None) -> MongoDBRepo:
    if repo is None:
        raise HTTPException(status_code=503, detail="Policy store is not configured")
    return repo


@router.get("")
def list_policies(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    repo: MongoDBRepo | None = Depends(get_optional_repo),
) -> dict[str, Any]:
    """Paginated pet-policy directory, ordered by country name."""
    store = _require_repo(repo)
    return {
        "data": store.list_pet_policies(page=page, limit=limit),
        "count": store.count_pet_policies(),
        "page": page,
        "limit": limit,
    }


@router.get("/{slug}")
def get_policy(
    slug: str = Path(..., min_length=1, max_length=120),
    repo: MongoDBRepo | None = Depends(get_optional_repo),
) -> dict[str, Any]:
    """Look up one policy by slug, falling back to the country name it spells."""
    store = _require_repo(repo)
    policy = store.get_pet_policy_by_slug(slug) or store.get_pet_policy(slug.replace("-", " "))
    if not policy:
        raise HTTPException(status_code=404, detail="Not found")
    return policy
