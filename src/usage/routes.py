"""Usage stats and models listing endpoints."""

import asyncio

from fastapi import APIRouter, Depends

from src.auth.dependencies import CurrentUser, get_current_user
from src.db import queries
from src.db.client import get_db
from src.usage.limits import get_limits
from src.utils.errors import not_found

router = APIRouter(prefix="/api/v1", tags=["Usage"])


@router.get("/usage", summary="Get usage and limits for the authenticated user")
async def usage_stats(user: CurrentUser = Depends(get_current_user), db=Depends(get_db)):
    usage, customer = await asyncio.gather(
        queries.get_usage_by_user_id(db, user.id),
        queries.get_user_customer_by_user_id(db, user.id),
    )
    if not usage:
        raise not_found(f"Usage for user ({user.id}) does not exist")

    limits = get_limits(customer, user.is_anonymous)
    used = {kind: usage.get(kind) or 0 for kind in ("credits", "search", "research")}

    return {
        "status": "success",
        "data": {
            "tier": limits.name,
            "usage": used,
            "limits": {"credits": limits.credits, "search": limits.search, "research": limits.research},
            "remaining_credits": max(limits.credits - used["credits"], 0),
        },
    }


@router.get("/models", summary="List enabled models")
async def list_models(db=Depends(get_db)):
    models = await queries.list_models(db)
    return {
        "status": "success",
        "data": [
            {
                "id": m["id"],
                "name": m.get("name", m["id"]),
                "provider": m["provider"],
                "credits": m.get("credits", 0),
                "supports_images": bool(m.get("supports_images")),
                "supports_documents": bool(m.get("supports_documents")),
            }
            for m in models
        ],
    }
