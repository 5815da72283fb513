"""
Token list, lookup and search routes
"""

from fastapi import APIRouter, HTTPException, Query, Request

from tokenprism.core.models import TokenQuery
from tokenprism.web.models import APIResponse
from tokenprism.web.utils import get_container, get_request_id

router = APIRouter()


@router.get("", response_model=APIResponse, response_model_exclude_none=True)
async def list_tokens(
    request: Request,
    limit: str | None = Query(None, description="Page size, 1-100 (default 20)"),
    cursor: str | None = Query(None, description="Opaque cursor from a previous page"),
    sort_by: str | None = Query(None, alias="sortBy", description="volume | priceChange | marketCap | liquidity"),
    period: str | None = Query(None, description="1h | 24h | 7d"),
    min_volume: str | None = Query(None, alias="minVolume", description="Minimum volume"),
    min_liquidity: str | None = Query(None, alias="minLiquidity", description="Minimum liquidity"),
) -> APIResponse:
    """
    List aggregated tokens

    Unparseable parameters fall back to their defaults; a malformed cursor
    restarts from the first page.
    """
    query = TokenQuery.from_params(
        limit=limit,
        cursor=cursor,
        sort_by=sort_by,
        period=period,
        min_volume=min_volume,
        min_liquidity=min_liquidity,
    )
    page = await get_container(request).token_service.get_tokens(query)

    return APIResponse(
        success=True,
        data=[record.model_dump(mode="json") for record in page.records],
        pagination=page.pagination.model_dump(by_alias=True),
        meta=page.meta.model_dump(),
        request_id=get_request_id(request),
    )


@router.get("/search/{query}", response_model=APIResponse, response_model_exclude_none=True)
async def search_tokens(request: Request, query: str) -> APIResponse:
    """Search every source; queries shorter than two characters are rejected with 400."""
    records = await get_container(request).token_service.search_tokens(query)
    return APIResponse(
        success=True,
        data=[record.model_dump(mode="json") for record in records],
        meta={"query": query, "count": len(records)},
        request_id=get_request_id(request),
    )


@router.get("/{address}", response_model=APIResponse, response_model_exclude_none=True)
async def get_token(request: Request, address: str) -> APIResponse:
    record = await get_container(request).token_service.get_token_by_address(address)
    if record is None:
        raise HTTPException(status_code=404, detail="Token not found")
    return APIResponse(success=True, data=record.model_dump(mode="json"), request_id=get_request_id(request))
