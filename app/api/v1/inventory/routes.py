from fastapi import APIRouter, Depends, Query, Response, status
from typing import List, Optional

from app.api import deps
from app.domain.inventory.service import InventoryCatalog
from app.api.v1.inventory.schemas import (
    BatchResponse,
    DeleteResponse,
    SortOrder,
    StatusFilter,
    StockAddedResponse,
    StockCreate,
    StockSummaryResponse,
)

router = APIRouter()


@router.get("", response_model=List[BatchResponse])
async def list_inventory(
    search: Optional[str] = None,
    status_filter: StatusFilter = Query(StatusFilter.ALL, alias="filter"),
    sort: SortOrder = SortOrder.INSERTION,
    catalog: InventoryCatalog = Depends(deps.get_catalog),
):
    """
    List stock batches with their expiry status.

    - search: case-insensitive match on name or strength
    - filter: all, expired, soon (<=30 days), near (<=90 days) or ok
    """
    batches = await catalog.list_batches(
        search=search, status_filter=status_filter.value, sort=sort.value
    )
    return [BatchResponse.model_validate(b) for b in batches]


@router.get("/summary", response_model=List[StockSummaryResponse])
async def inventory_summary(catalog: InventoryCatalog = Depends(deps.get_catalog)):
    """Stock totals per medicine."""
    summaries = await catalog.summary()
    return [StockSummaryResponse.model_validate(s) for s in summaries]


@router.post(
    "",
    response_model=StockAddedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"description": "Stock merged into an existing batch"},
        409: {"description": "Batch already exists and merging is disabled"},
    },
)
async def add_stock(
    stock_in: StockCreate,
    response: Response,
    catalog: InventoryCatalog = Depends(deps.get_catalog),
):
    batch, created = await catalog.add_stock(
        stock_in.name, stock_in.strength, stock_in.quantity, stock_in.expiry_date
    )
    if created:
        message = f"{batch.name} ({batch.strength}) added to inventory!"
    else:
        response.status_code = status.HTTP_200_OK
        message = (
            f"Stock for {batch.name} ({batch.strength}) updated "
            f"and quantity increased to {batch.quantity}."
        )
    return StockAddedResponse(
        message=message,
        created=created,
        item=BatchResponse.model_validate(batch),
    )


@router.delete(
    "/{name}",
    response_model=DeleteResponse,
    responses={404: {"description": "No batch with that name"}},
)
async def delete_medicine(
    name: str,
    catalog: InventoryCatalog = Depends(deps.get_catalog),
):
    removed = await catalog.delete_by_name(name)
    return DeleteResponse(
        message=f"{name} and all its stock entries have been deleted.",
        removed=removed,
    )
