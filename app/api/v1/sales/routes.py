from fastapi import APIRouter, Depends

from app.api import deps
from app.domain.sales.service import SaleEngine
from app.api.v1.sales.schemas import SaleCreate, SaleResponse

router = APIRouter()


@router.post(
    "",
    response_model=SaleResponse,
    responses={
        400: {"description": "Not enough stock; details.available carries the stock on hand"},
        404: {"description": "Medicine not found"},
    },
)
async def record_sale(
    sale_in: SaleCreate,
    engine: SaleEngine = Depends(deps.get_sale_engine),
):
    """Sell units of a medicine, soonest-expiring batches first."""
    result = await engine.record_sale(
        sale_in.medicine, sale_in.quantity, strength=sale_in.strength
    )
    return SaleResponse.model_validate(result)
