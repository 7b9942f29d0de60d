from fastapi import APIRouter
from app.api.v1.inventory import routes as inventory
from app.api.v1.sales import routes as sales

api_router = APIRouter()
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(sales.router, prefix="/sales", tags=["sales"])
