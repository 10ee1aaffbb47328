"""V1 API 路由聚合"""
from fastapi import APIRouter

from salesflow.api.api_v1.endpoints import (
    projects, sales_orders, production_orders, tickets, statistics, catalog
)

api_router = APIRouter()

# 业务流程API
api_router.include_router(projects.router, prefix="/projects", tags=["商务项目"])
api_router.include_router(sales_orders.router, prefix="/sales-orders", tags=["合同订单"])
api_router.include_router(production_orders.router, prefix="/production-orders", tags=["生产订单"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["售后工单"])

# 报价API
api_router.include_router(catalog.router, prefix="/catalog", tags=["产品报价"])

# 统计API
api_router.include_router(statistics.router, prefix="/statistics", tags=["统计报表"])
