# models包初始化文件

from salesflow.models.user import User
from salesflow.models.catalog import CatalogItem, PriceTier
from salesflow.models.project import CommercialProject, ProjectBomLine, ProjectHistory
from salesflow.models.sales_order import (
    SalesOrder, SalesOrderLine, PaymentRecord, Shipment, SalesOrderHistory
)
from salesflow.models.production_order import ProductionOrder, ProductionItem, ProductionLog
from salesflow.models.service_ticket import ServiceTicket, TicketHistory

__all__ = [
    "User",
    "CatalogItem",
    "PriceTier",
    "CommercialProject",
    "ProjectBomLine",
    "ProjectHistory",
    "SalesOrder",
    "SalesOrderLine",
    "PaymentRecord",
    "Shipment",
    "SalesOrderHistory",
    "ProductionOrder",
    "ProductionItem",
    "ProductionLog",
    "ServiceTicket",
    "TicketHistory",
]
