"""
封闭枚举：角色、各实体状态及辅助字段取值

数据库中以字符串存储 .value，读出后用 EnumCls(value) 还原。
"""

import enum


class Role(str, enum.Enum):
    ADMIN = "Administrator"
    SALES_MANAGER = "Sales Manager"
    SALES_ENGINEER = "Sales Engineer"
    TECHNICAL_ENGINEER = "Technical Engineer"
    BUSINESS_ENGINEER = "Business Engineer"
    PROCUREMENT = "Procurement Specialist"
    PRODUCTION_PLANNER = "Production Planner"
    QA_INSPECTOR = "QA Inspector"
    LOGISTICS = "Logistics Specialist"
    AFTER_SALES = "After-sales Engineer"
    SHOP_FLOOR = "Shop Floor Worker"
    # 跨实体传播、定时任务使用
    SYSTEM = "System"

    @property
    def display(self) -> str:
        return ROLE_DISPLAY.get(self, self.value)


ROLE_DISPLAY = {
    Role.ADMIN: "管理员",
    Role.SALES_MANAGER: "销售经理",
    Role.SALES_ENGINEER: "销售工程师",
    Role.TECHNICAL_ENGINEER: "技术工程师",
    Role.BUSINESS_ENGINEER: "商务工程师",
    Role.PROCUREMENT: "采购专员",
    Role.PRODUCTION_PLANNER: "生产计划员",
    Role.QA_INSPECTOR: "质检员",
    Role.LOGISTICS: "物流专员",
    Role.AFTER_SALES: "售后工程师",
    Role.SHOP_FLOOR: "车间工人",
    Role.SYSTEM: "系统",
}


class EntityType(str, enum.Enum):
    PROJECT = "project"
    SALES_ORDER = "sales_order"
    PRODUCTION_ORDER = "production_order"
    SERVICE_TICKET = "service_ticket"


class ProjectStatus(str, enum.Enum):
    PENDING_TECH = "待指派技术"
    SELECTION = "选型中"
    PENDING_QUOTE = "待商务报价"
    QUOTED = "已报价"
    WON = "赢单"
    LOST = "失单"
    CONTRACT_REVIEW = "待商务审核合同"
    PENDING_STAMP = "待客户盖章"
    CONTRACT_SIGNED = "合同已签订"


# 视为“已赢单”的阶段，可以转化合同订单
PROJECT_WON_STATUSES = (
    ProjectStatus.WON,
    ProjectStatus.CONTRACT_REVIEW,
    ProjectStatus.PENDING_STAMP,
    ProjectStatus.CONTRACT_SIGNED,
)


class SalesOrderStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    IN_PRODUCTION = "In Production"
    QC_PASSED = "QC Passed"
    READY_TO_SHIP = "Ready to Ship"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ApprovalStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"


class LineStatus(str, enum.Enum):
    """订单明细的履约子状态"""
    PENDING = "Pending"
    IN_PRODUCTION = "In Production"
    COMPLETED = "Completed"
    SHIPPED = "Shipped"


class ProductionStatus(str, enum.Enum):
    PENDING = "Pending"
    SCHEDULED = "Scheduled"
    IN_PRODUCTION = "In Production"
    PAUSED = "Paused"
    AWAITING_QC = "Awaiting QC"
    QC_PASSED = "QC Passed"
    READY_TO_SHIP = "Ready to Ship"
    SHIPPED = "Shipped"
    COMPLETED = "Completed"
    DELAYED = "Delayed"
    CANCELLED = "Cancelled"


class MaterialReadiness(str, enum.Enum):
    PENDING_ANALYSIS = "待分析"
    PARTIAL = "部分可用"
    READY = "全部可用(齐套)"
    PROCUREMENT_DELAYED = "采购延迟"


class TicketStatus(str, enum.Enum):
    PENDING_ACCEPTANCE = "待技术受理"
    IN_PROGRESS = "技术处理中"
    SOLUTION_REVIEW = "方案待审批"
    AWAITING_CUSTOMER = "等待客户反馈"
    RESOLVED = "问题已解决-待确认"
    CLOSED = "已关闭"
    CANCELLED = "已取消"


class CloseReason(str, enum.Enum):
    RESOLVED = "问题已解决"
    CUSTOMER_CANCELLED = "客户取消"
    UNRESOLVABLE = "无法解决"
    DUPLICATE = "重复工单"
    OTHER = "其他"


class PricingModel(str, enum.Enum):
    FIXED = "fixed"
    TIERED = "tiered"


class Visibility(str, enum.Enum):
    INTERNAL = "内部"
    EXTERNAL = "外部"
    ALL = "全部"
