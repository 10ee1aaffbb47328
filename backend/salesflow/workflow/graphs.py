"""
四类实体的状态图

角色常量按业务线划分；前置条件函数签名为 (entity, context) -> 未满足条件名 | None。
"""

from salesflow.workflow.enums import (
    ApprovalStatus, CloseReason, EntityType, PaymentStatus,
    ProductionStatus, ProjectStatus, Role, SalesOrderStatus, TicketStatus, Visibility,
)
from salesflow.workflow.guard import Propagation, StateGraph, Transition, not_locked, required_input
from salesflow.workflow.ownership import Relation

SALES = frozenset({Role.SALES_ENGINEER, Role.SALES_MANAGER})
TECHNICAL = frozenset({Role.TECHNICAL_ENGINEER})
COMMERCIAL = frozenset({Role.BUSINESS_ENGINEER, Role.SALES_MANAGER})
ORDER_DESK = frozenset({Role.SALES_ENGINEER, Role.BUSINESS_ENGINEER, Role.SALES_MANAGER})
LOGISTICS = frozenset({Role.LOGISTICS, Role.SALES_MANAGER})
PLANNING = frozenset({Role.PRODUCTION_PLANNER})
WORKSHOP = frozenset({Role.PRODUCTION_PLANNER, Role.SHOP_FLOOR})
QUALITY = frozenset({Role.QA_INSPECTOR})
AFTER_SALES = frozenset({Role.AFTER_SALES, Role.SALES_MANAGER})
CONFIRMERS = frozenset({Role.SALES_MANAGER})
# 仅系统传播或管理员可直接触发
SYSTEM_ONLY = frozenset()

REASON = required_input("reason")


# ===== 商务项目 =====

def assignee_role(role: Role, condition: str):
    """被指派人（context["engineer"]）必须是指定角色"""

    def check(entity, context):
        engineer = context.get("engineer")
        if engineer is None:
            return "engineer_required"
        if engineer.role != role.value:
            return condition
        return None

    return check


technical_engineer = assignee_role(Role.TECHNICAL_ENGINEER, "engineer_not_technical")
business_engineer = assignee_role(Role.BUSINESS_ENGINEER, "engineer_not_business")
logistics_specialist = assignee_role(Role.LOGISTICS, "assignee_not_logistics")
production_planner = assignee_role(Role.PRODUCTION_PLANNER, "assignee_not_planner")
qa_inspector = assignee_role(Role.QA_INSPECTOR, "assignee_not_inspector")


def _technical_list_present(project, context):
    return None if project.technical_items else "technical_list_empty"


def _bom_priced(project, context):
    if not project.bom_lines:
        return "bom_empty"
    if any(line.unit_price is None for line in project.bom_lines):
        return "bom_unpriced"
    return None


PROJECT_GRAPH = StateGraph(EntityType.PROJECT, ProjectStatus, [
    Transition("assign_technical_support", (ProjectStatus.PENDING_TECH,), ProjectStatus.SELECTION,
               "指派技术支持", SALES, preconditions=(technical_engineer,)),
    Transition("submit_technical_list", (ProjectStatus.SELECTION,), ProjectStatus.PENDING_QUOTE,
               "提交技术清单", TECHNICAL, preconditions=(not_locked, _technical_list_present)),
    Transition("reject_technical_list", (ProjectStatus.PENDING_QUOTE,), ProjectStatus.SELECTION,
               "驳回技术清单", COMMERCIAL, preconditions=(not_locked, REASON)),
    Transition("submit_quotation", (ProjectStatus.PENDING_QUOTE,), ProjectStatus.QUOTED,
               "提交报价", COMMERCIAL, preconditions=(not_locked, _bom_priced)),
    Transition("revise_quotation", (ProjectStatus.QUOTED,), ProjectStatus.PENDING_QUOTE,
               "重新报价", COMMERCIAL | SALES, preconditions=(not_locked,)),
    Transition("mark_won", (ProjectStatus.QUOTED,), ProjectStatus.WON, "赢单", SALES),
    Transition("mark_lost",
               (ProjectStatus.PENDING_TECH, ProjectStatus.SELECTION, ProjectStatus.PENDING_QUOTE, ProjectStatus.QUOTED),
               ProjectStatus.LOST, "失单", SALES, preconditions=(REASON,)),
    Transition("submit_contract", (ProjectStatus.WON,), ProjectStatus.CONTRACT_REVIEW, "提交合同审核", SALES),
    Transition("approve_contract", (ProjectStatus.CONTRACT_REVIEW,), ProjectStatus.PENDING_STAMP,
               "商务审核合同", COMMERCIAL),
    Transition("sign_contract", (ProjectStatus.PENDING_STAMP,), ProjectStatus.CONTRACT_SIGNED,
               "合同已签订", SALES | COMMERCIAL),
])


# ===== 合同订单 =====

def _approved(order, context):
    return None if order.approval_status == ApprovalStatus.APPROVED.value else "approval_not_approved"


def _final_payment_confirmed(order, context):
    return None if order.final_payment_confirmed else "final_payment_not_confirmed"


def fully_paid(order, context):
    return None if order.payment_status == PaymentStatus.PAID.value else "payment_not_paid"


SALES_ORDER_GRAPH = StateGraph(EntityType.SALES_ORDER, SalesOrderStatus, [
    Transition("confirm", (SalesOrderStatus.PENDING,), SalesOrderStatus.CONFIRMED,
               "确认订单", ORDER_DESK, preconditions=(_approved,)),
    Transition("start_production", (SalesOrderStatus.CONFIRMED,), SalesOrderStatus.IN_PRODUCTION,
               "下达生产", SYSTEM_ONLY),
    Transition("mark_qc_passed", (SalesOrderStatus.IN_PRODUCTION,), SalesOrderStatus.QC_PASSED,
               "质检通过", SYSTEM_ONLY),
    Transition("mark_ready_to_ship", (SalesOrderStatus.QC_PASSED,), SalesOrderStatus.READY_TO_SHIP,
               "标记可发货", ORDER_DESK, preconditions=(_final_payment_confirmed,),
               propagations=(Propagation(EntityType.PRODUCTION_ORDER, "mark_ready_to_ship"),)),
    Transition("ship", (SalesOrderStatus.READY_TO_SHIP,), SalesOrderStatus.SHIPPED,
               "发货", LOGISTICS,
               preconditions=(
                   required_input("tracking_number", "tracking_number_required"),
                   required_input("carrier", "carrier_required"),
               ),
               propagations=(Propagation(EntityType.PRODUCTION_ORDER, "ship"),),
               visibility=Visibility.ALL),
    Transition("mark_delivered", (SalesOrderStatus.SHIPPED,), SalesOrderStatus.DELIVERED,
               "客户签收", LOGISTICS | ORDER_DESK, visibility=Visibility.ALL),
    Transition("complete", (SalesOrderStatus.DELIVERED,), SalesOrderStatus.COMPLETED,
               "订单完成", ORDER_DESK, preconditions=(fully_paid,)),
    Transition("cancel", (SalesOrderStatus.PENDING, SalesOrderStatus.CONFIRMED), SalesOrderStatus.CANCELLED,
               "取消订单", ORDER_DESK, preconditions=(REASON,)),
])


# ===== 生产订单 =====

PRODUCTION_GRAPH = StateGraph(EntityType.PRODUCTION_ORDER, ProductionStatus, [
    Transition("schedule", (ProductionStatus.PENDING,), ProductionStatus.SCHEDULED, "排产", PLANNING),
    Transition("start", (ProductionStatus.SCHEDULED,), ProductionStatus.IN_PRODUCTION, "开始生产", WORKSHOP),
    Transition("submit_for_qc", (ProductionStatus.IN_PRODUCTION,), ProductionStatus.AWAITING_QC,
               "提交质检", WORKSHOP),
    Transition("pass_qc", (ProductionStatus.AWAITING_QC,), ProductionStatus.QC_PASSED,
               "质检通过", QUALITY,
               propagations=(Propagation(EntityType.SALES_ORDER, "mark_qc_passed"),)),
    Transition("fail_qc", (ProductionStatus.AWAITING_QC,), ProductionStatus.IN_PRODUCTION,
               "质检不合格返工", QUALITY, preconditions=(REASON,)),
    Transition("mark_ready_to_ship", (ProductionStatus.QC_PASSED,), ProductionStatus.READY_TO_SHIP,
               "待发货", SYSTEM_ONLY),
    Transition("ship", (ProductionStatus.READY_TO_SHIP,), ProductionStatus.SHIPPED, "已发货", SYSTEM_ONLY),
    Transition("complete", (ProductionStatus.SHIPPED,), ProductionStatus.COMPLETED, "生产单关闭", PLANNING),
    Transition("delay", (ProductionStatus.SCHEDULED, ProductionStatus.IN_PRODUCTION), ProductionStatus.DELAYED,
               "延期", PLANNING, preconditions=(REASON,)),
    Transition("pause", (ProductionStatus.IN_PRODUCTION,), ProductionStatus.PAUSED,
               "暂停生产", WORKSHOP, preconditions=(REASON,)),
    Transition("resume", (ProductionStatus.PAUSED, ProductionStatus.DELAYED), ProductionStatus.IN_PRODUCTION,
               "恢复生产", WORKSHOP),
    Transition("reschedule", (ProductionStatus.DELAYED,), ProductionStatus.SCHEDULED, "重新排产", PLANNING),
    Transition("cancel",
               (ProductionStatus.PENDING, ProductionStatus.SCHEDULED, ProductionStatus.PAUSED, ProductionStatus.DELAYED),
               ProductionStatus.CANCELLED, "取消生产", PLANNING, preconditions=(REASON,)),
])


# ===== 售后工单 =====

def _has_final_report(ticket, context):
    return None if ticket.has_report else "final_report_missing"


def _valid_close_reason(ticket, context):
    reason = context.get("close_reason")
    if reason not in [r.value for r in CloseReason]:
        return "close_reason_invalid"
    return None


TICKET_GRAPH = StateGraph(EntityType.SERVICE_TICKET, TicketStatus, [
    Transition("accept_ticket", (TicketStatus.PENDING_ACCEPTANCE,), TicketStatus.IN_PROGRESS,
               "受理工单", TECHNICAL, Relation.CLAIMABLE, "assigned_to_id", visibility=Visibility.ALL),
    Transition("submit_solution", (TicketStatus.IN_PROGRESS,), TicketStatus.SOLUTION_REVIEW,
               "提交处理方案", TECHNICAL, preconditions=(required_input("solution"),)),
    Transition("approve_solution", (TicketStatus.SOLUTION_REVIEW,), TicketStatus.IN_PROGRESS,
               "审批处理方案", CONFIRMERS),
    Transition("request_customer_feedback", (TicketStatus.IN_PROGRESS,), TicketStatus.AWAITING_CUSTOMER,
               "等待客户反馈", TECHNICAL | AFTER_SALES, visibility=Visibility.ALL),
    Transition("record_customer_reply", (TicketStatus.AWAITING_CUSTOMER,), TicketStatus.IN_PROGRESS,
               "客户已回复", TECHNICAL | AFTER_SALES, visibility=Visibility.ALL),
    Transition("mark_as_resolved", (TicketStatus.IN_PROGRESS,), TicketStatus.RESOLVED,
               "问题已解决", TECHNICAL, preconditions=(_has_final_report,), visibility=Visibility.ALL),
    Transition("close_ticket", (TicketStatus.RESOLVED,), TicketStatus.CLOSED,
               "关闭工单", CONFIRMERS, preconditions=(_valid_close_reason,), visibility=Visibility.ALL),
    Transition("reopen_ticket", (TicketStatus.RESOLVED,), TicketStatus.IN_PROGRESS,
               "重新打开工单", AFTER_SALES,
               preconditions=(REASON, required_input("comments")), visibility=Visibility.ALL),
    Transition("cancel_ticket", (TicketStatus.PENDING_ACCEPTANCE, TicketStatus.IN_PROGRESS), TicketStatus.CANCELLED,
               "取消工单", AFTER_SALES, preconditions=(REASON,)),
])


GRAPHS = {
    EntityType.PROJECT: PROJECT_GRAPH,
    EntityType.SALES_ORDER: SALES_ORDER_GRAPH,
    EntityType.PRODUCTION_ORDER: PRODUCTION_GRAPH,
    EntityType.SERVICE_TICKET: TICKET_GRAPH,
}
