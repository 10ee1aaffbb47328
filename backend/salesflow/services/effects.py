"""
状态转换后的附带写入

传播触发的转换与人工触发的转换共用这些函数，保证两条路径结果一致。
均为同步的内存修改，由所在写入作用域统一提交。
"""

from datetime import datetime

from salesflow.workflow.enums import EntityType, LineStatus


def set_line_status(order, status: LineStatus) -> None:
    for line in order.lines:
        line.production_status = status.value


def _order_in_production(order, context):
    set_line_status(order, LineStatus.IN_PRODUCTION)


def _order_qc_passed(order, context):
    set_line_status(order, LineStatus.COMPLETED)


def _production_shipped(production, context):
    if production.actual_end is None:
        production.actual_end = datetime.utcnow()
    production.progress = 100


# (实体类型, 转换名) → 附带写入
AFTER_FIRE = {
    (EntityType.SALES_ORDER, "start_production"): _order_in_production,
    (EntityType.SALES_ORDER, "mark_qc_passed"): _order_qc_passed,
    (EntityType.PRODUCTION_ORDER, "ship"): _production_shipped,
}


def apply_effects(entity, transition: str, context=None) -> None:
    effect = AFTER_FIRE.get((entity.__entity_type__, transition))
    if effect is not None:
        effect(entity, context or {})
