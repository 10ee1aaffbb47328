"""
流程引擎错误类型

所有业务错误都继承 WorkflowError，携带：
- code: 机器可读的错误码（接口层原样返回）
- message: 中文提示
- detail: 结构化附加信息（如未满足的前置条件、拒绝原因）

引擎在提交前完成全部校验，抛出这些异常时实体状态不会被修改。
"""

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """流程引擎错误基类"""

    code = "workflow_error"
    http_status = 400

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class NotFound(WorkflowError):
    """实体或产品不存在"""

    code = "not_found"
    http_status = 404

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} 不存在: {entity_id}",
            {"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class Forbidden(WorkflowError):
    """角色或归属校验未通过"""

    code = "forbidden"
    http_status = 403

    def __init__(self, message: str, reason: str = "ownership_violation"):
        super().__init__(message, {"reason": reason})
        self.reason = reason


class IllegalTransition(WorkflowError):
    """当前状态没有该名称的出边"""

    code = "illegal_transition"
    http_status = 409

    def __init__(self, entity_type: str, status: str, transition: str):
        super().__init__(
            f"当前状态 '{status}' 不允许执行 '{transition}' 操作",
            {"entity_type": entity_type, "status": status, "transition": transition},
        )
        self.status = status
        self.transition = transition


class PreconditionFailed(WorkflowError):
    """边存在但前置条件不满足，condition 指明具体条件"""

    code = "precondition_failed"
    http_status = 422

    def __init__(self, condition: str, message: Optional[str] = None):
        super().__init__(message or f"前置条件不满足: {condition}", {"condition": condition})
        self.condition = condition


# ===== 定价 =====

class PricingError(WorkflowError):
    http_status = 422


class InvalidCatalogItem(PricingError):
    code = "invalid_catalog_item"


class NoApplicableTier(PricingError):
    code = "no_applicable_tier"


class InvalidQuantity(PricingError):
    code = "invalid_quantity"


# ===== 账务 =====

class LedgerError(WorkflowError):
    http_status = 422


class InvalidPaymentAmount(LedgerError):
    code = "invalid_payment_amount"


class NegativeTotal(LedgerError):
    code = "negative_total"


class DuplicateLink(WorkflowError):
    """项目已转化过合同订单 / 合同订单已下过生产单"""

    code = "duplicate_link"
    http_status = 409


class StorageError(WorkflowError):
    """存储层异常，调用方不得假定已提交"""

    code = "storage_error"
    http_status = 500


class AuditTrailViolation(WorkflowError):
    """试图修改或删除已写入的历史记录"""

    code = "audit_trail_violation"
    http_status = 500
