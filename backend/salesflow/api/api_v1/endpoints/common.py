"""接口层公共工具：把流程结果整理成响应结构"""

from dataclasses import asdict
from typing import Any, Dict

from salesflow.services.propagation import TransitionResult


def transition_payload(result: TransitionResult) -> Dict[str, Any]:
    return {
        "data": result.entity,
        "from_status": result.from_status,
        "to_status": result.to_status,
        "propagation": [asdict(p) for p in result.propagation],
        "fully_applied": result.fully_applied,
    }
