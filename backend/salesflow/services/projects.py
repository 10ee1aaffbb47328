"""
商务项目流程

立项 → 指派技术 → 选型 → 商务报价 → 赢单/失单 → 合同审核 → 客户盖章 → 签订
项目不做物理删除，失单即终止。转化为合同订单后锁定，见 services/sales_orders.py
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from salesflow.core.errors import InvalidQuantity
from salesflow.core.logging_config import get_logger
from salesflow.models import CommercialProject, ProjectBomLine
from salesflow.services.loaders import load_catalog_item, load_project, load_user
from salesflow.services.propagation import TransitionResult
from salesflow.services.sequencing import PREFIXES, next_number, sequence_key
from salesflow.services.transitions import run_operation, run_transition
from salesflow.services.unit_of_work import write_scope
from salesflow.workflow.actor import Actor
from salesflow.workflow.audit import append_history
from salesflow.workflow.enums import EntityType, ProjectStatus
from salesflow.workflow.graphs import COMMERCIAL, SALES, TECHNICAL, business_engineer
from salesflow.workflow.ledger import compute_totals, line_unit_price
from salesflow.workflow.ownership import ensure_role
from salesflow.workflow.pricing import to_decimal

logger = get_logger(__name__)

PROJECT = EntityType.PROJECT

# 允许调整报价 BOM 的阶段
BOM_EDITABLE = (
    ProjectStatus.PENDING_QUOTE,
    ProjectStatus.QUOTED,
    ProjectStatus.WON,
    ProjectStatus.CONTRACT_REVIEW,
    ProjectStatus.PENDING_STAMP,
)
# 可以指派商务工程师的阶段（失单、合同签订后不再指派）
OPEN_STAGES = (ProjectStatus.PENDING_TECH, ProjectStatus.SELECTION) + BOM_EDITABLE


async def create_project(
    db: AsyncSession,
    actor: Actor,
    *,
    name: str,
    client_name: str,
    client_contact: Optional[str] = None,
    industry: Optional[str] = None,
    description: Optional[str] = None,
    owner_id: Optional[int] = None,
) -> CommercialProject:
    """销售立项，负责人默认为创建人"""
    ensure_role(actor, SALES, "创建项目")
    if owner_id is not None and owner_id != actor.id:
        await load_user(db, owner_id)

    prefix = PREFIXES["project"]
    async with write_scope(db, sequence_key(prefix)):
        project = CommercialProject(
            project_no=await next_number(db, CommercialProject.project_no, prefix),
            name=name,
            client_name=client_name,
            client_contact=client_contact,
            industry=industry,
            description=description,
            status=ProjectStatus.PENDING_TECH.value,
            owner_id=owner_id or actor.id,
            technical_items=[],
            technical_versions=[],
            created_by=actor.id,
            bom_lines=[],
            history=[],
        )
        append_history(project, "create", actor, f"创建项目 {name}", to_status=ProjectStatus.PENDING_TECH)
        db.add(project)
    logger.info(f"📁 新建项目 {project.project_no} ({client_name}) by {actor.name}")
    return await load_project(db, project.id)


async def assign_technical_support(db: AsyncSession, project_id: int, actor: Actor, engineer_id: int) -> TransitionResult:
    engineer = await load_user(db, engineer_id)

    def mutate(project, context):
        project.technical_support_id = engineer.id

    return await run_transition(
        db, PROJECT, project_id, "assign_technical_support", actor,
        context={"engineer": engineer},
        mutate=mutate,
        description=f"指派技术支持：{engineer.display_name}",
        metadata={"engineer_id": engineer.id, "engineer_name": engineer.display_name},
    )


async def assign_business_engineer(db: AsyncSession, project_id: int, actor: Actor, engineer_id: int):
    """指派商务工程师，之后由其负责报价 BOM、报价和合同审核"""
    engineer = await load_user(db, engineer_id)

    def mutate(project, context):
        previous = project.business_engineer_id
        project.business_engineer_id = engineer.id
        return {"engineer_id": engineer.id, "engineer_name": engineer.display_name, "previous": previous}

    return await run_operation(
        db, PROJECT, project_id, "assign_business_engineer", actor,
        label="指派商务工程师",
        roles=SALES,
        allowed_statuses=OPEN_STAGES,
        context={"engineer": engineer, "description": f"指派商务工程师：{engineer.display_name}"},
        preconditions=(business_engineer,),
        mutate=mutate,
    )


async def update_technical_items(db: AsyncSession, project_id: int, actor: Actor, items: List[Dict[str, Any]]):
    """技术选型清单草稿（选型中才可编辑）"""

    def mutate(project, context):
        project.technical_items = [dict(item) for item in items]
        return {"item_count": len(items)}

    return await run_operation(
        db, PROJECT, project_id, "update_technical_items", actor,
        label="更新技术选型清单",
        roles=TECHNICAL | SALES,
        allowed_statuses=(ProjectStatus.SELECTION,),
        mutate=mutate,
        locked_first=True,
    )


async def submit_technical_list(db: AsyncSession, project_id: int, actor: Actor, notes: Optional[str] = None) -> TransitionResult:
    """提交选型清单，生成一个只读版本快照"""

    def mutate(project, context):
        versions = list(project.technical_versions or [])
        version = f"v{len(versions) + 1}"
        versions.append({
            "version": version,
            "items": list(project.technical_items or []),
            "notes": notes,
            "submitted_at": datetime.utcnow().isoformat(),
            "submitted_by": actor.snapshot(),
        })
        project.technical_versions = versions
        project.technical_reject_reason = None
        return {"version": version}

    return await run_transition(db, PROJECT, project_id, "submit_technical_list", actor, mutate=mutate)


async def reject_technical_list(db: AsyncSession, project_id: int, actor: Actor, reason: str) -> TransitionResult:
    def mutate(project, context):
        project.technical_reject_reason = reason

    return await run_transition(
        db, PROJECT, project_id, "reject_technical_list", actor,
        context={"reason": reason}, mutate=mutate,
        description=f"驳回技术清单：{reason}", metadata={"reason": reason},
    )


async def update_bom(db: AsyncSession, project_id: int, actor: Actor, lines: List[Dict[str, Any]]):
    """
    更新报价 BOM，逐行按数量解析单价并重算报价合计

    lines: [{"catalog_item_id", "description", "quantity", "unit_price", "price_type", "notes"}]
    关联产品的行由定价解析得到单价，未关联产品的行使用手工单价。
    """
    items = {}
    for line in lines:
        item_id = line.get("catalog_item_id")
        if item_id is not None and item_id not in items:
            items[item_id] = await load_catalog_item(db, item_id)

    def mutate(project, context):
        new_lines = []
        for idx, line in enumerate(lines, start=1):
            quantity = line.get("quantity")
            if quantity is None or quantity <= 0:
                raise InvalidQuantity(f"第{idx}行数量必须大于0", {"line_no": idx, "quantity": quantity})
            item = items.get(line.get("catalog_item_id"))
            bom_line = ProjectBomLine(
                line_no=idx,
                catalog_item=item,
                description=line.get("description") or (item.name if item else None),
                quantity=quantity,
                price_type=line.get("price_type"),
                unit_price=line.get("unit_price"),
                notes=line.get("notes"),
            )
            bom_line.unit_price = line_unit_price(bom_line)
            bom_line.total_price = bom_line.unit_price * to_decimal(quantity)
            new_lines.append(bom_line)

        totals = compute_totals(new_lines)
        project.bom_lines = new_lines
        project.quote_total = totals.subtotal
        return {"line_count": len(new_lines), "quote_total": str(totals.subtotal)}

    return await run_operation(
        db, PROJECT, project_id, "update_bom", actor,
        label="更新报价BOM",
        roles=COMMERCIAL,
        allowed_statuses=BOM_EDITABLE,
        mutate=mutate,
        locked_first=True,
    )


async def submit_quotation(db: AsyncSession, project_id: int, actor: Actor) -> TransitionResult:
    def mutate(project, context):
        project.quoted_at = datetime.utcnow()

    return await run_transition(db, PROJECT, project_id, "submit_quotation", actor, mutate=mutate)


async def revise_quotation(db: AsyncSession, project_id: int, actor: Actor, reason: Optional[str] = None) -> TransitionResult:
    return await run_transition(
        db, PROJECT, project_id, "revise_quotation", actor, metadata={"reason": reason} if reason else None
    )


async def mark_won(db: AsyncSession, project_id: int, actor: Actor) -> TransitionResult:
    return await run_transition(db, PROJECT, project_id, "mark_won", actor)


async def mark_lost(db: AsyncSession, project_id: int, actor: Actor, reason: str) -> TransitionResult:
    def mutate(project, context):
        project.lost_reason = reason

    return await run_transition(
        db, PROJECT, project_id, "mark_lost", actor,
        context={"reason": reason}, mutate=mutate,
        description=f"失单：{reason}", metadata={"reason": reason},
    )


async def submit_contract(db: AsyncSession, project_id: int, actor: Actor) -> TransitionResult:
    return await run_transition(db, PROJECT, project_id, "submit_contract", actor)


async def approve_contract(db: AsyncSession, project_id: int, actor: Actor, notes: Optional[str] = None) -> TransitionResult:
    return await run_transition(
        db, PROJECT, project_id, "approve_contract", actor, metadata={"notes": notes} if notes else None
    )


async def sign_contract(db: AsyncSession, project_id: int, actor: Actor) -> TransitionResult:
    return await run_transition(db, PROJECT, project_id, "sign_contract", actor)


async def list_projects(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    owner_id: Optional[int] = None,
    keyword: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
):
    query = select(CommercialProject)
    if status:
        query = query.where(CommercialProject.status == status)
    if owner_id:
        query = query.where(CommercialProject.owner_id == owner_id)
    if keyword:
        like = f"%{keyword}%"
        query = query.where(or_(
            CommercialProject.project_no.like(like),
            CommercialProject.name.like(like),
            CommercialProject.client_name.like(like),
        ))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(query.order_by(CommercialProject.created_at.desc()).offset(skip).limit(limit))
    return {"data": result.scalars().all(), "total": total, "skip": skip, "limit": limit}
