# packledger/services/production_guard.py

"""
생산 오더 마감(Finalizada) 상태에 따른 쓰기 보호 규칙을 모아 둔 모듈입니다.

- 생산 오더의 현재 상태 = created_at 기준 가장 최근의 상태 이벤트
- 프로젝트의 생산 오더 중 하나라도 현재 상태가 Finalizada 이면 그 프로젝트는 '동결'됩니다.
  동결된 프로젝트의 주문에 대한 수요 변경과 할당(생성/수정)은 AllocationConflict 로 거부됩니다.
- 할당 해제(deallocate)는 재고를 돌려주는 방향이므로 막지 않습니다.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.exceptions import AllocationConflict
from packledger.domains.prd import models as prd_models

logger = logging.getLogger(__name__)


async def latest_status(db: AsyncSession, production_order_id: uuid.UUID) -> Optional[prd_models.ProductionStatus]:
    """생산 오더의 가장 최근 상태를 반환합니다. 상태 이벤트가 없으면 None."""
    result = await db.execute(
        select(prd_models.ProductionOrderStatus.status)
        .where(prd_models.ProductionOrderStatus.production_order_id == production_order_id)
        .order_by(prd_models.ProductionOrderStatus.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def is_project_frozen(db: AsyncSession, project_id: uuid.UUID) -> bool:
    status_model = prd_models.ProductionOrderStatus

    # 생산 오더별 최신 상태 이벤트 시각
    latest = (
        select(
            status_model.production_order_id.label("production_order_id"),
            func.max(status_model.created_at).label("latest_at"),
        )
        .join(prd_models.ProductionOrder, prd_models.ProductionOrder.id == status_model.production_order_id)
        .where(prd_models.ProductionOrder.project_id == project_id)
        .group_by(status_model.production_order_id)
        .subquery()
    )
    query = (
        select(func.count())
        .select_from(status_model)
        .join(
            latest,
            (status_model.production_order_id == latest.c.production_order_id)
            & (status_model.created_at == latest.c.latest_at),
        )
        .where(status_model.status == prd_models.ProductionStatus.FINALIZADA)
    )
    result = await db.execute(query)
    return result.scalar_one() > 0


async def ensure_project_writable(db: AsyncSession, project_id: uuid.UUID, *, action: str) -> None:
    if await is_project_frozen(db, project_id):
        logger.warning("Rejected %s: project %s has a finalized production order", action, project_id)
        raise AllocationConflict(
            f"Cannot {action}: a production order of project {project_id} is finalized",
            project_id=project_id,
        )
