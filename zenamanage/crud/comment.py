"""
Comment CRUD operations.
Threads are read oldest first so a task's discussion reads top to bottom.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.crud.base import CRUDBase
from zenamanage.models.comment import Comment
from zenamanage.schemas.pagination import page_offset


class CRUDComment(CRUDBase[Comment]):

    async def create_comment(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        task_id: uuid.UUID,
        author_id: uuid.UUID,
        content: str,
    ) -> Comment:
        return await self.create_from_dict(
            db,
            obj_in={
                "tenant_id": tenant_id,
                "task_id": task_id,
                "author_id": author_id,
                "content": content,
            },
        )

    async def list_by_task(
        self,
        db: AsyncSession,
        *,
        tenant_id: uuid.UUID,
        task_id: uuid.UUID,
        page: int = 1,
        size: int = 50,
    ) -> tuple[list[Comment], int]:
        conditions = (Comment.tenant_id == tenant_id, Comment.task_id == task_id)
        total = (
            await db.execute(select(func.count()).select_from(Comment).where(*conditions))
        ).scalar_one()

        result = await db.execute(
            select(Comment)
            .where(*conditions)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
            .offset(page_offset(page, size))
            .limit(size)
        )
        return list(result.scalars().all()), total


crud_comment = CRUDComment(Comment)
