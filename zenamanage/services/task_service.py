"""
Task business logic service.
Enforces tenant scoping, project state, the status workflow and dependency
rules, and fires notifications, dashboard alerts and activity logs.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from zenamanage.core.exceptions import (
    ConflictException,
    NotFoundException,
    TransitionRejectedException,
    UnprocessableEntityException,
)
from zenamanage.crud.project import crud_project
from zenamanage.crud.task import crud_task
from zenamanage.crud.user import crud_user
from zenamanage.models.project import Project
from zenamanage.models.task import TASK_PRIORITIES, Task
from zenamanage.models.user import User
from zenamanage.schemas.task import (
    BulkTaskAction,
    BulkTaskFailure,
    BulkTaskResult,
    TaskCreate,
    TaskDependencyRead,
    TaskFilter,
    TaskUpdate,
)
from zenamanage.services.activity_service import activity_service
from zenamanage.services.dashboard_service import dashboard_service
from zenamanage.services.notification_service import notification_service
from zenamanage.services.task_transition_service import calculate_progress, validate_transition

logger = logging.getLogger(__name__)

SORT_ORDER_STEP = 10

# Task priority -> notification priority
NOTIFICATION_PRIORITY = {"low": "low", "normal": "normal", "high": "high", "urgent": "critical"}


def creates_cycle(
    edges: list[tuple[uuid.UUID, uuid.UUID]],
    *,
    task_id: uuid.UUID,
    depends_on_id: uuid.UUID,
) -> bool:
    """True if adding task_id -> depends_on_id closes a loop in the dependency graph."""
    graph: dict[uuid.UUID, list[uuid.UUID]] = {}
    for src, dst in edges:
        graph.setdefault(src, []).append(dst)

    stack = [depends_on_id]
    seen: set[uuid.UUID] = set()
    while stack:
        node = stack.pop()
        if node == task_id:
            return True
        if node in seen:
            continue
        seen.add(node)
        stack.extend(graph.get(node, []))
    return False


class TaskService:

    async def create_task(
        self,
        db: AsyncSession,
        *,
        task_in: TaskCreate,
        current_user: User,
    ) -> Task:
        """
        Create a task at the end of its project's board.
        The project must be open and the assignee must belong to the tenant.
        """
        tenant_id = current_user.tenant_id
        project = await self._get_project(db, project_id=task_in.project_id, tenant_id=tenant_id)
        if project.is_closed:
            raise ConflictException(
                f"Cannot add tasks to a {project.status} project",
                error_code="project_status_restricted",
                details={"project_status": project.status},
            )
        if task_in.assignee_id is not None:
            await self._assert_tenant_user(db, user_id=task_in.assignee_id, tenant_id=tenant_id)

        sort_order = await crud_task.max_sort_order(db, project_id=project.id) + SORT_ORDER_STEP
        task = await crud_task.create_task(
            db,
            obj_in=task_in,
            tenant_id=tenant_id,
            created_by=current_user.id,
            sort_order=sort_order,
        )

        await activity_service.log(
            db,
            tenant_id=tenant_id,
            user_id=current_user.id,
            action="task_created",
            entity_type="task",
            entity_id=task.id,
            meta={"title": task.title, "status": task.status, "priority": task.priority},
        )

        # Notify assignee if different from creator
        if task.assignee_id and task.assignee_id != current_user.id:
            await self._notify_assigned(db, task=task, actor=current_user)

        return task

    async def get_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
    ) -> Task:
        """Fetch a task of the user's tenant; other tenants' tasks look missing."""
        task = await crud_task.get_in_tenant(db, task_id, tenant_id=current_user.tenant_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))
        return task

    async def list_tasks(
        self,
        db: AsyncSession,
        *,
        filters: TaskFilter,
        current_user: User,
    ) -> tuple[list[Task], int]:
        return await crud_task.list_with_filters(
            db, tenant_id=current_user.tenant_id, filters=filters
        )

    async def update_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        task_in: TaskUpdate,
        current_user: User,
    ) -> Task:
        task = await self.get_task(db, task_id=task_id, current_user=current_user)
        delta = activity_service.diff(task, task_in.model_dump(exclude_unset=True))
        updated = await crud_task.update(db, db_obj=task, obj_in=task_in)

        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="task_updated",
            entity_type="task",
            entity_id=task.id,
            meta=delta,
        )
        return updated

    async def delete_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
    ) -> Task:
        """Soft-delete (archive) a task."""
        task = await self.get_task(db, task_id=task_id, current_user=current_user)
        archived = await crud_task.archive(db, task=task)

        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="task_archived",
            entity_type="task",
            entity_id=task.id,
        )
        return archived

    async def assign_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        assignee_id: uuid.UUID,
        current_user: User,
    ) -> Task:
        """Reassign a task to another member of the tenant."""
        task = await self.get_task(db, task_id=task_id, current_user=current_user)
        await self._assert_tenant_user(db, user_id=assignee_id, tenant_id=current_user.tenant_id)

        previous = task.assignee_id
        updated = await crud_task.update(db, db_obj=task, obj_in={"assignee_id": assignee_id})

        if assignee_id != previous and assignee_id != current_user.id:
            await self._notify_assigned(db, task=updated, actor=current_user)

        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="task_assigned",
            entity_type="task",
            entity_id=task.id,
            meta={"assignee_id": str(assignee_id)},
        )
        return updated

    # ── Status workflow ───────────────────────────────────────────────────────

    async def change_status(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        new_status: str,
        reason: str | None,
        current_user: User,
    ) -> Task:
        """
        Move a task through the workflow.
        Rejections raise TransitionRejectedException carrying the rule's error code.
        """
        task = await self.get_task(db, task_id=task_id, current_user=current_user)
        if task.status == new_status:
            return task

        project = await self._get_project(db, project_id=task.project_id, tenant_id=task.tenant_id)
        incomplete: list[uuid.UUID] = []
        if new_status == "in_progress":
            incomplete = await crud_task.incomplete_dependency_ids(db, task_id=task.id)

        result = validate_transition(
            current=task.status,
            target=new_status,
            project_status=project.status,
            reason=reason,
            incomplete_dependencies=incomplete,
        )
        if not result.allowed:
            logger.info(
                "Task transition rejected: task_id=%s %s -> %s (%s)",
                task.id,
                task.status,
                new_status,
                result.error_code,
            )
            raise TransitionRejectedException(
                result.error_code or "invalid_transition",
                result.message or "Transition not allowed",
                result.details,
            )

        old_status = task.status
        updated = await crud_task.update(
            db,
            db_obj=task,
            obj_in={
                "status": new_status,
                "status_reason": reason.strip() if reason else None,
                "progress_percent": calculate_progress(new_status, task.progress_percent),
            },
        )
        logger.info("Task status changed: task_id=%s %s -> %s", task.id, old_status, new_status)

        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="task_status_changed",
            entity_type="task",
            entity_id=task.id,
            meta={"from": old_status, "to": new_status, "reason": updated.status_reason},
        )

        if updated.created_by != current_user.id:
            event_key = "task.completed" if new_status == "done" else "task.status_changed"
            await notification_service.notify_user(
                db,
                tenant_id=current_user.tenant_id,
                user_id=updated.created_by,
                event_key=event_key,
                module="tasks",
                title="Task completed" if new_status == "done" else "Task status changed",
                message=f"{current_user.full_name} moved {updated.title!r} to {new_status}",
                priority=NOTIFICATION_PRIORITY.get(updated.priority, "normal"),
                project_id=updated.project_id,
                entity_type="task",
                entity_id=updated.id,
                meta={"from": old_status, "to": new_status},
            )

        if new_status == "blocked":
            await dashboard_service.raise_alert(
                db,
                tenant_id=current_user.tenant_id,
                user_ids=[project.owner_id],
                type="task_blocked",
                category="tasks",
                severity="warning",
                title=f"Task blocked: {updated.title}",
                message=updated.status_reason or "",
                project_id=project.id,
            )

        return updated

    # ── Dependencies ──────────────────────────────────────────────────────────

    async def list_dependencies(
        self, db: AsyncSession, *, task_id: uuid.UUID, current_user: User
    ) -> list[TaskDependencyRead]:
        task = await self.get_task(db, task_id=task_id, current_user=current_user)
        rows = await crud_task.list_dependencies(db, task_id=task.id)
        return [
            TaskDependencyRead(
                task_id=edge.task_id,
                depends_on_id=edge.depends_on_id,
                depends_on_title=dep.title,
                depends_on_status=dep.status,
            )
            for edge, dep in rows
        ]

    async def add_dependency(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        depends_on_id: uuid.UUID,
        current_user: User,
    ) -> TaskDependencyRead:
        task = await self.get_task(db, task_id=task_id, current_user=current_user)
        if depends_on_id == task.id:
            raise UnprocessableEntityException("A task cannot depend on itself")

        dependency = await self.get_task(db, task_id=depends_on_id, current_user=current_user)
        if dependency.project_id != task.project_id:
            raise UnprocessableEntityException("Dependencies must belong to the same project")

        if await crud_task.get_dependency(db, task_id=task.id, depends_on_id=dependency.id):
            raise ConflictException("This dependency already exists")

        edges = await crud_task.dependency_edges_in_project(db, project_id=task.project_id)
        if creates_cycle(edges, task_id=task.id, depends_on_id=dependency.id):
            raise ConflictException(
                "This dependency would create a cycle",
                error_code="CIRCULAR_DEPENDENCY",
            )

        await crud_task.add_dependency(
            db, tenant_id=task.tenant_id, task_id=task.id, depends_on_id=dependency.id
        )
        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="task_dependency_added",
            entity_type="task",
            entity_id=task.id,
            meta={"depends_on_id": str(dependency.id)},
        )
        return TaskDependencyRead(
            task_id=task.id,
            depends_on_id=dependency.id,
            depends_on_title=dependency.title,
            depends_on_status=dependency.status,
        )

    async def remove_dependency(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        depends_on_id: uuid.UUID,
        current_user: User,
    ) -> None:
        task = await self.get_task(db, task_id=task_id, current_user=current_user)
        edge = await crud_task.get_dependency(db, task_id=task.id, depends_on_id=depends_on_id)
        if edge is None:
            raise NotFoundException("Task dependency", str(depends_on_id))
        await crud_task.remove_obj(db, db_obj=edge)
        await activity_service.log(
            db,
            tenant_id=current_user.tenant_id,
            user_id=current_user.id,
            action="task_dependency_removed",
            entity_type="task",
            entity_id=task.id,
            meta={"depends_on_id": str(depends_on_id)},
        )

    # ── Ordering and bulk ─────────────────────────────────────────────────────

    async def reorder_tasks(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        ordered_ids: list[uuid.UUID],
        current_user: User,
    ) -> None:
        """Rewrite sort_order of the listed tasks to follow the given order."""
        tenant_id = current_user.tenant_id
        project = await self._get_project(db, project_id=project_id, tenant_id=tenant_id)

        tasks = await crud_task.get_many_in_project(
            db, tenant_id=tenant_id, project_id=project.id, task_ids=ordered_ids
        )
        by_id = {task.id: task for task in tasks}
        missing = [task_id for task_id in ordered_ids if task_id not in by_id]
        if missing:
            raise NotFoundException("Task", str(missing[0]))

        for index, task_id in enumerate(ordered_ids):
            by_id[task_id].sort_order = (index + 1) * SORT_ORDER_STEP
        await db.flush()

        await activity_service.log(
            db,
            tenant_id=tenant_id,
            user_id=current_user.id,
            action="project_tasks_reordered",
            entity_type="project",
            entity_id=project.id,
            meta={"task_ids": [str(task_id) for task_id in ordered_ids]},
        )

    async def bulk_action(
        self, db: AsyncSession, *, data: BulkTaskAction, current_user: User
    ) -> BulkTaskResult:
        """Apply one action to many tasks; per-task failures are reported, not raised."""
        tenant_id = current_user.tenant_id
        value: str | uuid.UUID | None = data.value

        if data.action == "assign":
            try:
                value = uuid.UUID(str(data.value))
            except ValueError:
                raise UnprocessableEntityException("value must be a user id for assign")
            await self._assert_tenant_user(db, user_id=value, tenant_id=tenant_id)
        elif data.action == "set_priority" and data.value not in TASK_PRIORITIES:
            raise UnprocessableEntityException(
                f"value must be one of {', '.join(TASK_PRIORITIES)} for set_priority"
            )

        tasks = await crud_task.get_many_in_tenant(db, data.task_ids, tenant_id=tenant_id)
        by_id = {task.id: task for task in tasks}

        processed = 0
        failed: list[BulkTaskFailure] = []
        for task_id in dict.fromkeys(data.task_ids):
            task = by_id.get(task_id)
            if task is None:
                failed.append(BulkTaskFailure(id=task_id, error="not_found"))
                continue
            if task.is_archived and data.action != "archive":
                failed.append(BulkTaskFailure(id=task_id, error="archived"))
                continue

            if data.action == "archive":
                task.is_archived = True
            elif data.action == "assign":
                task.assignee_id = value  # type: ignore[assignment]
            else:
                task.priority = str(value)
            processed += 1

        await db.flush()

        if data.action == "assign" and value != current_user.id:
            for task in by_id.values():
                if not task.is_archived:
                    await self._notify_assigned(db, task=task, actor=current_user)

        await activity_service.log(
            db,
            tenant_id=tenant_id,
            user_id=current_user.id,
            action=f"tasks_bulk_{data.action}",
            entity_type="task",
            entity_id=data.task_ids[0],
            meta={"task_ids": [str(t) for t in data.task_ids], "processed": processed},
        )
        return BulkTaskResult(processed=processed, failed=failed)

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _get_project(
        self, db: AsyncSession, *, project_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> Project:
        project = await crud_project.get_in_tenant(db, project_id, tenant_id=tenant_id)
        if project is None:
            raise NotFoundException("Project", str(project_id))
        return project

    async def _assert_tenant_user(
        self, db: AsyncSession, *, user_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> None:
        user = await crud_user.get_in_tenant(db, user_id, tenant_id=tenant_id)
        if user is None or not user.is_active:
            raise UnprocessableEntityException("Assignee must be an active member of this tenant")

    async def _notify_assigned(self, db: AsyncSession, *, task: Task, actor: User) -> None:
        if task.assignee_id is None:
            return
        await notification_service.notify_user(
            db,
            tenant_id=task.tenant_id,
            user_id=task.assignee_id,
            event_key="task.assigned",
            module="tasks",
            title="Task assigned",
            message=f"{actor.full_name} assigned you to task: {task.title!r}",
            priority=NOTIFICATION_PRIORITY.get(task.priority, "normal"),
            project_id=task.project_id,
            entity_type="task",
            entity_id=task.id,
        )


task_service = TaskService()
