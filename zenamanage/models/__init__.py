"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from zenamanage.models.tenant import Tenant  # noqa: F401
from zenamanage.models.user import User  # noqa: F401
from zenamanage.models.project import Project  # noqa: F401
from zenamanage.models.task import Task, TaskDependency  # noqa: F401
from zenamanage.models.comment import Comment  # noqa: F401
from zenamanage.models.change_request import ChangeRequest  # noqa: F401
from zenamanage.models.notification import Notification, NotificationRule  # noqa: F401
from zenamanage.models.dashboard import DashboardAlert, DashboardWidget, UserDashboard  # noqa: F401
from zenamanage.models.activity_log import ActivityLog  # noqa: F401
