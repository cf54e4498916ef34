"""Database models for the application."""

from flask_login import UserMixin
from sqlalchemy.ext.mutable import MutableDict, MutableList
from werkzeug.security import check_password_hash, generate_password_hash

from painel import db
from painel.constants import DEFAULT_SYSTEM_SETTINGS, DEFAULT_USER_ROLE
from painel.utils.datetime_utils import utcnow
from painel.workflow.actions import Action, actions_from_dicts, actions_to_dicts
from painel.workflow.state_machine import TaskPriority, TaskStatus


class User(db.Model, UserMixin):
    """Application user account."""
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=DEFAULT_USER_ROLE)
    status = db.Column(db.String(20), nullable=False, default="active")
    coins = db.Column(db.Integer, nullable=False, default=0)
    profile_image = db.Column(db.String(255))
    cover_image = db.Column(db.String(255))
    bio = db.Column(db.Text)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def set_password(self, password):
        """Hash and store the user's password."""
        self.password = generate_password_hash(password)

    def check_password(self, password):
        """Validate a plaintext password against the stored hash."""
        return check_password_hash(self.password, password)

    @property
    def is_active(self):
        """Only active accounts can log in."""
        return self.status == "active"

    def __repr__(self):
        return f"<User {self.email}>"


class Project(db.Model):
    """Container of tasks, files and the project chat."""
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    status = db.Column(db.String(20), nullable=False, default="planning")
    managers = db.Column(MutableList.as_mutable(db.JSON), nullable=False, default=list)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    creator = db.relationship("User", foreign_keys=[created_by])
    tasks = db.relationship(
        "Task", backref="project", cascade="all, delete-orphan", lazy="selectin"
    )
    messages = db.relationship(
        "ProjectMessage",
        backref="project",
        cascade="all, delete-orphan",
        order_by="ProjectMessage.id.asc()",
    )
    files = db.relationship(
        "ProjectFile",
        backref="project",
        cascade="all, delete-orphan",
        order_by="ProjectFile.id.asc()",
    )

    def __repr__(self):
        return f"<Project {self.name}>"


class ProjectMessage(db.Model):
    """Message in the project chat; ``user_id`` is NULL for system messages."""
    __tablename__ = "project_messages"
    __table_args__ = (
        db.Index("idx_project_messages_project_type", "project_id", "message_type"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    user_name = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=False)
    message_type = db.Column(db.String(30), nullable=False, default="general")
    original_message_id = db.Column(db.Integer, db.ForeignKey("project_messages.id"))
    quoted_user_name = db.Column(db.String(100))
    quoted_content = db.Column(db.Text)
    attachments = db.Column(MutableList.as_mutable(db.JSON), nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ProjectFile(db.Model):
    """File stored under ``projects/<id>/files``."""
    __tablename__ = "project_files"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    name = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(500), nullable=False)
    path = db.Column(db.String(500), nullable=False)
    content_type = db.Column(db.String(100))
    size = db.Column(db.Integer)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="SET NULL"))
    added_from_task = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)


class Task(db.Model):
    """Task of a project; its actions live in a JSON column."""
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.Enum(TaskStatus), nullable=False, default=TaskStatus.PENDING)
    priority = db.Column(db.Enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM)
    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    start_date = db.Column(db.Date)
    due_date = db.Column(db.Date)
    difficulty_level = db.Column(db.Integer, nullable=False, default=2)
    coins_reward = db.Column(db.Integer, nullable=False, default=0)
    comments = db.Column(MutableList.as_mutable(db.JSON), nullable=False, default=list)
    actions = db.Column(MutableList.as_mutable(db.JSON), nullable=False, default=list)
    completed_at = db.Column(db.DateTime)
    files_moved_to_project = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    creator = db.relationship("User", foreign_keys=[created_by])
    assignee = db.relationship("User", foreign_keys=[assigned_to])

    def get_actions(self) -> list[Action]:
        """Return the stored actions as :class:`Action` objects."""
        return actions_from_dicts(self.actions)

    def set_actions(self, actions) -> None:
        self.actions = actions_to_dicts(actions)

    def __repr__(self):
        return f"<Task {self.title}>"


class TaskStatusHistory(db.Model):
    """Tracks changes to task statuses over time."""
    __tablename__ = "task_status_history"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    from_status = db.Column(db.Enum(TaskStatus))
    to_status = db.Column(db.Enum(TaskStatus), nullable=False)
    changed_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    changed_by = db.Column(db.Integer, db.ForeignKey("users.id"))

    task = db.relationship(
        "Task",
        backref=db.backref(
            "status_history",
            lazy="selectin",
            cascade="all, delete-orphan",
            order_by="TaskStatusHistory.id.asc()",
        ),
    )
    user = db.relationship("User")

    def __repr__(self):
        return f"<TaskStatusHistory task={self.task_id} {self.from_status}->{self.to_status}>"


class SystemSettings(db.Model):
    """Single-row table with reward and security settings."""
    __tablename__ = "system_settings"

    id = db.Column(db.Integer, primary_key=True)
    task_completion_base = db.Column(
        db.Integer, nullable=False, default=DEFAULT_SYSTEM_SETTINGS["task_completion_base"]
    )
    complexity_multiplier = db.Column(
        db.Float, nullable=False, default=DEFAULT_SYSTEM_SETTINGS["complexity_multiplier"]
    )
    monthly_bonus = db.Column(
        db.Integer, nullable=False, default=DEFAULT_SYSTEM_SETTINGS["monthly_bonus"]
    )
    two_factor_auth = db.Column(db.Boolean, nullable=False, default=False)
    password_reset_frequency = db.Column(db.Integer, nullable=False, default=90)
    email_notifications = db.Column(db.Boolean, nullable=False, default=True)
    push_notifications = db.Column(db.Boolean, nullable=False, default=False)
    weekly_reports = db.Column(db.Boolean, nullable=False, default=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {key: getattr(self, key) for key in DEFAULT_SYSTEM_SETTINGS}


class Reward(db.Model):
    __tablename__ = "rewards"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    type = db.Column(db.String(30), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"))
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = db.relationship("User", backref=db.backref("rewards", lazy="dynamic"))


class CoinTransaction(db.Model):
    """Ledger entry for every change in a user's coin balance."""
    __tablename__ = "coin_transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)


class Notification(db.Model):
    __tablename__ = "notifications"
    __table_args__ = (db.Index("idx_notifications_user_read", "user_id", "read"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    type = db.Column(db.String(30), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    related_entity_id = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)


class ActionTemplate(db.Model):
    """Reusable document form; instantiated as a ``document`` action."""
    __tablename__ = "action_templates"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    type = db.Column(db.String(20), nullable=False, default="custom")
    elements = db.Column(MutableList.as_mutable(db.JSON), nullable=False, default=list)
    order = db.Column(db.Integer, nullable=False, default=0)
    category = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ActivityLog(db.Model):
    """Project activity feed and audit trail."""
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_project", "project_id"),
        db.Index("idx_activity_created_at", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    user_name = db.Column(db.String(100))
    type = db.Column(db.String(50), nullable=False)
    project_id = db.Column(db.Integer)
    task_id = db.Column(db.Integer)
    project_name = db.Column(db.String(150))
    task_name = db.Column(db.String(200))
    new_status = db.Column(db.String(30))
    details = db.Column(MutableDict.as_mutable(db.JSON))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<ActivityLog {self.type} project={self.project_id} task={self.task_id}>"
