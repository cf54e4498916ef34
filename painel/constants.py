"""
Constantes centralizadas da aplicação.

Seções:
    - USUARIOS: Papéis e situações de conta
    - PROJETOS: Situações de projeto e tipos de mensagem
    - RECOMPENSAS: Tipos e valores padrão das configurações
    - UPLOAD: Tipos de imagem aceitos no perfil
    - CACHE: Chaves de cache
"""


# =============================================================================
# USUARIOS
# =============================================================================

USER_ROLES = ("admin", "manager", "employee")
USER_STATUSES = ("active", "inactive", "suspended")
DEFAULT_USER_ROLE = "employee"

USER_ROLE_LABELS = {
    "admin": "Administrador",
    "manager": "Gerente",
    "employee": "Colaborador",
}


# =============================================================================
# PROJETOS
# =============================================================================

PROJECT_STATUSES = ("planning", "active", "paused", "completed", "cancelled", "archived")

MESSAGE_TYPE_GENERAL = "general"
MESSAGE_TYPE_TASK_SUBMISSION = "task_submission"
MESSAGE_TYPE_TASK_APPROVAL = "task_approval"
MESSAGE_TYPES = (MESSAGE_TYPE_GENERAL, MESSAGE_TYPE_TASK_SUBMISSION, MESSAGE_TYPE_TASK_APPROVAL)

SYSTEM_USER_NAME = "Sistema"
UNKNOWN_USER_NAME = "Usuário Desconhecido"


# =============================================================================
# TAREFAS
# =============================================================================

DIFFICULTY_MIN = 2
DIFFICULTY_MAX = 9
DEFAULT_DIFFICULTY = 2

# Atividades registradas no historico do projeto
ACTIVITY_TASK_CREATED = "task_created"
ACTIVITY_TASK_UPDATED = "task_updated"
ACTIVITY_TASK_DELETED = "task_deleted"
ACTIVITY_TASK_STATUS_CHANGED = "task_status_changed"
ACTIVITY_ACTION_COMPLETED = "action_completed"
ACTIVITY_ACTION_REOPENED = "action_reopened"
ACTIVITY_PROJECT_CREATED = "project_created"
ACTIVITY_PROJECT_UPDATED = "project_updated"
ACTIVITY_PROJECT_DELETED = "project_deleted"
ACTIVITY_PROJECT_FILE_ADDED = "project_file_added"
ACTIVITY_PROJECT_FILE_DELETED = "project_file_deleted"
ACTIVITY_COMMENT_ADDED = "comment_added"


# =============================================================================
# RECOMPENSAS
# =============================================================================

REWARD_TYPES = ("task_completion", "monthly_bonus", "special_achievement")

DEFAULT_SYSTEM_SETTINGS = {
    "task_completion_base": 10,
    "complexity_multiplier": 1.5,
    "monthly_bonus": 50,
    "two_factor_auth": False,
    "password_reset_frequency": 90,
    "email_notifications": True,
    "push_notifications": False,
    "weekly_reports": True,
}


# =============================================================================
# UPLOAD
# =============================================================================

PROFILE_IMAGE_MIME_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


# =============================================================================
# CACHE
# =============================================================================

CACHE_KEY_SYSTEM_SETTINGS = "system_settings:v1"
