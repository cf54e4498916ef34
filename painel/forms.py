"""WTForms definitions used to validate the JSON API payloads."""

from flask_wtf import FlaskForm
from wtforms import (
    BooleanField,
    DateField,
    FloatField,
    IntegerField,
    PasswordField,
    StringField,
    TextAreaField,
)
from wtforms.validators import (
    AnyOf,
    DataRequired,
    InputRequired,
    Length,
    NumberRange,
    Optional,
    ValidationError,
)

from painel.constants import (
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    PROJECT_STATUSES,
    USER_ROLES,
    USER_STATUSES,
)
from painel.errors import ValidationFailure
from painel.services.action_templates import TEMPLATE_TYPES
from painel.utils.validation import is_strong_password, is_valid_email, is_valid_name
from painel.workflow.state_machine import TaskPriority

# JSON envia booleanos de verdade; o BooleanField padrao so entende strings
JSON_FALSE_VALUES = (False, "false", "False", "0", 0, "")


class ApiForm(FlaskForm):
    """Base para formularios da API (CSRF fica a cargo da sessao/blueprint)."""

    class Meta:
        csrf = False


def validate_or_raise(form: FlaskForm) -> FlaskForm:
    """Validate ``form`` and raise the first error as :class:`ValidationFailure`."""
    if form.validate():
        return form
    field_name, messages = next(iter(form.errors.items()))
    raise ValidationFailure(messages[0], field=field_name)


# --- Validadores ---

def nome_valido(form, field):
    """Exige nome e sobrenome."""
    if field.data and not is_valid_name(field.data):
        raise ValidationError("Informe nome e sobrenome válidos.")


def email_valido(form, field):
    if field.data and not is_valid_email(field.data):
        raise ValidationError("E-mail inválido.")


def senha_forte(form, field):
    """Mínimo de 8 caracteres com maiúscula, minúscula, número e símbolo."""
    if field.data and not is_strong_password(field.data):
        raise ValidationError(
            "A senha deve ter ao menos 8 caracteres, com maiúscula, minúscula, número e símbolo."
        )


# --- Formulários de autenticação ---

class LoginForm(ApiForm):
    """Formulário para login de usuários."""
    # E-mail de acesso
    email = StringField("E-mail", validators=[DataRequired(), email_valido])
    # Senha do usuário
    password = PasswordField("Senha", validators=[DataRequired()])
    # Mantém a sessão ativa
    remember_me = BooleanField("Lembrar-me", false_values=JSON_FALSE_VALUES)


# --- Formulários de usuários ---

class UserForm(ApiForm):
    """Formulário para cadastrar usuários."""
    name = StringField("Nome Completo", validators=[DataRequired(), Length(max=100), nome_valido])
    email = StringField("E-mail", validators=[DataRequired(), Length(max=120), email_valido])
    password = PasswordField("Senha", validators=[DataRequired(), senha_forte])
    role = StringField("Perfil", validators=[Optional(), AnyOf(USER_ROLES, message="Perfil inválido.")])
    bio = TextAreaField("Bio", validators=[Optional(), Length(max=2000)])


class UserUpdateForm(ApiForm):
    """Campos opcionais; somente os enviados são alterados."""
    name = StringField("Nome Completo", validators=[Optional(), Length(max=100), nome_valido])
    email = StringField("E-mail", validators=[Optional(), Length(max=120), email_valido])
    password = PasswordField("Senha", validators=[Optional(), senha_forte])
    role = StringField("Perfil", validators=[Optional(), AnyOf(USER_ROLES, message="Perfil inválido.")])
    status = StringField("Situação", validators=[Optional(), AnyOf(USER_STATUSES, message="Situação inválida.")])
    bio = TextAreaField("Bio", validators=[Optional(), Length(max=2000)])
    cover_image = StringField("Capa", validators=[Optional(), Length(max=255)])


# --- Formulários de projetos e tarefas ---

class ProjectForm(ApiForm):
    name = StringField("Nome", validators=[DataRequired(), Length(max=150)])
    description = TextAreaField("Descrição", validators=[Optional()])
    status = StringField(
        "Situação", validators=[Optional(), AnyOf(PROJECT_STATUSES, message="Situação de projeto inválida.")]
    )
    start_date = DateField("Início", format="%Y-%m-%d", validators=[Optional()])
    end_date = DateField("Término", format="%Y-%m-%d", validators=[Optional()])

    def validate_end_date(self, field):
        if field.data and self.start_date.data and field.data < self.start_date.data:
            raise ValidationError("A data final deve ser posterior à inicial.")


class TaskForm(ApiForm):
    """Formulário de criação de tarefas (as ações são validadas pelo serviço)."""
    project_id = IntegerField("Projeto", validators=[InputRequired(message="O projeto da tarefa é obrigatório.")])
    title = StringField("Título", validators=[DataRequired(message="O título da tarefa é obrigatório."), Length(max=200)])
    description = TextAreaField("Descrição", validators=[Optional()])
    priority = StringField(
        "Prioridade",
        validators=[Optional(), AnyOf([item.value for item in TaskPriority], message="Prioridade inválida.")],
    )
    assigned_to = IntegerField("Responsável", validators=[Optional()])
    start_date = DateField("Início", format="%Y-%m-%d", validators=[Optional()])
    due_date = DateField("Prazo", format="%Y-%m-%d", validators=[Optional()])
    difficulty_level = IntegerField(
        "Dificuldade",
        validators=[
            Optional(),
            NumberRange(
                min=DIFFICULTY_MIN,
                max=DIFFICULTY_MAX,
                message=f"Dificuldade deve estar entre {DIFFICULTY_MIN} e {DIFFICULTY_MAX}.",
            ),
        ],
    )

    def validate_due_date(self, field):
        if field.data and self.start_date.data and field.data < self.start_date.data:
            raise ValidationError("O prazo deve ser posterior ao início.")


class CommentForm(ApiForm):
    text = TextAreaField("Comentário", validators=[DataRequired(message="O comentário não pode ficar vazio."), Length(max=5000)])


# --- Configurações e modelos ---

class SettingsForm(ApiForm):
    """Alteração parcial das configurações do sistema."""
    task_completion_base = IntegerField(
        "Recompensa base", validators=[Optional(), NumberRange(min=1, message="Recompensa base deve ser positiva")]
    )
    complexity_multiplier = FloatField(
        "Multiplicador",
        validators=[Optional(), NumberRange(min=1, message="Multiplicador de complexidade deve ser maior ou igual a 1")],
    )
    monthly_bonus = IntegerField(
        "Bônus mensal", validators=[Optional(), NumberRange(min=0, message="Bônus mensal não pode ser negativo")]
    )
    password_reset_frequency = IntegerField("Troca de senha (dias)", validators=[Optional(), NumberRange(min=1)])
    two_factor_auth = BooleanField("2FA", false_values=JSON_FALSE_VALUES)
    email_notifications = BooleanField("Notificações por e-mail", false_values=JSON_FALSE_VALUES)
    push_notifications = BooleanField("Notificações push", false_values=JSON_FALSE_VALUES)
    weekly_reports = BooleanField("Relatórios semanais", false_values=JSON_FALSE_VALUES)


class ActionTemplateForm(ApiForm):
    title = StringField("Título", validators=[DataRequired(message="O título do modelo é obrigatório."), Length(max=200)])
    description = TextAreaField("Descrição", validators=[Optional()])
    type = StringField("Tipo", validators=[Optional(), AnyOf(TEMPLATE_TYPES, message="Tipo de modelo inválido.")])
    category = StringField("Categoria", validators=[Optional(), Length(max=100)])
