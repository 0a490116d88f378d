"""SQLAdmin back-office: dashboard and model views for the learning catalog."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path
from typing import Any

from markupsafe import Markup
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.requests import Request
from starlette.responses import Response
from sqladmin import Admin, BaseView, ModelView, expose
from sqladmin.authentication import login_required

from eduup.crud.streak_crud import utc_today
from eduup.db.session import async_engine
from eduup.models.catalog.category_model import Category
from eduup.models.catalog.exercise_model import Exercise
from eduup.models.catalog.subject_model import Subject
from eduup.models.catalog.topic_model import Topic
from eduup.models.chat.chat_message_model import ChatMessage
from eduup.models.progress.daily_activity_model import UserDailyActivity
from eduup.models.progress.exercise_attempt_model import ExerciseAttempt
from eduup.models.progress.user_progress_model import UserProgress
from eduup.models.user.streak_model import UserStreak
from eduup.models.user.user_model import User

TEMPLATES_DIR = str(Path(__file__).resolve().parent / "templates")


def _json_preview(value: Any, *, max_chars: int = 160) -> Markup:
    """Render a JSON payload as a trimmed <pre> block."""
    if value in (None, ""):
        return Markup("<span style='color:#9ca3af;'>-</span>")

    if not isinstance(value, (dict, list)):
        text = str(value)
    else:
        try:
            text = json.dumps(value, ensure_ascii=False, indent=2)
        except TypeError:
            text = str(value)

    if len(text) > max_chars:
        text = text[:max_chars] + "…"

    return Markup(
        "<pre style='max-width:520px; white-space:pre-wrap; margin:0; font-size:12px;'>{}</pre>"
    ).format(text)


def _json_full(value: Any) -> Markup:
    return _json_preview(value, max_chars=10000)


_ASYNC_SESSION_FACTORY = async_sessionmaker(async_engine, expire_on_commit=False)


def _safe_int(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _percentage(part: int, total: int) -> float:
    if not total:
        return 0.0
    return round((part / total) * 100.0, 1)


async def _collect_dashboard_metrics() -> dict[str, Any]:
    today = utc_today()
    week_start = today - timedelta(days=6)

    async with _ASYNC_SESSION_FACTORY() as session:
        users_total, users_named, admins = (
            _safe_int(value)
            for value in (
                await session.execute(
                    select(
                        func.count(User.id),
                        func.count().filter(User.username.is_not(None)),
                        func.count().filter(User.is_superuser.is_(True)),
                    )
                )
            ).one()
        )

        subjects_total = _safe_int(await session.scalar(select(func.count(Subject.id))))
        topics_total = _safe_int(await session.scalar(select(func.count(Topic.id))))
        categories_total = _safe_int(await session.scalar(select(func.count(Category.id))))
        exercises_total = _safe_int(await session.scalar(select(func.count(Exercise.id))))

        progress_total, progress_completed, stars_total = (
            _safe_int(value)
            for value in (
                await session.execute(
                    select(
                        func.count(UserProgress.id),
                        func.count().filter(UserProgress.completed.is_(True)),
                        func.coalesce(func.sum(UserProgress.best_stars), 0),
                    )
                )
            ).one()
        )

        attempts_total = _safe_int(await session.scalar(select(func.count(ExerciseAttempt.id))))
        chat_total = _safe_int(await session.scalar(select(func.count(ChatMessage.id))))

        active_streaks = _safe_int(
            await session.scalar(
                select(func.count(UserStreak.user_id)).where(
                    UserStreak.streak_count > 0,
                    UserStreak.last_active_date >= today - timedelta(days=1),
                )
            )
        )

        activity_rows = (
            await session.execute(
                select(UserDailyActivity.day, func.sum(UserDailyActivity.exercises_completed))
                .where(UserDailyActivity.day >= week_start)
                .group_by(UserDailyActivity.day)
                .order_by(UserDailyActivity.day)
            )
        ).all()

    per_day = {day: _safe_int(count) for day, count in activity_rows}
    weekly_activity = []
    for offset in range(7):
        day = week_start + timedelta(days=offset)
        weekly_activity.append({"day": day.isoformat(), "count": per_day.get(day, 0)})

    summary_cards = [
        {
            "title": "Uživatelé",
            "icon": "fa-solid fa-users",
            "value": users_total,
            "subtitle": f"{users_named} s přezdívkou, {admins} admin",
        },
        {
            "title": "Úlohy",
            "icon": "fa-solid fa-puzzle-piece",
            "value": exercises_total,
            "subtitle": f"{topics_total} témat v {subjects_total} předmětech",
        },
        {
            "title": "Dokončeno",
            "icon": "fa-solid fa-circle-check",
            "value": progress_completed,
            "subtitle": f"{_percentage(progress_completed, progress_total):.1f}% záznamů, {stars_total} ⭐",
        },
        {
            "title": "Aktivní série",
            "icon": "fa-solid fa-fire",
            "value": active_streaks,
            "subtitle": f"{attempts_total} pokusů, {chat_total} zpráv v chatu",
        },
    ]

    return {
        "summary": summary_cards,
        "catalog": {
            "subjects": subjects_total,
            "topics": topics_total,
            "categories": categories_total,
            "exercises": exercises_total,
        },
        "weekly_activity": weekly_activity,
    }


async def _render_dashboard(request: Request, templates) -> Response:
    context = await _collect_dashboard_metrics()
    context.update(
        {
            "request": request,
            "title": "Přehled",
            "subtitle": "Klíčové ukazatele",
        }
    )
    return await templates.TemplateResponse(
        request,
        "sqladmin/dashboard.html",
        context,
    )


class DashboardView(BaseView):
    name = "Přehled"
    icon = "fa-solid fa-gauge-high"

    @expose("/dashboard", methods=["GET"], identity="dashboard")
    async def dashboard(self, request: Request) -> Response:
        return await _render_dashboard(request, self.templates)


class BackOfficeAdmin(Admin):
    @login_required
    async def index(self, request: Request) -> Response:
        return await _render_dashboard(request, self.templates)


class UserAdmin(ModelView, model=User):
    name = "Uživatel"
    name_plural = "Uživatelé"
    icon = "fa-solid fa-user"
    category = "Uživatelé"
    column_list = [
        User.id,
        User.username,
        User.email,
        User.is_active,
        User.is_superuser,
        User.created_at,
        User.last_login_at,
    ]
    column_searchable_list = [User.username, User.email]
    column_sortable_list = [User.created_at, User.last_login_at]
    column_default_sort = [(User.created_at, True)]
    column_labels = {
        User.is_superuser: "Admin",
        User.last_login_at: "Poslední přihlášení",
    }
    column_details_exclude_list = [User.hashed_password]
    form_excluded_columns = [
        "hashed_password",
        "progress",
        "daily_activity",
        "attempts",
        "chat_messages",
        "streak",
    ]
    can_export = True
    page_size = 50


class SubjectAdmin(ModelView, model=Subject):
    name = "Předmět"
    name_plural = "Předměty"
    icon = "fa-solid fa-book"
    category = "Katalog"
    column_list = [Subject.id, Subject.name, Subject.icon, Subject.color, Subject.order]
    column_searchable_list = [Subject.name]
    column_default_sort = [(Subject.order, False)]


class TopicAdmin(ModelView, model=Topic):
    name = "Téma"
    name_plural = "Témata"
    icon = "fa-solid fa-layer-group"
    category = "Katalog"
    column_list = [Topic.id, Topic.subject, Topic.grade, Topic.order, Topic.name]
    column_searchable_list = [Topic.name, Topic.subject]
    column_sortable_list = [Topic.subject, Topic.grade, Topic.order]
    form_excluded_columns = ["categories", "exercises"]
    page_size = 50


class CategoryAdmin(ModelView, model=Category):
    name = "Kategorie"
    name_plural = "Kategorie"
    icon = "fa-solid fa-folder-tree"
    category = "Katalog"
    column_list = [Category.id, Category.topic, Category.order, Category.name]
    column_searchable_list = [Category.name]
    form_excluded_columns = ["exercises"]


class ExerciseAdmin(ModelView, model=Exercise):
    name = "Úloha"
    name_plural = "Úlohy"
    icon = "fa-solid fa-puzzle-piece"
    category = "Katalog"
    column_list = [
        Exercise.id,
        Exercise.type,
        Exercise.title,
        Exercise.topic,
        Exercise.category,
        Exercise.created_at,
        Exercise.payload,
    ]
    column_searchable_list = [Exercise.title, Exercise.type]
    column_sortable_list = [Exercise.created_at, Exercise.type]
    column_default_sort = [(Exercise.created_at, True)]
    column_formatters = {
        Exercise.payload: lambda m, _: _json_preview(m.payload),
    }
    column_formatters_detail = {
        Exercise.payload: lambda m, _: _json_full(m.payload),
    }
    page_size = 50


class UserProgressAdmin(ModelView, model=UserProgress):
    name = "Postup"
    name_plural = "Postup uživatelů"
    icon = "fa-solid fa-chart-line"
    category = "Pokrok"
    column_list = [
        UserProgress.user_id,
        UserProgress.exercise_id,
        UserProgress.completed,
        UserProgress.attempts,
        UserProgress.best_score,
        UserProgress.best_stars,
        UserProgress.completed_at,
    ]
    column_sortable_list = [UserProgress.best_stars, UserProgress.completed_at]
    can_create = False


class UserStreakAdmin(ModelView, model=UserStreak):
    name = "Série"
    name_plural = "Série"
    icon = "fa-solid fa-fire"
    category = "Pokrok"
    column_list = [
        UserStreak.user_id,
        UserStreak.streak_count,
        UserStreak.longest_streak,
        UserStreak.longest_streak_date,
        UserStreak.last_active_date,
    ]
    column_default_sort = [(UserStreak.streak_count, True)]
    can_create = False


class UserDailyActivityAdmin(ModelView, model=UserDailyActivity):
    name = "Denní aktivita"
    name_plural = "Denní aktivita"
    icon = "fa-solid fa-calendar-days"
    category = "Pokrok"
    column_list = [UserDailyActivity.user_id, UserDailyActivity.day, UserDailyActivity.exercises_completed]
    column_default_sort = [(UserDailyActivity.day, True)]
    can_create = False
    can_edit = False


class ExerciseAttemptAdmin(ModelView, model=ExerciseAttempt):
    name = "Pokus"
    name_plural = "Pokusy"
    icon = "fa-solid fa-clock-rotate-left"
    category = "Pokrok"
    column_list = [
        ExerciseAttempt.id,
        ExerciseAttempt.user_id,
        ExerciseAttempt.exercise_title,
        ExerciseAttempt.score,
        ExerciseAttempt.stars,
        ExerciseAttempt.correct_count,
        ExerciseAttempt.total,
        ExerciseAttempt.created_at,
    ]
    column_default_sort = [(ExerciseAttempt.created_at, True)]
    column_formatters_detail = {
        ExerciseAttempt.items: lambda m, _: _json_full(m.items),
    }
    can_create = False
    can_edit = False


class ChatMessageAdmin(ModelView, model=ChatMessage):
    name = "Zpráva"
    name_plural = "Chat"
    icon = "fa-solid fa-comments"
    category = "Pokrok"
    column_list = [ChatMessage.id, ChatMessage.user_id, ChatMessage.role, ChatMessage.content, ChatMessage.created_at]
    column_default_sort = [(ChatMessage.created_at, True)]
    column_formatters = {
        ChatMessage.content: lambda m, _: (m.content[:120] + "…") if len(m.content or "") > 120 else m.content,
    }
    can_create = False
    can_edit = False


ADMIN_VIEWS = [
    DashboardView,
    UserAdmin,
    SubjectAdmin,
    TopicAdmin,
    CategoryAdmin,
    ExerciseAdmin,
    UserProgressAdmin,
    UserStreakAdmin,
    UserDailyActivityAdmin,
    ExerciseAttemptAdmin,
    ChatMessageAdmin,
]
