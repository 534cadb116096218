import logging

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.core.validators import URLValidator, validate_email
from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.utils.dateparse import parse_date

from .models import User

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 15

# Fields an admin may edit through the user management screen.
EDITABLE_FIELDS = (
    "full_name",
    "phone",
    "department",
    "academic_rank",
    "gender",
    "birth_date",
    "class_name",
    "student_code",
    "teacher_code",
    "avatar_url",
)

# What users may change on their own profile.
PROFILE_FIELDS = (
    "full_name",
    "phone",
    "gender",
    "birth_date",
    "avatar_url",
    "department",
    "academic_rank",
    "class_name",
)


class UserAdminError(Exception):
    pass


def _apply_fields(user, data, fields):
    changed = []
    for field in fields:
        if field not in data:
            continue
        value = data[field]
        if field in ("student_code", "teacher_code"):
            value = str(value or "").strip() or None
        elif field == "birth_date" and isinstance(value, str):
            value = parse_date(value) if value else None
            if data[field] and value is None:
                raise UserAdminError("Invalid birth_date")
        elif field == "gender":
            value = (value or "").strip().lower()
            if value and value not in dict(User.GENDER_CHOICES):
                raise UserAdminError(f"Invalid gender: {value}")
        elif field == "avatar_url" and value:
            try:
                URLValidator(schemes=["http", "https"])(value)
            except ValidationError:
                raise UserAdminError("avatar_url must be an http(s) URL")
        elif value is None:
            value = ""
        setattr(user, field, value)
        changed.append(field)
    return changed


def _user_filters(filters):
    q = Q()
    role = filters.get("role")
    if role:
        q &= Q(role=role)
    is_active = filters.get("is_active")
    if is_active not in (None, ""):
        q &= Q(is_active=str(is_active).lower() in ("1", "true", "yes"))
    department = filters.get("department")
    if department:
        q &= Q(department=department)
    class_id = filters.get("class_id")
    if class_id:
        q &= Q(class_memberships__course_class_id=class_id)
    search = (filters.get("search") or "").strip()
    if search:
        q &= (
            Q(full_name__icontains=search)
            | Q(email__icontains=search)
            | Q(student_code__icontains=search)
            | Q(teacher_code__icontains=search)
        )
    return q


def list_users(filters=None, page=1, page_size=DEFAULT_PAGE_SIZE):
    filters = filters or {}
    qs = User.objects.filter(_user_filters(filters)).distinct().order_by("-date_joined", "id")
    paginator = Paginator(qs, page_size)
    page_obj = paginator.get_page(page)
    return {
        "users": list(page_obj.object_list),
        "total": paginator.count,
        "page": page_obj.number,
        "page_size": page_size,
        "total_pages": paginator.num_pages,
    }


def update_user(user, data):
    changed = _apply_fields(user, data, EDITABLE_FIELDS)
    if changed:
        try:
            with transaction.atomic():
                user.save(update_fields=changed + ["updated_at"])
        except IntegrityError:
            raise UserAdminError("Student or teacher code already in use")
    return user


def update_profile(user, data):
    """Self-service edit; anything outside ``PROFILE_FIELDS`` is ignored."""
    changed = _apply_fields(user, data, PROFILE_FIELDS)
    if changed:
        user.save(update_fields=changed + ["updated_at"])
        logger.info("User %s updated profile fields %s", user.pk, ", ".join(changed))
    return user


def create_user(data):
    """
    Create an account of any role from the admin screen.

    Without a password the account gets an unusable one and the user sets
    their own through the password reset flow.
    """
    email = (data.get("email") or "").strip()
    try:
        validate_email(email)
    except ValidationError:
        raise UserAdminError("A valid email is required")
    role = data.get("role") or User.ROLE_STUDENT
    if role not in {code for code, _ in User.ROLE_CHOICES}:
        raise UserAdminError(f"Invalid role: {role}")
    email = User.objects.normalize_email(email)
    if User.objects.filter(email__iexact=email).exists():
        raise UserAdminError("A user with this email already exists")

    user = User(email=email, role=role)
    _apply_fields(user, data, EDITABLE_FIELDS)
    password = data.get("password") or ""
    if password:
        try:
            validate_password(password, user)
        except ValidationError as e:
            raise UserAdminError(" ".join(e.messages))
        user.set_password(password)
    else:
        user.set_unusable_password()
    try:
        with transaction.atomic():
            user.save()
    except IntegrityError:
        raise UserAdminError("Email, student code or teacher code already in use")
    logger.info("Created %s account %s", role, user.pk)
    return user


def toggle_active(user):
    user.is_active = not user.is_active
    user.save(update_fields=["is_active", "updated_at"])
    logger.info("User %s active=%s", user.pk, user.is_active)
    return user


def change_role(user, role):
    valid = {code for code, _ in User.ROLE_CHOICES}
    if role not in valid:
        raise UserAdminError(f"Invalid role: {role}")
    user.role = role
    user.save(update_fields=["role", "updated_at"])
    logger.info("User %s role changed to %s", user.pk, role)
    return user


def user_stats():
    agg = User.objects.aggregate(
        total=Count("id"),
        admins=Count("id", filter=Q(role=User.ROLE_ADMIN)),
        teachers=Count("id", filter=Q(role=User.ROLE_TEACHER)),
        students=Count("id", filter=Q(role=User.ROLE_STUDENT)),
        active=Count("id", filter=Q(is_active=True)),
    )
    agg["inactive"] = agg["total"] - agg["active"]
    return agg


def departments():
    return list(
        User.objects.exclude(department="")
        .values_list("department", flat=True)
        .distinct()
        .order_by("department")
    )


def serialize_user(user):
    return {
        "id": user.pk,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "student_code": user.student_code,
        "teacher_code": user.teacher_code,
        "phone": user.phone,
        "department": user.department,
        "academic_rank": user.academic_rank,
        "gender": user.gender,
        "birth_date": user.birth_date.isoformat() if user.birth_date else None,
        "class_name": user.class_name,
        "avatar_url": user.avatar_url,
        "is_active": user.is_active,
    }
