from django.contrib.auth.models import AbstractUser
from django.contrib.auth.base_user import BaseUserManager
from django.db import models


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The Email must be set")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", User.ROLE_ADMIN)
        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    ROLE_ADMIN = "admin"
    ROLE_TEACHER = "teacher"
    ROLE_STUDENT = "student"
    ROLE_CHOICES = [
        (ROLE_ADMIN, "Admin"),
        (ROLE_TEACHER, "Teacher"),
        (ROLE_STUDENT, "Student"),
    ]
    GENDER_CHOICES = [("male", "Male"), ("female", "Female"), ("other", "Other")]

    username = None
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_STUDENT)
    full_name = models.CharField(max_length=200, blank=True)
    student_code = models.CharField(max_length=32, blank=True, null=True, unique=True)
    teacher_code = models.CharField(max_length=32, blank=True, null=True, unique=True)
    phone = models.CharField(max_length=32, blank=True)
    department = models.CharField(max_length=128, blank=True)
    academic_rank = models.CharField(max_length=64, blank=True)
    gender = models.CharField(max_length=16, choices=GENDER_CHOICES, blank=True)
    birth_date = models.DateField(blank=True, null=True)
    class_name = models.CharField(max_length=64, blank=True)
    avatar_url = models.URLField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    EMAIL_FIELD = "email"
    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []
    objects = UserManager()

    class Meta:
        ordering = ["full_name", "email"]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        return self.full_name or self.get_full_name() or self.email

    @property
    def is_admin_role(self):
        return self.role == self.ROLE_ADMIN

    @property
    def is_teacher(self):
        return self.role == self.ROLE_TEACHER

    @property
    def is_student(self):
        return self.role == self.ROLE_STUDENT


class UserPreference(models.Model):
    THEME_LIGHT = "light"
    THEME_DARK = "dark"
    THEME_CHOICES = [(THEME_LIGHT, "Light"), (THEME_DARK, "Dark")]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="ui_pref")
    theme = models.CharField(max_length=8, choices=THEME_CHOICES, default=THEME_LIGHT)
    selected_session = models.ForeignKey(
        "academics.Session",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    sidebar_collapsed = models.BooleanField(default=False)
    email_notifications = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    def as_dict(self):
        return {
            "theme": self.theme,
            "selected_session_id": self.selected_session_id,
            "sidebar_collapsed": self.sidebar_collapsed,
            "email_notifications": self.email_notifications,
        }
