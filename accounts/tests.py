import json

from django.test import Client, RequestFactory, TestCase
from django.urls import reverse

from academics.models import Session

from . import services
from .decorators import role_required
from .models import User, UserPreference


def make_user(email, role=User.ROLE_STUDENT, **extra):
    return User.objects.create_user(email=email, password="pw-12345678", role=role, **extra)


class RoleRequiredTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()

        @role_required("admin")
        def view(request):
            from django.http import HttpResponse

            return HttpResponse("ok")

        self.view = view

    def test_anonymous_is_sent_to_login(self):
        from django.contrib.auth.models import AnonymousUser

        request = self.factory.get("/x/")
        request.user = AnonymousUser()
        resp = self.view(request)
        self.assertEqual(resp.status_code, 302)

    def test_wrong_role_is_forbidden(self):
        request = self.factory.get("/x/")
        request.user = make_user("s@example.com")
        self.assertEqual(self.view(request).status_code, 403)

    def test_matching_role_passes(self):
        request = self.factory.get("/x/")
        request.user = make_user("a@example.com", role=User.ROLE_ADMIN)
        self.assertEqual(self.view(request).status_code, 200)


class HomeRedirectTests(TestCase):
    def test_anonymous_goes_to_login(self):
        resp = Client().get(reverse("home"))
        self.assertRedirects(resp, reverse("account_login"), fetch_redirect_response=False)

    def test_each_role_lands_on_its_dashboard(self):
        cases = {
            User.ROLE_ADMIN: reverse("dashboards:admin"),
            User.ROLE_TEACHER: reverse("dashboards:teacher"),
            User.ROLE_STUDENT: reverse("students:dashboard"),
        }
        for role, target in cases.items():
            client = Client()
            client.force_login(make_user(f"{role}@example.com", role=role))
            resp = client.get(reverse("home"))
            self.assertRedirects(resp, target, fetch_redirect_response=False)


class PreferenceTests(TestCase):
    def setUp(self):
        self.user = make_user("pref@example.com")
        self.client = Client()
        self.client.force_login(self.user)
        self.url = reverse("accounts:preferences")

    def test_created_with_user(self):
        self.assertTrue(UserPreference.objects.filter(user=self.user).exists())

    def test_get_returns_defaults(self):
        data = self.client.get(self.url).json()
        self.assertEqual(data["theme"], "light")
        self.assertFalse(data["sidebar_collapsed"])
        self.assertIsNone(data["selected_session_id"])

    def test_post_saves_changes(self):
        session = Session.objects.create(name="2025 S1", academic_year="2025-2026")
        resp = self.client.post(
            self.url,
            data=json.dumps(
                {"theme": "dark", "selected_session_id": session.pk, "sidebar_collapsed": True}
            ),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        pref = UserPreference.objects.get(user=self.user)
        self.assertEqual(pref.theme, "dark")
        self.assertEqual(pref.selected_session_id, session.pk)
        self.assertTrue(pref.sidebar_collapsed)

    def test_unknown_session_rejected(self):
        resp = self.client.post(
            self.url,
            data=json.dumps({"selected_session_id": 9999}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 400)

    def test_bad_theme_rejected(self):
        resp = self.client.post(
            self.url, data=json.dumps({"theme": "neon"}), content_type="application/json"
        )
        self.assertEqual(resp.status_code, 400)


class UserAdminServiceTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin@example.com", role=User.ROLE_ADMIN, full_name="Ada Admin")
        for i in range(20):
            make_user(f"s{i}@example.com", full_name=f"Student {i}", student_code=f"S{i:03d}")
        make_user("t@example.com", role=User.ROLE_TEACHER, department="CS", teacher_code="T01")

    def test_list_is_paginated_fifteen_by_default(self):
        result = services.list_users()
        self.assertEqual(len(result["users"]), 15)
        self.assertEqual(result["total"], 22)
        self.assertEqual(result["total_pages"], 2)

    def test_filters_and_search(self):
        self.assertEqual(services.list_users({"role": "teacher"})["total"], 1)
        self.assertEqual(services.list_users({"search": "S005"})["total"], 1)
        self.assertEqual(services.list_users({"department": "CS"})["total"], 1)

    def test_update_ignores_fields_outside_allow_list(self):
        user = User.objects.get(email="s1@example.com")
        services.update_user(user, {"phone": "0900", "role": "admin", "birth_date": "2003-05-01"})
        user.refresh_from_db()
        self.assertEqual(user.phone, "0900")
        self.assertEqual(user.role, User.ROLE_STUDENT)
        self.assertEqual(user.birth_date.isoformat(), "2003-05-01")

    def test_bad_birth_date(self):
        user = User.objects.get(email="s1@example.com")
        with self.assertRaises(services.UserAdminError):
            services.update_user(user, {"birth_date": "yesterday"})

    def test_change_role_validates(self):
        user = User.objects.get(email="s1@example.com")
        with self.assertRaises(services.UserAdminError):
            services.change_role(user, "parent")
        services.change_role(user, "teacher")
        self.assertEqual(User.objects.get(pk=user.pk).role, "teacher")

    def test_stats_and_departments(self):
        stats = services.user_stats()
        self.assertEqual(stats["students"], 20)
        self.assertEqual(stats["teachers"], 1)
        self.assertEqual(stats["admins"], 1)
        self.assertEqual(stats["inactive"], 0)
        self.assertEqual(services.departments(), ["CS"])


class UserAdminViewTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin@example.com", role=User.ROLE_ADMIN)
        self.student = make_user("stu@example.com")
        self.client = Client()
        self.client.force_login(self.admin)

    def test_non_admin_forbidden(self):
        client = Client()
        client.force_login(self.student)
        self.assertEqual(client.get(reverse("accounts:user_list")).status_code, 403)

    def test_toggle_active(self):
        url = reverse("accounts:user_toggle_active", args=[self.student.pk])
        resp = self.client.post(url)
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["is_active"])

    def test_cannot_deactivate_self(self):
        url = reverse("accounts:user_toggle_active", args=[self.admin.pk])
        self.assertEqual(self.client.post(url).status_code, 400)

    def test_change_role_endpoint(self):
        url = reverse("accounts:user_change_role", args=[self.student.pk])
        resp = self.client.post(url, data=json.dumps({"role": "x"}), content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("error", resp.json())

    def test_create_user_endpoint(self):
        url = reverse("accounts:user_create")
        resp = self.client.post(
            url,
            data=json.dumps({"email": "new.teacher@example.com", "role": "teacher", "teacher_code": "T9"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["role"], "teacher")
        resp = self.client.post(
            url, data=json.dumps({"email": "new.teacher@example.com"}), content_type="application/json"
        )
        self.assertEqual(resp.status_code, 400)
        client = Client()
        client.force_login(self.student)
        resp = client.post(url, data=json.dumps({"email": "x@example.com"}), content_type="application/json")
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(User.objects.filter(email="x@example.com").exists())


class CreateUserTests(TestCase):
    def test_any_role_with_password(self):
        for role in (User.ROLE_ADMIN, User.ROLE_TEACHER, User.ROLE_STUDENT):
            with self.subTest(role=role):
                user = services.create_user(
                    {"email": f"{role}.new@example.com", "role": role, "password": "Plum-Harbor-42",
                     "full_name": "New Person"}
                )
                self.assertEqual(user.role, role)
                self.assertTrue(user.check_password("Plum-Harbor-42"))
                self.assertTrue(UserPreference.objects.filter(user=user).exists())

    def test_without_password_is_unusable(self):
        user = services.create_user({"email": "Fresh@Example.com"})
        self.assertEqual(user.role, User.ROLE_STUDENT)
        self.assertEqual(user.email, "Fresh@example.com")
        self.assertFalse(user.has_usable_password())

    def test_rejects_bad_input(self):
        make_user("taken@example.com", student_code="S001")
        bad = [
            {"email": "not-an-email"},
            {"email": "ok@example.com", "role": "parent"},
            {"email": "TAKEN@example.com"},
            {"email": "ok@example.com", "password": "short"},
            {"email": "ok@example.com", "student_code": "S001"},
            {"email": "ok@example.com", "birth_date": "someday"},
        ]
        for data in bad:
            with self.subTest(data=data):
                with self.assertRaises(services.UserAdminError):
                    services.create_user(data)
        self.assertFalse(User.objects.filter(email="ok@example.com").exists())


class ProfileTests(TestCase):
    def setUp(self):
        self.user = make_user("me@example.com", full_name="Me", student_code="S100")
        self.client = Client()
        self.client.force_login(self.user)
        self.url = reverse("accounts:profile")

    def test_get_returns_own_profile(self):
        resp = self.client.get(self.url)
        self.assertEqual(resp.json()["email"], "me@example.com")

    def test_update_only_allowed_fields(self):
        resp = self.client.post(
            self.url,
            data=json.dumps({
                "full_name": "New Name",
                "phone": "0901",
                "gender": "Female",
                "avatar_url": "https://cdn.example.com/me.png",
                "role": "admin",
                "student_code": "S999",
                "email": "other@example.com",
                "is_active": False,
            }),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        user = User.objects.get(pk=self.user.pk)
        self.assertEqual((user.full_name, user.phone, user.gender), ("New Name", "0901", "female"))
        self.assertEqual(user.avatar_url, "https://cdn.example.com/me.png")
        self.assertEqual(user.role, User.ROLE_STUDENT)
        self.assertEqual(user.student_code, "S100")
        self.assertEqual(user.email, "me@example.com")
        self.assertTrue(user.is_active)

    def test_invalid_values_rejected(self):
        for data in ({"gender": "robot"}, {"avatar_url": "javascript:alert(1)"}, {"birth_date": "soon"}):
            with self.subTest(data=data):
                resp = self.client.post(self.url, data=json.dumps(data), content_type="application/json")
                self.assertEqual(resp.status_code, 400)
        self.assertEqual(User.objects.get(pk=self.user.pk).gender, "")

    def test_requires_login(self):
        self.assertEqual(Client().get(self.url).status_code, 302)
