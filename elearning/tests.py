"""
E-Learning Tests

Covers the read-only collaborators of the payment subsystem:
- Profile creation and role checks
- Course catalogue lifecycle
- JWT cookie issuance/refresh and the current user endpoint
- The seed_courses management command

Author: DSP Development Team
Version: 1.1.0
"""

from io import StringIO

from django.contrib.auth.models import AnonymousUser, User
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from elearning.models import Course, Profile, is_admin_user


class ProfileTests(TestCase):
    def test_profile_created_with_student_role(self):
        user = User.objects.create_user(username="kasun", password="pw-123456")

        self.assertEqual(user.profile.role, Profile.Role.STUDENT)
        self.assertFalse(is_admin_user(user))

    def test_admin_role(self):
        user = User.objects.create_user(username="admin", password="pw-123456")
        user.profile.role = Profile.Role.ADMIN
        user.profile.save()

        self.assertTrue(is_admin_user(User.objects.get(pk=user.pk)))
        self.assertFalse(is_admin_user(AnonymousUser()))
        self.assertFalse(is_admin_user(None))

    def test_display_name_fallbacks(self):
        user = User.objects.create_user(username="nimal", first_name="Nimal", last_name="Perera")
        self.assertEqual(user.profile.display_name, "Nimal Perera")

        user.profile.name = "N. Perera"
        self.assertEqual(user.profile.display_name, "N. Perera")


class CourseTests(TestCase):
    def test_only_published_courses_are_purchasable(self):
        draft = Course.objects.create(title="Draft Course", price=1000)
        published = Course.objects.create(
            title="Published Course", price=1000, status=Course.Status.PUBLISHED
        )

        self.assertFalse(draft.is_purchasable)
        self.assertTrue(published.is_purchasable)
        self.assertEqual(list(Course.published()), [published])

    def test_default_currency(self):
        course = Course.objects.create(title="Currency Course", price=1000)
        self.assertEqual(course.currency, "LKR")


class TokenTests(TestCase):
    def setUp(self):
        User.objects.create_user(username="testUser", password="testPassword")
        self.response = self.client.post(
            "/api/elearning/token/", {"username": "testUser", "password": "testPassword"}
        )

    def test_tokens_are_set_as_cookies(self):
        self.assertEqual(self.response.status_code, status.HTTP_200_OK)
        self.assertIn("access_token", self.response.cookies)
        self.assertIn("refresh_token", self.response.cookies)
        self.assertNotIn("access", self.response.json())

    def test_current_user_from_cookie(self):
        response = self.client.get("/api/elearning/users/me/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["username"], "testUser")
        self.assertEqual(response.json()["role"], Profile.Role.STUDENT)

    def test_refresh_token_success(self):
        response = self.client.post("/api/elearning/token/refresh/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access_token", response.cookies)

    def test_refresh_token_failure(self):
        self.client.cookies["refresh_token"] = "bad token"
        response = self.client.post("/api/elearning/token/refresh/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_refresh_token_missing(self):
        del self.client.cookies["refresh_token"]
        response = self.client.post("/api/elearning/token/refresh/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SeedCoursesCommandTests(TestCase):
    def test_seed_is_repeatable(self):
        call_command("seed_courses", stdout=StringIO())
        call_command("seed_courses", stdout=StringIO())

        self.assertEqual(Course.published().count(), 4)
        self.assertTrue(is_admin_user(User.objects.get(username="admin")))
        self.assertFalse(is_admin_user(User.objects.get(username="student")))

    def test_seed_without_users(self):
        call_command("seed_courses", "--no-users", stdout=StringIO())

        self.assertEqual(Course.objects.count(), 4)
        self.assertFalse(User.objects.exists())
