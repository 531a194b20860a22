import logging

from django.contrib.auth.models import User
from django.core.management.base import BaseCommand
from django.db import transaction

from ...models import Course, Profile

logger = logging.getLogger(__name__)

COURSES = [
    {
        "title": "O/L Mathematics Complete Course",
        "description": (
            "Comprehensive mathematics course for Grade 11 students preparing for "
            "O/L examinations. Algebra, geometry, trigonometry and statistics."
        ),
        "price": 15000,
    },
    {
        "title": "A/L Pure Mathematics",
        "description": (
            "Advanced pure mathematics covering calculus, algebra, complex numbers "
            "and matrices."
        ),
        "price": 25000,
    },
    {
        "title": "A/L Applied Mathematics",
        "description": "Applied mathematics focusing on mechanics, statistics and probability.",
        "price": 25000,
    },
    {
        "title": "Foundation Mathematics",
        "description": "Strong mathematical foundations for Grades 6-11.",
        "price": 12000,
    },
]

USERS = [
    # username, email, password, name, role
    ("admin", "admin@example.lk", "admin123", "Admin User", Profile.Role.ADMIN),
    ("student", "student@example.com", "student123", "Test Student", Profile.Role.STUDENT),
]


class Command(BaseCommand):
    help = "Seeds the published course catalogue and a demo admin and student account."

    def add_arguments(self, parser):
        parser.add_argument(
            "--no-users",
            action="store_true",
            help="Only seed courses, skip the demo accounts.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        created_courses = 0
        for data in COURSES:
            _, created = Course.objects.update_or_create(
                title=data["title"],
                defaults={
                    "description": data["description"],
                    "price": data["price"],
                    "status": Course.Status.PUBLISHED,
                },
            )
            created_courses += int(created)
        self.stdout.write(
            self.style.SUCCESS(f"{created_courses} course(s) created, {len(COURSES)} published.")
        )

        if options["no_users"]:
            return

        for username, email, password, name, role in USERS:
            user, created = User.objects.get_or_create(username=username, defaults={"email": email})
            if created:
                user.set_password(password)
                user.save(update_fields=["password"])
            Profile.objects.update_or_create(user=user, defaults={"name": name, "role": role})
            self.stdout.write(f"{'Created' if created else 'Updated'} {role} account '{username}'")
        logger.info("Seeded demo accounts")
