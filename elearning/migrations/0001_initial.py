import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import elearning.courses.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Course",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(help_text="The unique title of the course", max_length=200, unique=True, verbose_name="Course Title")),
                ("description", models.TextField(blank=True, default="")),
                ("price", models.PositiveIntegerField(help_text="Price in whole major currency units", validators=[django.core.validators.MinValueValidator(1)], verbose_name="Price")),
                ("currency", models.CharField(default=elearning.courses.models.default_currency, max_length=3, verbose_name="Currency")),
                ("status", models.CharField(choices=[("draft", "Draft"), ("published", "Published")], default="draft", max_length=10, verbose_name="Status")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Course",
                "verbose_name_plural": "Courses",
                "db_table": "elearning_course",
                "ordering": ["title"],
            },
        ),
        migrations.CreateModel(
            name="Profile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(blank=True, help_text="Name shown on invoices and notification emails", max_length=150, verbose_name="Display Name")),
                ("role", models.CharField(choices=[("student", "Student"), ("admin", "Admin")], default="student", help_text="Admins may approve or reject bank transfer payments", max_length=10, verbose_name="Role")),
                ("user", models.OneToOneField(help_text="Associated user account", on_delete=django.db.models.deletion.CASCADE, related_name="profile", to=settings.AUTH_USER_MODEL, verbose_name="User")),
            ],
            options={
                "verbose_name": "User Profile",
                "verbose_name_plural": "User Profiles",
                "db_table": "elearning_profile",
            },
        ),
    ]
