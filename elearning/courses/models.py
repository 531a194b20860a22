"""
E-Learning Course Catalogue Models

Models:
- Course: A purchasable course with a fixed price in whole currency units

Features:
- Draft/published lifecycle; only published courses can be bought
- Prices stored as positive integers in major currency units (e.g. 15000 LKR)

Author: DSP Development Team
Version: 1.1.0
"""

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import QuerySet
from django.utils.translation import gettext_lazy as _


def default_currency() -> str:
    return getattr(settings, "DEFAULT_CURRENCY", "LKR").upper()


class Course(models.Model):
    """
    Purchasable course.

    Attributes:
        title: Unique course title
        description: Free-text course description
        price: Price in whole major currency units
        currency: ISO 4217 currency code
        status: ``draft`` or ``published``

    Example:
        >>> course = Course.objects.create(title="Combined Maths 2026", price=15000)
        >>> course.is_purchasable
        False
    """

    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        PUBLISHED = "published", _("Published")

    title = models.CharField(
        max_length=200,
        unique=True,
        verbose_name=_("Course Title"),
        help_text=_("The unique title of the course"),
    )

    description = models.TextField(blank=True, default="")

    price = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        verbose_name=_("Price"),
        help_text=_("Price in whole major currency units"),
    )

    currency = models.CharField(
        max_length=3,
        default=default_currency,
        verbose_name=_("Currency"),
    )

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
        verbose_name=_("Status"),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Course")
        verbose_name_plural = _("Courses")
        ordering = ["title"]
        db_table = "elearning_course"

    def __str__(self) -> str:
        return self.title

    @property
    def is_purchasable(self) -> bool:
        return self.status == self.Status.PUBLISHED

    @staticmethod
    def published() -> QuerySet["Course"]:
        return Course.objects.filter(status=Course.Status.PUBLISHED)
