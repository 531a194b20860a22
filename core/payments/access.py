"""
Course Access Granting

``AccessGrantor.grant`` unlocks a course for a user once a payment reaches
the success terminal. Correctness rests on the database unique constraint
on (user, course): ``get_or_create`` inserts inside a savepoint and, when a
concurrent caller wins the race, catches the IntegrityError and returns the
row that caller inserted. Calling it any number of times, from any handler,
leaves exactly one row.

Author: DSP Development Team
Date: 2025-09-03
"""

import logging

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from elearning.models import Course
from .models import AccessGrant, Payment

logger = logging.getLogger(__name__)


class AccessGrantor:
    def grant(self, user, course, payment: Payment = None) -> bool:
        """
        Idempotently grant ``user`` access to ``course``.

        Returns:
            True if this call created the grant, False if it already existed.
        """
        with transaction.atomic():
            grant, created = AccessGrant.objects.get_or_create(
                user=user,
                course=course,
                defaults={
                    "payment": payment,
                    "access_granted": True,
                    "granted_at": timezone.now(),
                },
            )

        if created:
            logger.info(
                "Granted course %s to user %s (payment=%s).",
                course.pk,
                user.pk,
                payment.pk if payment else None,
            )
        else:
            logger.info("Access grant already exists for user %s and course %s.", user.pk, course.pk)
        return created


def has_access(user, course) -> bool:
    if not user or not user.is_authenticated:
        return False
    return AccessGrant.objects.filter(user=user, course=course, access_granted=True).exists()


def accessible_courses(user) -> QuerySet:
    if not user or not user.is_authenticated:
        return Course.objects.none()
    return Course.objects.filter(
        pk__in=AccessGrant.objects.filter(user=user, access_granted=True).values("course_id")
    )
