"""
Append-only model support for Order Fulfillment records.

Events, quality checks and completion records are written once and never
changed. Both instance-level and queryset-level writes are rejected.
"""

from django.db import models

from ..exceptions import ImmutableRecordError


class AppendOnlyQuerySet(models.QuerySet):
    """QuerySet that refuses bulk updates and deletes."""

    def update(self, **kwargs):
        raise ImmutableRecordError(self.model.__name__)

    def delete(self):
        raise ImmutableRecordError(self.model.__name__)


class ImmutableModel(models.Model):
    """Abstract base for records that may only be inserted."""

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(self.__class__.__name__)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(self.__class__.__name__)
