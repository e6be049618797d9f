import typing as t
import uuid

from django.db import models


class TimeStampedModel(models.Model):
    """Base model with a UUID primary key, timestamps and validation on save."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        abstract = True

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Validate, then save.

        With ``update_fields`` only the written fields (and the constraints that
        involve nothing but those fields) are validated.
        """
        update_fields = kwargs.get("update_fields")
        exclude = None
        if update_fields is not None:
            written = set(update_fields)
            exclude = {f.name for f in self._meta.concrete_fields if f.name not in written and f.attname not in written}
        self.full_clean(exclude=exclude)
        super().save(*args, **kwargs)
