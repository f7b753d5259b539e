from django.contrib.contenttypes.models import ContentType
from .models import DomainActivity


class ActivityService:
    @staticmethod
    def log_activity(actor, verb, target, event=None, metadata=None):
        """
        Logs a domain activity against any model instance.
        """
        if metadata is None:
            metadata = {}

        return DomainActivity.objects.create(
            actor=actor,
            verb=verb,
            content_type=ContentType.objects.get_for_model(target),
            object_id=target.pk,
            event=event,
            metadata=metadata,
        )
