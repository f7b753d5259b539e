from rest_framework import serializers
from .models import DomainActivity


class DomainActivitySerializer(serializers.ModelSerializer):
    actor_username = serializers.CharField(source="actor.username", read_only=True, default=None)
    target_type = serializers.CharField(source="content_type.model", read_only=True)

    class Meta:
        model = DomainActivity
        fields = [
            "id",
            "verb",
            "actor",
            "actor_username",
            "target_type",
            "object_id",
            "event",
            "metadata",
            "timestamp",
        ]
        read_only_fields = fields
