from rest_framework import serializers

from .models import User


class UserBasicSerializer(serializers.ModelSerializer):
    """
    Public representation of a rider or driver, embedded in ride and booking responses.
    """
    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'university', 'is_verified_student']
