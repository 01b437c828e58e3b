from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from django.contrib.auth import get_user_model

from backend.exceptions import Conflict
from .models import Role

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'full_name', 'role', 'is_active']
        read_only_fields = ['id', 'full_name']

    def get_full_name(self, obj):
        return obj.display_name


def ensure_unique_account(username, email, instance=None):
    """Raise Conflict when another user already holds the username or e-mail."""
    others = User.objects.all()
    if instance is not None:
        others = others.exclude(pk=instance.pk)
    if username and others.filter(username=username).exists():
        raise Conflict(f"Username '{username}' is already taken.")
    if email and others.filter(email__iexact=email).exists():
        raise Conflict(f"E-mail '{email}' is already registered.")


class AccountSerializer(serializers.ModelSerializer):
    """Admin and proctor accounts. Students and teachers are created through academics."""
    password = serializers.CharField(write_only=True, required=False)
    role = serializers.ChoiceField(choices=[Role.ADMIN, Role.PROCTOR])

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'password', 'first_name', 'last_name', 'role', 'is_active']
        read_only_fields = ['id']

    def validate(self, data):
        ensure_unique_account(data.get('username'), data.get('email'), self.instance)
        if self.instance is None and not data.get('password'):
            raise serializers.ValidationError({'password': 'This field is required.'})
        return data

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class RoleTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Adds the role claim to issued tokens and a user summary to the response."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['role'] = user.role
        token['username'] = user.username
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data
