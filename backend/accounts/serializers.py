from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.db import transaction, IntegrityError
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from .models import Role

User = get_user_model()


# ──────────────────────────────────────────────────────────────────────────────
# Public serializers
# ──────────────────────────────────────────────────────────────────────────────

class PublicUserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "email", "name", "role", "phone_number", "gstin", "bio", "skills", "date_joined"]
        read_only_fields = ["id", "email", "role", "date_joined"]


# ──────────────────────────────────────────────────────────────────────────────
# Auth / Token serializers
# ──────────────────────────────────────────────────────────────────────────────

class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    username_field = "email"

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        # Frontends route on role; the API itself re-reads it from the user row.
        token["role"] = user.role
        return token

    def validate(self, attrs):
        raw_email = (attrs.get("email") or "").strip().lower()
        if not raw_email or not attrs.get("password"):
            raise AuthenticationFailed("Invalid email or password.", code="invalid_credentials")
        attrs["email"] = raw_email

        try:
            data = super().validate(attrs)
        except AuthenticationFailed:
            raise AuthenticationFailed("Invalid email or password.", code="invalid_credentials")

        data["user"] = PublicUserSerializer(self.user).data
        return data


# ──────────────────────────────────────────────────────────────────────────────
# Registration
# ──────────────────────────────────────────────────────────────────────────────

class RegistrationSerializer(serializers.ModelSerializer):
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={"input_type": "password"},
        trim_whitespace=False,
    )
    # Admins are created from the shell, never through the public endpoint.
    role = serializers.ChoiceField(choices=[Role.STUDENT, Role.BUSINESS])

    class Meta:
        model = User
        fields = ("email", "password", "name", "role", "phone_number", "gstin", "bio", "skills")
        extra_kwargs = {"email": {"required": True}, "name": {"required": True}}

    def validate_email(self, value):
        value = (value or "").strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("An account with this email already exists.")
        return value

    def create(self, validated_data):
        password = validated_data.pop("password")
        email = validated_data.pop("email")
        try:
            with transaction.atomic():
                user = User.objects.create_user(email=email, password=password, **validated_data)
        except IntegrityError:
            raise serializers.ValidationError(
                {"email": ["An account with this email already exists."]}
            )
        return user

    def to_representation(self, user):
        refresh = RefreshToken.for_user(user)
        refresh["role"] = user.role
        return {
            "message": "Registration successful.",
            "user": PublicUserSerializer(user).data,
            "refresh": str(refresh),
            "access": str(refresh.access_token),
        }
