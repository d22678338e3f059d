# backend/accounts/views.py
import logging

from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from .serializers import (
    EmailTokenObtainPairSerializer,
    PublicUserSerializer,
    RegistrationSerializer,
)

logger = logging.getLogger(__name__)


class RegistrationView(APIView):
    """
    POST { email, password, name, role: "student"|"business", ... }
    -> 201 { message, user, access, refresh }
    """
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request, *args, **kwargs):
        serializer = RegistrationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        user = serializer.save()
        logger.info("Registered %s user id=%s", user.role, user.id)
        return Response(serializer.to_representation(user), status=status.HTTP_201_CREATED)


class EmailLoginView(TokenObtainPairView):
    """
    POST { "email": "...", "password": "..." } -> { access, refresh, user }
    """
    serializer_class = EmailTokenObtainPairSerializer


class MeView(generics.RetrieveUpdateAPIView):
    """
    GET/PATCH the authenticated user's own profile.
    """
    serializer_class = PublicUserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user
