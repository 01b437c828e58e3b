from rest_framework import filters, permissions, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView
from django.contrib.auth import get_user_model

from .identity import ActingUser
from .models import Role
from .permissions import roles_required
from .serializers import AccountSerializer, RoleTokenObtainPairSerializer, UserSerializer

User = get_user_model()


class LoginView(TokenObtainPairView):
    serializer_class = RoleTokenObtainPairSerializer
    permission_classes = [permissions.AllowAny]


class CurrentUserView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        acting = ActingUser.from_request(request)
        payload = {"user": UserSerializer(request.user).data, "role": acting.role.value}

        # Linked directory record, if any
        from academics.serializers import StudentSerializer, TeacherSerializer
        if acting.role == Role.STUDENT and hasattr(request.user, 'student_profile'):
            payload["student"] = StudentSerializer(request.user.student_profile).data
        elif acting.role == Role.TEACHER and hasattr(request.user, 'teacher_profile'):
            payload["teacher"] = TeacherSerializer(request.user.teacher_profile).data
        return Response(payload)


class AccountViewSet(viewsets.ModelViewSet):
    """Admin and proctor accounts."""
    queryset = User.objects.filter(role__in=[Role.ADMIN, Role.PROCTOR]).order_by('username')
    serializer_class = AccountSerializer
    permission_classes = [roles_required(Role.ADMIN)]
    filter_backends = [filters.SearchFilter]
    search_fields = ['username', 'email', 'first_name', 'last_name']
