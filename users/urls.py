from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import AccountViewSet, CurrentUserView

router = DefaultRouter()
router.register(r'accounts', AccountViewSet, basename='accounts')

urlpatterns = [
    path('', include(router.urls)),
    path('me/', CurrentUserView.as_view(), name='current-user'),
]
