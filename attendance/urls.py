from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import AttendanceRecordViewSet, ActivityRecordViewSet

router = DefaultRouter()
router.register('records', AttendanceRecordViewSet)
router.register('activities', ActivityRecordViewSet)

urlpatterns = [path('', include(router.urls))]
