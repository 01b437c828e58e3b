from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    GroupViewSet, StudentViewSet, TeacherViewSet,
    SubjectViewSet, RoomViewSet, ScheduleSlotViewSet,
)

router = DefaultRouter()
router.register('groups', GroupViewSet)
router.register('students', StudentViewSet)
router.register('teachers', TeacherViewSet)
router.register('subjects', SubjectViewSet)
router.register('rooms', RoomViewSet)
router.register('schedules', ScheduleSlotViewSet)

urlpatterns = [
    path('', include(router.urls)),
]
