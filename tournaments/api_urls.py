from rest_framework.routers import DefaultRouter

from .api import EntryViewSet, EventEntryViewSet, StudentViewSet

router = DefaultRouter()
router.register(r'students', StudentViewSet, basename='api-student')
router.register(r'entries', EntryViewSet, basename='api-entry')
router.register(r'event-entries', EventEntryViewSet, basename='api-event-entry')

urlpatterns = router.urls
