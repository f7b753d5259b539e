from django.urls import path
from .views import MyActivityView


urlpatterns = [
    path("me/activity/", MyActivityView.as_view(), name="my-activity"),
]
