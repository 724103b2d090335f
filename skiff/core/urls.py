from django.urls import path

from skiff.core import views

app_name = "core"

urlpatterns = [
    path("", views.EnqueueView.as_view(), name="enqueue"),
    path("secret_url/", views.secret_url, name="secret_url"),
]
