from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("django-admin/", admin.site.urls),
    path("auth/", include("accounts.urls")),
    path("admin/", include("maintenance.urls")),
    path("", include("arena.urls")),
]
