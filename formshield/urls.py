from django.contrib import admin
from django.urls import include, path

from . import views

urlpatterns = [
    path("admin/", admin.site.urls),
    path("ops/", include("ops.urls")),
    path("healthz", views.healthz, name="healthz"),
    path("api/contact", views.contact_submit, name="contact_submit"),
]
