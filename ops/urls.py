from django.urls import path

from . import views

urlpatterns = [
    path("security/stats", views.security_stats, name="ops_security_stats"),
    path("security/export", views.export_security_events, name="ops_export_security_events"),
    path("security/ip/<str:ip_address>", views.ip_statistics, name="ops_ip_statistics"),
    path("security/ip/<str:ip_address>/unblock", views.unblock_ip, name="ops_unblock_ip"),
]
