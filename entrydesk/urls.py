"""URL configuration for the EntryDesk project."""
from django.contrib import admin
from django.contrib.auth import views as auth_views
from django.urls import include, path
from django.views.generic import RedirectView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('login/', auth_views.LoginView.as_view(template_name='registration/login.html'), name='login'),
    path('logout/', auth_views.LogoutView.as_view(), name='logout'),
    path('api/', include('tournaments.api_urls')),
    path('', RedirectView.as_view(pattern_name='tournaments:dashboard', permanent=False), name='home'),
    path('', include('tournaments.urls')),
]
