"""URL routes of the JSON API."""

from django.urls import path

from filehub.apps.api import views

app_name = 'api'

urlpatterns = [
    path('login', views.login, name='login'),
    path('logout', views.logout, name='logout'),
    path('setup', views.setup, name='setup'),
    path('setup/roots', views.setup_roots, name='setup-roots'),
    path('session/refresh', views.refresh_session, name='session-refresh'),
    path('hello', views.hello, name='hello'),
]
