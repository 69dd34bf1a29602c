"""Root URL configuration.

The WebDAV surface is not routed here; it is mounted beside Django in
``filehub.wsgi``.
"""

from django.urls import include, path

from filehub.apps.api import views

urlpatterns = [
    path('', views.index, name='index'),
    path('api/', include('filehub.apps.api.urls')),
]
