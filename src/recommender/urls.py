"""URL routes for photo analysis and playlist creation."""

from django.urls import path

from . import views

app_name = "recommender"

urlpatterns = [
    # POST endpoints used by the upload page.
    path("analyze/", views.analyze_photo, name="analyze_photo"),
    path("playlist-preview/", views.playlist_preview, name="playlist_preview"),
    path("playlist/", views.create_playlist, name="create_playlist"),
]
