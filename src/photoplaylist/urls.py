"""
URL configuration for photoplaylist project.
"""
from django.urls import path, include

urlpatterns = [
    path('recommender/', include('recommender.urls')),
]
