"""App configuration for the recommender module."""

from django.apps import AppConfig


class RecommenderConfig(AppConfig):
    """Connect the photo playlist recommender with Django's app registry."""
    name = 'recommender'
    verbose_name = 'Photo playlist recommender'
