from django.apps import AppConfig


class AcademicsConfig(AppConfig):
    name = 'apps.core.academics'
    label = 'core_academics'
