from django.apps import AppConfig


class ApiConfig(AppConfig):
    name = 'apps.core.api'
    label = 'core_api'
