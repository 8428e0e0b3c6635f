from django.apps import AppConfig


class FeesConfig(AppConfig):
    name = 'apps.core.fees'
    label = 'core_fees'
