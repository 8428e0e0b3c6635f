from django.apps import AppConfig


class HrConfig(AppConfig):
    name = 'apps.core.hr'
    label = 'core_hr'
