from django.apps import AppConfig


class StudentsConfig(AppConfig):
    name = 'apps.core.students'
    label = 'core_students'
