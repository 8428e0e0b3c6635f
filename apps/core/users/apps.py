from django.apps import AppConfig


class UsersConfig(AppConfig):
    name = 'apps.core.users'
    label = 'core_users'
