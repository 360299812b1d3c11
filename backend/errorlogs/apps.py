from django.apps import AppConfig


class ErrorlogsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.errorlogs'
