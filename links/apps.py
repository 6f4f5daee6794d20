from django.apps import AppConfig


class LinksConfig(AppConfig):
    name = 'links'

    def ready(self):
        # connect the post_save receivers that feed the subscriptions
        from links import signals  # noqa: F401
