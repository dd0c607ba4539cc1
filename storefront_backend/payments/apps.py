from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        from payments.services import config
        from payments.services.card import configure_stripe_sdk

        configure_stripe_sdk(config.gateway_timeout())
