from django.db import models


class OrderModel(models.Model):
    # Monotonic integer id, also what customers see as their order number
    id = models.BigAutoField(primary_key=True)

    class Status(models.TextChoices):
        CREATED = "CREATED"
        PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
        PROCESSING = "PROCESSING"
        COMPLETE = "COMPLETE"
        FAILED = "FAILED"

    status = models.CharField(max_length=32, choices=Status.choices, default=Status.CREATED)
    topic = models.TextField()
    word_count = models.PositiveIntegerField()
    price = models.PositiveIntegerField()  # cents
    api_cost = models.PositiveIntegerField(null=True, blank=True)  # cents
    content = models.TextField(null=True, blank=True)
    customer_email = models.EmailField(max_length=254)
    # NULL until confirmed; unique only across non-null values
    payment_reference = models.CharField(max_length=255, null=True, blank=True, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["status", "updated_at"], name="orders_status_updated_idx"),
        ]


class SettingsSection(models.Model):
    """One administrator-controlled configuration section (pricing, email, api_keys)."""

    section = models.CharField(max_length=32, unique=True)
    data = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "settings_sections"


class IdempotencyKey(models.Model):
    """Stored outcome of a create-order request keyed by ``Idempotency-Key``."""

    key = models.CharField(max_length=200, unique=True)
    request_hash = models.CharField(max_length=64)
    response_status = models.PositiveSmallIntegerField(default=0)
    response_body = models.JSONField(default=dict)
    order = models.ForeignKey(OrderModel, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_idempotency_keys"
