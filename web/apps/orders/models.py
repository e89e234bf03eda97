import uuid
from django.db import models


class OrderModel(models.Model):
    # UUID PK exposed to callers
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Owner as supplied by the identity layer
    user_id = models.UUIDField(db_index=True)

    class Status(models.TextChoices):
        PENDING = "PENDING"
        CONFIRMED = "CONFIRMED"
        SHIPPED = "SHIPPED"
        DELIVERED = "DELIVERED"
        CANCELLED = "CANCELLED"

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    shipping_address = models.CharField(max_length=500)
    notes = models.CharField(max_length=500, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["user_id", "created_at"], name="orders_user_created_idx")]


class OrderItemModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(OrderModel, on_delete=models.CASCADE, related_name="items")
    # Lookup only: a product with order history can not be deleted
    product = models.ForeignKey("catalog.ProductModel", on_delete=models.PROTECT, related_name="+")
    quantity = models.PositiveIntegerField()
    # Captured at order time, independent of the product's current price
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    # Position in the submitted cart
    line_no = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "order_items"
        ordering = ["line_no"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="order_items_quantity_positive"),
        ]
