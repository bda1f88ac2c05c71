from enum import StrEnum

from tortoise import fields
from tortoise.models import Model


class BookingStatus(StrEnum):
    PENDING = "pending"  # just created, awaiting guide confirmation
    CONFIRMED = "confirmed"  # guide accepted
    CANCELLED = "cancelled"  # cancelled by traveler, guide or admin
    COMPLETED = "completed"  # tour took place, marked done


class TimestampedModel(Model):
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        abstract = True


class Guide(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    user_id = fields.UUIDField(unique=True)  # owning user from the identity provider

    bio = fields.TextField(null=True)
    languages = fields.CharField(max_length=255, default="")
    phone = fields.CharField(max_length=20, default="")

    hourly_rate = fields.DecimalField(max_digits=8, decimal_places=2, default=0)
    is_approved = fields.BooleanField(default=False)  # flipped by an admin

    class Meta:  # type: ignore
        table = "guides"


class Booking(TimestampedModel):
    id = fields.UUIDField(primary_key=True)

    user_id = fields.UUIDField()  # the traveler who made the booking
    guide: fields.ForeignKeyRelation[Guide] = fields.ForeignKeyField(
        "models.Guide", related_name="bookings", on_delete=fields.RESTRICT
    )
    guide_user_id = fields.UUIDField()  # snapshot of guide.user_id at booking time

    booking_date = fields.DateField()
    start_time = fields.TimeField()
    end_time = fields.TimeField()

    total_price = fields.DecimalField(max_digits=10, decimal_places=2)  # fixed at creation
    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)
    notes = fields.CharField(max_length=500, null=True)

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-booking_date", "-start_time"]
