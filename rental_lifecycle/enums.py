# rental_lifecycle/enums.py
from __future__ import annotations

import enum


class EntityType(str, enum.Enum):
    PROPERTY = "property"
    CLIENT = "client"
    BOOKING = "booking"
    DEAL = "deal"
    CONTRACT = "contract"
    PAYMENT = "payment"


class ActorRole(str, enum.Enum):
    LANDLORD = "landlord"
    TENANT = "tenant"


class RemovalAction(str, enum.Enum):
    ARCHIVE = "archive"
    DELETE = "delete"


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    DRAFT = "DRAFT"
    MAINTENANCE = "MAINTENANCE"
    RENTED = "RENTED"


class ClientKind(str, enum.Enum):
    TENANT = "TENANT"
    LANDLORD = "LANDLORD"


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ContractStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class DealStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentType(str, enum.Enum):
    RENT = "RENT"
    UTILITIES = "UTILITIES"
    DEPOSIT = "DEPOSIT"
    MAINTENANCE = "MAINTENANCE"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


# statuses that still hold the calendar slot
ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
