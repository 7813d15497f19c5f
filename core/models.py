from django.db import models
from django.contrib.auth.models import (
    AbstractBaseUser,
    BaseUserManager,
    PermissionsMixin,
)
from django.utils import timezone
import uuid


class ParticipantManager(BaseUserManager):

    def create_participant(self, email, password=None, **extra_fields):  # Creates a new participant with email and password
        if not email:
            raise ValueError("Email is required")
        email = self.normalize_email(email)
        participant = self.model(email=email, **extra_fields)
        participant.set_password(password)
        participant.save(using=self._db)
        return participant

    def create_user(self, email, password=None, **extra_fields):  # Alias used by Django auth tooling
        return self.create_participant(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):  # Creates a superuser with admin privileges
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", "admin")
        return self.create_participant(email, password, **extra_fields)


class Participant(AbstractBaseUser, PermissionsMixin):  # Any authenticated actor: clients, staff, professionals
    ROLE_CHOICES = [
        ("client", "Client"),
        ("staff", "Staff"),
        ("professional", "Professional"),
        ("admin", "Admin"),
    ]

    STAFF_ROLES = ("staff", "professional", "admin")

    uid = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=255, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="client")
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = ParticipantManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["role"]

    class Meta:
        db_table = "participants"
        indexes = [
            models.Index(fields=["role", "is_active"], name="participants_role_active_idx"),
        ]

    def __str__(self):
        return self.full_name or self.email

    @property
    def is_operator(self):  # Staff-facing roles allowed to drive queues
        return self.is_superuser or self.role in self.STAFF_ROLES


class Establishment(models.Model):  # A physical location run by a business
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=500, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "establishments"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Service(models.Model):  # Bookable service; its duration drives slot width and wait estimates
    establishment = models.ForeignKey(
        Establishment, on_delete=models.CASCADE, related_name="services"
    )
    name = models.CharField(max_length=255)
    duration_minutes = models.PositiveIntegerField(default=15)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "services"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.duration_minutes} min)"


class Professional(models.Model):  # A person whose calendar receives appointments
    establishment = models.ForeignKey(
        Establishment, on_delete=models.CASCADE, related_name="professionals"
    )
    participant = models.OneToOneField(
        Participant,
        on_delete=models.SET_NULL,
        related_name="professional_profile",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "professionals"
        ordering = ["name"]

    def __str__(self):
        return self.name
