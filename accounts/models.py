from django.contrib.auth.models import (
    AbstractBaseUser,
    BaseUserManager,
    PermissionsMixin,
)
from django.db import models

from accounts.abstracts import (
    UniversalIdModel,
    MemberNumberModel,
    TimeStampedModel,
    ReferenceModel,
)


class UserQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=User.STATUS_ACTIVE)

    def members(self):
        return self.filter(role=User.ROLE_MEMBER)

    def unit_leaders(self):
        return self.filter(role=User.ROLE_UNIT_LEADER)


class UserManager(BaseUserManager.from_queryset(UserQuerySet)):
    use_in_migrations = True

    def _create_user(self, password, **extra_fields):
        user = self.model(**extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        extra_fields.setdefault("is_active", True)

        return self._create_user(password, **extra_fields)

    def create_superuser(self, password, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", User.ROLE_ADMIN)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self._create_user(password, **extra_fields)


class User(
    AbstractBaseUser,
    PermissionsMixin,
    UniversalIdModel,
    MemberNumberModel,
    TimeStampedModel,
    ReferenceModel,
):
    ROLE_ADMIN = "admin"
    ROLE_UNIT_LEADER = "unit_leader"
    ROLE_MEMBER = "member"
    ROLE_CHOICES = [
        (ROLE_ADMIN, "Admin"),
        (ROLE_UNIT_LEADER, "Unit Leader"),
        (ROLE_MEMBER, "Member"),
    ]

    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"
    STATUS_SUSPENDED = "suspended"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
        (STATUS_SUSPENDED, "Suspended"),
    ]

    # Personal Details
    first_name = models.CharField(max_length=255)
    last_name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, null=True)
    gender = models.CharField(max_length=25, blank=True, null=True)
    phone = models.CharField(max_length=25, blank=True, null=True)

    # Cooperative membership
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE
    )
    unit = models.ForeignKey(
        "units.Unit",
        on_delete=models.SET_NULL,
        related_name="members",
        null=True,
        blank=True,
    )
    zone = models.ForeignKey(
        "units.Zone",
        on_delete=models.SET_NULL,
        related_name="members",
        null=True,
        blank=True,
    )
    last_activity_at = models.DateTimeField(blank=True, null=True)

    # Permissions
    is_staff = models.BooleanField(default=False)
    is_superuser = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    USERNAME_FIELD = "member_no"
    REQUIRED_FIELDS = [
        "first_name",
        "last_name",
    ]

    objects = UserManager()

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["role", "status"], name="user_role_status_idx"),
            models.Index(fields=["unit", "status"], name="user_unit_status_idx"),
            models.Index(fields=["last_activity_at"], name="user_last_activity_idx"),
        ]

    def __str__(self):
        return f"{self.member_no} - {self.first_name} {self.last_name}"

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    @property
    def is_unit_leader(self):
        return self.role == self.ROLE_UNIT_LEADER

    @property
    def is_member(self):
        return self.role == self.ROLE_MEMBER

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}".strip()
