from django.contrib.auth import get_user_model
from django.test import TestCase

from accounts.permissions import IsSystemAdmin, IsOwnerOrSystemAdmin

User = get_user_model()


class FakeRequest:
    method = "POST"
    path = "/api/v1/feerules/"

    def __init__(self, user):
        self.user = user


class FakeOwned:
    def __init__(self, user):
        self.user_id = user.id


class UserManagerTests(TestCase):
    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(
            password="password", first_name="Root", last_name="User"
        )
        self.assertTrue(user.is_admin)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.member_no.startswith("KBG"))

    def test_querysets(self):
        member = User.objects.create_user(first_name="A", last_name="B")
        User.objects.create_user(first_name="C", last_name="D", status=User.STATUS_SUSPENDED)
        leader = User.objects.create_user(
            first_name="E", last_name="F", role=User.ROLE_UNIT_LEADER
        )
        self.assertEqual(list(User.objects.members().active()), [member])
        self.assertEqual(list(User.objects.unit_leaders()), [leader])
        self.assertFalse(member.has_usable_password())


class PermissionTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            first_name="Admin", last_name="User", role=User.ROLE_ADMIN
        )
        self.member = User.objects.create_user(first_name="Mem", last_name="Ber")

    def test_admin_only_and_refusal_is_logged(self):
        permission = IsSystemAdmin()
        self.assertTrue(permission.has_permission(FakeRequest(self.admin), None))
        with self.assertLogs("accounts.permissions", level="WARNING"):
            self.assertFalse(permission.has_permission(FakeRequest(self.member), None))

    def test_owner_or_admin(self):
        permission = IsOwnerOrSystemAdmin()
        owned = FakeOwned(self.member)
        other = User.objects.create_user(first_name="Oth", last_name="Er")
        self.assertTrue(permission.has_object_permission(FakeRequest(self.member), None, owned))
        self.assertTrue(permission.has_object_permission(FakeRequest(self.admin), None, owned))
        self.assertFalse(permission.has_object_permission(FakeRequest(other), None, owned))
