# mypy: disable-error-code="attr-defined"
# type: ignore
import unittest

import ldap

from adclient.client import ADClient
from adclient.exceptions import ConfigError, NotConnectedError, OperationalError
from adclient.mutator import encode_values
from adclient.params import ConnectionParams
from adclient.tests.fakes import FakeTransport

DN = "CN=Bob,OU=Users,DC=example,DC=com"


class MutatorTestCase(unittest.TestCase):
    def setUp(self):
        self.transport = FakeTransport(
            entries={
                DN: {"cn": [b"Bob"]},
                "OU=Admins,DC=example,DC=com": {"ou": [b"Admins"]},
            }
        )
        self.client = ADClient(transport=self.transport)
        self.client.connect(
            ConnectionParams(candidate_servers=["dc1.example.com"], secured=False)
        )
        self.transport.calls.clear()

    def modlist(self):
        (call,) = self.transport.calls_named("modify")
        _, dn, modlist = call
        self.assertEqual(dn, DN)
        return modlist


class TestEncodeValues(unittest.TestCase):
    def test_encode(self):
        self.assertEqual(encode_values("Bob"), [b"Bob"])
        self.assertEqual(encode_values(b"\x01\x02"), [b"\x01\x02"])
        self.assertEqual(encode_values(["a", b"b"]), [b"a", b"b"])
        self.assertEqual(encode_values("Zoë"), ["Zoë".encode()])
        self.assertIsNone(encode_values(None))
        self.assertIsNone(encode_values([]))


class TestModify(MutatorTestCase):
    def test_add_value(self):
        self.client.add_value(DN, "mail", "bob@example.com")
        self.assertEqual(self.modlist(), [(ldap.MOD_ADD, "mail", [b"bob@example.com"])])

    def test_delete_value(self):
        self.client.delete_value(DN, "mail", ["bob@example.com"])
        self.assertEqual(
            self.modlist(), [(ldap.MOD_DELETE, "mail", [b"bob@example.com"])]
        )

    def test_delete_value_without_values_removes_attribute(self):
        self.client.delete_value(DN, "mail", [])
        self.assertEqual(self.modlist(), [(ldap.MOD_DELETE, "mail", None)])

    def test_replace_value(self):
        self.client.replace_value(DN, "description", ["one", "two"])
        self.assertEqual(
            self.modlist(), [(ldap.MOD_REPLACE, "description", [b"one", b"two"])]
        )

    def test_set_and_clear_attribute(self):
        self.client.set_attribute(DN, "title", "Boss")
        self.client.clear_attribute(DN, "title")
        modlists = [call[2] for call in self.transport.calls_named("modify")]
        self.assertEqual(
            modlists,
            [
                [(ldap.MOD_REPLACE, "title", [b"Boss"])],
                [(ldap.MOD_DELETE, "title", None)],
            ],
        )

    def test_modify_error(self):
        self.transport.modify_error = ldap.INSUFFICIENT_ACCESS(
            {"desc": "Insufficient access", "result": 50}
        )
        with self.assertRaises(OperationalError) as ctx:
            self.client.replace_value(DN, "description", "x")
        self.assertEqual(ctx.exception.code, 50)
        self.assertEqual(ctx.exception.kind, "operational")


class TestRenameAndMove(MutatorTestCase):
    def test_rename_object(self):
        self.client.rename_object(DN, "Robert")
        (call,) = self.transport.calls_named("rename")
        self.assertEqual(call[1:], (DN, "CN=Robert", None, True))

    def test_rename_object_escapes_cn(self):
        self.client.rename_object(DN, "Smith, Bob")
        self.assertEqual(self.transport.calls_named("rename")[0][2], r"CN=Smith\, Bob")

    def test_move_object(self):
        self.client.move_object(DN, "OU=Admins,DC=example,DC=com")
        (call,) = self.transport.calls_named("rename")
        self.assertEqual(call[1:], (DN, "CN=Bob", "OU=Admins,DC=example,DC=com", True))

    def test_move_object_to_missing_container(self):
        self.transport.missing.add("ou=nowhere,dc=example,dc=com")
        with self.assertRaises(ConfigError):
            self.client.move_object(DN, "OU=Nowhere,DC=example,DC=com")
        self.assertEqual(self.transport.calls_named("rename"), [])

    def test_rename_error(self):
        self.transport.modify_error = ldap.ALREADY_EXISTS(
            {"desc": "Already exists", "result": 68}
        )
        with self.assertRaises(OperationalError) as ctx:
            self.client.rename_object(DN, "Alice")
        self.assertEqual(ctx.exception.code, 68)

    def test_delete_dn(self):
        self.client.delete_dn(DN)
        self.assertEqual(self.transport.calls_named("delete")[0][1], DN)


class TestNotConnected(unittest.TestCase):
    def test_operations_need_a_session(self):
        transport = FakeTransport()
        client = ADClient(transport=transport)
        operations = [
            lambda: client.add_value(DN, "mail", "x"),
            lambda: client.delete_value(DN, "mail"),
            lambda: client.replace_value(DN, "mail", "x"),
            lambda: client.rename_object(DN, "Robert"),
            lambda: client.move_object(DN, "OU=Admins,DC=example,DC=com"),
            lambda: client.delete_dn(DN),
        ]
        for operation in operations:
            with self.subTest(operation=operation), self.assertRaises(NotConnectedError):
                operation()
        self.assertEqual(transport.calls, [])
