# type: ignore
import os
import unittest
from importlib.util import find_spec
from unittest.mock import MagicMock, PropertyMock, patch

HAS_KERBEROS = find_spec("gssapi") is not None and find_spec("krb5") is not None


@unittest.skipUnless(HAS_KERBEROS, "gssapi and krb5 are not installed")
class TestKeytabCredentialProvider(unittest.TestCase):
    def setUp(self):
        from adclient import credentials

        self.credentials = credentials
        patcher = patch.object(credentials.gssapi, "Credentials")
        self.Credentials = patcher.start()
        self.addCleanup(patcher.stop)
        self.creds = MagicMock(name="creds")
        self.creds.name = "svc-adclient@EXAMPLE.COM"
        self.lifetime = PropertyMock(return_value=36000)
        type(self.creds).lifetime = self.lifetime
        self.Credentials.return_value = self.creds
        self.krb5 = {}
        for function in ("init_context", "cc_resolve", "cc_destroy"):
            patcher = patch.object(credentials.krb5, function)
            self.krb5[function] = patcher.start()
            self.addCleanup(patcher.stop)

    def provider(self, **kwargs):
        kwargs.setdefault("keytab", "/etc/adclient.keytab")
        return self.credentials.KeytabCredentialProvider(**kwargs)

    @patch.dict(
        os.environ,
        {"KRB5CCNAME": "FILE:/tmp/krb5cc_1000", "KRB5_CLIENT_KTNAME": "/etc/krb5.keytab"},
    )
    def test_acquire_and_release(self):
        provider = self.provider()
        handle = provider.acquire("example.com")
        self.assertTrue(handle.ccache.startswith("MEMORY:adclient_"))
        self.assertEqual(os.environ["KRB5CCNAME"], handle.ccache)
        self.assertEqual(os.environ["KRB5_CLIENT_KTNAME"], "/etc/adclient.keytab")
        self.assertEqual(handle.principal, "svc-adclient@EXAMPLE.COM")
        kwargs = self.Credentials.call_args.kwargs
        self.assertEqual(kwargs["usage"], "initiate")
        self.assertEqual(
            kwargs["store"],
            {"ccache": handle.ccache, "client_keytab": "/etc/adclient.keytab"},
        )
        provider.release(handle)
        self.assertEqual(os.environ["KRB5CCNAME"], "FILE:/tmp/krb5cc_1000")
        self.assertEqual(os.environ["KRB5_CLIENT_KTNAME"], "/etc/krb5.keytab")

    @patch.dict(os.environ, {}, clear=True)
    def test_ticket_is_fetched_at_acquire(self):
        provider = self.provider()
        handle = provider.acquire("example.com")
        self.lifetime.assert_called_once_with()
        provider.release(handle)

    @patch.dict(os.environ, {}, clear=True)
    def test_release_destroys_ccache(self):
        provider = self.provider()
        handle = provider.acquire("example.com")
        self.krb5["cc_destroy"].assert_not_called()
        provider.release(handle)
        context = self.krb5["init_context"].return_value
        self.krb5["cc_resolve"].assert_called_once_with(context, handle.ccache.encode())
        self.krb5["cc_destroy"].assert_called_once_with(
            context, self.krb5["cc_resolve"].return_value
        )
        self.assertIsNone(handle.credentials)
        self.assertNotIn("KRB5CCNAME", os.environ)
        self.assertNotIn("KRB5_CLIENT_KTNAME", os.environ)

    @patch.dict(os.environ, {}, clear=True)
    def test_environment_is_held_until_release(self):
        provider = self.provider()
        handle = provider.acquire("example.com")
        self.assertTrue(self.credentials.environment_lock.locked())
        provider.release(handle)
        self.assertFalse(self.credentials.environment_lock.locked())

    @patch.dict(os.environ, {"KRB5CCNAME": "FILE:/tmp/krb5cc_1000"}, clear=True)
    def test_acquire_failure_cleans_up(self):
        class NoKeytabEntry(self.credentials.gssapi.exceptions.GSSError):
            def __init__(self):
                Exception.__init__(self, "No key table entry found")
                self.maj_code = 0xD0000
                self.min_code = 0

        self.Credentials.side_effect = NoKeytabEntry()
        provider = self.provider()
        with self.assertRaises(self.credentials.CredentialError) as ctx:
            provider.acquire("example.com")
        self.assertIn("EXAMPLE.COM", str(ctx.exception))
        self.assertEqual(os.environ["KRB5CCNAME"], "FILE:/tmp/krb5cc_1000")
        self.krb5["cc_destroy"].assert_called_once()
        self.assertFalse(self.credentials.environment_lock.locked())

    @patch.dict(os.environ, {}, clear=True)
    def test_principal_gets_realm(self):
        provider = self.provider(principal="svc-adclient")
        with patch.object(self.credentials.gssapi, "Name") as Name:
            handle = provider.acquire("example.com")
        self.assertEqual(Name.call_args.args[0], "svc-adclient@EXAMPLE.COM")
        self.assertEqual(handle.principal, "svc-adclient@EXAMPLE.COM")
        provider.release(handle)
