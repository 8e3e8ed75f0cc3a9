import os
import stat
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch, MagicMock

import requests

from oms_maintenance.errors import ErrorCode, SendError
from oms_maintenance.utils.config import MaintenanceSettings
from oms_maintenance.utils.http import ServiceClient, read_proxy, temporary_client_cert


class TestServiceClient(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.proxy_path = Path(self.tmp.name) / "proxy.conf"
        self.client = ServiceClient(MaintenanceSettings(HTTP_RETRIES=2), self.proxy_path)

    def tearDown(self):
        self.tmp.cleanup()

    def test_retry_configuration(self):
        """Verify that the client retries POSTs on server errors."""
        adapter = self.client.session.get_adapter("https://")
        self.assertEqual(adapter.max_retries.total, 2)
        self.assertIn(500, adapter.max_retries.status_forcelist)
        self.assertIn(503, adapter.max_retries.status_forcelist)
        self.assertIn("POST", adapter.max_retries.allowed_methods)
        self.assertFalse(adapter.max_retries.raise_on_status)

    @patch('requests.Session.post')
    def test_timeout_handling(self, mock_post):
        """Test that the client raises SendError on timeout."""
        mock_post.side_effect = requests.exceptions.Timeout("Timeout occurred")

        with self.assertRaises(SendError) as cm:
            self.client.post("https://ws.oms.example/svc", "<x/>", ("a.crt", "a.key"))

        self.assertEqual(cm.exception.code, ErrorCode.ERROR_SENDING_HTTP)
        self.assertIn("Timeout occurred", str(cm.exception))

    @patch('requests.Session.post')
    def test_non_200_is_returned(self, mock_post):
        """Status codes are left for the caller to judge."""
        mock_resp = MagicMock()
        mock_resp.status_code = 503
        mock_post.return_value = mock_resp

        response = self.client.post("https://ws.oms.example/svc", "<x/>", ("a.crt", "a.key"))
        self.assertEqual(response.status_code, 503)

    @patch('requests.Session.post')
    def test_request_shape(self, mock_post):
        self.proxy_path.write_text("https://proxy.example:3128\n")

        self.client.post("https://ws.oms.example/svc", "<x/>", (Path("a.crt"), Path("a.key")),
                         headers={"Accept-Language": "en-US"})

        kwargs = mock_post.call_args.kwargs
        self.assertEqual(kwargs["data"], b"<x/>")
        self.assertEqual(kwargs["cert"], ("a.crt", "a.key"))
        self.assertEqual(kwargs["headers"]["Content-Type"], "application/xml")
        self.assertEqual(kwargs["headers"]["Accept-Language"], "en-US")
        self.assertEqual(kwargs["proxies"]["https"], "https://proxy.example:3128")
        self.assertEqual(kwargs["timeout"], 30.0)


class TestProxyFile(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "proxy.conf"

    def tearDown(self):
        self.tmp.cleanup()

    def test_missing_file(self):
        self.assertIsNone(read_proxy(self.path))
        self.assertIsNone(read_proxy(None))

    def test_blank_file(self):
        self.path.write_text("  \n")
        self.assertIsNone(read_proxy(self.path))

    def test_scheme_added(self):
        self.path.write_text("proxy.example:8080")
        self.assertEqual(read_proxy(self.path), "http://proxy.example:8080")


class TestTemporaryClientCert(unittest.TestCase):
    def test_files_private_and_removed(self):
        with temporary_client_cert(b"CERT", b"KEY") as (cert_file, key_file):
            self.assertEqual(Path(cert_file).read_bytes(), b"CERT")
            self.assertEqual(Path(key_file).read_bytes(), b"KEY")
            self.assertEqual(stat.S_IMODE(os.stat(key_file).st_mode), 0o600)

        self.assertFalse(os.path.exists(cert_file))
        self.assertFalse(os.path.exists(key_file))

    def test_removed_on_error(self):
        with self.assertRaises(RuntimeError):
            with temporary_client_cert(b"CERT", b"KEY") as (cert_file, key_file):
                raise RuntimeError("send failed")

        self.assertFalse(os.path.exists(key_file))


if __name__ == "__main__":
    unittest.main()
