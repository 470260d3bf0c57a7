"""
Tests for the command-line interface

Commands run through click's CliRunner against an in-process service; the
CLI's StorageClient is patched to talk to it through a TestClient session.
"""

import os
import unittest
from unittest import mock

from click.testing import CliRunner
from fastapi.testclient import TestClient

from merkle_storage import cli as cli_module
from merkle_storage.api.rest_api import create_app
from merkle_storage.api.storage_client import StorageClient
from merkle_storage.api.storage_service import NewFile, StorageService
from merkle_storage.cli import cli


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()
        self.service = StorageService()
        session = TestClient(create_app(self.service))

        def client_factory(base_url=None):
            return StorageClient(base_url="http://testserver", session=session, timeout=5)

        patcher = mock.patch.object(cli_module, "StorageClient", side_effect=client_factory)
        patcher.start()
        self.addCleanup(patcher.stop)

    def invoke(self, *args):
        return self.runner.invoke(cli, ["--state-file", "state.json", *args], obj={})

    def _write(self, name, content):
        with open(name, "wb") as f:
            f.write(content)

    def test_upload_and_download(self):
        with self.runner.isolated_filesystem():
            self._write("a.txt", b"hello")
            self._write("b.txt", b"world")

            result = self.invoke("upload", "a.txt", "b.txt")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("Roots match", result.output)
            self.assertTrue(os.path.exists("state.json"))

            os.mkdir("out")
            result = self.invoke("download", "1", "--output-dir", "out")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("File contents verified", result.output)
            with open(os.path.join("out", "b.txt"), "rb") as f:
                self.assertEqual(f.read(), b"world")

    def test_upload_nothing(self):
        with self.runner.isolated_filesystem():
            result = self.invoke("upload")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("Nothing to upload", result.output)
            self.assertFalse(os.path.exists("state.json"))

    def test_upload_missing_file(self):
        with self.runner.isolated_filesystem():
            result = self.invoke("upload", "missing.txt")
            self.assertNotEqual(result.exit_code, 0)
            self.assertEqual(self.service.list_files(), [])

    def test_list(self):
        with self.runner.isolated_filesystem():
            result = self.invoke("list")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("No files stored", result.output)

            self._write("a.txt", b"hello")
            self.invoke("upload", "a.txt")
            result = self.invoke("list")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("a.txt", result.output)

    def test_download_unknown_id(self):
        with self.runner.isolated_filesystem():
            self._write("a.txt", b"hello")
            self.invoke("upload", "a.txt")
            result = self.invoke("download", "5")
            self.assertEqual(result.exit_code, 1)
            self.assertIn("File 5 not found", result.output)

    def test_download_without_root(self):
        with self.runner.isolated_filesystem():
            self.service.upload([NewFile(b"hello", "a.txt")])
            result = self.invoke("download", "0")
            self.assertEqual(result.exit_code, 1)
            self.assertIn("No trusted root", result.output)
            self.assertFalse(os.path.exists("a.txt"))

    def test_stale_download_is_rejected(self):
        with self.runner.isolated_filesystem():
            self._write("a.txt", b"hello")
            self.invoke("upload", "a.txt")
            self.service.upload([NewFile(b"someone else")])
            os.remove("a.txt")

            result = self.invoke("download", "0")
            self.assertEqual(result.exit_code, 1)
            self.assertIn("Download rejected", result.output)
            self.assertFalse(os.path.exists("a.txt"))

    def test_proof_json(self):
        with self.runner.isolated_filesystem():
            self._write("a.txt", b"hello")
            self._write("b.txt", b"world")
            self.invoke("upload", "a.txt", "b.txt")

            result = self.invoke("proof", "0", "--format", "json")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn('"verified": true', result.output)
            self.assertIn('"leaf_count": 2', result.output)
            self.assertIn('"side": "right"', result.output)

    def test_proof_against_changed_root_fails(self):
        with self.runner.isolated_filesystem():
            self._write("a.txt", b"hello")
            self.invoke("upload", "a.txt")
            self.service.upload([NewFile(b"later")])
            result = self.invoke("proof", "0")
            self.assertEqual(result.exit_code, 1)
            self.assertIn("does not verify", result.output)

    def test_status(self):
        with self.runner.isolated_filesystem():
            result = self.invoke("status")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("No trusted root yet", result.output)

            self._write("a.txt", b"hello")
            self.invoke("upload", "a.txt")
            result = self.invoke("status")
            self.assertIn("In sync", result.output)

            self.service.upload([NewFile(b"later")])
            result = self.invoke("status")
            self.assertIn("Server root changed", result.output)

    def test_health(self):
        result = self.invoke("health")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Healthy", result.output)

    def test_corrupt_state_file(self):
        with self.runner.isolated_filesystem():
            with open("state.json", "w") as f:
                f.write("{not json")
            result = self.invoke("status")
            self.assertEqual(result.exit_code, 1)
            self.assertIn("Status check failed", result.output)


class TestCLIConfiguration(unittest.TestCase):
    """Invalid environment settings end in a clean error, not a traceback."""

    def setUp(self):
        self.runner = CliRunner()

    def test_invalid_timeout(self):
        result = self.runner.invoke(cli, ["list"], obj={}, env={"MERKLE_STORAGE_TIMEOUT": "abc"})
        self.assertEqual(result.exit_code, 1)
        self.assertIsInstance(result.exception, SystemExit)
        self.assertIn("Invalid configuration", result.output)
        self.assertIn("MERKLE_STORAGE_TIMEOUT", result.output)

    def test_invalid_port(self):
        with mock.patch("merkle_storage.api.rest_api.run_server") as run_server:
            result = self.runner.invoke(cli, ["serve"], obj={}, env={"MERKLE_STORAGE_PORT": "eighty"})
        self.assertEqual(result.exit_code, 1)
        self.assertIsInstance(result.exception, SystemExit)
        self.assertIn("MERKLE_STORAGE_PORT", result.output)
        run_server.assert_not_called()

    def test_serve_uses_environment(self):
        env = {"MERKLE_STORAGE_HOST": "0.0.0.0", "MERKLE_STORAGE_PORT": "9090"}
        with mock.patch("merkle_storage.api.rest_api.run_server") as run_server:
            result = self.runner.invoke(cli, ["serve"], obj={}, env=env)
        self.assertEqual(result.exit_code, 0, result.output)
        run_server.assert_called_once_with(host="0.0.0.0", port=9090, dev=False)

    def test_serve_options_override_environment(self):
        with mock.patch("merkle_storage.api.rest_api.run_server") as run_server:
            result = self.runner.invoke(
                cli, ["serve", "--host", "localhost", "--port", "7000"], obj={},
                env={"MERKLE_STORAGE_PORT": "eighty"},
            )
        self.assertEqual(result.exit_code, 0, result.output)
        run_server.assert_called_once_with(host="localhost", port=7000, dev=False)


if __name__ == "__main__":
    unittest.main(verbosity=2)
