"""
Tests for the Storage API Client

The client is driven against the real application through a TestClient
session, so request encoding and response parsing are checked end to end.
"""

import unittest
from unittest import mock

from fastapi.testclient import TestClient

from merkle_storage.api.rest_api import create_app
from merkle_storage.api.storage_client import StorageAPIError, StorageClient, StorageNotFoundError
from merkle_storage.api.storage_service import StorageService
from merkle_storage.merkle import MerkleTree, Side, hash_content, verify_merkle_proof


def make_client(service=None) -> StorageClient:
    app = create_app(service if service is not None else StorageService())
    return StorageClient(base_url="http://testserver", session=TestClient(app), timeout=5)


class TestStorageClient(unittest.TestCase):

    def setUp(self):
        self.client = make_client()

    def test_upload_and_list(self):
        response = self.client.upload_files([("a.txt", b"hello"), ("b.txt", b"world")])
        expected = MerkleTree.build([hash_content(b"hello"), hash_content(b"world")]).root
        self.assertEqual(response.root_bytes(), expected)
        self.assertEqual([(f.id, f.name) for f in response.files], [(0, "a.txt"), (1, "b.txt")])
        self.assertEqual([(f.id, f.name) for f in self.client.list_files()], [(0, "a.txt"), (1, "b.txt")])

    def test_download_decodes_proof(self):
        root = self.client.upload_files([("a.txt", b"hello"), ("b.txt", b"world")]).root_bytes()
        response = self.client.download_file(0)
        self.assertEqual(response.content_bytes(), b"hello")
        steps = response.proof_steps()
        self.assertEqual(steps[0].side, Side.RIGHT)
        self.assertEqual(steps[0].sibling, hash_content(b"world"))
        self.assertTrue(verify_merkle_proof(hash_content(b"hello"), 0, response.leaf_count, steps, root))

    def test_binary_content_survives_transport(self):
        payload = bytes(range(256)) * 4
        self.client.upload_files([("blob.bin", payload)])
        self.assertEqual(self.client.download_file(0).content_bytes(), payload)

    def test_fetch_root(self):
        self.client.upload_files([("a.txt", b"hello")])
        root = self.client.fetch_root()
        self.assertEqual(root.root_bytes(), hash_content(b"hello"))
        self.assertEqual(root.leaf_count, 1)

    def test_not_found(self):
        with self.assertRaises(StorageNotFoundError) as ctx:
            self.client.download_file(3)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.code, "NOT_FOUND")

    def test_health_check(self):
        self.assertTrue(self.client.health_check())

    def test_connection_error(self):
        client = StorageClient(base_url="http://127.0.0.1:1", timeout=2)
        with self.assertRaises(StorageAPIError) as ctx:
            client.list_files()
        self.assertIn("Failed to connect", str(ctx.exception))
        self.assertFalse(client.health_check())

    def test_server_error_is_reported(self):
        session = mock.Mock()
        session.get.return_value = mock.Mock(
            status_code=500,
            json=mock.Mock(return_value={"error": "Internal server error", "code": "INTERNAL_ERROR"}),
            text="",
        )
        client = StorageClient(base_url="http://example", session=session, timeout=1)
        with self.assertRaises(StorageAPIError) as ctx:
            client.list_files()
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("Internal server error", str(ctx.exception))

    def test_invalid_payload_is_rejected(self):
        session = mock.Mock()
        session.get.return_value = mock.Mock(
            status_code=200,
            json=mock.Mock(return_value={"root": "0xnothex", "leaf_count": 1}),
        )
        client = StorageClient(base_url="http://example", session=session, timeout=1)
        with self.assertRaises(StorageAPIError):
            client.fetch_root()

    def test_non_json_body(self):
        session = mock.Mock()
        session.get.return_value = mock.Mock(
            status_code=200,
            json=mock.Mock(side_effect=ValueError("no json")),
            text="<html>",
        )
        client = StorageClient(base_url="http://example", session=session, timeout=1)
        with self.assertRaises(StorageAPIError):
            client.list_files()


if __name__ == "__main__":
    unittest.main(verbosity=2)
