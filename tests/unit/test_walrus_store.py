"""
DropForge - Walrus Blob Store Unit Tests

Unit tests for the Walrus publisher/aggregator client with a mocked HTTP session.
"""

import asyncio
import unittest
from unittest.mock import MagicMock, Mock

import requests

from blobstore.exceptions import BlobNetworkError, BlobNotFoundError, BlobUploadError
from blobstore.walrus import WalrusBlobStore, WalrusConfig, parse_upload_response


def _response(status_code=200, json_data=None, content=b"", reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.content = content
    response.text = str(json_data)
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


NEWLY_CREATED = {
    "newlyCreated": {
        "blobObject": {
            "id": "0xobject",
            "blobId": "M4hsZGQ1oCktdzegB6HnI6Mi28S2nqOPHxK-W7_4BUk",
            "size": 17,
            "storage": {"startEpoch": 10, "endEpoch": 15}
        },
        "cost": 132300
    }
}

ALREADY_CERTIFIED = {
    "alreadyCertified": {
        "blobId": "M4hsZGQ1oCktdzegB6HnI6Mi28S2nqOPHxK-W7_4BUk",
        "endEpoch": 40
    }
}


class TestParseUploadResponse(unittest.TestCase):
    """Test publisher response parsing."""

    def test_newly_created(self):
        details = parse_upload_response(NEWLY_CREATED)
        self.assertEqual(details["blob_id"], "M4hsZGQ1oCktdzegB6HnI6Mi28S2nqOPHxK-W7_4BUk")
        self.assertTrue(details["newly_created"])
        self.assertEqual(details["end_epoch"], 15)

    def test_already_certified(self):
        details = parse_upload_response(ALREADY_CERTIFIED)
        self.assertFalse(details["newly_created"])
        self.assertEqual(details["end_epoch"], 40)

    def test_unknown_shape(self):
        with self.assertRaises(BlobUploadError):
            parse_upload_response({"markedInvalid": {}})
        with self.assertRaises(BlobUploadError):
            parse_upload_response(["not", "a", "dict"])

    def test_missing_blob_id(self):
        with self.assertRaises(BlobUploadError):
            parse_upload_response({"newlyCreated": {"blobObject": {}}})


class TestWalrusConfig(unittest.TestCase):
    """Test Walrus configuration."""

    def test_urls(self):
        config = WalrusConfig(publisher_url="https://pub.test/", aggregator_url="https://agg.test")
        self.assertEqual(config.blobs_endpoint(), "https://pub.test/v1/blobs")
        self.assertEqual(config.blob_url("abc"), "https://agg.test/v1/blobs/abc")

    def test_epochs_validation(self):
        with self.assertRaises(ValueError):
            WalrusConfig(epochs=0)

    def test_from_config(self):
        config = WalrusConfig.from_config({"epochs": "10", "aggregator_url": "https://agg.test"})
        self.assertEqual(config.epochs, 10)
        self.assertEqual(config.aggregator_url, "https://agg.test")


class TestWalrusBlobStore(unittest.TestCase):
    """Unit tests for the blob store against a mocked session."""

    def setUp(self):
        self.session = MagicMock()
        self.config = WalrusConfig(publisher_url="https://pub.test",
                                   aggregator_url="https://agg.test", epochs=3)
        self.store = WalrusBlobStore(self.config, session=self.session)

    def tearDown(self):
        self.store.close()

    def test_upload_puts_with_epochs(self):
        """Test upload request shape and returned blob info."""
        self.session.put.return_value = _response(200, NEWLY_CREATED)

        info = self.store.upload_sync(b"hello", "image/png")

        self.assertEqual(info.blob_id, "M4hsZGQ1oCktdzegB6HnI6Mi28S2nqOPHxK-W7_4BUk")
        self.assertEqual(info.size, 5)
        self.assertEqual(info.content_type, "image/png")
        self.assertEqual(info.end_epoch, 15)
        args, kwargs = self.session.put.call_args
        self.assertEqual(args[0], "https://pub.test/v1/blobs")
        self.assertEqual(kwargs["params"], {"epochs": 3})
        self.assertEqual(kwargs["data"], b"hello")
        self.assertEqual(kwargs["headers"]["Content-Type"], "image/png")

    def test_upload_http_error(self):
        self.session.put.return_value = _response(500, {"error": "boom"}, reason="Server Error")
        with self.assertRaises(BlobUploadError):
            self.store.upload_sync(b"hello")
        self.assertEqual(self.store.get_statistics()["stats"]["upload_failures"], 1)

    def test_upload_invalid_json(self):
        self.session.put.return_value = _response(200, ValueError("no json"))
        with self.assertRaises(BlobUploadError):
            self.store.upload_sync(b"hello")

    def test_upload_network_failure(self):
        self.session.put.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(BlobNetworkError):
            self.store.upload_sync(b"hello")

    def test_upload_rejects_non_bytes(self):
        with self.assertRaises(TypeError):
            self.store.upload_sync("text")

    def test_exists(self):
        """Test HEAD existence check."""
        self.session.head.return_value = _response(200)
        self.assertTrue(self.store.exists_sync("https://agg.test/v1/blobs/abc"))

        self.session.head.return_value = _response(404, reason="Not Found")
        self.assertFalse(self.store.exists_sync("https://agg.test/v1/blobs/abc"))

    def test_exists_network_failure(self):
        self.session.head.side_effect = requests.exceptions.Timeout("slow")
        with self.assertRaises(BlobNetworkError):
            self.store.exists_sync("https://agg.test/v1/blobs/abc")

    def test_fetch(self):
        self.session.get.return_value = _response(200, content=b"[]")
        self.assertEqual(self.store.fetch_sync("https://agg.test/v1/blobs/abc"), b"[]")

    def test_fetch_not_found_is_distinct(self):
        """Test 404 maps to not-found while other failures are network errors."""
        self.session.get.return_value = _response(404, reason="Not Found")
        with self.assertRaises(BlobNotFoundError):
            self.store.fetch_sync("https://agg.test/v1/blobs/abc")

        self.session.get.return_value = _response(503, reason="Unavailable")
        with self.assertRaises(BlobNetworkError) as context:
            self.store.fetch_sync("https://agg.test/v1/blobs/abc")
        self.assertEqual(context.exception.status_code, 503)
        self.assertNotIsInstance(context.exception, BlobNotFoundError)

    def test_async_fetch_runs_on_executor(self):
        self.session.get.return_value = _response(200, content=b"data")
        result = asyncio.run(self.store.fetch_blob("abc"))
        self.assertEqual(result, b"data")
        self.session.get.assert_called_once()
        self.assertEqual(self.session.get.call_args[0][0], "https://agg.test/v1/blobs/abc")

    def test_url_for_requires_id(self):
        with self.assertRaises(ValueError):
            self.store.url_for("")


if __name__ == '__main__':
    unittest.main()
