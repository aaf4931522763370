import os
import tempfile
import unittest

import boto3
from botocore.stub import ANY, Stubber

from pinboard.errors import StoreUnavailable, ValidationFailed
from pinboard.services.image_storage import LocalImageStorage, S3ImageStorage, validate_image

PNG = b"\x89PNG\r\n\x1a\nfake"


class ValidateImageTest(unittest.TestCase):
    def test_accepts_images(self) -> None:
        self.assertEqual(validate_image("Photo.JPG", "image/jpeg", PNG, 100), ".jpg")
        self.assertEqual(validate_image("a.png", None, PNG, 100), ".png")

    def test_rejects_bad_uploads(self) -> None:
        cases = [
            ("a.png", "image/png", b"", 100),
            ("a.png", "image/png", PNG, 3),
            ("a.exe", "image/png", PNG, 100),
            ("noext", "image/png", PNG, 100),
            ("a.png", "text/html", PNG, 100),
        ]
        for filename, ctype, data, limit in cases:
            with self.subTest(filename=filename, ctype=ctype, size=len(data), limit=limit):
                with self.assertRaises(ValidationFailed):
                    validate_image(filename, ctype, data, limit)


class LocalImageStorageTest(unittest.TestCase):
    def test_save_and_list(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            storage = LocalImageStorage(os.path.join(tmp, "uploads"), max_bytes=1000)

            stored = storage.save("beach.png", "image/png", PNG)

            self.assertTrue(stored.url.startswith("/uploads/"))
            self.assertTrue(stored.filename.endswith(".png"))
            self.assertEqual(stored.original_name, "beach.png")
            self.assertEqual(stored.size, len(PNG))
            with open(os.path.join(tmp, "uploads", stored.filename), "rb") as f:
                self.assertEqual(f.read(), PNG)

            files = storage.list_files()
            self.assertEqual([f.url for f in files], [stored.url])
            self.assertEqual(files[0].size, len(PNG))
            self.assertEqual(storage.resolve_url(stored.url), stored.url)

    def test_two_uploads_never_collide(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            storage = LocalImageStorage(tmp, max_bytes=1000)
            a = storage.save("a.png", "image/png", PNG)
            b = storage.save("a.png", "image/png", PNG)
            self.assertNotEqual(a.filename, b.filename)
            self.assertEqual(len(storage.list_files()), 2)

    def test_upload_dir_is_created_on_first_save(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            upload_dir = os.path.join(tmp, "later")
            storage = LocalImageStorage(upload_dir, max_bytes=1000)
            self.assertFalse(os.path.exists(upload_dir))
            self.assertEqual(storage.list_files(), [])

            storage.save("a.png", "image/png", PNG)
            self.assertTrue(os.path.isdir(upload_dir))


class S3ImageStorageTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = boto3.client(
            "s3",
            region_name="us-east-1",
            aws_access_key_id="x",
            aws_secret_access_key="y",
        )
        self.storage = S3ImageStorage(bucket="my-bucket", prefix="pins", max_bytes=1000, client=self.client)

    def test_object_key_layout(self) -> None:
        key = self.storage.build_object_key("my photo!.jpg")
        self.assertTrue(key.startswith("pins/"))
        self.assertTrue(key.endswith("_my_photo_.jpg"))
        self.assertEqual(len(key.split("/")), 4)

    def test_save_puts_object(self) -> None:
        with Stubber(self.client) as stubber:
            stubber.add_response(
                "put_object",
                {"ETag": '"abc"'},
                expected_params={"Bucket": "my-bucket", "Key": ANY, "Body": PNG, "ContentType": "image/png"},
            )
            stored = self.storage.save("a.png", "image/png", PNG)
            stubber.assert_no_pending_responses()

        self.assertTrue(stored.url.startswith("pins/"))
        self.assertTrue(stored.url.endswith("_a.png"))

    def test_save_failure_is_store_unavailable(self) -> None:
        with Stubber(self.client) as stubber:
            stubber.add_client_error("put_object", service_error_code="ServiceUnavailable", http_status_code=503)
            with self.assertRaises(StoreUnavailable):
                self.storage.save("a.png", "image/png", PNG)

    def test_list_files_keeps_images_only(self) -> None:
        with Stubber(self.client) as stubber:
            stubber.add_response(
                "list_objects_v2",
                {
                    "IsTruncated": False,
                    "KeyCount": 2,
                    "Contents": [
                        {"Key": "pins/2026/01/abc_a.jpg", "Size": 3},
                        {"Key": "pins/notes.txt", "Size": 1},
                    ],
                },
                expected_params={"Bucket": "my-bucket", "Prefix": "pins/"},
            )
            files = self.storage.list_files()

        self.assertEqual([(f.name, f.size, f.url) for f in files], [("abc_a.jpg", 3, "pins/2026/01/abc_a.jpg")])

    def test_resolve_url_presigns(self) -> None:
        url = self.storage.resolve_url("pins/2026/01/abc_a.jpg")
        self.assertIn("my-bucket", url)
        self.assertIn("pins/2026/01/abc_a.jpg", url)


if __name__ == "__main__":
    unittest.main()
