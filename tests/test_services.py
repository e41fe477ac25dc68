"""Tests for provider clients and the generation adapter, without network access."""

from __future__ import annotations

import base64
import tempfile
import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from unittest import mock

from PIL import Image

from comicgen.config import CredentialResolver
from comicgen.errors import ConfigError, ProviderError
from comicgen.services.base import extract_base64_blob, extract_media_url, provider_size
from comicgen.services.google import GoogleImageClient
from comicgen.services.image_gen import ImageGenAdapter, build_client
from comicgen.services.jimeng import JIMENG_I2I_REQ_KEY, JIMENG_T2I_REQ_KEY, JimengImageClient
from comicgen.services.mock import MockImageClient
from comicgen.services.openai import OpenAIImageClient


def _png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (4, 4), (10, 20, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


class ResponseHelpersTest(unittest.TestCase):
    def test_provider_size_table_and_nearest(self) -> None:
        self.assertEqual(provider_size("3:4"), (1024, 1365))
        self.assertEqual(provider_size("117:157"), (1024, 1365))
        self.assertEqual(provider_size("21:9"), (1792, 1024))
        self.assertEqual(provider_size("garbage"), (1024, 1024))

    def test_extracts_openai_style_payloads(self) -> None:
        self.assertEqual(extract_base64_blob({"data": [{"b64_json": "QUJD", "url": None}]}), "QUJD")
        self.assertEqual(extract_media_url({"data": [{"url": "https://img/1.png"}]}), "https://img/1.png")

    def test_extracts_jimeng_style_payloads(self) -> None:
        payload = {"code": 10000, "data": {"binary_data_base64": ["QUJD"], "status": "done"}}
        self.assertEqual(extract_base64_blob(payload), "QUJD")


class MockClientTest(unittest.TestCase):
    def test_writes_deterministic_placeholder(self) -> None:
        client = MockImageClient()
        with tempfile.TemporaryDirectory() as tmp:
            first = client.generate("a cat", Path(tmp) / "a.png", "3:4", "2k")
            second = client.generate("a cat", Path(tmp) / "b.png", "3:4", "2k")
            with Image.open(first) as image_a, Image.open(second) as image_b:
                self.assertEqual(image_a.size, (256, 341))
                self.assertEqual(image_a.getpixel((255, 340)), image_b.getpixel((255, 340)))
            self.assertFalse((Path(tmp) / "a.png.tmp").exists())


class GoogleClientTest(unittest.TestCase):
    def test_sends_reference_images_inline_and_saves_result(self) -> None:
        image = _png_bytes()
        response = mock.Mock(ok=True)
        response.json.return_value = {
            "candidates": [{"content": {"parts": [{"inlineData": {"data": base64.b64encode(image).decode()}}]}}]
        }
        with tempfile.TemporaryDirectory() as tmp:
            ref = Path(tmp) / "ref.png"
            ref.write_bytes(image)
            client = GoogleImageClient(api_key="k", base_url="https://proxy.example/v1beta")
            with mock.patch("comicgen.services.google.requests.post", return_value=response) as post:
                target = client.generate("hero", Path(tmp) / "out.png", "1:1", "2k", [str(ref)])

            self.assertEqual(target.read_bytes(), image)
            url = post.call_args.args[0]
            body = post.call_args.kwargs["json"]
            self.assertEqual(url, "https://proxy.example/v1beta/models/gemini-3-pro-image-preview:generateContent")
            self.assertEqual(post.call_args.kwargs["headers"]["x-goog-api-key"], "k")
            self.assertEqual(len(body["contents"][0]["parts"]), 2)
            self.assertEqual(body["generationConfig"]["imageConfig"]["imageSize"], "2K")

    def test_http_error_becomes_provider_error(self) -> None:
        response = mock.Mock(ok=False, status_code=429, text="quota")
        client = GoogleImageClient(api_key="k")
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("comicgen.services.google.requests.post", return_value=response):
                with self.assertRaises(ProviderError):
                    client.generate("hero", Path(tmp) / "out.png", "1:1", "normal")
            self.assertFalse((Path(tmp) / "out.png").exists())


class JimengClientTest(unittest.TestCase):
    def test_splits_combined_key(self) -> None:
        client = JimengImageClient(api_key="AK:SK")
        self.assertEqual((client._api_key, client._api_secret), ("AK", "SK"))

    def test_form_switches_to_image_to_image_with_references(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            ref = Path(tmp) / "ref.png"
            ref.write_bytes(b"abc")
            t2i = JimengImageClient._build_form("p", "16:9", [])
            i2i = JimengImageClient._build_form("p", "16:9", [str(ref)])
        self.assertEqual(t2i["req_key"], JIMENG_T2I_REQ_KEY)
        self.assertEqual((t2i["width"], t2i["height"]), (1792, 1024))
        self.assertEqual(i2i["req_key"], JIMENG_I2I_REQ_KEY)
        self.assertEqual(i2i["binary_data_base64"], ["YWJj"])

    def test_service_error_codes_raise(self) -> None:
        with self.assertRaises(ProviderError):
            JimengImageClient._ensure_visual_success({"code": 50411, "message": "risk control"})


class AdapterTest(unittest.TestCase):
    def test_build_client_uses_resolved_credentials(self) -> None:
        resolver = CredentialResolver(
            env_files=[],
            environ={"OPENAI_API_KEY": "o", "OPENAI_BASE_URL": "https://gateway/v1/", "JIMENG_API_KEY": "a:b"},
        )
        openai_client = build_client("openai", resolver)
        self.assertIsInstance(openai_client, OpenAIImageClient)
        self.assertEqual(openai_client._base_url, "https://gateway/v1")
        self.assertIsInstance(build_client("jimeng", resolver), JimengImageClient)
        with self.assertRaises(ConfigError):
            build_client("unknown", resolver)

    def test_mock_generation_creates_parent_directories(self) -> None:
        adapter = ImageGenAdapter()
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "panels" / "p1.png"
            adapter.generate("prompt", target, "", "2k", "mock")
            self.assertTrue(target.exists())
        self.assertIs(adapter.client("mock"), adapter.client("mock"))

    def test_registered_clients_take_priority(self) -> None:
        fake = mock.Mock()
        adapter = ImageGenAdapter(clients={"google": fake})
        adapter.generate("prompt", Path("out.png"), "1:1", "2k", "google", ["ref.png"])
        fake.generate.assert_called_once_with("prompt", Path("out.png"), "1:1", "2k", ["ref.png"])

    def test_concurrent_first_calls_share_one_client(self) -> None:
        resolver = CredentialResolver(env_files=[], environ={"OPENAI_API_KEY": "o"})
        adapter = ImageGenAdapter(resolver)
        barrier = threading.Barrier(4)

        def slow_build(provider, _resolver):
            time.sleep(0.05)
            return mock.Mock(name=provider)

        with mock.patch("comicgen.services.image_gen.build_client", side_effect=slow_build) as build:
            with ThreadPoolExecutor(max_workers=4) as pool:
                clients = list(pool.map(lambda _: (barrier.wait(), adapter.client("openai"))[1], range(4)))
        build.assert_called_once()
        self.assertTrue(all(client is clients[0] for client in clients))


if __name__ == "__main__":
    unittest.main()
