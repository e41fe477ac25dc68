"""即梦 (Volcengine visual service) client for panel generation."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence
from urllib.parse import urlparse

from ..errors import ProviderError
from ..utils.files import b64encode, read_binary
from .base import BaseImageClient, extract_base64_blob, extract_media_url, extract_string, provider_size

logger = logging.getLogger(__name__)

JIMENG_T2I_REQ_KEY = "jimeng_t2i_v30"
JIMENG_I2I_REQ_KEY = "jimeng_i2i_v30"


class JimengImageClient(BaseImageClient):
    """Submits an async CV task and polls until the image is ready.

    With reference images the first one seeds image-to-image generation so the
    character sheet biases identity and palette.
    """

    name = "jimeng"

    def __init__(
        self,
        api_key: Optional[str],
        api_secret: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: int = 120,
        poll_interval: float = 2.0,
        max_poll_attempts: int = 150,
    ) -> None:
        super().__init__(timeout=timeout)
        self._api_key = api_key
        self._api_secret = api_secret
        self._api_url = api_url
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._visual_service = None

        if not self._api_secret and self._api_key and ":" in self._api_key:
            ak, sk = self._api_key.split(":", 1)
            self._api_key, self._api_secret = ak, sk

    def generate(
        self,
        prompt: str,
        output_path: Path,
        aspect_ratio: str,
        quality: str,
        reference_images: Sequence[str] | None = None,
    ) -> Path:
        if not self._api_key or not self._api_secret:
            raise ProviderError("Jimeng access key or secret is missing; set JIMENG_API_KEY as AK:SK.")
        form = self._build_form(prompt, aspect_ratio, reference_images or [])
        response = self._call_visual_service(form)
        return self._save_from_response(response, output_path)

    @staticmethod
    def _build_form(prompt: str, aspect_ratio: str, reference_images: Sequence[str]) -> Dict[str, Any]:
        width, height = provider_size(aspect_ratio)
        form: Dict[str, Any] = {
            "req_key": JIMENG_T2I_REQ_KEY,
            "prompt": prompt,
            "seed": -1,
            "width": width,
            "height": height,
            "use_pre_llm": True,
        }
        if reference_images:
            form["req_key"] = JIMENG_I2I_REQ_KEY
            form["binary_data_base64"] = [b64encode(read_binary(reference_images[0]))]
        return form

    def _call_visual_service(self, form: Dict[str, Any]) -> Dict[str, Any]:
        service = self._get_visual_service()
        submit_response = service.cv_sync2async_submit_task(form)
        logger.debug("Jimeng submit response: %s", submit_response)
        return self._wait_for_cv_task(
            initial_response=submit_response,
            form=form,
            poll_callable=service.cv_sync2async_get_result,
            task_action="CVSync2AsyncGetResult",
        )

    def _wait_for_cv_task(
        self,
        *,
        initial_response: Dict[str, Any],
        form: Dict[str, Any],
        poll_callable: Callable[[Dict[str, Any]], Dict[str, Any]],
        task_action: str,
    ) -> Dict[str, Any]:
        response = self._ensure_visual_success(initial_response)
        task_id = extract_string(response, ("task_id", "TaskId"))
        if not task_id:
            raise ProviderError(f"{task_action} response missing task_id: {response}")

        query_form: Dict[str, Any] = {
            "req_key": form.get("req_key", JIMENG_T2I_REQ_KEY),
            "task_id": task_id,
            "req_json": '{"return_url": true}',
        }
        failure_states = {"not_found", "expired", "failed", "error"}

        for _ in range(self._max_poll_attempts):
            result = self._ensure_visual_success(poll_callable(query_form))
            status = extract_string(result, ("status",))
            has_image = bool(extract_media_url(result) or extract_base64_blob(result))
            logger.debug("Jimeng %s poll status: %s, image ready: %s", task_action, status, has_image)
            if status:
                status_lower = status.lower()
                if status_lower == "done" and has_image:
                    return result
                if status_lower in failure_states:
                    message = extract_string(result, ("message", "error_message")) or "task failed"
                    raise ProviderError(f"{task_action} failed with status {status}: {message}")
            if has_image:
                return result
            time.sleep(self._poll_interval)

        raise ProviderError(f"{task_action} result not ready after {self._max_poll_attempts} attempts.")

    def _get_visual_service(self):
        try:
            from volcengine.visual.VisualService import VisualService  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "volcengine SDK is required for Jimeng generation. Install via `pip install volcengine`."
            ) from exc

        if self._visual_service is None:
            service = VisualService()
            service.set_ak(self._api_key)
            service.set_sk(self._api_secret)
            if self._api_url:
                parsed = urlparse(self._api_url)
                if parsed.scheme:
                    service.set_scheme(parsed.scheme)
                host = parsed.netloc or parsed.path
                if host:
                    service.set_host(host)
            if self._timeout:
                service.set_connection_timeout(self._timeout)
                service.set_socket_timeout(self._timeout)
            self._visual_service = service
        return self._visual_service

    @staticmethod
    def _ensure_visual_success(response: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(response, dict):
            raise ProviderError(f"Unexpected Jimeng response: {response!r}")

        for field_name in ("code", "Code", "status", "Status"):
            value = response.get(field_name)
            if value is not None and str(value) not in {"0", "10000"}:
                message = response.get("message") or response.get("Message") or "Unknown error"
                raise ProviderError(f"Jimeng CV service error [{value}]: {message}")

        metadata = response.get("ResponseMetadata") or response.get("response_metadata")
        if isinstance(metadata, dict):
            error = metadata.get("Error") or metadata.get("error")
            if isinstance(error, dict):
                code = str(error.get("Code") or error.get("code") or "").strip()
                if code and code.lower() not in {"0", "ok", "success"}:
                    message = error.get("Message") or error.get("message") or ""
                    raise ProviderError(f"Jimeng CV service error [{code}]: {message}")
        return response
