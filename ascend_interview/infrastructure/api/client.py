"""
REST client for the Ascend interview backend.
"""
import logging
from typing import Optional, Dict, Any

import requests

from ...config import API_BASE_URL, HTTP_TIMEOUT
from ...errors import ApiError
from .retry import non_critical

logger = logging.getLogger("api_client")


class AscendApiClient:
    """Bearer-authenticated client for the interview and auth APIs."""

    def __init__(self,
                 token: Optional[str],
                 base_url: str = API_BASE_URL,
                 timeout: int = HTTP_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    def _headers(self, json_body: bool) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _request(self, method: str, path: str, *,
                 json: Optional[Dict[str, Any]] = None,
                 files: Optional[Dict[str, Any]] = None,
                 raw: bool = False) -> Any:
        """
        Send a request and return the decoded body.

        Raises:
            ApiError: on transport failure, non-2xx status, or an undecodable body
        """
        url = f"{self.base_url}{path}"
        # Multipart bodies need requests to write their own Content-Type boundary
        headers = self._headers(json_body=files is None)

        logger.debug("%s %s", method, path)
        try:
            resp = self.session.request(
                method, url, headers=headers, json=json, files=files, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise ApiError(f"Network error: {e}", status=None, path=path) from e

        if resp.status_code >= 400:
            message = self._error_message(resp)
            logger.warning("%s %s returned %d: %s", method, path, resp.status_code, message)
            raise ApiError(message, status=resp.status_code, path=path)

        if raw:
            return resp.content

        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from backend: {e}", status=resp.status_code, path=path) from e

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        """Prefer the server's own `message`, then the HTTP reason phrase."""
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
            return body["message"]
        return resp.reason or f"HTTP {resp.status_code}"

    @staticmethod
    def _data(body: Any) -> Dict[str, Any]:
        """Unwrap the `{success, data}` envelope every endpoint uses."""
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return {}

    @staticmethod
    def _multipart(text_response: Optional[str] = None, image: Optional[bytes] = None) -> Dict[str, Any]:
        """Form fields as multipart parts; requests only emits multipart when `files` is used."""
        files: Dict[str, Any] = {}
        if image is not None:
            files["image"] = ("frame.jpg", image, "image/jpeg")
        if text_response is not None:
            files["textResponse"] = (None, text_response)
        return files

    # ------------------------------------------------------------------
    # Auth / subscription
    # ------------------------------------------------------------------

    def get_profile(self) -> Dict[str, Any]:
        """Full `/auth/profile` body, including the `success` flag."""
        body = self._request("GET", "/auth/profile")
        return body if isinstance(body, dict) else {}

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def get_interview(self, interview_id: str) -> Dict[str, Any]:
        return self._data(self._request("GET", f"/interview/{interview_id}"))

    def start_interview(self, configuration: Dict[str, Any]) -> Dict[str, Any]:
        return self._data(self._request("POST", "/interview/ai/start", json=configuration))

    def submit_response(self, interview_id: str, question_index: int,
                        text_response: str, image: Optional[bytes] = None) -> Dict[str, Any]:
        files = self._multipart(text_response, image)
        return self._data(self._request(
            "POST", f"/interview/ai/{interview_id}/submit/{question_index}", files=files
        ))

    def submit_follow_up(self, interview_id: str, question_index: int, follow_up_index: int,
                         text_response: str, image: Optional[bytes] = None) -> Dict[str, Any]:
        files = self._multipart(text_response, image)
        return self._data(self._request(
            "POST",
            f"/interview/ai/{interview_id}/submit-followup/{question_index}/{follow_up_index}",
            files=files
        ))

    def generate_assessment(self, interview_id: str) -> Dict[str, Any]:
        return self._data(self._request("POST", f"/interview/ai/{interview_id}/assessment", json={}))

    # ------------------------------------------------------------------
    # Non-critical calls (retried with backoff)
    # ------------------------------------------------------------------

    @non_critical
    def text_to_speech(self, text: str) -> bytes:
        """Synthesized narration audio for `text`."""
        return self._request("POST", "/interview/ai/text-to-speech", json={"text": text}, raw=True)

    @non_critical
    def monitor_frame(self, interview_id: str, jpeg: bytes) -> Dict[str, Any]:
        files = self._multipart(image=jpeg)
        return self._data(self._request("POST", f"/interview/ai/{interview_id}/monitor", files=files))

    @non_critical
    def analyze_response(self, transcription: str, question: str, question_type: str) -> Dict[str, Any]:
        return self._data(self._request(
            "POST", "/interview/ai/analyze-response",
            json={"transcription": transcription, "question": question, "questionType": question_type}
        ))
