"""
Vertex AI REST client for LLM interactions.
"""
import logging
from typing import Optional, Dict, Any, List

import requests
import google.auth
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS, LLM_TEMPERATURE
from ...interview.schemas import GenerationRequest, GenerationResponse
from ...interview.services import TextGenerator

logger = logging.getLogger("llm_client")


class VertexRestClient(TextGenerator):
    """REST-based client for Vertex AI Gemini models."""

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT,
                 temperature: float = LLM_TEMPERATURE):
        self.project = project
        self.location = location
        self.model = model
        self.credentials_json = credentials_json
        self.base_url = f"https://{self.location}-aiplatform.googleapis.com/v1"
        self.model_resource = f"projects/{self.project}/locations/{self.location}/publishers/google/models/{self.model}"
        self._token = None
        self.timeout = timeout
        self.temperature = temperature

    def _refresh_token(self):
        """Refresh the OAuth token for API calls."""
        if self.credentials_json:
            creds = service_account.Credentials.from_service_account_file(
                self.credentials_json,
                scopes=["https://www.googleapis.com/auth/cloud-platform"],
            )
        else:
            creds, _ = google.auth.default(scopes=["https://www.googleapis.com/auth/cloud-platform"])

        auth_req = google.auth.transport.requests.Request()
        creds.refresh(auth_req)
        self._token = creds.token

    def _ensure_token(self):
        """Ensure we have a valid token, refreshing if needed."""
        if not self._token:
            self._refresh_token()

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Produce the next interviewer line for a generation request."""
        parts = [request.prompt]
        if request.context:
            parts.append(f"Conversation so far:\n{request.context}")
        text = self.generate_content(parts, temperature=self.temperature)
        logger.debug("Raw LLM output: %s", repr(text))
        return GenerationResponse(text=text.strip())

    def generate_content(
        self,
        prompt_parts: List[str],
        temperature: float = 0.0,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        stop_sequences: Optional[List[str]] = None,
        _retried: bool = False,
    ) -> str:
        """Generate content using the Vertex AI REST API."""
        self._ensure_token()
        url = f"{self.base_url}/{self.model_resource}:generateContent"

        body: Dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": part} for part in prompt_parts],
                }
            ],
            "generationConfig": {
                "temperature": float(temperature),
                "maxOutputTokens": int(max_output_tokens),
            },
        }
        if stop_sequences:
            body["generationConfig"]["stopSequences"] = list(stop_sequences)

        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

        resp = requests.post(url, headers=headers, json=body, timeout=self.timeout)
        if resp.status_code == 401 and not _retried:
            logger.info("Vertex token rejected, refreshing")
            self._token = None
            return self.generate_content(
                prompt_parts, temperature, max_output_tokens, stop_sequences, _retried=True
            )
        if resp.status_code >= 400:
            raise RuntimeError(f"Vertex REST error {resp.status_code}: {resp.text}")

        return self._parse_response_text(resp.json())

    def _parse_response_text(self, resp_json: Dict[str, Any]) -> str:
        """
        Parse response JSON to extract text content.

        Returns an empty string when no text can be found, which callers
        treat as a failed generation.
        """
        cands = resp_json.get("candidates") or []
        if cands and isinstance(cands[0], dict):
            content = cands[0].get("content") or {}
            parts = content.get("parts") or []
            texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if texts:
                return "".join(texts)

        # Direct text fallback
        if isinstance(resp_json.get("text"), str):
            return resp_json["text"]

        logger.warning("No text in Vertex response: %s", resp_json)
        return ""
