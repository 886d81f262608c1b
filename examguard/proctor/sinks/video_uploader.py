"""
Video Uploader - Hands the session recording off once, on stop
"""

import logging
from pathlib import Path
from typing import Optional, Union

import httpx

from .event_sink import FireAndForget

logger = logging.getLogger(__name__)


class VideoUploader(FireAndForget):
    """
    Uploads a recording as multipart form data (field `video`).

    Upload is best-effort: failures are logged, never retried.
    """

    def __init__(self, url: str, timeout: float = 60.0, client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def submit(self, recording: Union[bytes, str, Path], filename: str):
        self._spawn(lambda: self.upload(recording, filename), f"recording {filename}")

    async def upload(self, recording: Union[bytes, str, Path], filename: str) -> bool:
        """
        Upload now and report success.

        Args:
            recording: Raw bytes or a path to the recorded file
            filename: Name sent with the upload
        """
        try:
            if isinstance(recording, (str, Path)):
                data = Path(recording).read_bytes()
            else:
                data = recording

            response = await self._client.post(
                self.url,
                files={"video": (filename, data, "video/webm")}
            )
            if response.status_code >= 400:
                logger.warning(f"Video upload non-OK: {response.status_code}")
                return False

            logger.info(f"Video uploaded: {filename} ({len(data)} bytes)")
            return True
        except Exception as e:
            logger.warning(f"Video upload failed: {e}")
            return False

    async def aclose(self):
        await self.flush()
        if self._owns_client:
            await self._client.aclose()
