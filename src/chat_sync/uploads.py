"""
Upload relay client for chat-sync.

The relay accepts a base64-encoded file and returns a publicly fetchable
URL. Only that URL ever reaches the store, as an image message's file_ref
or a user's photo_url.
"""
import asyncio
import base64
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles
import aiohttp

from .config import UploadConfig
from .exceptions import ErrorContext, InvalidArgumentError, UnauthorizedError, UpstreamFailureError
from .logging import get_component_logger
from .store import ChatStateStore
from .models import User

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(file_name: str) -> str:
    """MIME type from the file extension."""
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


class UploadClient:
    """HTTP client for the upload relay."""

    service = "upload_relay"

    def __init__(self, config: Optional[UploadConfig] = None):
        self.config = config or UploadConfig()
        self.base_url = self.config.base_url
        self.logger = get_component_logger("uploads")
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Open the HTTP session."""
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"Content-Type": "application/json"},
            )

    async def cleanup(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self) -> "UploadClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cleanup()

    async def upload(self, path: Union[str, Path], file_name: Optional[str] = None) -> str:
        """Upload a local file and return the relay's URL for it."""
        path = Path(path)
        file_name = file_name or path.name
        if not file_name:
            raise InvalidArgumentError("File name must not be empty", argument="file_name")

        with ErrorContext("reading upload file", {"path": str(path)}, reraise_as=InvalidArgumentError):
            async with aiofiles.open(path, "rb") as f:
                raw = await f.read()

        payload = {
            "base64": base64.b64encode(raw).decode("ascii"),
            "fileName": file_name,
            "mimeType": guess_mime_type(file_name),
        }
        return await self._post_upload(payload)

    async def _post_upload(self, payload: Dict[str, Any]) -> str:
        await self.initialize()
        url = f"{self.base_url}/upload"
        self.logger.info("Uploading file", url=url, file_name=payload["fileName"],
                         mime_type=payload["mimeType"])

        try:
            async with self.session.post(url, json=payload) as response:
                if response.status < 200 or response.status >= 300:
                    body = await response.text()
                    raise UpstreamFailureError(
                        f"Upload failed: {body}",
                        service=self.service,
                        status=response.status,
                    )
                data = await response.json()
        except aiohttp.ClientError as e:
            raise UpstreamFailureError(
                f"Cannot reach upload relay at {self.base_url}",
                service=self.service,
                cause=e,
            ) from e
        except asyncio.TimeoutError as e:
            raise UpstreamFailureError(
                f"Upload relay timed out after {self.config.timeout}s",
                service=self.service,
                cause=e,
            ) from e
        except json.JSONDecodeError as e:
            raise UpstreamFailureError(
                "Upload relay returned invalid JSON",
                service=self.service,
                cause=e,
            ) from e

        file_url = data.get("url") if isinstance(data, dict) else None
        if not file_url:
            raise UpstreamFailureError("Upload relay response has no url",
                                       service=self.service, context={"response": data})

        self.logger.info("File uploaded", file_name=payload["fileName"], url=file_url)
        return file_url


async def send_image_file(
    store: ChatStateStore,
    client: UploadClient,
    chat_id: str,
    sender_id: str,
    path: Union[str, Path],
) -> str:
    """Upload an image and post it to a chat; returns the message id."""
    chat = store.get_chat(chat_id)
    if not chat.has_participant(sender_id):
        raise UnauthorizedError("User is not a participant of this chat",
                                user_id=sender_id, chat_id=chat_id)
    file_url = await client.upload(path)
    return store.send_image_message(chat_id, sender_id, file_url)


async def upload_avatar(
    store: ChatStateStore,
    client: UploadClient,
    user_id: str,
    path: Union[str, Path],
) -> User:
    """Upload a profile picture and store its URL on the user."""
    store.get_user(user_id)
    file_url = await client.upload(path)
    return store.update_profile(user_id, photo_url=file_url)
