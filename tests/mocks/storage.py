"""In-memory double for the boto3 S3 client."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from botocore.exceptions import ClientError


def client_error(code: str = "AccessDenied", operation: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} for test"}}, operation)


@dataclass
class FakeS3Client:
    """Stores uploaded bodies by ``(bucket, key)``."""

    put_error: Exception | None = None
    presign_error: Exception | None = None
    block_put: bool = False
    objects: dict[tuple[str, str], bytes] = field(default_factory=dict)
    content_types: dict[tuple[str, str], str] = field(default_factory=dict)
    put_calls: list[str] = field(default_factory=list)
    presign_calls: list[dict[str, Any]] = field(default_factory=list)
    put_started: threading.Event = field(default_factory=threading.Event)

    def put_object(self, *, Bucket: str, Key: str, Body: Any, ContentType: str) -> dict[str, Any]:
        self.put_calls.append(Key)
        self.put_started.set()
        if self.put_error is not None:
            raise self.put_error
        chunks = []
        while True:
            if self.block_put:
                # Simulates a slow network: keeps pulling tiny chunks until aborted.
                threading.Event().wait(0.01)
                chunk = Body.read(1)
                if not chunk:
                    Body.seek(0)
                continue
            chunk = Body.read(64 * 1024)
            if not chunk:
                break
            chunks.append(chunk)
        self.objects[(Bucket, Key)] = b"".join(chunks)
        self.content_types[(Bucket, Key)] = ContentType
        return {"ETag": '"fake"'}

    def generate_presigned_url(
        self, ClientMethod: str, Params: dict[str, Any], ExpiresIn: int
    ) -> str:
        self.presign_calls.append({"method": ClientMethod, "params": Params, "expires": ExpiresIn})
        if self.presign_error is not None:
            raise self.presign_error
        return (
            f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=fake"
        )
