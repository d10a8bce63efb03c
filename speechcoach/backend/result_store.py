import logging
import os
import threading
from typing import Dict, Optional, Protocol, Tuple

from .gcs_utils import download_json, latest_blob_name, upload_json
from .models import AnalysisResult


logger = logging.getLogger("uvicorn.error")

RESULT_SUFFIX = "-analysis.json"


class ResultStoreError(RuntimeError):
    """Saving or reading an analysis result failed."""


def result_file_name(conversation_id: str) -> str:
    return f"{conversation_id}{RESULT_SUFFIX}"


class ResultStore(Protocol):
    storage_name: str

    def save(self, conversation_id: str, result: AnalysisResult) -> str:
        pass

    def load(self, conversation_id: str) -> Optional[dict]:
        pass

    def load_latest(self) -> Optional[Tuple[str, dict]]:
        pass


class InMemoryResultStore:
    storage_name = "memory"

    def __init__(self) -> None:
        self._results: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def save(self, conversation_id: str, result: AnalysisResult) -> str:
        name = result_file_name(conversation_id)
        with self._lock:
            # Re-inserting moves the name to the end so the newest save is last.
            self._results.pop(name, None)
            self._results[name] = result.to_json_dict()
        return f"memory://{name}"

    def load(self, conversation_id: str) -> Optional[dict]:
        with self._lock:
            return self._results.get(result_file_name(conversation_id))

    def load_latest(self) -> Optional[Tuple[str, dict]]:
        with self._lock:
            if not self._results:
                return None
            name = next(reversed(self._results))
            return name, self._results[name]


class GcsResultStore:
    storage_name = "gcs"

    def __init__(self, bucket: str, prefix: str = "") -> None:
        self._bucket = bucket
        self._prefix = prefix.strip("/")

    def _blob_path(self, name: str) -> str:
        return f"{self._prefix}/{name}" if self._prefix else name

    def save(self, conversation_id: str, result: AnalysisResult) -> str:
        blob_path = self._blob_path(result_file_name(conversation_id))
        try:
            return upload_json(self._bucket, blob_path, result.to_json_dict())
        except Exception as exc:
            raise ResultStoreError(f"Failed to upload gs://{self._bucket}/{blob_path}: {exc}") from exc

    def load(self, conversation_id: str) -> Optional[dict]:
        blob_path = self._blob_path(result_file_name(conversation_id))
        try:
            return download_json(self._bucket, blob_path)
        except Exception as exc:
            raise ResultStoreError(f"Failed to read gs://{self._bucket}/{blob_path}: {exc}") from exc

    def load_latest(self) -> Optional[Tuple[str, dict]]:
        try:
            blob_path = latest_blob_name(self._bucket, self._prefix, RESULT_SUFFIX)
            if blob_path is None:
                return None
            payload = download_json(self._bucket, blob_path)
        except Exception as exc:
            raise ResultStoreError(f"Failed to read latest analysis from gs://{self._bucket}: {exc}") from exc
        if payload is None:
            return None
        return blob_path.rsplit("/", 1)[-1], payload


def build_result_store() -> ResultStore:
    bucket = os.getenv("ANALYSIS_BUCKET", "").strip()
    if bucket:
        logger.info("result_store=gcs bucket=%s", bucket)
        return GcsResultStore(bucket=bucket, prefix=os.getenv("ANALYSIS_PREFIX", "").strip())
    return InMemoryResultStore()
