import base64
import json
import os
from functools import lru_cache
from typing import Optional

from google.api_core.exceptions import NotFound
from google.cloud import storage
from google.oauth2 import service_account

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
JSON_CONTENT_TYPE = "application/json"
_storage_client: Optional[storage.Client] = None


def _load_service_account_info(raw_json: str, source: str) -> dict:
    try:
        parsed = json.loads(raw_json)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"{source} does not contain valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise RuntimeError(f"{source} must contain a JSON object.")
    return parsed


def _credentials_from_b64(encoded: str) -> dict:
    padded = encoded + "=" * ((-len(encoded)) % 4)
    try:
        decoded = base64.b64decode(padded).decode("utf-8")
    except ValueError as exc:
        raise RuntimeError("GOOGLE_APPLICATION_CREDENTIALS_B64 is not valid base64.") from exc
    return _load_service_account_info(decoded, "GOOGLE_APPLICATION_CREDENTIALS_B64")


@lru_cache(maxsize=1)
def get_gcp_credentials() -> Optional[service_account.Credentials]:
    """Service-account credentials from env, or ``None`` to fall back to ADC."""
    info = None
    env_b64 = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_B64", "").strip()
    env_json = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON", "").strip()
    if env_b64:
        info = _credentials_from_b64(env_b64)
    elif env_json:
        info = _load_service_account_info(env_json, "GOOGLE_APPLICATION_CREDENTIALS_JSON")
    if info is not None:
        return service_account.Credentials.from_service_account_info(info, scopes=[CLOUD_PLATFORM_SCOPE])

    env_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    if env_path:
        if not os.path.exists(env_path):
            raise RuntimeError(f"GOOGLE_APPLICATION_CREDENTIALS points to a missing file: {env_path}")
        return service_account.Credentials.from_service_account_file(env_path, scopes=[CLOUD_PLATFORM_SCOPE])
    return None


def get_storage_client() -> storage.Client:
    global _storage_client
    if _storage_client is None:
        credentials = get_gcp_credentials()
        project = os.getenv("GCP_PROJECT_ID", "").strip() or getattr(credentials, "project_id", None)
        if credentials is not None or project:
            _storage_client = storage.Client(credentials=credentials, project=project)
        else:
            _storage_client = storage.Client()
    return _storage_client


def build_gs_uri(bucket: str, blob_path: str) -> str:
    return f"gs://{bucket}/{blob_path.lstrip('/')}"


def upload_json(bucket: str, blob_path: str, obj) -> str:
    clean_path = blob_path.lstrip("/")
    blob = get_storage_client().bucket(bucket).blob(clean_path)
    blob.upload_from_string(json.dumps(obj, ensure_ascii=False, indent=2), content_type=JSON_CONTENT_TYPE)
    return build_gs_uri(bucket, clean_path)


def download_json(bucket: str, blob_path: str) -> Optional[dict]:
    blob = get_storage_client().bucket(bucket).blob(blob_path.lstrip("/"))
    try:
        return json.loads(blob.download_as_text())
    except NotFound:
        return None


def latest_blob_name(bucket: str, prefix: str, suffix: str) -> Optional[str]:
    blobs = [
        blob
        for blob in get_storage_client().list_blobs(bucket, prefix=prefix.lstrip("/"))
        if blob.name and blob.name.endswith(suffix)
    ]
    if not blobs:
        return None
    return max(blobs, key=lambda blob: blob.updated or blob.time_created).name
