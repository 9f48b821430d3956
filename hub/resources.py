import logging
import uuid
from datetime import datetime, timezone
from pathlib import PurePath

from db.database import RESOURCE_ORDER, Database
from errors import ExternalServiceError, NotFoundError, PersistenceError, ValidationError
from hub.speeches import coerce_limit
from hub.timer import SQLITE_MAX_INT
from storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("filename", "originalname", "mimetype", "size")


def download_url(resource_id: str) -> str:
    return f"/api/resources/{resource_id}/download"


def _missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ResourceRegistry:
    def __init__(self, db: Database, store: ObjectStore):
        self.db = db
        self.store = store

    def register(self, metadata: dict) -> dict:
        missing = [f for f in REQUIRED_FIELDS if _missing(metadata.get(f))]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        try:
            size = int(metadata["size"])
        except (TypeError, ValueError, OverflowError):
            raise ValidationError("size must be an integer") from None
        if not 0 <= size <= SQLITE_MAX_INT:
            raise ValidationError("size is out of range")

        resource = self.db.insert_resource(
            id=str(uuid.uuid4()),
            filename=metadata["filename"],
            originalname=metadata["originalname"],
            mimetype=metadata["mimetype"],
            size=size,
            category=metadata.get("category") or "other",
            description=metadata.get("description") or "",
            uploader=metadata.get("uploader") or "Anonymous",
            storage_path=metadata.get("storage_path") or None,
            public_url=metadata.get("public_url") or None,
            upload_time=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Resource %s registered (%s)", resource["id"], resource["originalname"])
        return resource

    def upload(self, data: bytes, original_name: str, mimetype: str, category: str | None = None,
               description: str | None = None, uploader: str | None = None) -> dict:
        """Store the bytes in the object store, then record their metadata.

        If the metadata cannot be saved the stored object is removed again.
        """
        if not original_name:
            raise ValidationError("A file is required")
        category = category or "other"
        filename = f"{uuid.uuid4()}{PurePath(original_name).suffix}"
        storage_path = self.store.upload(f"{category}/{filename}", data, mimetype)
        try:
            return self.register({
                "filename": filename,
                "originalname": original_name,
                "mimetype": mimetype or "application/octet-stream",
                "size": len(data),
                "category": category,
                "description": description,
                "uploader": uploader,
                "storage_path": storage_path,
                "public_url": self.store.public_url(storage_path),
            })
        except (PersistenceError, ValidationError, ExternalServiceError):
            logger.warning("Rolling back upload of %s", storage_path)
            try:
                self.store.delete(storage_path)
            except ExternalServiceError as e:
                logger.error("Rollback of %s failed: %s", storage_path, e)
            raise

    def list(self, category: str | None = None, sort: str | None = "newest", limit=50) -> list[dict]:
        if category == "all":
            category = None
        if sort not in RESOURCE_ORDER:
            sort = "newest"
        return self.db.list_resources(category, sort, coerce_limit(limit, default=50))

    def resolve_download(self, resource_id: str) -> str:
        resource = self.db.get_resource(resource_id)
        if not resource:
            raise NotFoundError("Resource not found")

        url = resource["public_url"]
        if not url and resource["storage_path"]:
            try:
                url = self.store.public_url(resource["storage_path"])
            except ExternalServiceError as e:
                logger.warning("Could not resolve public URL for %s: %s", resource_id, e)
                raise NotFoundError("File not available for download") from e
        if not url:
            raise NotFoundError("File not available for download")

        try:
            self.db.increment_download_count(resource_id)
        except PersistenceError as e:
            logger.warning("Error updating download count for %s: %s", resource_id, e)
        return url
