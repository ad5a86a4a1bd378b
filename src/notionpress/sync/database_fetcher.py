"""Notion database fetching and row normalization.

Rows come back from Notion as page objects with typed property values.
``normalize_entry`` flattens them into plain JSON values so they can be
stored and filtered without knowing the Notion property shapes.
"""

import logging
from typing import Any, Optional

from ..api.notion import NotionClient, NotionError
from ..config import get_config
from ..utils import normalize_id

logger = logging.getLogger(__name__)

TITLE_CANDIDATES = ("Title", "Name", "title", "name")
MAX_TITLE_LENGTH = 500


def _plain_text(spans: Optional[list]) -> str:
    return "".join(span.get("plain_text", "") for span in spans or [])


def extract_property_value(prop: dict) -> Any:
    """Flatten one typed Notion property value.

    Unknown types degrade to their string representation.
    """
    prop_type = prop.get("type", "")
    value = prop.get(prop_type)

    if prop_type in ("title", "rich_text"):
        return _plain_text(value)
    if prop_type in ("number", "url", "email", "phone_number"):
        return value
    if prop_type == "checkbox":
        return bool(value)
    if prop_type in ("select", "status"):
        return value.get("name") if value else None
    if prop_type == "multi_select":
        return [item["name"] for item in value or [] if "name" in item]
    if prop_type == "date":
        if not value or not value.get("start"):
            return None
        if value.get("end"):
            return {"start": value["start"], "end": value["end"]}
        return value["start"]
    if prop_type == "relation":
        return [normalize_id(item["id"]) for item in value or [] if "id" in item]
    if prop_type in ("formula", "rollup"):
        if not value or "type" not in value:
            return None
        return value.get(value["type"])
    if prop_type == "people":
        return [person["name"] for person in value or [] if person.get("name")]
    if prop_type == "files":
        files = []
        for item in value or []:
            url = (item.get("file") or {}).get("url") or (item.get("external") or {}).get("url", "")
            files.append({"name": item.get("name", ""), "url": url})
        return files
    if prop_type in ("created_time", "last_edited_time"):
        return value
    if prop_type in ("created_by", "last_edited_by"):
        return (value or {}).get("name")
    if prop_type == "unique_id":
        if not value:
            return None
        prefix = value.get("prefix")
        return f"{prefix}-{value.get('number')}" if prefix else value.get("number")

    return str(value if value is not None else prop)


def extract_row_title(properties: dict[str, Any]) -> str:
    """Row title from the usual title property names."""
    for name in TITLE_CANDIDATES:
        value = properties.get(name)
        if value:
            return str(value)[:MAX_TITLE_LENGTH]
    return "Untitled"


def extract_database_title(database: dict) -> str:
    """Database title, or "Untitled Database"."""
    return _plain_text(database.get("title")) or "Untitled Database"


class DatabaseFetcher:
    """Fetches Notion databases and their rows."""

    def __init__(self, client: NotionClient, max_batches: Optional[int] = None):
        """Initialize the database fetcher.

        Args:
            client: Notion API client
            max_batches: Pagination safety cap (uses config if not provided)
        """
        self.client = client
        self.max_batches = max_batches or get_config().max_block_batches

    def query_database(
        self,
        database_id: str,
        filter: Optional[dict] = None,
        sorts: Optional[list] = None,
    ) -> list[dict]:
        """Fetch every row of a database as normalized entries.

        Failures are logged and yield [].
        """
        normalized = normalize_id(database_id)
        entries: list[dict] = []
        cursor = None
        has_more = True
        batches = 0

        try:
            while has_more and batches < self.max_batches:
                response = self.client.query_database(normalized, cursor, filter, sorts)
                batches += 1
                entries.extend(response.get("results") or [])
                has_more = bool(response.get("has_more"))
                cursor = response.get("next_cursor")
                if has_more and not cursor:
                    logger.warning(
                        "Notion reported more rows for database %s without a cursor - some rows may be missing",
                        database_id,
                    )
                    break
        except NotionError as e:
            logger.error("Failed to query database %s: %s", database_id, e)
            return []

        if has_more and cursor and batches >= self.max_batches:
            logger.warning(
                "Reached maximum batch limit (%d) for database %s - some rows may be missing",
                self.max_batches,
                database_id,
            )

        return [self.normalize_entry(entry) for entry in entries]

    def normalize_entry(self, entry: dict) -> dict:
        """Flatten a raw row into id, properties and timestamps."""
        properties = {}
        for name, prop in (entry.get("properties") or {}).items():
            properties[name] = extract_property_value(prop or {})

        return {
            "id": normalize_id(entry.get("id")),
            "properties": properties,
            "created_time": entry.get("created_time"),
            "last_edited_time": entry.get("last_edited_time"),
        }

    def get_database_schema(self, database_id: str) -> Optional[dict]:
        """Database title and property definitions.

        Returns:
            ``{"id", "title", "last_edited_time", "properties": {name: type}}``
            or None if the database cannot be retrieved
        """
        try:
            database = self.client.retrieve_database(normalize_id(database_id))
        except NotionError as e:
            logger.error("Failed to fetch schema for database %s: %s", database_id, e)
            return None

        return {
            "id": normalize_id(database.get("id")) or normalize_id(database_id),
            "title": extract_database_title(database),
            "last_edited_time": database.get("last_edited_time"),
            "properties": {
                name: prop.get("type", "unknown")
                for name, prop in (database.get("properties") or {}).items()
            },
        }

    def list_databases(self) -> list[dict]:
        """Databases shared with the integration."""
        databases = []
        cursor = None
        has_more = True
        batches = 0

        try:
            while has_more and batches < self.max_batches:
                response = self.client.search(object_type="database", cursor=cursor)
                batches += 1
                for database in response.get("results") or []:
                    databases.append(
                        {
                            "id": normalize_id(database.get("id")),
                            "title": extract_database_title(database),
                            "last_edited_time": database.get("last_edited_time"),
                            "url": database.get("url"),
                        }
                    )
                has_more = bool(response.get("has_more"))
                cursor = response.get("next_cursor")
                if has_more and not cursor:
                    logger.warning("Notion reported more databases without a cursor - some may be missing")
                    break
        except NotionError as e:
            logger.error("Failed to list databases: %s", e)
            return []

        return databases
