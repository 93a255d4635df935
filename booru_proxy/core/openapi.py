"""OpenAPI metadata and customization utilities.

Enriches the generated schema with tag descriptions and documents the
``{"error": ...}`` body shared by every failure response.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Images",
        "description": "Normalized image search proxied to an upstream image board.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]

ERROR_SCHEMA = {
    "type": "object",
    "properties": {"error": {"type": "string"}},
    "required": ["error"],
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation.

    - Adds tags metadata if not present
    - Registers an ``ErrorResponse`` component and points every documented
      non-2xx response of the Images endpoints at it
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("schemas", {}).setdefault("ErrorResponse", ERROR_SCHEMA)

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for operation in methods.values():
                if not isinstance(operation, dict) or "Images" not in operation.get("tags", []):
                    continue
                for status, response in operation.get("responses", {}).items():
                    if status.startswith(("4", "5")) and status != "422":
                        response["content"] = {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/ErrorResponse"}
                            }
                        }

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
