"""HTTP entrypoint exposing the discovery pipeline (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from resource_finder.core import taxonomy
from resource_finder.core.config import ConfigError, get_settings
from resource_finder.core.errors import MalformedResponseError, NetworkError, ProviderError
from resource_finder.core.location import LocationResolver
from resource_finder.core.pagination import SearchSession
from resource_finder.core.store import JsonFileStore
from resource_finder.models import SORT_MODES, SORT_RELEVANCE, LocationErrorState
from resource_finder.vendors import directory_211
from resource_finder.vendors.geolocation import IpGeolocationProvider

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & shared state ----------
app = Flask(__name__)
_store: Optional[JsonFileStore] = None
_resolver: Optional[LocationResolver] = None
_session: Optional[SearchSession] = None

_ID_PREFIXES = ("sal:", "svc:", "id:")


def get_store() -> JsonFileStore:
    """One state file handle per process, shared by the resolver and the search session."""
    global _store
    if _store is None:
        _store = JsonFileStore(get_settings().state_path)
    return _store


def get_resolver() -> LocationResolver:
    global _resolver
    if _resolver is None:
        settings = get_settings()
        _resolver = LocationResolver(
            store=get_store(),
            geolocation=IpGeolocationProvider(
                settings.geolocation_url,
                enabled=settings.geolocation_enabled,
                timeout=settings.geolocation_timeout,
            ),
            settings=settings,
        )
        _resolver.load()
    return _resolver


def get_session() -> SearchSession:
    global _session
    if _session is None:
        settings = get_settings()
        _session = SearchSession(page_size=settings.page_size, store=get_store())
    return _session


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never calls the directory."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "page_size": settings.page_size,
                "directory_configured": bool(settings.directory_api_key),
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/categories")
def list_categories() -> Any:
    return jsonify({"data": [c.to_dict() for c in taxonomy.list_categories()]}), 200


@app.get("/categories/<category_id>/subcategories")
def list_subcategories(category_id: str) -> Any:
    if taxonomy.get_category(category_id) is None:
        return jsonify({"error": f"unknown category: {category_id}"}), 404
    return jsonify({"data": [s.to_dict() for s in taxonomy.get_subcategories(category_id)]}), 200


@app.get("/location")
def get_location() -> Any:
    return jsonify({"data": get_resolver().state.to_dict()}), 200


@app.post("/location/zip")
def set_location_zip() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    zip_code = payload.get("zipCode")
    if zip_code is None:
        return jsonify({"error": "zipCode is required"}), 400

    state = get_resolver().set_zip_code(str(zip_code))
    if isinstance(state, LocationErrorState):
        return jsonify({"error": state.message, "data": state.to_dict()}), 400
    return jsonify({"data": state.to_dict()}), 200


@app.post("/location/current")
def set_location_current() -> Any:
    state = get_resolver().request_current_location()
    if isinstance(state, LocationErrorState):
        return jsonify({"error": state.message, "data": state.to_dict()}), 400
    return jsonify({"data": state.to_dict()}), 200


@app.delete("/location")
def clear_location() -> Any:
    return jsonify({"data": get_resolver().clear().to_dict()}), 200


@app.get("/resources")
def search() -> Any:
    """
    Search resources around the active location.
    Required query args: term
    Optional: subcategory (bool), sort (relevance|distance|name), offset (int)
    """
    term = (request.args.get("term") or "").strip()
    if not term:
        return jsonify({"error": "missing fields: term"}), 400

    sort_by = request.args.get("sort", SORT_RELEVANCE)
    if sort_by not in SORT_MODES:
        return jsonify({"error": f"sort must be one of {', '.join(SORT_MODES)}"}), 400

    try:
        offset = int(request.args.get("offset", "0"))
        if offset < 0:
            return jsonify({"error": "offset must not be negative"}), 400
    except (TypeError, ValueError):
        return jsonify({"error": "offset must be numeric"}), 400

    is_subcategory = request.args.get("subcategory", "false").lower() in {"1", "true", "yes"}
    location = get_resolver().state
    session = get_session()

    if offset == 0:
        session.start(term, location, is_subcategory=is_subcategory, sort_by=sort_by)
    else:
        if not session.matches(term, location, is_subcategory):
            return jsonify({"error": "no active search for this term/location; start at offset 0"}), 409
        if offset != session.next_offset:
            return jsonify({"error": f"expected offset {session.next_offset}"}), 409
        if sort_by != session.sort_by:
            session.set_sort(sort_by)
        session.load_more()

    results = session.results()
    return (
        jsonify(
            {
                "data": {
                    "resources": [r.to_dict() for r in results],
                    "total": session.total,
                    "hasMore": session.has_more,
                    "nextOffset": session.next_offset,
                    "location": location.to_dict(),
                }
            }
        ),
        200,
    )


@app.get("/resources/<resource_id>")
def resource_detail(resource_id: str) -> Any:
    cached = get_session().recent_resource(resource_id)
    if cached is not None:
        return jsonify({"data": cached.to_dict()}), 200

    provider_id = resource_id
    for prefix in _ID_PREFIXES:
        if provider_id.startswith(prefix):
            provider_id = provider_id[len(prefix):]
            break
    if provider_id.startswith("name:"):
        return jsonify({"error": "resource not found"}), 404

    resource = directory_211.get_resource(provider_id)
    if resource is None:
        return jsonify({"error": "resource not found"}), 404
    return jsonify({"data": resource.to_dict()}), 200


# ---------- Error mapping ----------


@app.errorhandler(ProviderError)
def handle_provider_error(exc: ProviderError) -> Any:
    return jsonify({"error": exc.message, "status": exc.status}), 502


@app.errorhandler(NetworkError)
def handle_network_error(exc: NetworkError) -> Any:
    return jsonify({"error": "directory unreachable, please retry"}), 503


@app.errorhandler(MalformedResponseError)
def handle_malformed_response(exc: MalformedResponseError) -> Any:
    logger.error("Malformed directory response: %s", exc)
    return jsonify({"error": "search failed"}), 502


@app.errorhandler(ConfigError)
def handle_config_error(exc: ConfigError) -> Any:
    logger.error("Configuration error: %s", exc)
    return jsonify({"error": "service misconfigured"}), 500


def main() -> None:
    """Bind to PORT when the platform injects it, else WORKER_PORT."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)

    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
