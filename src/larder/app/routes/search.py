import logging

from quart import Blueprint, jsonify, request

from larder.app.services.container import get_search_api
from larder.app.services.search_pipeline import InvalidSearchParams, SearchParams
from larder.app.routes.helpers import parse_positive_int, require_user_id


logger = logging.getLogger(__name__)

search_bp = Blueprint("search", __name__)


@search_bp.get("/api/recipes/search")
async def search_recipes():
    user_id = require_user_id()
    search_api = get_search_api()
    limits = search_api.config.limits
    try:
        params = SearchParams.from_mapping(
            request.args,
            default_limit=limits.default_limit,
            max_limit=limits.max_limit,
            max_query_length=limits.max_search_query_length,
        )
    except InvalidSearchParams as exc:
        logger.info("Rejecting search parameters for user %s: %s", user_id, exc)
        return jsonify({"error": str(exc)}), 400

    result = await search_api.search(user_id, params)
    return jsonify(result.as_dict())


@search_bp.get("/api/recipes/suggestions")
async def search_suggestions():
    user_id = require_user_id()
    search_api = get_search_api()
    limits = search_api.config.limits
    limit = parse_positive_int(
        request.args.get("limit"),
        default=limits.suggestion_limit,
        maximum=limits.max_limit,
    )
    partial = request.args.get("q") or ""
    suggestions = await search_api.suggestions(user_id, partial, limit)
    return jsonify({"suggestions": suggestions})


@search_bp.get("/api/recipes/search/history")
async def recent_searches():
    user_id = require_user_id()
    search_api = get_search_api()
    limits = search_api.config.limits
    limit = parse_positive_int(
        request.args.get("limit"),
        default=limits.recent_suggestion_limit,
        maximum=limits.recent_limit,
    )
    searches = await search_api.recent_searches(user_id, limit)
    return jsonify({"searches": searches})


@search_bp.delete("/api/recipes/search/history")
async def clear_search_history():
    user_id = require_user_id()
    removed = await get_search_api().clear_history(user_id)
    return jsonify({"removed": removed})


@search_bp.post("/api/admin/search/cache/clear")
async def clear_search_cache():
    user_id = require_user_id()
    cleared = get_search_api().clear_cache()
    logger.info("Search cache cleared by %s (%d entries)", user_id, cleared)
    return jsonify({"cleared": cleared})


@search_bp.get("/api/admin/search/cache/stats")
async def search_cache_stats():
    require_user_id()
    return jsonify(get_search_api().cache_stats())


@search_bp.post("/api/admin/search/index/rebuild")
async def rebuild_search_index():
    user_id = require_user_id()
    indexed = await get_search_api().rebuild_index()
    logger.info("Search index rebuilt by %s (%d recipes)", user_id, indexed)
    return jsonify({"indexed": indexed})
