from quart import Quart, jsonify
import logging

from larder.settings import settings


def create_app(db_path: str | None = None):
    from .services.container import AppLifecycle, AppServices

    services = AppServices.create(db_path)
    lifecycle = AppLifecycle(services)

    app = Quart(__name__)
    app.secret_key = settings.get("SECRET_KEY")

    app.extensions["larder"] = services
    app.extensions["larder_lifecycle"] = lifecycle

    logging.basicConfig(
        level=str(settings.get("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    from .routes.search import search_bp

    app.register_blueprint(search_bp)

    @app.before_serving
    async def _start_lifecycle() -> None:
        await lifecycle.start()

    @app.after_serving
    async def _stop_lifecycle() -> None:
        await lifecycle.stop()

    def _error_response(e, status: int):
        message = getattr(e, "description", None) or "Request failed."
        return jsonify({"error": message}), status

    @app.errorhandler(400)
    async def bad_request(e):
        return _error_response(e, 400)

    @app.errorhandler(401)
    async def unauthorized(e):
        return _error_response(e, 401)

    @app.errorhandler(404)
    async def not_found(e):
        return _error_response(e, 404)

    @app.errorhandler(405)
    async def method_not_allowed(e):
        return _error_response(e, 405)

    @app.errorhandler(Exception)
    async def handle_exception(e):
        app.logger.exception("Unhandled exception: %s", e)
        message = "An unexpected error occurred. Please try again later."
        return jsonify({"error": message}), 500

    app.logger.info("Application initialized")
    return app
