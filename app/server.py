"""Main Flask application server."""

import logging
from typing import Any, Dict, Optional

from flask import Flask, send_from_directory
from flask_cors import CORS

from app.config import get_config, load_config
from app.routes.template_routes import init_template_routes, templates_bp
from tools.llm_client import LLMClientWrapper

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(overrides: Optional[Dict[str, Any]] = None, llm_client: Optional[LLMClientWrapper] = None) -> Flask:
    """Create and configure Flask application."""
    # Load configuration
    config = load_config()
    config.update(overrides or {})

    # Create Flask app
    app = Flask(__name__, static_folder=config['PUBLIC_DIR'], static_url_path='')
    app.config['DEBUG'] = config.get('DEBUG', False)

    # Setup CORS
    CORS(app)

    @app.after_request
    def disable_caching(response):
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, private'
        response.headers['Pragma'] = 'no-cache'
        response.headers['Expires'] = '0'
        return response

    init_template_routes(config, llm_client=llm_client)
    app.register_blueprint(templates_bp)

    # Root route
    @app.route('/')
    def index():
        return send_from_directory(config['PUBLIC_DIR'], 'index.html')

    logger.info(f"Serving files from: {config['PUBLIC_DIR']}")
    return app


if __name__ == '__main__':
    config = get_config()
    app = create_app()
    logger.info(f"Server running at http://localhost:{config['PORT']}")
    app.run(host=config['HOST'], port=config['PORT'], debug=config['DEBUG'])
