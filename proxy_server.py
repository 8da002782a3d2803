from flask import Flask, request, jsonify
from flask_cors import CORS
import requests
import argparse
import logging
from dataclasses import replace

from relay_config import RelayConfig
from relay_translator import RelayTranslator

logger = logging.getLogger('proxy')


def create_app(config=None, transport=requests.request):
    """Build the relay app. `transport` is a requests.request-compatible callable."""
    config = config or RelayConfig.from_env()
    translator = RelayTranslator(
        config.base_url,
        transport=transport,
        user_agent=config.user_agent,
        timeout=config.upstream_timeout,
    )

    app = Flask(__name__)
    CORS(app, resources={r"/*": {"origins": list(config.cors_origins)}})

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok', 'proxy_to': config.base_url})

    @app.route('/api/proxy', methods=['POST'])
    def proxy_post():
        # silent: a body that is not JSON is rejected by the translator as a 400
        envelope, status = translator.relay_body(request.get_json(silent=True))
        return jsonify(envelope), status

    @app.route('/api/proxy', methods=['GET'])
    def proxy_get():
        envelope, status = translator.relay_query(request.args)
        return jsonify(envelope), status

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description='Same-origin JSON relay to a fixed upstream API')
    parser.add_argument('--host', help='listen host (overrides RELAY_HOST)')
    parser.add_argument('--port', type=int, help='listen port (overrides RELAY_PORT)')
    parser.add_argument('--base-url', help='upstream base URL (overrides RELAY_BASE_URL)')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    overrides = {}
    if args.base_url:
        overrides['base_url'] = args.base_url
    if args.host:
        overrides['listen_host'] = args.host
    if args.port:
        overrides['listen_port'] = args.port
    config = replace(RelayConfig.from_env(), **overrides)

    app = create_app(config)
    logger.info('Starting relay on %s:%d -> %s', config.listen_host, config.listen_port, config.base_url)
    app.run(host=config.listen_host, port=config.listen_port, threaded=True)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
