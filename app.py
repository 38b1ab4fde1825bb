import logging
import sys

from flask import Flask, jsonify

import config
from street_store import MissingCredentialsError, StreetStoreError, fetch_street_record, get_store
from transform import build_api_response, json_safe

logger = logging.getLogger(__name__)

app = Flask(__name__, static_folder='public', static_url_path='')
app.json.sort_keys = False  # keep the record's own field order


@app.route('/')
def index():
    return app.send_static_file('index.html')


@app.route('/api/street', methods=['GET'], strict_slashes=False)
def get_street():
    try:
        street = fetch_street_record()
    except StreetStoreError as e:
        logger.error(f"Error fetching street data: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to fetch street data'}), 500

    return jsonify(json_safe(build_api_response(street)))


# Only used when running directly with python app.py (development)
if __name__ == '__main__':
    logging.basicConfig(level=config.LOG_LEVEL)
    try:
        get_store()
    except MissingCredentialsError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"Server listening on http://localhost:{config.PORT}")
    app.run(port=config.PORT, debug=False)
