import io
import logging
from datetime import datetime

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS

from .config import Settings
from .errors import (
    EntryNotFound,
    IdentityUnknown,
    InvalidShare,
    NamespaceNotFound,
    PersistenceUnavailable,
    StorageError,
    UnsafeName,
)
from .storage import StorageManager

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NamespaceNotFound: 404,
    EntryNotFound: 404,
    IdentityUnknown: 404,
    UnsafeName: 400,
    InvalidShare: 400,
    PersistenceUnavailable: 503,
}


def error_status(error: StorageError) -> int:
    for kind, status in ERROR_STATUS.items():
        if isinstance(error, kind):
            return status
    return 500


class WebServer:
    """Flask web server exposing token namespaces and share links over HTTP."""

    def __init__(self, storage: StorageManager, settings: Settings):
        self.storage = storage
        self.settings = settings
        self.app = Flask(__name__)
        self.app.config['MAX_CONTENT_LENGTH'] = settings.max_upload_mb * 1024 * 1024
        CORS(self.app)

        # Setup routes
        self._setup_routes()

    def _setup_routes(self):
        """Setup Flask routes for the storage API."""

        @self.app.errorhandler(StorageError)
        def storage_error(e):
            status = error_status(e)
            if status >= 500:
                logger.error(f"Storage failure on {request.path}: {e}")
            else:
                logger.info(f"Rejected {request.method} {request.path}: {e}")
            return jsonify({'status': 'error', 'message': str(e)}), status

        @self.app.route('/')
        def home():
            """Landing page describing the API."""
            return f'''
            <!DOCTYPE html>
            <html>
            <head>
                <title>Cloud Storage Bot</title>
                <meta charset="UTF-8">
                <meta name="viewport" content="width=device-width, initial-scale=1.0">
                <style>
                    body {{
                        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                        background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
                        margin: 0;
                        padding: 20px;
                        min-height: 100vh;
                        color: white;
                    }}
                    .container {{ max-width: 800px; margin: 0 auto; padding: 40px 20px; }}
                    code {{ background: rgba(255,255,255,0.2); padding: 2px 6px; border-radius: 4px; }}
                    li {{ margin: 10px 0; }}
                </style>
            </head>
            <body>
                <div class="container">
                    <h1>Cloud Storage Bot</h1>
                    <p>Get a token from the Telegram bot, then use it here:</p>
                    <ul>
                        <li><code>GET /namespaces/&lt;token&gt;</code> list your files</li>
                        <li><code>POST /namespaces/&lt;token&gt;</code> upload a file (form field <code>file</code>)</li>
                        <li><code>GET /namespaces/&lt;token&gt;/&lt;name&gt;</code> download a file</li>
                        <li><code>POST /shares</code> share one or more files</li>
                        <li><code>GET /shares/&lt;token&gt;</code> list a share</li>
                        <li><code>GET /shares/&lt;token&gt;/&lt;name&gt;</code> download a shared file</li>
                    </ul>
                    <p>Public address: {self.settings.public_url}</p>
                </div>
            </body>
            </html>
            '''

        @self.app.route('/namespaces/<token>', methods=['GET'])
        def list_namespace(token):
            files = self.storage.list_entries(token)
            return jsonify({'token': token, 'files': files})

        @self.app.route('/namespaces/<token>', methods=['POST'])
        def upload_to_namespace(token):
            if 'file' not in request.files:
                return jsonify({'status': 'error', 'message': 'No file provided'}), 400

            file = request.files['file']
            if file.filename == '':
                return jsonify({'status': 'error', 'message': 'No file selected'}), 400

            data = file.read()
            self.storage.put_entry(token, file.filename, data)
            logger.info(f"Stored {file.filename!r} ({len(data)} bytes) in namespace {token}")
            return jsonify({'token': token, 'name': file.filename}), 201

        @self.app.route('/namespaces/<token>/<path:name>', methods=['GET'])
        def download_from_namespace(token, name):
            data = self.storage.get_entry(token, name)
            return send_file(io.BytesIO(data), as_attachment=True, download_name=name)

        @self.app.route('/shares', methods=['POST'])
        def create_share():
            uploads = request.files.getlist('file') + request.files.getlist('files')
            if not uploads:
                return jsonify({'status': 'error', 'message': 'No file provided'}), 400
            if any(upload.filename == '' for upload in uploads):
                return jsonify({'status': 'error', 'message': 'No file selected'}), 400

            expired = self.storage.purge_expired_shares()
            if expired:
                logger.info(f"Removed {expired} expired shares")

            entries = [(upload.filename, upload.read()) for upload in uploads]
            token = self.storage.create_share(entries)
            names = [name for name, _ in entries]
            logger.info(f"Created share {token} with {len(names)} files")
            return jsonify({
                'token': token,
                'files': names,
                'url': self.settings.share_url(token)
            }), 201

        @self.app.route('/shares/<token>', methods=['GET'])
        def list_share(token):
            files = self.storage.list_share(token)
            return jsonify({'token': token, 'files': files})

        @self.app.route('/shares/<token>/<path:name>', methods=['GET'])
        def download_from_share(token, name):
            data = self.storage.get_share_entry(token, name)
            return send_file(io.BytesIO(data), as_attachment=True, download_name=name)

        @self.app.route('/health')
        def health():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'server_time': datetime.now().isoformat()
            })

    def run(self):
        """Run the Flask web server."""
        logger.info(f"Starting web server on {self.settings.web_host}:{self.settings.web_port}...")
        self.app.run(host=self.settings.web_host, port=self.settings.web_port, debug=False, threaded=True)
