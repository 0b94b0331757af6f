"""Flask application for scan history, Google sign-in and menu analysis."""

import json
import logging

from flask import Flask
from flask import jsonify
from flask import request

from src.config import APP_URL
from src.config import DATABASE_PATH
from src.config import DEFAULT_OPENAI_MODEL
from src.config import DEFAULT_TARGET_LANGUAGE
from src.config import FLASK_PORT
from src.config import MAX_UPLOAD_SIZE_MB
from src.history_db import HistoryDB
from src.image_validation import ImageValidationError
from src.image_validation import encode_uploaded_image
from src.services.google_oauth import OAuthError
from src.services.google_oauth import build_auth_url
from src.services.google_oauth import exchange_code
from src.services.google_oauth import fetch_user_info
from src.services.history_client import AUTH_NOT_CONFIGURED
from src.services.menu_analyzer import AnalysisError
from src.services.menu_analyzer import analyze_menu
from src.submission import ANALYSIS_FAILED_MESSAGE
from src.values import GOOGLE_CLIENT_ID
from src.values import GOOGLE_CLIENT_SECRET

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = Flask(__name__)
# Pending scans and history rows carry base64 images
app.config["MAX_CONTENT_LENGTH"] = 5 * MAX_UPLOAD_SIZE_MB * 1024 * 1024

history_db: HistoryDB | None = None

_AUTH_SUCCESS_PAGE = """<html>
  <body>
    <script>
      window.opener.postMessage({{ type: 'OAUTH_AUTH_SUCCESS', user: {user} }}, '*');
      window.close();
    </script>
    <p>Authentication successful. You can close this window.</p>
  </body>
</html>"""


def get_history_db() -> HistoryDB:
    global history_db
    if history_db is None:
        history_db = HistoryDB(DATABASE_PATH)
    return history_db


def _redirect_uri() -> str:
    return f"{APP_URL}/auth/callback"


@app.route("/status")
def status():
    """Health check endpoint."""
    return jsonify({"status": "ok"})


@app.route("/api/auth/url")
def auth_url():
    """Return the Google consent URL the client should open."""
    if not GOOGLE_CLIENT_ID:
        return jsonify({"error": AUTH_NOT_CONFIGURED}), 500
    return jsonify({"url": build_auth_url(GOOGLE_CLIENT_ID, _redirect_uri())})


@app.route("/auth/callback")
def auth_callback():
    """Exchange the OAuth code, store the user and notify the opener window."""
    code = request.args.get("code")
    if not code:
        return "No code provided", 400

    try:
        tokens = exchange_code(code, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, _redirect_uri())
        user = fetch_user_info(tokens["access_token"])
        get_history_db().upsert_user(user["id"], user.get("email"), user.get("name"), user.get("picture"))
    except (OAuthError, KeyError) as e:
        logger.error(f"Auth error: {e}")
        return f"Authentication failed: {e}", 500

    user_json = json.dumps(user).replace("</", "<\\/")
    return _AUTH_SUCCESS_PAGE.format(user=user_json)


@app.route("/api/history", methods=["GET"])
def list_history():
    """Return a user's scan history, newest first."""
    user_id = request.args.get("userId")
    if not user_id:
        return jsonify({"error": "User ID required"}), 400
    return jsonify(get_history_db().get_history(user_id))


@app.route("/api/history", methods=["POST"])
def add_history():
    """Store a scan summary for a user."""
    body = request.get_json(silent=True) or {}
    user_id = body.get("userId")
    original_text = body.get("originalText")
    if not user_id or not original_text:
        return jsonify({"error": "Missing required fields"}), 400

    record_id = get_history_db().add_history(
        user_id, original_text, body.get("translatedText"), body.get("imageData")
    )
    return jsonify({"id": record_id})


@app.route("/api/analyze", methods=["POST"])
def analyze():
    """Analyze an uploaded menu image.

    Returns:
        JSON response with the menu items or an error message.
    """
    if "image" not in request.files:
        return jsonify({"status": "error", "message": "No image file provided"}), 400

    file = request.files["image"]
    language = request.form.get("language", DEFAULT_TARGET_LANGUAGE)
    model = request.form.get("model", DEFAULT_OPENAI_MODEL)

    try:
        image_data = encode_uploaded_image(file.read(), file.filename)
    except ImageValidationError as e:
        return jsonify({"status": "error", "message": str(e)}), 400

    try:
        items = analyze_menu(image_data, language, model)
    except AnalysisError as e:
        logger.error(f"Analysis error: {e}")
        return jsonify({"status": "error", "message": ANALYSIS_FAILED_MESSAGE}), 500

    return jsonify(
        {
            "status": "success",
            "data": {
                "language": language,
                "items": [item.model_dump(by_alias=True) for item in items],
            },
        }
    )


def main():
    """Run the Flask application."""
    app.run(host="0.0.0.0", port=FLASK_PORT, debug=False)


if __name__ == "__main__":
    main()
