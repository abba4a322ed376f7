import logging

from flask import Blueprint, Response, current_app, jsonify, request

from catalog.errors import PayloadTooLarge, ValidationError

logger = logging.getLogger(__name__)

bp = Blueprint("files", __name__)

# Room for the multipart boundaries and part headers around the file bytes
MULTIPART_ALLOWANCE = 16 * 1024


@bp.route("/files", methods=["POST"])
@bp.route("/upload", methods=["POST"])
def upload_file():
    """
    Store the multipart field ``file`` and return its generated name.

    The declared body length only rules out requests that cannot fit; the
    file byte limit itself is enforced while the upload streams.
    """
    max_bytes = current_app.files.max_bytes
    declared = request.content_length
    if max_bytes is not None and declared and declared > max_bytes + MULTIPART_ALLOWANCE:
        raise PayloadTooLarge(f"File exceeds the {max_bytes} byte limit")

    file = request.files.get("file")
    if file is None or not file.filename:
        raise ValidationError("No file")

    result = current_app.files.ingest(file.stream, file.filename, file.mimetype)
    return jsonify(result)


@bp.route("/files/<path:filename>", methods=["GET"])
def download_file(filename: str):
    """Stream a stored file."""
    download, content_type = current_app.files.retrieve(filename)

    def generate():
        try:
            yield from download
        except Exception:
            # Headers are already sent; all that is left is to log
            logger.exception("Download of %s failed mid-stream", filename)
            raise

    response = Response(generate(), content_type=content_type)
    response.content_length = download.blob.length
    return response
