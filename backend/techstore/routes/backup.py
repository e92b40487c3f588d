# Overview: Flask API routes for data backup operations; parses input and returns JSON responses.

"""
Backup Routes

SECURITY: admin only. The export contains every business table.
"""

import json

from flask import Blueprint, Response, request, jsonify, current_app

from ..decorators import require_auth, require_admin
from ..services import backup_service
from ..validation import ValidationError
from techstore.time_utils import today


backup_bp = Blueprint("backup", __name__, url_prefix="/api/backup")


@backup_bp.get("")
@require_auth
@require_admin
def download_backup_route():
    """
    Download a JSON backup as an attachment.

    Query params:
    - tables: comma separated subset (default: every backup table)
    """
    raw_tables = request.args.get("tables")
    tables = [t.strip() for t in raw_tables.split(",") if t.strip()] if raw_tables else None

    try:
        backup = backup_service.build_backup(tables=tables)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build backup")
        return jsonify({"error": "Internal server error"}), 500

    filename = backup_service.backup_filename(today())
    return Response(
        json.dumps(backup, indent=2),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@backup_bp.get("/tables")
@require_auth
@require_admin
def list_backup_tables_route():
    return jsonify({"tables": list(backup_service.BACKUP_TABLES)})
