import csv
import io
import json
import queue
from datetime import timedelta

from flask import Blueprint, Response, current_app, g, jsonify, request

from security.errors import NotFoundError, ValidationError
from security.rbac import require_admin
from security.recorder import security_event_recorded
from utils.security_context import get_gate, get_store

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

CSV_HEADERS = ["Date", "Event Type", "IP Address", "Email", "User Agent", "Details"]


def _limit_arg() -> int:
    default = current_app.config.get("SECURITY_LOG_DEFAULT_LIMIT", 100)
    max_limit = current_app.config.get("SECURITY_LOG_MAX_LIMIT", 500)
    limit = request.args.get("limit", type=int) or default
    return max(1, min(limit, max_limit))


def _log_filters() -> dict:
    return {
        "event_type": (request.args.get("event_type") or "").strip() or None,
        "search": (request.args.get("q") or "").strip() or None,
    }


# ---------- security log (read-only) ----------

@admin_bp.get("/security-logs")
@require_admin
def list_security_logs():
    rows = get_store().list_events(limit=_limit_arg(), **_log_filters())
    return jsonify([r.to_dict() for r in rows]), 200


@admin_bp.get("/security-logs/export")
@require_admin
def export_security_logs():
    store = get_store()
    rows = store.list_events(limit=_limit_arg(), **_log_filters())
    if not rows:
        return jsonify(error="No logs to export"), 404

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADERS)
    for r in rows:
        writer.writerow([
            r.created_at.isoformat(),
            r.event_type,
            r.ip_address or "",
            r.email or "",
            r.user_agent or "",
            json.dumps(r.details or {}),
        ])

    filename = f"security-logs-{store.now().date().isoformat()}.csv"
    return Response(
        buf.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@admin_bp.get("/security-logs/stream")
@require_admin
def stream_security_logs():
    """Server-sent events for every security event committed from now on."""
    keepalive = current_app.config.get("SECURITY_STREAM_KEEPALIVE_SECONDS", 15)
    pending = queue.Queue(maxsize=current_app.config.get("SECURITY_STREAM_QUEUE_SIZE", 200))
    logger = current_app.logger

    def _on_event(sender, event=None, **kwargs):
        try:
            pending.put_nowait(event)
        except queue.Full:
            logger.warning("Security log stream is behind; dropped event %s", event.get("id"))

    def generate():
        security_event_recorded.connect(_on_event, weak=False)
        try:
            yield ": connected\n\n"
            while True:
                try:
                    event = pending.get(timeout=keepalive)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: security_event\ndata: {json.dumps(event)}\n\n"
        finally:
            security_event_recorded.disconnect(_on_event)

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@admin_bp.get("/security-stats")
@require_admin
def security_stats():
    store = get_store()
    now = store.now()
    window_hours = current_app.config.get("SECURITY_STATS_WINDOW_HOURS", 24)

    counts = store.count_events_by_type(now - timedelta(hours=window_hours))
    blocks = store.list_blocks()
    return jsonify(
        window_hours=window_hours,
        event_counts=counts,
        total_events=sum(counts.values()),
        active_blocks=sum(1 for b in blocks if b.is_blocking(now)),
        total_blocks=len(blocks),
    ), 200


# ---------- blocked IPs ----------

@admin_bp.get("/blocked-ips")
@require_admin
def list_blocked_ips():
    store = get_store()
    now = store.now()
    rows = [b.to_dict(now) for b in store.list_blocks()]
    return jsonify(
        blocks=rows,
        active_count=sum(1 for r in rows if r["is_blocking"]),
    ), 200


def _duration_arg(value):
    if isinstance(value, str):
        value = value.strip().lower()
        if value in ("", "permanent"):
            return None
        try:
            return float(value)
        except ValueError:
            raise ValidationError("duration_hours must be a number") from None
    return value


@admin_bp.post("/blocked-ips")
@require_admin
def block_ip():
    data = request.get_json(silent=True) or {}
    try:
        block = get_gate().block_address(
            data.get("ip_address"),
            data.get("reason"),
            duration_hours=_duration_arg(data.get("duration_hours")),
            blocked_by=g.operator_id,
        )
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400

    current_app.logger.info("Operator %s blocked %s", g.operator_id, block.ip_address)
    return jsonify(block.to_dict(get_store().now())), 201


@admin_bp.post("/blocked-ips/<int:block_id>/unblock")
@require_admin
def unblock_ip(block_id: int):
    try:
        block = get_gate().unblock(block_id)
    except NotFoundError:
        return jsonify(error="Not found"), 404

    current_app.logger.info("Operator %s unblocked %s", g.operator_id, block.ip_address)
    return jsonify(message="Unblocked", block=block.to_dict(get_store().now())), 200


@admin_bp.delete("/blocked-ips/<int:block_id>")
@require_admin
def delete_blocked_ip(block_id: int):
    try:
        get_gate().delete_block(block_id)
    except NotFoundError:
        return jsonify(error="Not found"), 404

    current_app.logger.info("Operator %s deleted block %s", g.operator_id, block_id)
    return jsonify(message="Deleted"), 200
