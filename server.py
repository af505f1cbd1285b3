import asyncio
import os
from typing import Optional

from quart import Quart, Response, jsonify, request
from sglove.common.logging import get_logger
from sglove.gatt.constants import DEFAULT_LOG_FILENAME, DEFAULT_LOG_PERIOD_MS
from sglove.smart_glove import SmartGlove

L = get_logger(__name__)
app = Quart(__name__)

# Global variable to hold the glove session
glove: SmartGlove = None
connection_lock = asyncio.Lock()
GLOVE_ADDRESS: Optional[str] = os.environ.get("SGLOVE_ADDRESS")
# CSV text of the most recent export
last_export: Optional[str] = None


def _store_export(csv_text: str):
    global last_export
    last_export = csv_text
    L.info(f"Log exported ({len(csv_text)} characters)")


async def connect_to_glove():
    global glove, GLOVE_ADDRESS, connection_lock
    L.info("Attempting to connect to glove...")
    async with connection_lock:
        try:
            if GLOVE_ADDRESS:
                L.info(f"Reusing previously selected address: {GLOVE_ADDRESS}")
            else:
                gloves = await SmartGlove.discover()
                if not gloves:
                    L.error("No gloves found. Cannot connect.")
                    return

                GLOVE_ADDRESS = gloves[0].address
                L.info(f"Automatically selecting {gloves[0].name} ({GLOVE_ADDRESS})")

            if not glove or not glove.is_connected:
                glove = SmartGlove(GLOVE_ADDRESS, on_export=_store_export)
                await glove.connect()
        except Exception as e:
            L.error(f"Failed to connect to glove: {e}")


async def ensure_connected():
    if glove and glove.is_connected:
        return True
    L.error("Glove is not connected.")
    # Attempt to reconnect
    await connect_to_glove()
    if glove and glove.is_connected:
        return True
    return False


def _log_status():
    return {
        "state": glove.log.state.value if glove else "idle",
        "rows": len(glove.log.rows) if glove else 0,
    }


@app.route("/api/values", methods=["GET"])
async def get_values():
    if not await ensure_connected():
        return jsonify({"error": "Glove not connected."}), 503

    try:
        values = [entry._asdict() for entry in glove.snapshot()]
        return jsonify({"values": values, "controls": glove.writable_characteristics})
    except Exception as e:
        L.error(f"Error fetching values: {e}")
        return jsonify({"error": f"Error fetching values: {e}"}), 500


@app.route("/api/log/status", methods=["GET"])
async def get_log_status():
    return jsonify({"status": "success", **_log_status()})


@app.route("/api/log/start", methods=["POST"])
async def start_log():
    if not await ensure_connected():
        return jsonify({"error": "Glove not connected."}), 503

    body = await request.get_json(silent=True) or {}
    try:
        period_ms = float(body.get("period_ms", DEFAULT_LOG_PERIOD_MS))
        started = glove.log.start(period_ms)
    except (TypeError, ValueError) as e:
        return jsonify({"status": "error", "message": f"Invalid log period: {e}"}), 400

    if not started:
        return jsonify({"status": "error", "message": "Logging already in progress."}), 409
    return jsonify({"status": "success", "message": f"Logging every {period_ms:g} ms."})


@app.route("/api/log/stop", methods=["POST"])
async def stop_log():
    if not glove or not glove.log.is_logging:
        return jsonify({"status": "info", "message": "Logging is not in progress."})

    csv_text = glove.log.stop()
    if csv_text is None:
        return jsonify({"status": "success", "message": "Logging stopped, no rows captured."})

    return Response(
        csv_text,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={DEFAULT_LOG_FILENAME}"},
    )


@app.route("/api/log/last", methods=["GET"])
async def get_last_log():
    if last_export is None:
        return jsonify({"error": "No log exported yet."}), 404
    return Response(
        last_export,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={DEFAULT_LOG_FILENAME}"},
    )


@app.route("/api/toggle/<char_id>", methods=["POST"])
async def toggle_control(char_id):
    if not await ensure_connected():
        return jsonify({"error": "Glove not connected."}), 503
    try:
        state = await glove.toggle(char_id)
        return jsonify({"status": "success", "state": state})
    except KeyError:
        return jsonify({"status": "error", "message": f"Unknown control {char_id}."}), 404
    except Exception as e:
        L.error(f"Error toggling {char_id}: {e}")
        return (
            jsonify({"status": "error", "message": f"Failed to toggle {char_id}: {e}"}),
            500,
        )


@app.route("/api/disconnect", methods=["POST"])
async def disconnect_glove():
    if not glove or not glove.is_connected:
        return jsonify(
            {
                "status": "info",
                "message": "Glove already disconnected or not connected.",
            }
        )
    try:
        await glove.disconnect()
        return jsonify({"status": "success", "message": "Glove disconnected."})
    except Exception as e:
        L.error(f"Error disconnecting glove: {e}")
        return (
            jsonify({"status": "error", "message": f"Failed to disconnect glove: {e}"}),
            500,
        )


# To run this application, you will need an ASGI server like Hypercorn.
# Example: hypercorn server:app
if __name__ == "__main__":
    L.info("Starting Quart server...")
    app.run(host="127.0.0.1", port=8053, debug=True)
