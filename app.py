from flask import Flask, request, jsonify

from config import Config
from moisture_service import MoistureService


def create_app(service: MoistureService, config=Config):
    """
    Build the HTTP front end for a started MoistureService.
    The caller owns the service and shuts it down.
    Commands are fire-and-forget; poll /ble/reading and /ble/logs for outcomes.
    """
    app = Flask(__name__)
    app.config.from_object(config)

    app.extensions["moisture_service"] = service

    @app.route('/')
    def home():
        return jsonify({
            "status": "SmartPlant BLE API is running",
            "service_uuid": service.config.SERVICE_UUID,
            "characteristic_uuid": service.config.CHAR_UUID,
            "endpoints": [
                "/ble/scan", "/ble/scan/any", "/ble/scan/browse", "/ble/scan/stop",
                "/ble/devices", "/ble/connect",
                "/ble/disconnect", "/ble/reading", "/ble/logs",
            ],
        })

    # ========================================================================
    # Scanning
    # ========================================================================

    @app.route('/ble/scan', methods=['POST'])
    def ble_scan():
        """Scan for the moisture service and connect to the first match"""
        service.scanner.start_scan()
        return jsonify({"status": "requested", "action": "scan"}), 202

    @app.route('/ble/scan/any', methods=['POST'])
    def ble_scan_any():
        """Scan without a service filter and connect to the first device seen"""
        service.scanner.start_scan_unfiltered()
        return jsonify({"status": "requested", "action": "scan_any"}), 202

    @app.route('/ble/scan/browse', methods=['POST'])
    def ble_scan_browse():
        """Collect nearby devices without connecting; list them with /ble/devices"""
        service.scanner.start_browse()
        return jsonify({"status": "requested", "action": "browse"}), 202

    @app.route('/ble/devices', methods=['GET'])
    def ble_devices():
        devices = service.scanner.discovered_devices()
        return jsonify({
            "browsing": service.scanner.browse_active,
            "count": len(devices),
            "devices": [
                {"index": i, "address": d.address, "name": d.name}
                for i, d in enumerate(devices)
            ],
        })

    @app.route('/ble/scan/stop', methods=['POST'])
    def ble_scan_stop():
        service.scanner.stop_scan()
        return jsonify({"status": "requested", "action": "stop_scan"}), 202

    # ========================================================================
    # Connection
    # ========================================================================

    @app.route('/ble/connect', methods=['POST'])
    def ble_connect():
        """
        Connect to a listed device by {"index": n} or {"address": ...}.
        An address that was not listed is looked up by the transport.
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "index or address required"}), 400

        index = data.get('index')
        address = data.get('address')
        if index is not None:
            if isinstance(index, bool) or not isinstance(index, int):
                return jsonify({"error": "index must be an integer"}), 400
            device = service.scanner.find_discovered(index=index)
            if device is None:
                return jsonify({"error": f"no listed device at index {index}"}), 404
        elif address and isinstance(address, str):
            device = service.scanner.find_discovered(address=address)
            if device is None:
                service.manager.connect_by_address(address)
                return jsonify({"status": "requested", "action": "connect", "address": address}), 202
        else:
            return jsonify({"error": "index or address required"}), 400

        service.scanner.connect_discovered(device)
        return jsonify({"status": "requested", "action": "connect", "address": device.address}), 202

    @app.route('/ble/disconnect', methods=['POST'])
    def ble_disconnect():
        service.manager.disconnect()
        return jsonify({"status": "requested", "action": "disconnect"}), 202

    # ========================================================================
    # Observation
    # ========================================================================

    @app.route('/ble/reading', methods=['GET'])
    def ble_reading():
        """Latest reading plus connection state"""
        return jsonify(service.status())

    @app.route('/ble/logs', methods=['GET'])
    def ble_logs():
        limit = request.args.get('limit', type=int)
        if limit is not None and limit < 0:
            return jsonify({"error": "limit must not be negative"}), 400
        entries = service.log.entries(limit)
        return jsonify({
            "count": len(entries),
            "capacity": service.log.capacity,
            "logs": [{"timestamp": e.timestamp, "message": e.message} for e in entries],
        })

    @app.route('/ble/logs', methods=['DELETE'])
    def ble_clear_logs():
        service.log.clear()
        return jsonify({"status": "cleared"})

    return app


if __name__ == '__main__':
    service = MoistureService(Config).start()
    try:
        # Run on all interfaces so it's reachable from other machines on the network
        create_app(service).run(host=Config.HOST, port=Config.PORT)
    finally:
        service.shutdown()
