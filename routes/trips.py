import logging

from flask import Blueprint, jsonify, request

from models import Trip, db
from services import trip_service

logger = logging.getLogger(__name__)

trips_bp = Blueprint("trips", __name__, url_prefix="/api/trips")


def _load_trip(trip_id):
    trip_id = (trip_id or "").strip()
    if not trip_id:
        return None
    return db.session.get(Trip, trip_id)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


@trips_bp.route("", methods=["GET"])
def list_trips():
    owner_id = request.args.get("ownerId")
    return jsonify({"trips": trip_service.list_trips(owner_id)})


@trips_bp.route("", methods=["POST"])
def create_trip():
    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON body."}), 400

    try:
        trip = trip_service.create_trip(
            title=str(data.get("title") or ""),
            slug=str(data["slug"]) if data.get("slug") else None,
            trip_dates=str(data.get("tripDates") or ""),
            base_location=str(data.get("baseLocation") or ""),
            owner_id=data.get("ownerId"),
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        logger.exception("POST /api/trips failed")
        return jsonify({"error": "Server error"}), 500

    return jsonify({"success": True, "trip": trip.to_dict()}), 201


@trips_bp.route("/<slug>", methods=["GET"])
def trip_plan(slug):
    """旅のしおり (スポット・写真・ミッション込み)"""
    plan = trip_service.get_trip_plan(slug)
    if plan is None:
        return jsonify({"error": "Trip not found."}), 404
    return jsonify({"trip": plan})


@trips_bp.route("/<trip_id>/spots", methods=["GET"])
def list_spots(trip_id):
    trip = _load_trip(trip_id)
    if trip is None:
        return jsonify({"error": "Trip not found."}), 404
    return jsonify({"spots": trip_service.list_spots(trip)})


@trips_bp.route("/<trip_id>/spots", methods=["POST"])
def create_spot(trip_id):
    trip = _load_trip(trip_id)
    if trip is None:
        return jsonify({"error": "Trip not found."}), 404

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON body."}), 400

    try:
        spot = trip_service.create_spot(trip, data)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        logger.exception("POST /api/trips/%s/spots failed", trip_id)
        return jsonify({"error": "Server error"}), 500

    return jsonify({"spot": trip_service.spot_to_dict(spot)}), 201


@trips_bp.route("/<trip_id>/spots/<spot_id>", methods=["PATCH"])
def update_spot(trip_id, spot_id):
    trip = _load_trip(trip_id)
    if trip is None:
        return jsonify({"error": "Trip not found."}), 404
    spot = trip_service.get_spot(trip, spot_id)
    if spot is None:
        return jsonify({"error": "Spot not found."}), 404

    data = _json_body()
    if data is None:
        return jsonify({"error": "Invalid JSON body."}), 400

    try:
        spot = trip_service.update_spot(spot, data)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        logger.exception("PATCH /api/trips/%s/spots/%s failed", trip_id, spot_id)
        return jsonify({"error": "Server error"}), 500

    return jsonify({"spot": trip_service.spot_to_dict(spot)})


@trips_bp.route("/<trip_id>/spots/<spot_id>", methods=["DELETE"])
def delete_spot(trip_id, spot_id):
    trip = _load_trip(trip_id)
    if trip is None:
        return jsonify({"error": "Trip not found."}), 404
    spot = trip_service.get_spot(trip, spot_id)
    if spot is None:
        return jsonify({"error": "Spot not found."}), 404

    try:
        trip_service.delete_spot(spot)
    except Exception:
        logger.exception("DELETE /api/trips/%s/spots/%s failed", trip_id, spot_id)
        return jsonify({"error": "Server error"}), 500

    return jsonify({"success": True})


@trips_bp.route("/<trip_id>/spots/order", methods=["PUT"])
def reorder_spots(trip_id):
    trip = _load_trip(trip_id)
    if trip is None:
        return jsonify({"error": "Trip not found."}), 404

    data = _json_body() or {}
    spot_ids = data.get("spotIds")
    if not isinstance(spot_ids, list) or not all(isinstance(i, str) for i in spot_ids):
        return jsonify({"error": "spotIds must be an array of spot IDs."}), 400

    try:
        spots = trip_service.reorder_spots(trip, spot_ids)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        logger.exception("PUT /api/trips/%s/spots/order failed", trip_id)
        return jsonify({"error": "Server error"}), 500

    return jsonify({"spots": spots})


@trips_bp.route("/<trip_id>/unlocks", methods=["POST"])
def unlocks(trip_id):
    """現在地から解放されるスポットを判定する"""
    trip = _load_trip(trip_id)
    if trip is None:
        return jsonify({"error": "Trip not found."}), 404

    data = _json_body() or {}
    lat = data.get("lat")
    lng = data.get("lng")
    if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in (lat, lng)):
        return jsonify({"error": "lat and lng are required numbers."}), 400
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return jsonify({"error": "lat/lng out of range."}), 400

    manual = data.get("manualUnlocks") or []
    if not isinstance(manual, list) or not all(isinstance(i, str) for i in manual):
        return jsonify({"error": "manualUnlocks must be an array of spot IDs."}), 400

    unlocked, distances = trip_service.unlocked_spot_ids(trip.spots, lat, lng, manual)
    return jsonify({"unlocked": unlocked, "distances": distances})
