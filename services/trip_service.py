"""誕生日旅行アルバム: 旅行・スポットの登録と位置情報による解放判定"""
import logging
import math
import re
from datetime import datetime

from flask import current_app

from models import Spot, Trip, db

logger = logging.getLogger(__name__)

ISO_DATE_TAG_PREFIX = "__spot_iso_date="
EARTH_RADIUS_METERS = 6_371_000

DEFAULT_SPOT_MESSAGE = "スポットに着いたらここにカスタムメッセージを追加してください。"
DEFAULT_SPOT_NOTE = "必要に応じてメモを追加してください。"


def _clean(value):
    return value.strip() if isinstance(value, str) else ""


def _to_float(value, fallback):
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else fallback
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return fallback
        return number if math.isfinite(number) else fallback
    return fallback


def _parse_datetime(raw):
    """ISO 8601 の日付/日時文字列を datetime に変換する。不正なら None。"""
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _date_label(value):
    return f"{value.strftime('%b')} {value.day}"


def _time_label(value):
    return value.strftime("%H:%M")


# ── 旅行 ─────────────────────────────────────────────

def slugify(value):
    slug = (value or "").lower().strip()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"-+", "-", slug)


def ensure_unique_slug(base):
    candidate = base
    counter = 0
    while Trip.query.filter_by(slug=candidate).first() is not None:
        counter += 1
        candidate = f"{base}-{counter}"
    return candidate


def create_trip(title, slug=None, trip_dates="", base_location="", owner_id=None):
    """旅行を作成する。

    slug 未指定時はタイトルから生成し、重複時は -1, -2 ... を付ける。

    Raises:
        ValueError: タイトルが空
    """
    title = (title or "").strip()
    if not title:
        raise ValueError("タイトルは必須です。")

    provided = (slug or "").strip()
    base_slug = slugify(provided) if provided else slugify(title)
    if not base_slug:
        base_slug = slugify(f"trip-{int(datetime.now().timestamp() * 1000)}")

    trip = Trip(
        title=title,
        slug=ensure_unique_slug(base_slug),
        subtitle="",
        dedication="",
        trip_dates=(trip_dates or "").strip(),
        base_location=(base_location or "").strip(),
        hero_image=current_app.config.get("DEFAULT_HERO_IMAGE", ""),
        giver="",
        receiver="",
        owner_id=owner_id,
    )
    db.session.add(trip)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Trip created: id=%s, slug=%s", trip.id, trip.slug)
    return trip


def list_trips(owner_id=None):
    query = Trip.query
    if owner_id:
        query = query.filter_by(owner_id=owner_id)
    trips = query.order_by(Trip.updated_at.desc()).all()
    return [trip.to_dict() for trip in trips]


# 旧データの画像パス (空白入りファイル名) → 配信用のファイル名
LEGACY_IMAGE_RENAMES = {
    "/memories/HEIFtoJPEG/IMG_0490 2.jpg": "/memories/HEIFtoJPEG/img-0490-2.jpg",
    "/memories/HEIFtoJPEG/IMG_0490 3.jpg": "/memories/HEIFtoJPEG/img-0490-3.jpg",
    "/memories/HEIFtoJPEG/IMG_1876 2.jpg": "/memories/HEIFtoJPEG/img-1876-2.jpg",
    "/memories/HEIFtoJPEG/IMG_1890 2.jpg": "/memories/HEIFtoJPEG/img-1890-2.jpg",
    "/memories/HEIFtoJPEG/IMG_4856 2.jpg": "/memories/HEIFtoJPEG/img-4856-2.jpg",
    "/memories/HEIFtoJPEG/IMG_5923 2.jpg": "/memories/HEIFtoJPEG/img-5923-2.jpg",
    "/memories/HEIFtoJPEG/IMG_7953 2.jpg": "/memories/HEIFtoJPEG/img-7953-2.jpg",
}


def normalize_image_url(url):
    """拡張子を小文字にそろえ、旧ファイル名を置き換える"""
    if not url:
        return url
    lowered = re.sub(r"\.(jpe?g|png)$", lambda m: m.group(0).lower(), url, flags=re.IGNORECASE)
    return LEGACY_IMAGE_RENAMES.get(lowered, lowered)


def total_potential_points(spots):
    """到着ポイントとミッション報酬の合計"""
    return sum(
        (spot.arrival_points or 0) + sum(m.reward_points for m in spot.missions)
        for spot in spots
    )


def _plan_spot(spot):
    memory = {
        "headline": spot.headline,
        "body": spot.memory_body,
        "message": spot.message,
    }
    if spot.prompt:
        memory["prompt"] = spot.prompt

    photos = []
    for photo in spot.photos:
        item = {"id": photo.id, "src": normalize_image_url(photo.image_url), "alt": photo.alt}
        if photo.caption:
            item["caption"] = photo.caption
        photos.append(item)

    return {
        "id": spot.id,
        "name": spot.name,
        "dayLabel": spot.day_label,
        "dateLabel": spot.date_label,
        "time": spot.time,
        "location": spot.location,
        "address": spot.address,
        "note": spot.note,
        "coordinates": {
            "lat": spot.lat,
            "lng": spot.lng,
            "mapX": spot.map_x,
            "mapY": spot.map_y,
        },
        "unlockRadiusMeters": spot.unlock_radius_meters,
        "arrivalPoints": spot.arrival_points,
        "memory": memory,
        "photos": photos,
        "missions": [mission.to_dict() for mission in spot.missions],
    }


def get_trip_plan(slug):
    """slug から旅のしおり (スポット・写真・ミッション込み) を組み立てる。

    Returns:
        dict | None: 該当する旅行がなければ None
    """
    trip = Trip.query.filter_by(slug=(slug or "").strip()).first()
    if trip is None:
        return None

    plan = {
        "id": trip.id,
        "slug": trip.slug,
        "title": trip.title,
        "subtitle": trip.subtitle,
        "dedication": trip.dedication,
        "tripDates": trip.trip_dates,
        "baseLocation": trip.base_location,
        "heroImage": normalize_image_url(trip.hero_image),
        "travellers": {"giver": trip.giver, "receiver": trip.receiver},
        "spots": [_plan_spot(spot) for spot in trip.spots],
        "totalPotentialPoints": total_potential_points(trip.spots),
    }
    if trip.soundtrack_url:
        plan["soundtrackUrl"] = trip.soundtrack_url
    return plan


# ── スポット ─────────────────────────────────────────

def extract_iso_date(tags):
    for tag in tags or []:
        if isinstance(tag, str) and tag.startswith(ISO_DATE_TAG_PREFIX):
            return tag[len(ISO_DATE_TAG_PREFIX):]
    return None


def upsert_iso_date_tag(tags, iso_date):
    """日付タグを差し替えたタグリストを返す (iso_date が None ならタグを外す)"""
    result = [
        tag for tag in (tags or [])
        if not (isinstance(tag, str) and tag.startswith(ISO_DATE_TAG_PREFIX))
    ]
    if iso_date:
        result.append(f"{ISO_DATE_TAG_PREFIX}{iso_date}")
    return result


def spot_to_dict(spot):
    return {
        "id": spot.id,
        "name": spot.name,
        "description": spot.note,
        "location": spot.location,
        "address": spot.address,
        "date": extract_iso_date(spot.tags) or "",
        "dayLabel": spot.day_label,
        "dateLabel": spot.date_label,
        "time": spot.time,
        "orderIndex": spot.order_index,
        "unlockRadiusMeters": spot.unlock_radius_meters,
        "arrivalPoints": spot.arrival_points,
        "lat": spot.lat,
        "lng": spot.lng,
        "mapX": spot.map_x,
        "mapY": spot.map_y,
        "note": spot.note,
        "headline": spot.headline,
        "memoryBody": spot.memory_body,
        "prompt": spot.prompt,
        "message": spot.message,
    }


def list_spots(trip):
    return [spot_to_dict(spot) for spot in trip.spots]


def get_spot(trip, spot_id):
    return Spot.query.filter_by(id=spot_id, trip_id=trip.id).first()


def _next_order_index(trip_id):
    last = (
        Spot.query
        .filter_by(trip_id=trip_id)
        .order_by(Spot.order_index.desc())
        .first()
    )
    return last.order_index + 1 if last is not None else 0


def create_spot(trip, payload):
    """リクエストの値からスポットを作成する。未入力の表示項目は既定値で埋める。

    Args:
        trip: 追加先の Trip
        payload: camelCase のリクエスト辞書

    Raises:
        ValueError: 名前・場所・日付の不足、日付の形式エラー
    """
    name = _clean(payload.get("name"))
    description = _clean(payload.get("description"))
    location = _clean(payload.get("location"))
    address = _clean(payload.get("address")) or location
    raw_date = _clean(payload.get("date"))

    if not name:
        raise ValueError("Spot name is required.")
    if not location:
        raise ValueError("Spot location is required.")
    if not raw_date:
        raise ValueError("Spot date is required.")

    parsed = _parse_datetime(raw_date)
    if parsed is None:
        raise ValueError("Invalid date format.")

    order_index = _next_order_index(trip.id)
    default_radius = current_app.config.get("DEFAULT_UNLOCK_RADIUS_METERS", 120)

    lat = payload.get("lat", payload.get("latitude"))
    lng = payload.get("lng", payload.get("longitude"))

    spot = Spot(
        trip_id=trip.id,
        order_index=order_index,
        name=name,
        day_label=_clean(payload.get("dayLabel")) or f"Day {order_index + 1}",
        date_label=_clean(payload.get("dateLabel")) or _date_label(parsed),
        time=_clean(payload.get("time")) or _time_label(parsed),
        location=location,
        address=address,
        note=_clean(payload.get("note")) or description or DEFAULT_SPOT_NOTE,
        lat=_to_float(lat, 0.0),
        lng=_to_float(lng, 0.0),
        map_x=_to_float(payload.get("mapX"), 0.0),
        map_y=_to_float(payload.get("mapY"), 0.0),
        unlock_radius_meters=max(
            0, round(_to_float(payload.get("unlockRadiusMeters"), default_radius)),
        ),
        arrival_points=max(0, round(_to_float(payload.get("arrivalPoints"), 0))),
        headline=_clean(payload.get("headline")) or f"{name} の思い出を作ろう",
        memory_body=(
            _clean(payload.get("memoryBody")) or description or f"{name} の詳細をここに追加しよう。"
        ),
        prompt=_clean(payload.get("prompt")) or None,
        message=_clean(payload.get("message")) or DEFAULT_SPOT_MESSAGE,
        tags=upsert_iso_date_tag([], parsed.isoformat()),
    )
    db.session.add(spot)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Spot created: trip=%s, id=%s, order=%d", trip.id, spot.id, order_index)
    return spot


def update_spot(spot, payload):
    """空欄の項目は既存値を維持して更新する。日付を変えると表示ラベルも追従する。

    Raises:
        ValueError: 日付の形式エラー
    """
    raw_date = _clean(payload.get("date"))
    parsed = None
    if raw_date:
        parsed = _parse_datetime(raw_date)
        if parsed is None:
            raise ValueError("Invalid date format.")

    spot.name = _clean(payload.get("name")) or spot.name
    spot.note = _clean(payload.get("description")) or spot.note
    spot.location = _clean(payload.get("location")) or spot.location
    spot.address = _clean(payload.get("address")) or spot.location
    spot.day_label = _clean(payload.get("dayLabel")) or spot.day_label
    spot.date_label = (
        _clean(payload.get("dateLabel"))
        or (_date_label(parsed) if parsed else spot.date_label)
    )
    spot.time = _clean(payload.get("time")) or (_time_label(parsed) if parsed else spot.time)
    if parsed is not None:
        spot.tags = upsert_iso_date_tag(spot.tags, parsed.isoformat())

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Spot updated: id=%s", spot.id)
    return spot


def delete_spot(spot):
    spot_id = spot.id
    db.session.delete(spot)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Spot deleted: id=%s", spot_id)


def reorder_spots(trip, ordered_ids):
    """ordered_ids の並びで order_index を 0 から振り直す。

    Raises:
        ValueError: 旅行のスポットと ID の集合が一致しない
    """
    spots = {spot.id: spot for spot in trip.spots}
    if len(ordered_ids) != len(spots) or set(ordered_ids) != set(spots):
        raise ValueError("spotIds must list every spot of the trip exactly once.")

    for index, spot_id in enumerate(ordered_ids):
        spots[spot_id].order_index = index

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Spots reordered: trip=%s, count=%d", trip.id, len(ordered_ids))
    return [spot_to_dict(spot) for spot in trip.spots]


# ── 位置情報 ─────────────────────────────────────────

def distance_in_meters(lat1, lng1, lat2, lng2):
    """2点間の大円距離 (ハーサイン公式)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.sin(d_lambda / 2) ** 2 * math.cos(phi1) * math.cos(phi2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def format_distance(meters):
    if meters < 1000:
        return f"{max(1, round(meters))} m"
    return f"{meters / 1000:.2f} km"


def unlocked_spot_ids(spots, lat, lng, manual_unlocks=()):
    """現在地から解放半径内にあるスポットと手動解放分の ID を返す。

    Returns:
        (unlocked_ids, distances): distances は {spot_id: {"meters", "label"}}
    """
    unlocked = []
    distances = {}
    manual = {spot_id for spot_id in manual_unlocks or () if isinstance(spot_id, str)}

    for spot in spots:
        meters = distance_in_meters(lat, lng, spot.lat, spot.lng)
        distances[spot.id] = {"meters": round(meters, 1), "label": format_distance(meters)}
        if meters <= spot.unlock_radius_meters or spot.id in manual:
            unlocked.append(spot.id)

    return unlocked, distances
