import uuid
from datetime import datetime

from models._base import db


def _new_id():
    return str(uuid.uuid4())


class Trip(db.Model):
    __tablename__ = "trips"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    slug = db.Column(db.String(120), nullable=False, unique=True, index=True)
    title = db.Column(db.String(200), nullable=False)
    subtitle = db.Column(db.String(200), nullable=False, default="")
    dedication = db.Column(db.Text, nullable=False, default="")
    trip_dates = db.Column(db.String(100), nullable=False, default="")
    base_location = db.Column(db.String(200), nullable=False, default="")
    hero_image = db.Column(db.String(300), nullable=False, default="")
    giver = db.Column(db.String(100), nullable=False, default="")
    receiver = db.Column(db.String(100), nullable=False, default="")
    soundtrack_url = db.Column(db.String(300), nullable=True)
    owner_id = db.Column(db.String(36), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    spots = db.relationship(
        "Spot",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="Spot.order_index",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "tripDates": self.trip_dates,
            "baseLocation": self.base_location,
        }


class Spot(db.Model):
    __tablename__ = "spots"
    __table_args__ = (db.Index("ix_spot_trip_order", "trip_id", "order_index"),)

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    trip_id = db.Column(
        db.String(36), db.ForeignKey("trips.id", ondelete="CASCADE"), nullable=False,
    )
    order_index = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(200), nullable=False)
    day_label = db.Column(db.String(50), nullable=False, default="")
    date_label = db.Column(db.String(50), nullable=False, default="")
    time = db.Column(db.String(20), nullable=False, default="")
    location = db.Column(db.String(200), nullable=False, default="")
    address = db.Column(db.String(300), nullable=False, default="")
    note = db.Column(db.Text, nullable=False, default="")
    lat = db.Column(db.Float, nullable=False, default=0.0)
    lng = db.Column(db.Float, nullable=False, default=0.0)
    map_x = db.Column(db.Float, nullable=False, default=0.0)
    map_y = db.Column(db.Float, nullable=False, default=0.0)
    unlock_radius_meters = db.Column(db.Integer, nullable=False, default=120)
    arrival_points = db.Column(db.Integer, nullable=False, default=0)
    headline = db.Column(db.String(200), nullable=False, default="")
    memory_body = db.Column(db.Text, nullable=False, default="")
    prompt = db.Column(db.Text, nullable=True)
    message = db.Column(db.Text, nullable=False, default="")
    tags = db.Column(db.JSON, nullable=False, default=list)

    trip = db.relationship("Trip", back_populates="spots")
    missions = db.relationship(
        "Mission",
        back_populates="spot",
        cascade="all, delete-orphan",
        order_by="Mission.created_at",
    )
    photos = db.relationship(
        "Photo",
        back_populates="spot",
        cascade="all, delete-orphan",
        order_by="Photo.order_index",
    )


class Mission(db.Model):
    """スポットで挑戦するミッション (写真・チェックイン・クエスト)"""
    __tablename__ = "missions"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    spot_id = db.Column(
        db.String(36), db.ForeignKey("spots.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False, default="CHECKIN")
    description = db.Column(db.Text, nullable=False, default="")
    reward_points = db.Column(db.Integer, nullable=False, default=0)
    photo_prompt = db.Column(db.Text, nullable=True)
    checklist_label = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    spot = db.relationship("Spot", back_populates="missions")

    def to_dict(self):
        data = {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "description": self.description,
            "rewardPoints": self.reward_points,
        }
        if self.photo_prompt:
            data["photoPrompt"] = self.photo_prompt
        if self.checklist_label:
            data["checklistLabel"] = self.checklist_label
        return data


class Photo(db.Model):
    __tablename__ = "photos"
    __table_args__ = (db.Index("ix_photo_spot_order", "spot_id", "order_index"),)

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    spot_id = db.Column(
        db.String(36), db.ForeignKey("spots.id", ondelete="CASCADE"), nullable=False,
    )
    image_url = db.Column(db.String(300), nullable=False)
    alt = db.Column(db.String(200), nullable=False, default="")
    caption = db.Column(db.String(300), nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    spot = db.relationship("Spot", back_populates="photos")
