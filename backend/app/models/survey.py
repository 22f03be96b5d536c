from sqlalchemy import Column, String, Float, Text, Integer, ForeignKey, LargeBinary
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin


class ReportType:
    CULVERT = "Culvert"
    DITCH = "Ditch"
    STORM_DRAIN = "Storm Drain"

    ALL = [CULVERT, DITCH, STORM_DRAIN]


# Image fields and the number of photos each one accepts
PHOTO_LIMITS = {
    "inlet_photo": 1,
    "outlet_photo": 1,
    "ditch_photo": 1,
    "drain_photo": 1,
    "additional_photos": 5,
}
IMAGE_FIELDS = tuple(PHOTO_LIMITS)
MULTI_PHOTO_FIELDS = ("additional_photos",)


def is_image_field(name: str) -> bool:
    return name in PHOTO_LIMITS


def is_multi_photo_field(name: str) -> bool:
    return name in MULTI_PHOTO_FIELDS


class CulvertSurvey(Base, TimestampMixin):
    __tablename__ = "culvert_surveys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Idempotency key generated on the device; replays of a delivered record are ignored
    client_submission_id = Column(String(64), unique=True, nullable=True, index=True)

    reporter_name = Column(String(255), nullable=False, index=True)  # Email-like identity
    report_type = Column(String(20), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    timestamp = Column(String(32), nullable=False)  # Local "YYYY-MM-DDTHH:MM" from the form

    # Culvert branch
    culvert_type = Column(String(50), nullable=True)
    culvert_diameter = Column(String(20), nullable=True)
    water_flow = Column(String(50), nullable=True)
    culvert_blockage = Column(String(50), nullable=True)
    header_condition = Column(String(100), nullable=True)
    inlet_condition = Column(String(100), nullable=True)
    outlet_condition = Column(String(100), nullable=True)
    ownership = Column(String(50), nullable=True)
    perched_status = Column(String(100), nullable=True)
    road_condition = Column(String(100), nullable=True)

    # Ditch branch
    ditch_adjacent = Column(String(100), nullable=True)
    ditch_adjacent_other = Column(Text, nullable=True, default="")
    ditch_water = Column(String(50), nullable=True)
    ditch_water_other = Column(Text, nullable=True, default="")
    ditch_vegetation = Column(String(100), nullable=True)
    ditch_vegetation_other = Column(Text, nullable=True, default="")
    ditch_vegetation_present = Column(String(100), nullable=True)
    ditch_erosion = Column(String(50), nullable=True)

    # Storm drain branch
    drain_surface = Column(String(50), nullable=True)
    drain_surface_other = Column(Text, nullable=True, default="")
    drain_blockage = Column(String(50), nullable=True)
    drain_blockage_other = Column(Text, nullable=True, default="")
    drain_water_flow = Column(String(100), nullable=True)
    drain_outflow = Column(String(50), nullable=True)
    drain_outlet_blockage = Column(String(50), nullable=True)
    drain_type = Column(String(50), nullable=True)
    drain_type_other = Column(Text, nullable=True, default="")

    additional_info = Column(Text, nullable=True, default="")

    # Single-valued photos live on the survey row
    inlet_photo = Column(LargeBinary, nullable=True)
    outlet_photo = Column(LargeBinary, nullable=True)
    ditch_photo = Column(LargeBinary, nullable=True)
    drain_photo = Column(LargeBinary, nullable=True)

    photos = relationship("SurveyPhoto", back_populates="survey", cascade="all, delete-orphan")


class SurveyPhoto(Base):
    """Additional photos (up to five per survey)."""
    __tablename__ = "survey_photos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    survey_id = Column(Integer, ForeignKey("culvert_surveys.id"), nullable=False, index=True)
    image = Column(LargeBinary, nullable=False)

    survey = relationship("CulvertSurvey", back_populates="photos")


# Optional scalar columns accepted from the submit form
OPTIONAL_TEXT_FIELDS = (
    "culvert_type", "culvert_diameter", "water_flow", "culvert_blockage",
    "header_condition", "inlet_condition", "outlet_condition", "ownership",
    "perched_status", "road_condition",
    "ditch_adjacent", "ditch_water", "ditch_vegetation", "ditch_vegetation_present", "ditch_erosion",
    "drain_surface", "drain_blockage", "drain_water_flow", "drain_outflow",
    "drain_outlet_blockage", "drain_type",
)
# Free-text "other (add details)" columns default to an empty string
DETAIL_TEXT_FIELDS = (
    "additional_info",
    "ditch_adjacent_other", "ditch_water_other", "ditch_vegetation_other",
    "drain_surface_other", "drain_blockage_other", "drain_type_other",
)
