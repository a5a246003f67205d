"""
Weekly operating hours and the "open now?" status

Days are numbered 0 (Monday) to 6 (Sunday). Times are zero-padded HH:MM
strings, so lexical comparison matches clock order.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from directory_api.core.exceptions import ValidationFailedError
from directory_api.core.schemas import CamelModel
from directory_api.db.database import transaction_scope
from directory_api.db.models import BusinessOperatingHours

logger = logging.getLogger(__name__)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def normalize_time(value: Optional[str]) -> Optional[str]:
    """'9:05' -> '09:05'; empty values become None"""
    if value is None or value == "":
        return None
    match = _TIME_PATTERN.match(value)
    if not match:
        raise ValueError("Invalid time format, expected HH:MM")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


class DayHours(CamelModel):
    day_of_week: int = Field(..., ge=0, le=6)
    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    break_start_time: Optional[str] = None
    break_end_time: Optional[str] = None

    @field_validator("open_time", "close_time", "break_start_time", "break_end_time", mode="before")
    @classmethod
    def _check_time(cls, value):
        return normalize_time(value)


class WeeklyHoursRequest(CamelModel):
    hours: List[DayHours]


def hours_to_dict(row: BusinessOperatingHours) -> Dict[str, Any]:
    return {
        "dayOfWeek": row.day_of_week,
        "dayName": DAY_NAMES[row.day_of_week],
        "isOpen": row.is_open,
        "openTime": row.open_time,
        "closeTime": row.close_time,
        "breakStartTime": row.break_start_time,
        "breakEndTime": row.break_end_time,
    }


def default_week() -> List[Dict[str, Any]]:
    """Monday-Friday 09:00-17:00, weekend closed"""
    return [
        {
            "dayOfWeek": day,
            "dayName": DAY_NAMES[day],
            "isOpen": day < 5,
            "openTime": "09:00",
            "closeTime": "17:00",
            "breakStartTime": None,
            "breakEndTime": None,
        }
        for day in range(7)
    ]


def evaluate_status(row: Optional[BusinessOperatingHours], current_time: str) -> Dict[str, Any]:
    """Open/closed status for one day's hours at ``current_time`` (HH:MM)"""
    if row is None:
        return {"isOpen": False, "status": "Hours not set", "nextChange": None}
    if not row.is_open:
        return {"isOpen": False, "status": "Closed today", "nextChange": None}

    open_time, close_time = row.open_time, row.close_time
    break_start, break_end = row.break_start_time, row.break_end_time

    if current_time < open_time:
        is_open, status, next_change = False, f"Opens at {open_time}", open_time
    elif current_time >= close_time:
        is_open, status, next_change = False, f"Closed (opened until {close_time})", None
    elif break_start and break_end and break_start <= current_time < break_end:
        is_open, status, next_change = False, f"On break (returns at {break_end})", break_end
    elif break_start and current_time < break_start:
        is_open, status, next_change = True, f"Open (break at {break_start})", break_start
    else:
        is_open, status, next_change = True, f"Open until {close_time}", close_time

    return {
        "isOpen": is_open,
        "status": status,
        "nextChange": next_change,
        "todayHours": {
            "openTime": open_time,
            "closeTime": close_time,
            "breakStartTime": break_start,
            "breakEndTime": break_end,
        },
    }


class BusinessHoursService:

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def find_by_business_id(self, db: Session, business_id: str) -> List[BusinessOperatingHours]:
        return db.query(BusinessOperatingHours).filter(
            BusinessOperatingHours.business_id == business_id
        ).order_by(BusinessOperatingHours.day_of_week.asc()).all()

    def get_hours(self, db: Session, business_id: str) -> Dict[str, Any]:
        rows = self.find_by_business_id(db, business_id)
        if not rows:
            return {"hours": default_week(), "isDefault": True}
        return {"hours": [hours_to_dict(row) for row in rows], "isDefault": False}

    def validate_week(self, hours: List[DayHours]) -> None:
        """Seven distinct days, each open day with open < close and paired break times"""
        if len(hours) != 7:
            raise ValidationFailedError("Must provide hours for all 7 days of the week")
        if len({day.day_of_week for day in hours}) != 7:
            raise ValidationFailedError("Each day of the week must appear exactly once")

        for day in hours:
            day_name = DAY_NAMES[day.day_of_week]
            if day.is_open and (not day.open_time or not day.close_time):
                raise ValidationFailedError(f"Open and close times are required for {day_name}")
            if day.is_open and day.open_time >= day.close_time:
                raise ValidationFailedError(f"Opening time must be before closing time for {day_name}")
            if day.break_start_time and not day.break_end_time:
                raise ValidationFailedError("Break end time is required when break start time is provided")
            if day.break_end_time and not day.break_start_time:
                raise ValidationFailedError("Break start time is required when break end time is provided")

    def replace_week(self, db: Session, business_id: str, hours: List[DayHours]) -> List[BusinessOperatingHours]:
        """
        Replace all seven days in one transaction. The week is validated before
        anything is deleted, and a failed write rolls the whole replacement
        back, leaving the previous week in place.
        """
        self.validate_week(hours)

        with transaction_scope(db):
            db.query(BusinessOperatingHours).filter(
                BusinessOperatingHours.business_id == business_id
            ).delete(synchronize_session=False)

            for day in hours:
                db.add(BusinessOperatingHours(
                    business_id=business_id,
                    day_of_week=day.day_of_week,
                    is_open=day.is_open,
                    open_time=day.open_time if day.is_open else None,
                    close_time=day.close_time if day.is_open else None,
                    break_start_time=day.break_start_time,
                    break_end_time=day.break_end_time,
                ))
            db.flush()

        self.logger.info(f"Replaced weekly hours for business {business_id}")
        return self.find_by_business_id(db, business_id)

    def current_status(self, db: Session, business_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        row = db.query(BusinessOperatingHours).filter(
            BusinessOperatingHours.business_id == business_id,
            BusinessOperatingHours.day_of_week == now.weekday()
        ).first()
        return evaluate_status(row, now.strftime("%H:%M"))


def get_business_hours_service() -> BusinessHoursService:
    return BusinessHoursService()
