"""
Registration-expiry rules for stored vehicles.
"""
import calendar
import enum
from dataclasses import dataclass
from datetime import date, datetime

# plate ending digit -> registration month
PLATE_MONTHS = [
    "October", "January", "February", "March", "April",
    "May", "June", "July", "August", "September",
]


class RegistrationStatus(str, enum.Enum):
    registered = "Registered"
    expired = "Expired"


@dataclass(frozen=True)
class RenewalReminder:
    vehicle_id: str
    license_plate: str
    due_date: date
    days_left: int
    message: str


def parse_renewal(value: str | date) -> date:
    """Accepts ``YYYY-MM-DD`` or a full ISO timestamp as stored on vehicles."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def registration_status(last_renewal: str | date, today: date | None = None) -> RegistrationStatus:
    today = today or date.today()
    if months_between(parse_renewal(last_renewal), today) >= 12:
        return RegistrationStatus.expired
    return RegistrationStatus.registered


def registration_month(license_plate: str) -> str | None:
    plate = license_plate.strip()
    if not plate or not plate[-1].isdigit():
        return None
    return PLATE_MONTHS[int(plate[-1]) % 12]


def renewal_due_date(last_renewal: str | date) -> date:
    return add_months(parse_renewal(last_renewal), 12)


def renewal_reminder(
    vehicle: dict, today: date | None = None
) -> RenewalReminder | None:
    today = today or date.today()
    plate = vehicle.get("licensePlate", "")
    due = renewal_due_date(vehicle["lastRenewal"])
    days_left = (due - today).days

    if days_left <= 0:
        message = f"Your vehicle with plate number {plate} registration has expired."
    elif days_left <= 5:
        message = f"Your vehicle with plate number {plate} registration is due in {days_left} days."
    elif days_left <= 7:
        message = f"Your vehicle with plate number {plate} registration is due in 7 days."
    elif today >= add_months(due, -1):
        message = f"Your vehicle with plate number {plate} registration is due in one month."
    else:
        return None

    return RenewalReminder(
        vehicle_id=vehicle.get("id", ""),
        license_plate=plate,
        due_date=due,
        days_left=days_left,
        message=message,
    )


def renewal_reminders(vehicles: list[dict], today: date | None = None) -> list[RenewalReminder]:
    reminders = []
    for vehicle in vehicles:
        if not vehicle.get("lastRenewal"):
            continue
        reminder = renewal_reminder(vehicle, today)
        if reminder:
            reminders.append(reminder)
    return reminders
