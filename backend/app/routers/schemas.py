import datetime as dt

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from backend.app.db.models import CalendarStatus

PHONE_PATTERN = r"^[+\d().\-\s]{7,20}$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReservationIn(ApiModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(min_length=7, max_length=20, pattern=PHONE_PATTERN)
    guests: int = Field(ge=2, le=20)
    # "YYYY-MM-DD" and "HH:MM", wall-clock at the restaurant
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    restaurant_slug: str | None = Field(default=None, min_length=1, max_length=64)


class ReservationUpdateIn(ApiModel):
    date: str | None = Field(default=None, pattern=DATE_PATTERN)
    time: str | None = Field(default=None, pattern=TIME_PATTERN)
    guests: int | None = Field(default=None, ge=2, le=20)
    phone: str | None = Field(default=None, min_length=7, max_length=20, pattern=PHONE_PATTERN)
    restaurant_slug: str | None = Field(default=None, min_length=1, max_length=64)


class ReservationOut(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    email: str
    phone: str
    guests: int
    date: dt.date
    time: str
    reservation_code: str
    restaurant_slug: str
    calendar_status: CalendarStatus


class ReservationLookupOut(ReservationOut):
    status: str


class ReservationCreatedOut(ApiModel):
    message: str = "Reservation successful!"
    reservation: ReservationOut


class ReservationUpdatedOut(ApiModel):
    message: str = "Reservation updated."
    reservation: ReservationOut


class ReservationLookupEnvelope(ApiModel):
    reservation: ReservationLookupOut


class ReservationListOut(ApiModel):
    reservations: list[ReservationOut]


class MessageOut(ApiModel):
    message: str


class AvailabilityOut(ApiModel):
    restaurant_slug: str
    date: dt.date
    fully_booked_slots: list[str]
    open_slots: list[str]


class RestaurantIn(ApiModel):
    slug: str = Field(min_length=1, max_length=64, pattern=r"^[a-z0-9][a-z0-9-]*$")
    name: str = Field(min_length=1, max_length=200)
    address: str | None = Field(default=None, max_length=300)
    phone: str | None = Field(default=None, max_length=32)


class RestaurantOut(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    slug: str
    name: str
    address: str | None = None
    phone: str | None = None


class RestaurantCreatedOut(ApiModel):
    message: str = "Restaurant created"
    restaurant: RestaurantOut


class RestaurantListOut(ApiModel):
    restaurants: list[RestaurantOut]


class AdminUserIn(ApiModel):
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=8, max_length=128)
    restaurant_slug: str = Field(min_length=1, max_length=64)


class AdminUserOut(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    username: str
    restaurant_slug: str


class AdminUserCreatedOut(ApiModel):
    message: str = "Admin user created"
    user: AdminUserOut


class LoginIn(ApiModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=128)


class DayStats(ApiModel):
    bookings: int
    guests: int


class DailyStats(DayStats):
    date: str


class AnalyticsWindow(ApiModel):
    start: str
    end: str


class AnalyticsTotals(DayStats):
    unique_users: int


class AnalyticsOut(ApiModel):
    window: AnalyticsWindow
    daily: list[DailyStats]
    by_hour: dict[str, int]
    totals: AnalyticsTotals
    today: DayStats
