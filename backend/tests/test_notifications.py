from backend.app.core.config import Settings
from backend.app.services.notifications import (
    ConfirmationDetails,
    LogEmailSender,
    SmtpEmailSender,
    build_email_sender,
    render_confirmation,
)


DETAILS = ConfirmationDetails(
    reservation_id=7,
    reservation_code="AB12CD",
    guest_name="Asha",
    guests=4,
    date="2026-11-03",
    time="19:00",
    restaurant_slug="singhs",
    restaurant_name="Singh's Spices",
    restaurant_address="1 Brivibas iela, Riga",
)


def test_confirmation_names_venue_and_code():
    subject, body = render_confirmation(DETAILS)
    assert subject == "Your reservation at Singh's Spices is confirmed (AB12CD)"
    assert "table for 4" in body
    assert "2026-11-03 at 19:00" in body
    assert "Address: 1 Brivibas iela, Riga" in body
    assert "Phone:" not in body


def test_confirmation_falls_back_to_slug():
    subject, _ = render_confirmation(
        ConfirmationDetails(
            reservation_id=1,
            reservation_code="ZZ99ZZ",
            guest_name="Ravi",
            guests=2,
            date="2026-11-03",
            time="12:00",
            restaurant_slug="downtown",
        )
    )
    assert "at downtown" in subject


def test_sender_depends_on_smtp_host():
    assert isinstance(build_email_sender(Settings(DATABASE_URL="sqlite+aiosqlite://")), LogEmailSender)
    sender = build_email_sender(Settings(DATABASE_URL="sqlite+aiosqlite://", SMTP_HOST="smtp.example.com"))
    assert isinstance(sender, SmtpEmailSender)
    assert sender.port == 587
