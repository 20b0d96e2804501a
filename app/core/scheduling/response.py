"""
Response templates for SMS replies.

Every outbound text is built here. Messages stay plain text and short
enough for two SMS segments; internal error detail never appears in them.
"""

from datetime import datetime
from typing import Optional, Sequence

from app.core.intelligence.session.state import ConversationStatus
from app.models.database import BookingMode
from .calendar import format_slot


class ResponseGenerator:
    """Template-based reply builder, one method per kind of reply."""

    def initial_prompt(self, practice_name: str) -> str:
        """Opening text after a missed call."""
        return (
            f"Hi! This is {practice_name}. We missed your call and want to make sure "
            f"we help you. Reply 1 for us to call you back, or Reply 2 to schedule "
            f"an appointment."
        )

    def slot_offer(self, slot: datetime) -> str:
        """Offer a single slot for confirmation."""
        return (
            f"Our next available time is {format_slot(slot)}. "
            f"Reply 1 or YES to book it, 2 for more options, or CALL for a callback."
        )

    def slot_page(self, slots: Sequence[datetime]) -> str:
        """Offer a numbered page of slots."""
        lines = "\n".join(
            f"{number}. {format_slot(slot)}" for number, slot in enumerate(slots, start=1)
        )
        if len(slots) == 1:
            return (
                f"Here is the next available time:\n{lines}\n\n"
                f"Reply 1 to book, 2 for more options, or CALL for a callback."
            )
        return (
            f"Here are the next available times:\n{lines}\n\n"
            f"Reply 1-{len(slots)} to book, {len(slots) + 1} for more options, "
            f"or CALL for a callback."
        )

    def slot_taken(self, slot: datetime) -> str:
        """The slot went while the caller was confirming; offer the next one."""
        return (
            f"Sorry, that time was just taken! Next available: {format_slot(slot)}. "
            f"Reply 1 or YES to book it, or 2 for more options."
        )

    def page_taken(self, slots: Sequence[datetime]) -> str:
        """A slot from the page went; offer the refreshed page."""
        return "Sorry, that time was just taken! " + self.slot_page(slots)

    def booking_confirmed(
        self,
        slot: datetime,
        practice_name: str,
        booking_mode: BookingMode = BookingMode.MANUAL,
    ) -> str:
        """Booking succeeded; wording depends on the practice's booking mode."""
        when = format_slot(slot)
        if booking_mode == BookingMode.AUTO:
            return f"SCHEDULED! Your appointment is booked for {when} at {practice_name}. See you then!"
        return (
            f"RECEIVED! Your appointment request for {when} has been submitted. "
            f"{practice_name} will confirm shortly."
        )

    def fully_booked(self, practice_name: str) -> str:
        """No slots within the horizon; a human will call instead."""
        return (
            f"Thanks for getting back to us! We're currently fully booked, but we'll have "
            f"someone from {practice_name} call you back shortly to find a time that works."
        )

    def callback_logged(self, practice_name: str) -> str:
        return f"No problem! Someone from {practice_name} will call you back shortly."

    def free_text_callback(self, practice_name: str) -> str:
        return (
            f"Thanks for the details! Someone from {practice_name} will call you back "
            f"shortly to help."
        )

    def opted_out(self, practice_name: str) -> str:
        return (
            f"You've been unsubscribed. Reply START to opt back in. "
            f"Contact {practice_name} directly if you need assistance."
        )

    def opted_in(self, practice_name: str) -> str:
        return (
            f"Welcome back! Reply 1 for a callback, or 2 to schedule an appointment "
            f"with {practice_name}."
        )

    def help(
        self,
        practice_name: str,
        status: ConversationStatus = ConversationStatus.AWAITING_INITIAL_CHOICE,
        offered_slots: Sequence[datetime] = (),
    ) -> str:
        """Options that are valid for the current state."""
        if status == ConversationStatus.AWAITING_SLOT_CONFIRMATION and offered_slots:
            options = [
                f"Reply 1 or YES to book {format_slot(offered_slots[0])}",
                "Reply 2 for more options",
                "Reply CALL for a callback",
            ]
        elif status == ConversationStatus.AWAITING_SLOT_SELECTION and offered_slots:
            count = len(offered_slots)
            choose = "Reply 1" if count == 1 else f"Reply 1-{count}"
            options = [
                f"{choose} to book a time from the list",
                f"Reply {count + 1} for more options",
                "Reply CALL for a callback",
            ]
        elif status == ConversationStatus.COMPLETED:
            options = ["Reply START to opt back in"]
        elif status in (ConversationStatus.APPOINTMENT_BOOKED, ConversationStatus.CALLBACK_REQUESTED):
            options = []
        else:
            options = ["Reply 1 for a callback", "Reply 2 to book an appointment"]

        if status != ConversationStatus.COMPLETED:
            options.append("Reply STOP to opt out")

        lines = "".join(f"- {option}\n" for option in options)
        return f"{practice_name} SMS Booking:\n{lines}\nNeed help? Call us directly!"

    def reprompt(
        self,
        status: ConversationStatus,
        offered_slots: Sequence[datetime],
        practice_name: str,
    ) -> str:
        """Repeat the current options after input we could not match."""
        if status == ConversationStatus.AWAITING_SLOT_CONFIRMATION and offered_slots:
            return "Sorry, I didn't catch that. " + self.slot_offer(offered_slots[0])
        if status == ConversationStatus.AWAITING_SLOT_SELECTION and offered_slots:
            return "Sorry, I didn't catch that. " + self.slot_page(offered_slots)
        return (
            f"Sorry, I didn't catch that. Reply 1 for a callback, or 2 to schedule "
            f"an appointment with {practice_name}."
        )

    def acknowledge(
        self,
        status: ConversationStatus,
        text: str,
        practice_name: str,
    ) -> str:
        """Contextual reply in a terminal conversation."""
        lower = text.lower()

        if status == ConversationStatus.APPOINTMENT_BOOKED:
            if any(word in lower for word in ("cancel", "change", "reschedule")):
                return (
                    f"No problem! Please call {practice_name} directly to make changes to "
                    f"your appointment, or reply here and we'll have someone call you back."
                )
            return (
                "Thanks for your message! You already have an appointment scheduled. "
                "Is there anything else we can help you with?"
            )

        if status == ConversationStatus.CALLBACK_REQUESTED:
            if "thank" in lower:
                return f"You're welcome! Someone from {practice_name} will be in touch soon."
            return (
                f"Thanks! We've noted your message. Someone from {practice_name} will "
                f"call you back as soon as possible."
            )

        return f"You're unsubscribed from {practice_name} texts. Reply START to opt back in."

    def system_error(self, practice_name: Optional[str] = None) -> str:
        """Generic apology; the conversation is unchanged so the caller can retry."""
        contact = f"call {practice_name}" if practice_name else "call us"
        return (
            f"Sorry, we had a technical issue. Please reply again in a moment "
            f"or {contact} directly."
        )


# Singleton
_generator: Optional[ResponseGenerator] = None


def get_response_generator() -> ResponseGenerator:
    """Get singleton ResponseGenerator."""
    global _generator
    if _generator is None:
        _generator = ResponseGenerator()
    return _generator
