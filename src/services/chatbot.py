"""Rule-based grievance assistant.

Answers common citizen questions (how to file, how to track, resolution
times, contact details, ...) with canned responses.  No state, no
learning and no external calls.

Matching works on the lower-cased input by plain substring containment,
checking intent buckets in a fixed order and stopping at the first
bucket with a hit.  Containment is deliberately not word-boundary
aware: ``"this"`` contains ``"hi"`` and ``"filed"`` contains ``"file"``.
Changing that changes which bucket wins for real user input.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Final

import structlog

from config.settings import settings
from src.models.chat import ChatAction, ChatResponse
from src.models.enums import ChatActionType

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Intent buckets
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class _Intent:
    """One bucket of the responder: patterns, variants and follow-ups."""

    name: str
    patterns: tuple[str, ...]
    responses: tuple[str, ...]
    suggestions: tuple[str, ...]
    action: ChatAction | None = None


_INTENTS: Final[tuple[_Intent, ...]] = (
    _Intent(
        name="greeting",
        patterns=("hello", "hi", "hey", "good morning", "good afternoon", "good evening"),
        responses=(
            "Hello! I'm your grievance assistant. How can I help you today?",
            "Hi there! I'm here to help with your grievance-related questions.",
            "Welcome! I can assist you with filing complaints, tracking status, and more.",
        ),
        suggestions=("How to file a complaint?", "Check complaint status", "Contact support"),
    ),
    _Intent(
        name="complaint_filing",
        patterns=("file complaint", "lodge grievance", "submit complaint", "new complaint", "how to complain"),
        responses=(
            "I can help you file a new complaint! Click on 'Lodge Grievance' in your dashboard to get "
            "started. The process is simple and guided.",
            "To file a complaint, go to the 'Lodge Grievance' section. You'll need to provide details "
            "about the issue, location, and your contact information.",
            "Filing a complaint is easy! Navigate to 'Lodge Grievance' and follow the step-by-step form. "
            "I can guide you through any specific questions.",
        ),
        suggestions=("What documents do I need?", "How long does it take?", "What categories are available?"),
        action=ChatAction(type=ChatActionType.NAVIGATE, data={"path": "/dashboard/lodge-grievance"}),
    ),
    _Intent(
        name="status_tracking",
        patterns=("status", "track", "progress", "update", "check complaint", "where is my complaint"),
        responses=(
            "You can track your complaint status in the dashboard. All your complaints are listed with "
            "their current status and updates.",
            "Check your dashboard for the latest status of all your complaints. Each complaint shows its "
            "current stage and any recent updates.",
            "Your complaint status is visible in the main dashboard. You can also click on individual "
            "complaints to see detailed progress.",
        ),
        suggestions=("How to update complaint?", "What do status codes mean?", "Contact about status"),
    ),
    _Intent(
        name="categories",
        patterns=("category", "categories", "types", "what problems", "what issues"),
        responses=(
            "We handle various categories including Water Supply, Roads & Transportation, Sanitation, "
            "Street Lighting, Public Health, Education, Public Safety, Environment, Housing, and more.",
            "Common categories include water issues, road problems, garbage collection, street lights, "
            "health concerns, and safety issues. What type of problem are you facing?",
            "We cover multiple categories: Water Supply, Roads & Transportation, Sanitation & Waste "
            "Management, Street Lighting, Public Health, Education, Public Safety, Environment, and Housing.",
        ),
        suggestions=("Water supply issues", "Road problems", "Garbage collection", "Street lighting"),
    ),
    _Intent(
        name="resolution_time",
        patterns=("time", "duration", "how long", "when", "days", "weeks", "resolution time"),
        responses=(
            "Resolution times vary by category: Water supply issues (3-5 days), Road repairs (7-10 days), "
            "Garbage collection (1-2 days), Street lighting (2-3 days).",
            "Typical resolution times: Water problems (3-5 days), Road issues (7-10 days), Sanitation "
            "(1-2 days), Street lights (2-3 days), Health concerns (24-48 hours).",
            "Most issues are resolved within 3-10 days depending on complexity. Water and road issues may "
            "take longer due to infrastructure requirements.",
        ),
        suggestions=("Water supply timeline", "Road repair duration", "Emergency response time"),
    ),
    _Intent(
        name="contact_info",
        patterns=("contact", "phone", "email", "call", "support", "help line", "helpline"),
        responses=(
            "You can contact us at {helpline} or email {support_email}. For urgent matters, "
            "call our 24/7 helpline.",
            "Contact us: Phone {helpline}, Email {support_email}, or visit our office during "
            "business hours.",
            "For support: Call {helpline}, email {support_email}, or use the contact form on "
            "our website.",
        ),
        suggestions=("Office hours", "Emergency contact", "Email support"),
    ),
    _Intent(
        name="update_info",
        patterns=("update", "change", "modify", "edit", "correct"),
        responses=(
            "To update your complaint or personal information, use the 'Edit' option in your dashboard. "
            "You can modify details anytime.",
            "You can update your complaint details or personal information through the dashboard. Look "
            "for the 'Edit' button next to your complaints.",
            "Updates can be made through your dashboard. Click 'Edit' on any complaint to modify "
            "information or add new details.",
        ),
        suggestions=("Update personal details", "Modify complaint", "Add new information"),
    ),
    _Intent(
        name="documents",
        patterns=("document", "photo", "video", "upload", "file", "attachment"),
        responses=(
            "You can upload supporting documents like photos, videos, or documents when filing a "
            "complaint. Accepted formats: PDF, DOC, JPG, PNG (max 5MB each).",
            "Supporting documents help us understand your issue better. You can upload photos, videos, "
            "or documents in PDF, DOC, JPG, or PNG format.",
            "Document upload is available when filing complaints. Accepted formats: PDF, DOC, DOCX, JPG, "
            "PNG with a maximum size of 5MB per file.",
        ),
        suggestions=("Accepted file formats", "File size limits", "How to upload"),
    ),
    _Intent(
        name="emergency",
        patterns=("emergency", "urgent", "critical", "dangerous", "hazard", "immediate"),
        responses=(
            "For emergency situations, please call our 24/7 helpline immediately. Critical issues like "
            "water contamination or safety hazards are prioritized.",
            "Emergency issues are handled immediately. Call our 24/7 helpline for urgent problems like "
            "safety hazards or health risks.",
            "For emergencies, call our 24/7 helpline right away. Critical issues like safety problems or "
            "health hazards get immediate attention.",
        ),
        suggestions=("24/7 helpline", "Emergency categories", "Priority handling"),
        action=ChatAction(type=ChatActionType.CONTACT, data={"method": "phone", "number": "{helpline}"}),
    ),
    _Intent(
        name="feedback",
        patterns=("feedback", "rate", "review", "experience", "satisfaction"),
        responses=(
            "We value your feedback! You can rate your experience after complaint resolution and provide "
            "suggestions for improvement.",
            "Your feedback helps us improve our services. After your complaint is resolved, you'll have "
            "the option to rate your experience.",
            "Feedback is important to us. You can provide ratings and suggestions after your complaint is "
            "resolved to help us serve you better.",
        ),
        suggestions=("Rate your experience", "Suggest improvements", "Report issues"),
    ),
    _Intent(
        name="help",
        patterns=("help", "support", "assist", "guide", "what can you do"),
        responses=(
            "I'm here to help! I can assist you with filing complaints, tracking status, checking "
            "categories, understanding resolution times, and more. What would you like to know?",
        ),
        suggestions=("File a complaint", "Check status", "Contact support", "Learn about categories"),
    ),
)

INTENT_ORDER: Final[tuple[str, ...]] = tuple(intent.name for intent in _INTENTS)

_DEFAULT_SUGGESTIONS: Final[tuple[str, ...]] = (
    "How to file a complaint?",
    "Check complaint status",
    "What categories are available?",
    "Contact support",
)

_QUICK_REPLIES: Final[tuple[str, ...]] = (
    "How to file a complaint?",
    "Check my complaint status",
    "What categories are available?",
    "How long does resolution take?",
    "Contact support",
    "Update my information",
)

_CATEGORY_INFO: Final[dict[str, ChatResponse]] = {
    "water supply": ChatResponse(
        message=(
            "Water Supply issues include no water supply, low pressure, water quality problems, leakage, "
            "and tank maintenance. Typical resolution time: 3-5 days."
        ),
        suggestions=["File water complaint", "Check water status", "Emergency water issues"],
    ),
    "roads": ChatResponse(
        message=(
            "Road & Transportation covers potholes, road construction, traffic signals, street signs, and "
            "public transport. Typical resolution time: 7-10 days."
        ),
        suggestions=["Report road damage", "Traffic signal issues", "Public transport problems"],
    ),
    "sanitation": ChatResponse(
        message=(
            "Sanitation & Waste Management includes garbage collection, drainage issues, sewage problems, "
            "public toilets, and waste disposal. Typical resolution time: 1-2 days."
        ),
        suggestions=["Garbage collection", "Drainage problems", "Sewage issues"],
    ),
    "lighting": ChatResponse(
        message=(
            "Street Lighting covers maintenance and installation of street lights. "
            "Typical resolution time: 2-3 days."
        ),
        suggestions=["Report broken lights", "Request new lights", "Check lighting status"],
    ),
}


# ---------------------------------------------------------------------------
# Responder
# ---------------------------------------------------------------------------


class ChatbotService:
    """Canned-response chatbot.

    Parameters
    ----------
    rng:
        Source of randomness used to pick one of a bucket's variants.
        Pass a seeded :class:`random.Random` for reproducible output.
    helpline, support_email:
        Contact details quoted in answers and emergency actions.
        Default to ``settings.helpline_number`` and ``settings.support_email``.
    """

    __slots__ = ("_contacts", "_rng")

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        helpline: str | None = None,
        support_email: str | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self._contacts = {
            "helpline": helpline or settings.helpline_number,
            "support_email": support_email or settings.support_email,
        }

    @staticmethod
    def _match(user_message: str) -> _Intent | None:
        lowered = user_message.lower()
        for intent in _INTENTS:
            if any(pattern in lowered for pattern in intent.patterns):
                return intent
        return None

    def classify(self, user_message: str) -> str | None:
        """Return the name of the first matching intent bucket, if any."""
        intent = self._match(user_message)
        return intent.name if intent else None

    def generate_response(self, user_message: str) -> ChatResponse:
        intent = self._match(user_message)
        if intent is not None:
            logger.debug("chatbot.intent_matched", intent=intent.name)
            return ChatResponse(
                message=self._rng.choice(intent.responses).format(**self._contacts),
                suggestions=list(intent.suggestions),
                action=self._action(intent.action) if intent.action else None,
            )

        logger.debug("chatbot.no_intent", length=len(user_message))
        return ChatResponse(
            message=(
                f"I understand you're asking about '{user_message}'. I can help you with filing "
                "complaints, tracking status, checking categories, understanding resolution times, and "
                "more. Could you please rephrase your question or choose from the suggestions below?"
            ),
            suggestions=list(_DEFAULT_SUGGESTIONS),
        )

    def _action(self, action: ChatAction) -> ChatAction:
        data = {k: v.format(**self._contacts) if isinstance(v, str) else v for k, v in action.data.items()}
        return action.model_copy(update={"data": data})

    @staticmethod
    def get_quick_replies() -> list[str]:
        return list(_QUICK_REPLIES)

    @staticmethod
    def get_category_info(category: str) -> ChatResponse:
        info = _CATEGORY_INFO.get(category.strip().lower())
        if info is not None:
            return info.model_copy(deep=True)
        return ChatResponse(
            message=(
                "I can help you with information about various complaint categories. "
                "Which category are you interested in?"
            ),
            suggestions=["Water Supply", "Roads & Transportation", "Sanitation", "Street Lighting"],
        )

    def responses_for(self, intent_name: str) -> tuple[str, ...]:
        """All canned variants of *intent_name* (empty for unknown names)."""
        for intent in _INTENTS:
            if intent.name == intent_name:
                return tuple(r.format(**self._contacts) for r in intent.responses)
        return ()
