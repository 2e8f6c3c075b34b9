"""
SettingsService - promo codes and member email templates.
"""
from typing import Dict, List

from loguru import logger
from sqlalchemy.orm import Session

from ..models.database import PromoCode
from ..models.schemas import PromoCodeCreate, PromoCodeResponse
from ..error_handling.exceptions import ValidationError
from ..error_handling.handlers import transactional


# Placeholders use {{name}} syntax and are filled in by the mailer
EMAIL_TEMPLATES: Dict[str, Dict[str, str]] = {
    "dinner_confirmation": {
        "subject": "You're confirmed for dinner on {{date}}!",
        "body": (
            "Hi {{name}},\n\nYou're all set for dinner at {{restaurant}} on {{date}} at {{time}}."
            "\n\nSee you there!"
        ),
    },
    "dinner_reminder": {
        "subject": "Reminder: Dinner tomorrow at {{restaurant}}",
        "body": (
            "Hi {{name}},\n\nJust a friendly reminder about your dinner tomorrow at "
            "{{restaurant}} ({{time}}).\n\nLooking forward to seeing you!"
        ),
    },
    "post_dinner_survey": {
        "subject": "How was your dinner at {{restaurant}}?",
        "body": (
            "Hi {{name}},\n\nWe hope you enjoyed your dinner! Please take a moment to share "
            "your feedback.\n\nClick here to complete the survey: {{survey_link}}"
        ),
    },
    "credit_low_balance": {
        "subject": "Your credit balance is running low",
        "body": (
            "Hi {{name}},\n\nYour credit balance is {{credits}}. Purchase more credits to "
            "continue attending dinners.\n\nBuy credits: {{purchase_link}}"
        ),
    },
    "waitlist_spot_available": {
        "subject": "A seat opened up at {{dinner}}",
        "body": (
            "Hi {{name}},\n\nA seat just opened up at {{dinner}} on {{date}}. "
            "Reply to claim it before it goes to the next person on the waitlist."
        ),
    },
}


class SettingsService:
    """
    Service class for admin settings.
    """

    def __init__(self, session: Session):
        self.session = session

    def email_templates(self) -> Dict[str, Dict[str, str]]:
        return {name: dict(template) for name, template in EMAIL_TEMPLATES.items()}

    @transactional("fetch_promo_codes", "Failed to fetch settings")
    def list_promo_codes(self) -> List[PromoCodeResponse]:
        codes = self.session.query(PromoCode).order_by(
            PromoCode.created_at.desc(), PromoCode.id.desc()
        ).all()
        return [PromoCodeResponse.model_validate(c) for c in codes]

    @transactional("create_promo_code", "Failed to create promo code")
    def create_promo_code(self, data: PromoCodeCreate) -> PromoCodeResponse:
        """
        Raises:
            ValidationError: If the code already exists
        """
        existing = self.session.query(PromoCode.id).filter(PromoCode.code == data.code).first()
        if existing:
            raise ValidationError(f"Promo code {data.code} already exists", field="code", value=data.code)

        promo = PromoCode(
            code=data.code,
            credits=data.credits,
            max_uses=data.max_uses,
            expires_at=data.expires_at,
            times_used=0
        )
        self.session.add(promo)
        self.session.commit()

        logger.info(f"Created promo code {promo.code} worth {promo.credits} credits")
        return PromoCodeResponse.model_validate(promo)

    @transactional("delete_promo_code", "Failed to delete promo code")
    def delete_promo_code(self, promo_id: int) -> bool:
        deleted = self.session.query(PromoCode).filter(
            PromoCode.id == promo_id
        ).delete(synchronize_session=False)
        self.session.commit()
        return bool(deleted)
