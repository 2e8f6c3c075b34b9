"""
Services package - business logic layer.
"""
from .assignment_service import AssignmentService
from .waitlist_service import WaitlistService
from .notification_service import NotificationService
from .dinner_service import DinnerService
from .member_service import MemberService
from .restaurant_service import RestaurantService
from .survey_service import SurveyService
from .settings_service import SettingsService, EMAIL_TEMPLATES
from .analytics_service import AnalyticsService, ANALYTICS_TYPES

__all__ = [
    "AssignmentService",
    "WaitlistService",
    "NotificationService",
    "DinnerService",
    "MemberService",
    "RestaurantService",
    "SurveyService",
    "SettingsService",
    "EMAIL_TEMPLATES",
    "AnalyticsService",
    "ANALYTICS_TYPES",
]
