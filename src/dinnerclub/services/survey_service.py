"""
SurveyService - survey question management.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.database import SurveyQuestion
from ..models.schemas import SurveyQuestionCreate, SurveyQuestionResponse, SurveyQuestionUpdate
from ..error_handling.exceptions import NotFoundError
from ..error_handling.handlers import transactional


class SurveyService:

    def __init__(self, session: Session):
        self.session = session

    @transactional("fetch_surveys", "Failed to fetch surveys")
    def list_questions(self, survey_type: Optional[str] = None) -> List[SurveyQuestionResponse]:
        query = self.session.query(SurveyQuestion)
        if survey_type is not None:
            query = query.filter(SurveyQuestion.survey_type == survey_type)

        questions = query.order_by(SurveyQuestion.display_order.asc(), SurveyQuestion.id.asc()).all()
        return [SurveyQuestionResponse.model_validate(q) for q in questions]

    @transactional("create_survey", "Failed to create survey")
    def create_question(self, data: SurveyQuestionCreate) -> SurveyQuestionResponse:
        question = SurveyQuestion(
            survey_type=data.survey_type,
            question=data.question,
            question_type=data.question_type,
            options=data.options or None,
            matching_weight=data.matching_weight or 1,
            is_required=data.is_required is not False,
            display_order=data.display_order or 0
        )
        self.session.add(question)
        self.session.commit()
        return SurveyQuestionResponse.model_validate(question)

    @transactional("update_survey", "Failed to update survey")
    def update_question(self, data: SurveyQuestionUpdate) -> SurveyQuestionResponse:
        """
        Raises:
            NotFoundError: If the question does not exist
        """
        question = self.session.query(SurveyQuestion).filter(SurveyQuestion.id == data.id).first()
        if question is None:
            raise NotFoundError("Survey", data.id)

        for field, value in data.model_dump(exclude={"id"}).items():
            setattr(question, field, value)
        question.options = data.options or None

        self.session.commit()
        return SurveyQuestionResponse.model_validate(question)

    @transactional("delete_survey", "Failed to delete survey")
    def delete_question(self, question_id: int) -> bool:
        deleted = self.session.query(SurveyQuestion).filter(
            SurveyQuestion.id == question_id
        ).delete(synchronize_session=False)
        self.session.commit()
        return bool(deleted)
