"""
Grading for quiz attempts.

Answers are matched to questions by position. Score is the sum of points of
correctly answered questions while percentage counts correct answers only,
so the two can disagree when questions carry different weights.
"""
from typing import Any, Optional, Sequence

from errors import ValidationError
from schemas import AnswerResult, Question, Quiz, SubmissionResult


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().casefold()


def correct_option_text(question: Question) -> Optional[str]:
    # First flagged option wins when several are marked correct
    for option in question.options:
        if option.is_correct:
            return option.text
    return None


def is_answer_correct(question: Question, answer: Any) -> bool:
    if question.type == "mcq":
        expected = correct_option_text(question)
        return expected is not None and answer == expected
    if question.type == "true-false":
        return question.correct_answer is not None and answer == question.correct_answer
    if question.correct_answer is None:
        return False
    return _normalize(answer) == _normalize(question.correct_answer)


def grade(quiz: Quiz, answers: Optional[Sequence[Any]]) -> SubmissionResult:
    questions = quiz.questions
    if not questions:
        raise ValidationError("Quiz has no questions", details={"quiz_id": quiz.id})

    answers = list(answers or [])
    score = 0
    correct_count = 0
    breakdown = []

    for index, question in enumerate(questions):
        user_answer = answers[index] if index < len(answers) else None
        is_correct = is_answer_correct(question, user_answer)
        points_earned = question.points if is_correct else 0
        if is_correct:
            correct_count += 1
            score += points_earned

        if question.type == "mcq" and question.correct_answer is None:
            correct_answer = correct_option_text(question)
        else:
            correct_answer = question.correct_answer

        breakdown.append(AnswerResult(
            question_id=question.id,
            user_answer=user_answer,
            is_correct=is_correct,
            points_earned=points_earned,
            correct_answer=correct_answer,
            explanation=question.explanation,
        ))

    percentage = correct_count / len(questions) * 100
    return SubmissionResult(
        score=score,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
        correct_answers=correct_count,
        total_questions=len(questions),
        answers=breakdown,
    )
