"""
Database Schemas for the Quiz Assessment API

Each persisted Pydantic model represents a MongoDB collection. The collection
name is the lowercase of the class name (e.g., QuizHistory -> "quizhistory").
"""
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, List, Optional


class QuestionOption(BaseModel):
    text: str = Field(..., description="Option text shown to the candidate")
    is_correct: bool = Field(False, description="True for the correct option")


class Question(BaseModel):
    id: Optional[str] = Field(None, description="Client-friendly id for the question")
    type: str = Field("short-answer", description="mcq, true-false or short-answer")
    question: str = Field("", description="Question prompt")
    options: List[QuestionOption] = Field(default_factory=list, description="Options for mcq questions")
    correct_answer: Optional[str] = Field(None, description="Expected answer for true-false/short-answer")
    points: int = Field(1, ge=0, description="Points awarded for a correct answer")
    explanation: Optional[str] = Field(None, description="Explanation revealed after the attempt")


class QuizAnalytics(BaseModel):
    total_attempts: int = Field(0, ge=0, description="Number of submitted attempts")
    average_score: float = Field(0.0, description="Running mean of attempt percentages")


class Quiz(BaseModel):
    id: Optional[str] = Field(None, description="Stored document id")
    title: str = Field(..., description="Quiz title")
    description: Optional[str] = Field(None, description="What the quiz covers")
    category: Optional[str] = Field(None, description="Category such as Science, History")
    difficulty: Optional[str] = Field(None, description="easy, medium or hard")
    time_limit: Optional[float] = Field(None, description="Time limit in minutes")
    passing_score: float = Field(60, ge=0, le=100, description="Percentage needed to pass")
    questions: List[Question] = Field(default_factory=list)
    analytics: QuizAnalytics = Field(default_factory=QuizAnalytics)


class UserUsage(BaseModel):
    quizzes_taken: int = Field(0, ge=0, description="Number of quizzes submitted")
    last_quiz_date: Optional[datetime] = Field(None, description="Time of the latest submission")


class User(BaseModel):
    id: Optional[str] = Field(None, description="Stored document id")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Login email")
    points: int = Field(0, ge=0, description="Lifetime sum of quiz scores")
    usage: UserUsage = Field(default_factory=UserUsage)


class AnswerResult(BaseModel):
    question_id: Optional[str] = None
    user_answer: Optional[Any] = None
    is_correct: bool
    points_earned: int
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


class SubmissionResult(BaseModel):
    """Outcome of grading one answer set; never stored on its own."""
    score: int
    percentage: float
    passed: bool
    correct_answers: int
    total_questions: int
    answers: List[AnswerResult] = Field(default_factory=list)


class QuizHistory(BaseModel):
    id: Optional[str] = Field(None, description="Stored document id")
    user_id: str = Field(..., description="Candidate who took the quiz")
    quiz_id: str = Field(..., description="Quiz that was taken")
    answers: List[AnswerResult] = Field(default_factory=list)
    score: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0, le=100)
    total_questions: int = Field(..., ge=1)
    correct_answers: int = Field(..., ge=0)
    incorrect_answers: int = Field(..., ge=0)
    time_taken: float = Field(0, ge=0, description="Seconds spent on the attempt")
    passed: bool
    completed_at: datetime


# ------------------ Read models ------------------

class QuizSummary(BaseModel):
    id: str
    title: str
    category: Optional[str] = None
    difficulty: Optional[str] = None


class HistoryItem(BaseModel):
    id: str
    score: int
    percentage: float
    passed: bool
    completed_at: datetime
    quiz: QuizSummary


class Pagination(BaseModel):
    page: int
    limit: int
    total: int


class HistoryPage(BaseModel):
    history: List[HistoryItem] = Field(default_factory=list)
    pagination: Pagination


class HistoryDetail(QuizHistory):
    quiz: Optional[Quiz] = None
    can_view_explanations: bool = True
    explanations_unlock_at: Optional[datetime] = None


class UserProfile(BaseModel):
    id: str
    name: str
    email: str
    points: int = 0
    total_quizzes_taken: int = 0
    average_score: float = 0.0


# ------------------ Requests / responses ------------------

class SubmitQuizRequest(BaseModel):
    user_id: str = Field(..., description="Candidate id")
    quiz_id: str = Field(..., description="Quiz id")
    answers: List[Optional[str]] = Field(default_factory=list, description="Answers by question position")
    time_taken: float = Field(0, ge=0, description="Seconds spent on the attempt")


class SubmissionReceipt(BaseModel):
    history_id: str
    score: int
    percentage: float
    passed: bool

