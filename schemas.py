from datetime import date, datetime
from typing import Annotated, Literal, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from models import BudgetPeriod, GoalCategory, GoalStatus, TransactionType


def _date_only(value: object) -> object:
    # Browsers send either "2025-01-05" or a full ISO timestamp.
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    if isinstance(value, datetime):
        return value.date()
    return value


CalendarDate = Annotated[date, BeforeValidator(_date_only)]


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class RegisterIn(APIModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class LoginIn(APIModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class NotificationPrefs(APIModel):
    email: bool = True
    push: bool = True
    sms: bool = False


class ProfileUpdateIn(APIModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=40)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    timezone: Optional[str] = Field(default=None, max_length=64)
    avatar: Optional[str] = None
    notifications: Optional[NotificationPrefs] = None


class ChangePasswordIn(APIModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class DeleteAccountIn(APIModel):
    password: str = Field(..., min_length=1)


class UserOut(APIModel):
    id: int
    name: str
    email: str


class AuthOut(APIModel):
    token: str
    user: UserOut


class ProfileOut(APIModel):
    id: int
    name: str
    email: str
    phone: str
    created_at: datetime
    currency: str
    timezone: str
    avatar: Optional[str]
    notifications: NotificationPrefs


class TokenMessageOut(APIModel):
    message: str
    token: str


class MessageOut(APIModel):
    message: str


class CategoryIn(APIModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., min_length=1, max_length=9)
    icon: Optional[str] = Field(default=None, max_length=64)
    type: TransactionType


class CategoryOut(APIModel):
    id: int
    name: str
    color: str
    icon: Optional[str]
    type: TransactionType
    user_id: int
    created_at: datetime


class TransactionIn(APIModel):
    amount: float = Field(..., gt=0)
    type: TransactionType
    description: str = Field(..., min_length=1, max_length=500)
    date: CalendarDate
    category_id: int


class TransactionOut(APIModel):
    id: int
    amount: float
    type: TransactionType
    description: str
    date: date
    category_id: int
    category: CategoryOut
    user_id: int
    created_at: datetime


class BudgetIn(APIModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount: float = Field(..., gt=0)
    period: BudgetPeriod
    start_date: CalendarDate
    end_date: CalendarDate
    category_id: Optional[int] = None
    notes: Optional[str] = None
    is_active: bool = True


class BudgetOut(APIModel):
    id: int
    name: str
    amount: float
    spent: float
    remaining: float
    percentage_spent: float
    period: BudgetPeriod
    start_date: date
    end_date: date
    category_id: Optional[int]
    notes: Optional[str]
    is_active: bool
    created_at: datetime


class GoalIn(APIModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(default=0, ge=0)
    deadline: CalendarDate
    description: str = ""
    category: GoalCategory = GoalCategory.savings


class GoalUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    target_amount: Optional[float] = Field(default=None, gt=0)
    current_amount: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[CalendarDate] = None
    description: Optional[str] = None
    category: Optional[GoalCategory] = None
    status: Optional[GoalStatus] = None
    version: Optional[int] = None


class GoalOut(APIModel):
    id: int
    name: str
    target_amount: float
    current_amount: float
    deadline: date
    status: GoalStatus
    description: str
    category: GoalCategory
    progress: float
    version: int
    created_at: datetime
    updated_at: datetime


class MonthlySummaryPoint(APIModel):
    month: str
    income: float
    expense: float


class CategorySpendingPoint(APIModel):
    name: str
    value: float
    color: Optional[str]


class DailySpendingPoint(APIModel):
    date: str
    amount: float


class DashboardCharts(APIModel):
    monthly_summary: list[MonthlySummaryPoint]
    category_spending: list[CategorySpendingPoint]
    daily_spending: list[DailySpendingPoint]


class DashboardOut(APIModel):
    monthly_income: float
    monthly_expenses: float
    monthly_balance: float
    total_transactions: int
    charts: DashboardCharts


class ChatMessage(APIModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatIn(APIModel):
    messages: list[ChatMessage]


class AdviceIn(APIModel):
    context: str = Field(..., min_length=1)


class ChatOut(APIModel):
    success: bool
    message: str
