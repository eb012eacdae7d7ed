import logging
import traceback
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from ai_service import ChatService
from config import get_settings
from database import SessionLocal
from models import User
from schemas import (
    AdviceIn,
    AuthOut,
    BudgetIn,
    BudgetOut,
    CategoryIn,
    CategoryOut,
    ChangePasswordIn,
    ChatIn,
    ChatOut,
    DashboardOut,
    DeleteAccountIn,
    GoalIn,
    GoalOut,
    GoalUpdate,
    LoginIn,
    MessageOut,
    NotificationPrefs,
    ProfileOut,
    ProfileUpdateIn,
    RegisterIn,
    TokenMessageOut,
    TransactionIn,
    TransactionOut,
    UserOut,
)
from security import TokenExpired, TokenInvalid, issue_token, verify_token
from services import (
    AuthenticationError,
    BudgetProgress,
    BudgetService,
    CategoryService,
    ConflictError,
    DashboardService,
    GoalService,
    NotFoundError,
    StaleUpdateError,
    TransactionService,
    UserService,
)


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="Finance Tracker API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    authorization: Optional[str] = Header(None), db: Session = Depends(get_db)
) -> User:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Access token required")
    try:
        user_id = verify_token(token.strip())
    except TokenExpired as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except TokenInvalid as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


@app.on_event("startup")
def startup_event():
    if not settings.token_secret:
        logger.warning("startup: FINANCE_TOKEN_SECRET is not set; auth endpoints will fail")
    if not settings.ai_api_key:
        logger.warning("startup: FINANCE_AI_API_KEY is not set; AI chat is disabled")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg"))
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"unhandled_error: path={request.url.path}")
    content: dict[str, object] = {"detail": "Server error"}
    if settings.is_development:
        content["message"] = str(exc)
        content["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return JSONResponse(status_code=500, content=content)


def _auth_payload(user: User) -> AuthOut:
    return AuthOut(token=issue_token(user.id), user=UserOut.model_validate(user))


def _profile_out(user: User) -> ProfileOut:
    return ProfileOut(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone or "",
        created_at=user.created_at,
        currency=user.currency or "USD",
        timezone=user.timezone or settings.timezone,
        avatar=user.avatar,
        notifications=NotificationPrefs(
            email=user.notify_email, push=user.notify_push, sms=user.notify_sms
        ),
    )


def _budget_out(progress: BudgetProgress) -> BudgetOut:
    budget = progress.budget
    return BudgetOut(
        id=budget.id,
        name=budget.name,
        amount=budget.amount,
        spent=progress.spent,
        remaining=progress.remaining,
        percentage_spent=progress.percentage_spent,
        period=budget.period,
        start_date=budget.start_date,
        end_date=budget.end_date,
        category_id=budget.category_id,
        notes=budget.notes,
        is_active=budget.is_active,
        created_at=budget.created_at,
    )


@app.get("/", response_class=PlainTextResponse)
def read_root():
    return "Finance Tracker API is running..."


@app.get("/api/health")
def health():
    return {"status": "OK", "message": "Finance Tracker API is running"}


@app.post("/api/auth/register", response_model=AuthOut)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).register(payload)
    except ConflictError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _auth_payload(user)


@app.post("/api/auth/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).authenticate(payload.email, payload.password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _auth_payload(user)


@app.get("/api/auth/me", response_model=ProfileOut)
def get_profile(user: User = Depends(get_current_user)):
    return _profile_out(user)


@app.put("/api/auth/me", response_model=ProfileOut)
def update_profile(
    payload: ProfileUpdateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        updated = UserService(db).update_profile(user.id, payload)
    except ConflictError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _profile_out(updated)


@app.post("/api/users/change-password", response_model=TokenMessageOut)
def change_password(
    payload: ChangePasswordIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        UserService(db).change_password(
            user.id, payload.old_password, payload.new_password
        )
    except AuthenticationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TokenMessageOut(
        message="Password changed successfully", token=issue_token(user.id)
    )


@app.post("/api/users/delete-account", response_model=MessageOut)
def delete_account(
    payload: DeleteAccountIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        UserService(db).delete_account(user.id, payload.password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return MessageOut(message="Account deleted successfully")


@app.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return TransactionService(db, user.id).list_all()


@app.post("/api/transactions", response_model=TransactionOut)
def create_transaction(
    payload: TransactionIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return TransactionService(db, user.id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/api/transactions/{transaction_id}", response_model=MessageOut)
def delete_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, user.id).delete(transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return MessageOut(message="Transaction deleted")


@app.get("/api/categories", response_model=list[CategoryOut])
def list_categories(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return CategoryService(db, user.id).list_all()


@app.post("/api/categories", response_model=CategoryOut)
def create_category(
    payload: CategoryIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return CategoryService(db, user.id).create(payload)
    except ConflictError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/api/categories/{category_id}", response_model=MessageOut)
def delete_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        CategoryService(db, user.id).delete(category_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return MessageOut(message="Category deleted")


@app.get("/api/budgets", response_model=list[BudgetOut])
def list_budgets(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [_budget_out(p) for p in BudgetService(db, user.id).list_all()]


@app.post("/api/budgets", response_model=BudgetOut)
def create_budget(
    payload: BudgetIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        progress = BudgetService(db, user.id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _budget_out(progress)


@app.delete("/api/budgets/{budget_id}", response_model=MessageOut)
def delete_budget(
    budget_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        BudgetService(db, user.id).delete(budget_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return MessageOut(message="Budget deleted")


@app.get("/api/goals", response_model=list[GoalOut])
def list_goals(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return GoalService(db, user.id).list_all()


@app.post("/api/goals", response_model=GoalOut, status_code=201)
def create_goal(
    payload: GoalIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return GoalService(db, user.id).create(payload)


@app.put("/api/goals/{goal_id}", response_model=GoalOut)
def update_goal(
    goal_id: int,
    payload: GoalUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return GoalService(db, user.id).update(goal_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StaleUpdateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.delete("/api/goals/{goal_id}", response_model=MessageOut)
def delete_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        GoalService(db, user.id).delete(goal_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StaleUpdateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return MessageOut(message="Goal deleted successfully")


@app.get("/api/dashboard", response_model=DashboardOut)
def dashboard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return DashboardOut(**DashboardService(db, user.id).summary())


@app.post("/api/ai/chat", response_model=ChatOut)
def ai_chat(payload: ChatIn, user: User = Depends(get_current_user)):
    messages = [m.model_dump() for m in payload.messages]
    reply = ChatService().chat(messages)
    return ChatOut(success=reply.success, message=reply.message)


@app.post("/api/ai/advice", response_model=ChatOut)
def ai_advice(payload: AdviceIn, user: User = Depends(get_current_user)):
    reply = ChatService().advice(payload.context)
    return ChatOut(success=reply.success, message=reply.message)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)
