"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from ecoplate.api.models import (
    ChatRequest,
    IdentifyRequest,
    LoginRequest,
    LogMealRequest,
    TryThisRequest,
)
from ecoplate.app_logging import configure_logging
from ecoplate.containers import AppContainer
from ecoplate.domain.challenges import DailyChallenge, WeeklyChallenge
from ecoplate.domain.generation import ChatMessage, GenerationResult
from ecoplate.domain.meals import FoodItem, MealLogEntry, MealResult
from ecoplate.services.challenges import daily_to_record, weekly_to_record
from ecoplate.services.meal_log import MealValidationError
from ecoplate.services.sessions import (
    ChatValidationError,
    LoginValidationError,
    UserSession,
)

LOG_MEAL_PATH = "/log-meal"
HTTP_422_UNPROCESSABLE = 422


def _get_container(request: Request) -> AppContainer:
    return request.app.state.container


async def require_session(
    x_user_email: str | None = Header(default=None),
    container: AppContainer = Depends(_get_container),
) -> UserSession:
    """Resolve the caller's session from the ``X-User-Email`` header."""
    session = container.session_service.get(x_user_email) if x_user_email else None
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Please log in first."
        )
    return session


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        try:
            await app.state.container.close_resources()
        except Exception:
            logger.exception("Failed to close application resources")

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    async def validation_error_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE,
            content={"detail": str(exc)},
        )

    for error_type in (MealValidationError, LoginValidationError, ChatValidationError):
        app.add_exception_handler(error_type, validation_error_handler)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/login")
    async def login(payload: LoginRequest, request: Request) -> dict[str, object]:
        """Open a session for the user."""
        state_container: AppContainer = request.app.state.container
        session = state_container.session_service.login(payload.name, payload.email)
        return {
            "name": session.user.name,
            "email": session.user.email,
            "streak": session.streak.count,
        }

    @app.post("/logout")
    async def logout(session: UserSession = Depends(require_session)) -> dict[str, str]:
        """Close the caller's session."""
        container.session_service.logout(session.owner)
        return {"status": "ok"}

    @app.post("/meals/identify")
    async def identify_meal(
        payload: IdentifyRequest, session: UserSession = Depends(require_session)
    ) -> dict[str, object]:
        """Recognize food items in a meal photo."""
        result = await session.identify_food_items(payload.photo_data_uri)
        return {
            "items": [item.model_dump() for item in result.value],
            "used_fallback": result.used_fallback,
        }

    @app.post("/meals")
    async def log_meal(
        payload: LogMealRequest, session: UserSession = Depends(require_session)
    ) -> dict[str, object]:
        """Log a meal and return the result."""
        items = [
            FoodItem(
                name=item.name, quantity=item.quantity, footprint_kg=item.footprint_kg
            )
            for item in payload.items
        ]
        result = await session.log_meal(
            items,
            total_footprint_kg=payload.total_footprint_kg,
            photo_data_uri=payload.photo_data_uri,
        )
        return _meal_result_payload(session, result)

    @app.get("/meals")
    async def list_meals(
        session: UserSession = Depends(require_session),
    ) -> dict[str, object]:
        """Return the caller's meal logs, newest first."""
        return {"meals": [_entry_payload(entry) for entry in session.logs]}

    @app.get("/meals/result", response_model=None)
    async def meal_result(
        session: UserSession = Depends(require_session),
    ) -> dict[str, object] | RedirectResponse:
        """Return the last logged meal, or send the user back to the form."""
        if session.pending_result is None:
            return RedirectResponse(
                LOG_MEAL_PATH, status_code=status.HTTP_303_SEE_OTHER
            )
        return _meal_result_payload(session, session.pending_result)

    @app.get("/reports/summary")
    async def report_summary(
        days: int = 7, session: UserSession = Depends(require_session)
    ) -> dict[str, object]:
        """Return the text summary of recent meals."""
        return {"days": days, "summary": session.summary(days)}

    @app.get("/challenges")
    async def challenges(
        session: UserSession = Depends(require_session),
    ) -> dict[str, object]:
        """Return the current challenges, generating expired ones."""
        daily, weekly = await session.ensure_challenges()
        return {
            "streak": session.streak.count,
            "daily": _daily_payload(daily),
            "weekly": _weekly_payload(weekly),
        }

    @app.post("/challenges/daily/refresh")
    async def refresh_daily(
        session: UserSession = Depends(require_session),
    ) -> dict[str, object]:
        """Generate a new daily challenge."""
        result = await session.refresh_daily_challenge()
        return {
            "daily": _daily_payload(result.value),
            "used_fallback": result.used_fallback,
        }

    @app.post("/challenges/weekly/refresh")
    async def refresh_weekly(
        session: UserSession = Depends(require_session),
    ) -> dict[str, object]:
        """Generate a new weekly challenge."""
        result = await session.refresh_weekly_challenge()
        return {
            "weekly": _weekly_payload(result.value),
            "used_fallback": result.used_fallback,
        }

    @app.get("/recommendations/tip")
    async def weekly_tip(
        refresh: bool = False, session: UserSession = Depends(require_session)
    ) -> dict[str, object]:
        """Return the weekly tip."""
        return _text_payload("tip", await session.weekly_tip(force_refresh=refresh))

    @app.get("/recommendations/general")
    async def general_recommendation(
        refresh: bool = False, session: UserSession = Depends(require_session)
    ) -> dict[str, object]:
        """Return the general recommendation."""
        result = await session.general_recommendation(force_refresh=refresh)
        return _text_payload("recommendation", result)

    @app.get("/recommendations/swaps")
    async def food_swaps(
        refresh: bool = False, session: UserSession = Depends(require_session)
    ) -> dict[str, object]:
        """Return food swap suggestions."""
        result = await session.load_food_swaps(force_refresh=refresh)
        return {
            "swaps": [swap.model_dump() for swap in result.value],
            "cached": result.cached,
            "used_fallback": result.used_fallback,
        }

    @app.post("/recommendations/swaps/{index}/try")
    async def try_food_swap(
        index: int,
        payload: TryThisRequest,
        session: UserSession = Depends(require_session),
    ) -> dict[str, object]:
        """Mark a food swap as one to try."""
        try:
            swap = session.set_food_swap_try_this(index, payload.try_this)
        except IndexError as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
            ) from exc
        return {"swap": swap.model_dump()}

    @app.post("/chat")
    async def chat(
        payload: ChatRequest, session: UserSession = Depends(require_session)
    ) -> dict[str, object]:
        """Ask the assistant a question."""
        reply = await session.ask(payload.question)
        return {
            "reply": _message_payload(reply),
            "messages": [_message_payload(msg) for msg in session.chat_messages],
        }

    @app.delete("/chat")
    async def clear_chat(
        session: UserSession = Depends(require_session),
    ) -> dict[str, str]:
        """Clear the conversation history."""
        session.clear_chat()
        return {"status": "ok"}

    return app


def _entry_payload(entry: MealLogEntry) -> dict[str, object]:
    return {
        "date": entry.date.isoformat(),
        "timestamp": entry.timestamp.isoformat(),
        "meal_slot": entry.meal_slot.value,
        "items": [asdict(item) for item in entry.items],
        "total_footprint_kg": entry.total_footprint_kg,
    }


def _meal_result_payload(session: UserSession, result: MealResult) -> dict[str, object]:
    return {
        "meal": _entry_payload(result.entry),
        "suggestion": result.suggestion,
        "persisted": result.view.persisted,
        "streak": session.streak.count,
    }


def _daily_payload(challenge: DailyChallenge) -> dict[str, object]:
    return daily_to_record(challenge)


def _weekly_payload(challenge: WeeklyChallenge) -> dict[str, object]:
    return {
        **weekly_to_record(challenge),
        "progress_percent": challenge.progress_percent,
    }


def _text_payload(name: str, result: GenerationResult[str]) -> dict[str, object]:
    return {
        name: result.value,
        "cached": result.cached,
        "used_fallback": result.used_fallback,
    }


def _message_payload(message: ChatMessage) -> dict[str, str]:
    return {"id": message.id, "sender": message.sender, "text": message.text}
