"""FastAPI Backend - conversational trip itinerary planner"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import Settings
from TripRequest import TripRequest
from itinerary import ItineraryStatus
from database import ItineraryStore, init_db
from agents.chat_orchestrator import ChatContext, ChatOrchestrator
from agents.errors import (
    GenerationExhausted,
    ItineraryNotFound,
    StaleItinerary,
    UpstreamUnavailable,
)

settings = Settings.from_env()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Trip Itinerary Planner API",
    description="LLM-generated day-by-day itineraries with chat-driven edits",
    version="1.0.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_orchestrator: Optional[ChatOrchestrator] = None


def get_orchestrator() -> ChatOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        store = ItineraryStore(init_db(settings.database_url))
        _orchestrator = ChatOrchestrator(store, settings)
    return _orchestrator


# Pydantic models
class TripCreate(BaseModel):
    start_location: str
    destinations: List[str]
    start_date: date
    days: int = 1
    travelers: int = 1
    budget: str = "moderate"
    interests: List[str] = []
    currency: str = "USD"
    start_time: str = "09:00"
    end_time: str = "18:00"


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    itinerary_id: Optional[str] = None
    current_day: Optional[int] = None


class ApplyChangeRequest(BaseModel):
    change: Dict[str, Any]


class ReviewRequest(BaseModel):
    rating: int
    review: Optional[str] = None


# Helper functions
def _apply_result_or_raise(result):
    if result.success:
        return result.to_payload()
    codes = {"not_found": 404, "conflict": 409, "generation_failed": 502}
    raise HTTPException(status_code=codes.get(result.error, 400), detail=result.message)


# ---------------------------------------------------------------------------
# Itinerary endpoints
# ---------------------------------------------------------------------------

@app.post("/itineraries")
def create_itinerary(body: TripCreate, user_id: str,
                     orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    try:
        trip = TripRequest(**body.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        itinerary = orchestrator.create_itinerary(trip, user_id)
    except (GenerationExhausted, UpstreamUnavailable) as e:
        logger.warning("Itinerary generation failed for %s: %s", user_id, e)
        raise HTTPException(status_code=502, detail=f"Itinerary generation failed: {e}")
    return itinerary.to_payload()


@app.get("/itineraries")
def list_itineraries(user_id: str,
                     status: Optional[ItineraryStatus] = Query(None, description="Filter by status"),
                     limit: int = Query(10, ge=1, le=100),
                     page: int = Query(1, ge=1),
                     orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    return [
        {
            "id": it.id,
            "title": it.title,
            "status": it.status.value,
            "number_of_days": it.number_of_days,
            "total_cost": it.total_cost,
        }
        for it in orchestrator.store.list_itineraries(user_id, status=status, limit=limit, page=page)
    ]


@app.get("/itineraries/{itinerary_id}")
def get_itinerary(itinerary_id: str, user_id: str,
                  orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.get_itinerary(itinerary_id, user_id).to_payload()
    except ItineraryNotFound:
        raise HTTPException(status_code=404, detail="Itinerary not found")


@app.post("/itineraries/{itinerary_id}/regenerate")
def regenerate_itinerary(itinerary_id: str, user_id: str,
                         orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    return _apply_result_or_raise(orchestrator.regenerate_itinerary(itinerary_id, user_id))


@app.post("/itineraries/{itinerary_id}/confirm")
def confirm_itinerary(itinerary_id: str, user_id: str,
                      orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.confirm_itinerary(itinerary_id, user_id).to_payload()
    except ItineraryNotFound:
        raise HTTPException(status_code=404, detail="Itinerary not found")
    except StaleItinerary as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/itineraries/{itinerary_id}/cancel")
def cancel_itinerary(itinerary_id: str, user_id: str,
                     orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.cancel_itinerary(itinerary_id, user_id).to_payload()
    except ItineraryNotFound:
        raise HTTPException(status_code=404, detail="Itinerary not found")
    except StaleItinerary as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete("/itineraries/{itinerary_id}")
def delete_itinerary(itinerary_id: str, user_id: str,
                     orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    try:
        orchestrator.delete_itinerary(itinerary_id, user_id)
    except ItineraryNotFound:
        raise HTTPException(status_code=404, detail="Itinerary not found")
    return {"message": "Itinerary deleted successfully"}


@app.post("/itineraries/{itinerary_id}/review")
def submit_review(itinerary_id: str, body: ReviewRequest, user_id: str,
                  orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    try:
        itinerary = orchestrator.submit_review(itinerary_id, user_id, body.rating, body.review)
    except ItineraryNotFound:
        raise HTTPException(status_code=404, detail="Itinerary not found")
    except StaleItinerary as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return itinerary.to_payload()


@app.post("/itineraries/{itinerary_id}/apply-change")
def apply_change(itinerary_id: str, body: ApplyChangeRequest, user_id: str,
                 orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    """Second phase of a chat edit: apply one change the user accepted."""
    return _apply_result_or_raise(orchestrator.apply_change(itinerary_id, user_id, body.change))


@app.get("/itineraries/{itinerary_id}/chat/history")
def chat_history(itinerary_id: str, user_id: str, limit: int = 50,
                 orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    try:
        orchestrator.store.load_itinerary(itinerary_id, user_id)
    except ItineraryNotFound:
        raise HTTPException(status_code=404, detail="Itinerary not found")
    return orchestrator.store.chat_history(itinerary_id, user_id, limit=limit)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

@app.post("/chat")
def chat(body: ChatRequest, user_id: str,
         orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    context = ChatContext(user_id=user_id, itinerary_id=body.itinerary_id,
                          current_day=body.current_day)
    try:
        return orchestrator.handle_chat(body.message, context).to_payload()
    except ItineraryNotFound:
        raise HTTPException(status_code=404, detail="Itinerary not found")


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
        "llm": settings.model_name,
        "llm_provider": settings.llm_provider,
        "llm_configured": settings.llm_configured,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
