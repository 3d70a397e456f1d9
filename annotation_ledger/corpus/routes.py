"""
Corpus API Routes.

Texts, their schemes, ingestion of tokenized documents and per-text stats.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..config import Settings
from ..db.base import get_db
from ..dependencies import get_actor, get_app_settings
from ..policy import Actor
from ..stats.aggregator import StatsAggregator
from .ingestion import CorpusIngestion
from .schemas import SchemeParams, TextParams, TokenRecord
from .texts import TextService

router = APIRouter(prefix="/texts", tags=["corpus"])


class IngestRequest(BaseModel):
    lang: str = Field(..., min_length=1)
    tokens: List[TokenRecord] = Field(default_factory=list)
    replace: bool = Field(True, description="Remove existing strings first")


@router.get("")
async def list_texts(db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return [text.to_dict() for text in TextService(db).list()]


@router.get("/{text_id}")
async def get_text(text_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return TextService(db).get(text_id).to_dict()


@router.post("")
async def set_text(
    params: TextParams,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    return {"id": TextService(db).set_text(actor, params)}


@router.put("/{text_id}/scheme")
async def set_scheme(
    text_id: int,
    params: SchemeParams,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    return {"id": TextService(db).set_scheme(actor, text_id, params.scheme)}


@router.get("/{text_id}/strings")
async def list_strings(text_id: int, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return TextService(db).strings(text_id)


@router.post("/{text_id}/ingest")
async def ingest_text(
    text_id: int,
    request: IngestRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Load a tokenized document; replaces the text's strings by default.

    The old strings are removed in the ingestion transaction, so they survive
    a failed load.
    """
    seconds = CorpusIngestion(db, settings).ingest(
        actor, text_id, request.tokens, request.lang, replace=request.replace
    )
    return {"id": text_id, "seconds": seconds, "strings": len(request.tokens)}


@router.get("/{text_id}/stats")
async def text_stats(text_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return StatsAggregator(db).stats(text_id).to_dict()
