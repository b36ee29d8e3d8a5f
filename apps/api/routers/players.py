"""
Player API endpoints.

Listing is scoped by role: the whole company for owner/admin, coached teams
for a coach and supervised players for a parent or player account.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from schemas import PlayerResponse, PlayerUpdate
from services import players
from services.authorization import Principal

router = APIRouter(prefix="/v1/players", tags=["players"])


@router.get("", response_model=List[PlayerResponse])
def list_players(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return [players.player_view(p) for p in players.list_players(db, principal)]


@router.get("/{player_id}", response_model=PlayerResponse)
def get_player(
    player_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return players.player_view(players.get_player_for(db, principal, player_id))


@router.put("/{player_id}", response_model=PlayerResponse)
def update_player(
    player_id: UUID,
    payload: PlayerUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return players.player_view(players.update_player(db, principal, player_id, payload))
