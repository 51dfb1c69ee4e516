"""REST service hosting FourFor4 rooms for online play."""

from __future__ import annotations

import logging
import random
import string
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from engine.commands import CommandType, command_from_payload
from engine.errors import CommandRejected, IntegrityViolation
from engine.game import GameEngine
from engine.rules_schema import RuleConfig, RulesError, get_preset
from engine.service import GameService
from engine.state import GamePhase
from engine.sync import InMemoryCommitter

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6
ROOM_CODE_ATTEMPTS = 10
DEFAULT_ROOM_CAPACITY = 6


class CreateRoomRequest(BaseModel):
    host_name: str = Field(..., min_length=1, max_length=32)
    rules: str = "classic"
    max_players: int = Field(DEFAULT_ROOM_CAPACITY, ge=2, le=DEFAULT_ROOM_CAPACITY)


class PlayerRequest(BaseModel):
    player_name: str = Field(..., min_length=1, max_length=32)


class CommandRequest(BaseModel):
    type: str
    player_id: Optional[str] = None
    command_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class Room:
    def __init__(self, code: str, host: str, rules: RuleConfig, max_players: int) -> None:
        self.code = code
        self.host = host
        self.rules = rules
        self.max_players = max_players
        self.players: List[str] = [host]
        self.disconnected: set[str] = set()
        self.committer = InMemoryCommitter()
        self.service: Optional[GameService] = None

    @property
    def in_progress(self) -> bool:
        if self.service is None:
            return False
        return self.service.engine.phase not in (GamePhase.IDLE, GamePhase.GAME_END)

    def describe(self) -> Dict[str, object]:
        return {
            "code": self.code,
            "host": self.host,
            "rules": self.rules.name,
            "max_players": self.max_players,
            "players": [
                {"name": name, "is_host": name == self.host, "connected": name not in self.disconnected}
                for name in self.players
            ],
            "in_progress": self.in_progress,
        }


rooms: Dict[str, Room] = {}
_code_rng = random.SystemRandom()


app = FastAPI(title="FourFor4 Play Service")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def generate_room_code(rng: random.Random = _code_rng) -> str:
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def unique_room_code(rng: random.Random = _code_rng) -> str:
    for _ in range(ROOM_CODE_ATTEMPTS):
        code = generate_room_code(rng)
        if code not in rooms:
            return code
    raise HTTPException(status_code=503, detail="Could not generate unique room code")


def ensure_room(code: str) -> Room:
    room = rooms.get(code.upper())
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


def serialize_room(room: Room) -> Dict[str, object]:
    state: Dict[str, object] = {"room": room.describe(), "game": None}
    if room.service is not None:
        state["game"] = room.service.get_game_view().to_dict()
    return state


@app.post("/rooms")
def create_room(request: CreateRoomRequest) -> Dict[str, object]:
    try:
        rules = get_preset(request.rules)
    except RulesError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    host = request.host_name.strip()
    code = unique_room_code()
    room = Room(code=code, host=host, rules=rules, max_players=min(request.max_players, rules.max_players))
    rooms[code] = room
    logger.info("Room %s created by %s", code, host)
    return {"room_code": code, "state": serialize_room(room)}


@app.post("/rooms/{code}/join")
def join_room(code: str, request: PlayerRequest) -> Dict[str, object]:
    room = ensure_room(code)
    name = request.player_name.strip()
    if room.in_progress:
        raise HTTPException(status_code=409, detail="Game already in progress")
    if name in room.players:
        raise HTTPException(status_code=409, detail="Name already taken in this room")
    if len(room.players) >= room.max_players:
        raise HTTPException(status_code=409, detail="Room is full")
    room.players.append(name)
    logger.info("%s joined room %s", name, room.code)
    return {"state": serialize_room(room)}


@app.post("/rooms/{code}/leave")
def leave_room(code: str, request: PlayerRequest) -> Dict[str, object]:
    room = ensure_room(code)
    name = request.player_name.strip()
    if name not in room.players:
        raise HTTPException(status_code=404, detail="Player not in room")
    if room.in_progress:
        # Seats are fixed for the running game; the player is only marked away.
        room.disconnected.add(name)
        return {"state": serialize_room(room)}

    room.players.remove(name)
    logger.info("%s left room %s", name, room.code)
    if not room.players:
        del rooms[room.code]
        return {"state": None}
    if room.host == name:
        room.host = room.players[0]
    return {"state": serialize_room(room)}


@app.post("/rooms/{code}/start")
def start_game(code: str, request: PlayerRequest) -> Dict[str, object]:
    room = ensure_room(code)
    if request.player_name.strip() != room.host:
        raise HTTPException(status_code=403, detail="Only the host can start the game")
    if room.in_progress:
        raise HTTPException(status_code=409, detail="Game already in progress")
    committer = InMemoryCommitter()
    service = GameService(GameEngine(rules=room.rules, channel=committer))
    result = service.start_new_game(room.players)
    if not result.accepted:
        assert result.reason is not None
        raise HTTPException(status_code=400, detail={"reason": result.reason.value, "message": result.message})
    room.service = service
    room.committer = committer
    room.disconnected.clear()
    return {"state": serialize_room(room)}


@app.post("/rooms/{code}/commands")
def submit_command(code: str, request: CommandRequest) -> Dict[str, object]:
    room = ensure_room(code)
    if room.service is None:
        raise HTTPException(status_code=409, detail="Game has not started")
    if request.type == CommandType.START_NEW_GAME.value:
        raise HTTPException(status_code=409, detail="Games are started by the host through /start")
    payload = dict(request.payload, type=request.type)
    if request.player_id is not None:
        payload["player_id"] = request.player_id
    if request.command_id is not None:
        payload["command_id"] = request.command_id
    try:
        command = command_from_payload(payload)
        result = room.service.submit(command)
    except CommandRejected as exc:
        raise HTTPException(status_code=400, detail={"reason": exc.reason.value, "message": str(exc)}) from exc
    except IntegrityViolation as exc:
        raise HTTPException(status_code=409, detail={"check": exc.check, "message": exc.detail}) from exc
    if not result.accepted:
        assert result.reason is not None
        raise HTTPException(status_code=400, detail={"reason": result.reason.value, "message": result.message})
    return {"state": serialize_room(room)}


@app.get("/rooms/{code}/state")
def get_state(code: str) -> Dict[str, object]:
    return serialize_room(ensure_room(code))


@app.get("/rooms/{code}/mirror")
def get_mirror(code: str) -> Dict[str, object]:
    """Last published path/value mirror, as remote clients would see it."""
    return ensure_room(code).committer.mirror
