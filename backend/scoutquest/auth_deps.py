from __future__ import annotations
import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from scoutquest.security import decode_token
from scoutquest.services.authority import Actor, actor_from_claims
from scoutquest.services.errors import InvalidArgument
from scoutquest.services.leaderboard import LeaderboardRanker

security = HTTPBearer()

async def get_current_actor(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Actor:
    token = credentials.credentials
    try:
        data = decode_token(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Wrong token type")
    try:
        return actor_from_claims(data.get("sub"), data.get("role"))
    except InvalidArgument as e:
        raise HTTPException(status_code=401, detail=e.detail)

def get_ranker(request: Request) -> LeaderboardRanker:
    return request.app.state.ranker
