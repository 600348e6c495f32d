# main.py

import logging
import os
import secrets
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from contextlib import asynccontextmanager

from database import get_db, init_db, engine
from settings import LOCAL_DATABASE_URL
from posts import delete_post, get_post, insert_post, list_posts, update_post
from utils import setup_logging

logger = logging.getLogger(__name__)

API_TOKEN_ENV = "PORTFOLIO_API_TOKEN"

# --- Pydantic Models ---

class PostOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    content: Optional[str] = None
    category: Optional[str] = None
    link_url: Optional[str] = Field(None, alias="linkUrl")

class PostIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    content: Optional[str] = ""
    category: str = ""
    link_url: str = Field("", alias="linkUrl")

# --- Lifespan Management (for DB setup/teardown) ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    if not os.environ.get("POSTGRES_URL"):
        logger.warning("POSTGRES_URL is not set, using %s for local dev", LOCAL_DATABASE_URL)
    logger.info("Application startup: checking posts table...")
    await init_db()
    yield
    logger.info("Application shutdown.")
    await engine.dispose()

# --- FastAPI App ---

app = FastAPI(lifespan=lifespan, title="Portfolio Posts API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# --- Auth for write endpoints ---

bearer = HTTPBearer(auto_error=False)

async def require_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)):
    expected = os.environ.get(API_TOKEN_ENV)
    if not expected:
        raise HTTPException(status_code=503, detail="Write API is disabled")
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")

def check_required(payload: PostIn):
    if not (payload.title and payload.category and payload.link_url):
        raise HTTPException(status_code=400, detail="Title, Category, LinkURL are required")

# --- API Endpoints ---

@app.get("/api/posts", response_model=List[PostOut])
async def read_posts(
    category: Optional[str] = Query(None, description="Filter by category"),
    session: AsyncSession = Depends(get_db)
):
    """
    List study-note posts, newest first.
    """
    return await list_posts(session, category=category)

@app.get("/api/posts/{post_id}", response_model=PostOut)
async def read_post(post_id: int, session: AsyncSession = Depends(get_db)):
    post = await get_post(session, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail=f"Post with ID {post_id} not found")
    return post

@app.post("/api/posts", response_model=PostOut, status_code=201, dependencies=[Depends(require_token)])
async def create_post(payload: PostIn, session: AsyncSession = Depends(get_db)):
    check_required(payload)
    post_id = await insert_post(session, payload.title, payload.content, payload.category, payload.link_url)
    return {"id": post_id, **payload.model_dump(by_alias=True)}

@app.put("/api/posts/{post_id}", response_model=PostOut, dependencies=[Depends(require_token)])
async def replace_post(post_id: int, payload: PostIn, session: AsyncSession = Depends(get_db)):
    check_required(payload)
    if not await update_post(session, post_id, payload.title, payload.content, payload.category, payload.link_url):
        raise HTTPException(status_code=404, detail=f"Post with ID {post_id} not found")
    return {"id": post_id, **payload.model_dump(by_alias=True)}

@app.delete("/api/posts/{post_id}", status_code=204, dependencies=[Depends(require_token)])
async def remove_post(post_id: int, session: AsyncSession = Depends(get_db)):
    if not await delete_post(session, post_id):
        raise HTTPException(status_code=404, detail=f"Post with ID {post_id} not found")
    return Response(status_code=204)

@app.get("/")
async def root():
    return {"message": "Portfolio posts backend is running!"}

# --- Run with Uvicorn (for local testing) ---

if __name__ == "__main__":
    import uvicorn
    setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8080")))
