# posts.py

from typing import Optional, List, Dict, Any

from sqlalchemy import delete, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from models import Post

# Shape the frontend expects (camelCase linkUrl)
def post_to_dict(post: Post) -> Dict[str, Any]:
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "category": post.category,
        "linkUrl": post.link_url,
    }

async def list_posts(session: AsyncSession, category: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return every post, newest id first, optionally limited to one category."""
    stmt = select(Post)
    if category:
        stmt = stmt.where(Post.category == category)
    result = await session.execute(stmt.order_by(Post.id.desc()))
    return [post_to_dict(post) for post in result.scalars().all()]

async def get_post(session: AsyncSession, post_id: int) -> Optional[Dict[str, Any]]:
    post = await session.get(Post, post_id)
    if post is None:
        return None
    return post_to_dict(post)

# --- Synchronizer and write API queries ---

async def select_persisted(session: AsyncSession) -> List[Row]:
    """SELECT id, title, category, link_url FROM posts"""
    result = await session.execute(select(Post.id, Post.title, Post.category, Post.link_url))
    return list(result.all())

async def insert_post(session: AsyncSession, title: str, content: str, category: str, link_url: str) -> int:
    post = Post(title=title, content=content, category=category, link_url=link_url)
    session.add(post)
    await session.commit()
    return post.id

async def update_post(session: AsyncSession, post_id: int, title: str, content: str, category: str, link_url: str) -> bool:
    result = await session.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(title=title, content=content, category=category, link_url=link_url)
    )
    await session.commit()
    return result.rowcount > 0

async def delete_post(session: AsyncSession, post_id: int) -> bool:
    result = await session.execute(delete(Post).where(Post.id == post_id))
    await session.commit()
    return result.rowcount > 0
