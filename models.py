# models.py

import sqlalchemy as sa
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class Post(Base):
    __tablename__ = "posts"

    id = sa.Column(sa.Integer, primary_key=True, index=True)
    title = sa.Column(sa.Text, nullable=False)
    content = sa.Column(sa.Text)
    category = sa.Column(sa.Text)
    # Join key for the synchronizer. Not unique.
    link_url = sa.Column(sa.Text)

    def __repr__(self):
        return f"<Post(id={self.id}, title='{self.title}', category='{self.category}')>"
