"""Repository package initialization.

Store accessors for quotes, speakers, users and votes.
"""

from utils.repositories.quote_repository import QuoteRepository
from utils.repositories.speaker_repository import SpeakerRepository
from utils.repositories.user_repository import UserRepository
from utils.repositories.vote_repository import VoteRepository

__all__ = ["QuoteRepository", "SpeakerRepository", "UserRepository", "VoteRepository"]
