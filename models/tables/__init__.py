# Import all table models here
from models.tables.user import User
from models.tables.speaker import Speaker
from models.tables.quote import DatePrecision, Quote, QuoteSpeaker
from models.tables.vote import QuoteVote, VoteType
