"""Quote commands for Hearsay.

This module provides the /quote and /speaker slash-command groups: searching,
submitting, editing and voting on quotes, the yearly leaderboard, member
profiles, and speaker management.
"""

from datetime import UTC, datetime

import discord
from discord import app_commands
from discord.ext import commands

from models.projections import QuoteView, RankedQuote
from models.tables.quote import DatePrecision
from models.tables.vote import VoteType
from utils.base_cog import BaseCog
from utils.error_handling import handle_interaction_errors
from utils.exceptions import ResourceNotFoundError, ValidationError
from utils.logging import RequestContext, TimingContext
from utils.permissions import Permission, require, require_quote_owner
from utils.ranking import RankingEngine, split_best_worst
from utils.repositories.quote_repository import QuoteRepository
from utils.repositories.speaker_repository import SpeakerRepository
from utils.repositories.user_repository import UserRepository
from utils.search_pipeline import SearchFilter, SearchPipeline
from utils.service_container import (
    QUOTES,
    RANKING,
    SEARCH,
    SPEAKERS,
    USERS,
    VOTE_AGGREGATOR,
)
from utils.validation import (
    QuoteDraft,
    RankingRequest,
    VoteRequest,
    parse_date,
    parse_partial_date,
    parse_request,
)
from utils.votes import VoteAggregator

VOTE_CHOICES = [
    app_commands.Choice(name="Upvote", value=VoteType.UPVOTE.value),
    app_commands.Choice(name="Downvote", value=VoteType.DOWNVOTE.value),
]

MAX_PREVIEW_LENGTH = 200
# Each result is one embed field: a heading of up to 256 characters and a
# preview. Ten of them stay inside Discord's 6000 character embed limit.
MAX_RESULTS_PER_EMBED = 10


def preview(text: str, length: int = MAX_PREVIEW_LENGTH) -> str:
    return text if len(text) <= length else text[: length - 3] + "..."


def format_quote_date(view: QuoteView) -> str:
    """Render a quote date only as precisely as it is known."""
    if view.quote_date is None:
        return "Unknown date"
    if view.quote_date_precision == DatePrecision.YEAR.value:
        return str(view.quote_date.year)
    if view.quote_date_precision == DatePrecision.YEAR_MONTH.value:
        return view.quote_date.strftime("%B %Y")
    return view.quote_date.isoformat()


def speaker_line(view: QuoteView) -> str:
    return ", ".join(speaker.name for speaker in view.speakers) or "Unknown speaker"


def quote_embed(view: QuoteView, title: str | None = None) -> discord.Embed:
    """Embed showing one quote in full."""
    embed = discord.Embed(
        title=title or f"Quote #{view.id}",
        description=f"> {view.content}",
        color=discord.Color.blurple(),
        timestamp=view.created_at.replace(tzinfo=UTC),
    )
    embed.add_field(name="Said by", value=speaker_line(view), inline=True)
    embed.add_field(name="When", value=format_quote_date(view), inline=True)
    if view.context:
        embed.add_field(name="Context", value=preview(view.context, 1000), inline=False)
    embed.set_footer(text=f"Submitted by {view.submitted_by_name or view.submitted_by_id}")
    return embed


def ranked_lines(items: list[RankedQuote], start: int = 1) -> str:
    lines = []
    for position, item in enumerate(items, start=start):
        lines.append(
            f"**{position}.** #{item.id} ({item.net_score:+d}, "
            f"{item.upvotes}\N{UPWARDS BLACK ARROW} {item.downvotes}\N{DOWNWARDS BLACK ARROW}) "
            f"{preview(item.quote.content, 80)} - *{speaker_line(item.quote)}*"
        )
    return "\n".join(lines)


class Quotes(BaseCog, name="Quotes"):
    """Quote search, submission, voting and ranking commands."""

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, name="quotes")

    @property
    def quotes(self) -> QuoteRepository:
        return self.service(QUOTES, QuoteRepository)

    @property
    def speakers(self) -> SpeakerRepository:
        return self.service(SPEAKERS, SpeakerRepository)

    @property
    def users(self) -> UserRepository:
        return self.service(USERS, UserRepository)

    @property
    def votes(self) -> VoteAggregator:
        return self.service(VOTE_AGGREGATOR, VoteAggregator)

    @property
    def search_pipeline(self) -> SearchPipeline:
        return self.service(SEARCH, SearchPipeline)

    @property
    def ranking(self) -> RankingEngine:
        return self.service(RANKING, RankingEngine)

    async def resolve_speaker_names(self, names: str) -> tuple[int, ...]:
        """Turn a comma separated list of speaker names into speaker ids."""
        wanted = [name.strip() for name in names.split(",") if name.strip()]
        if not wanted:
            raise ValidationError(field="speakers", message="Name at least one speaker")

        known = {speaker.name.lower(): speaker.id for speaker in await self.speakers.list_by_name()}
        missing = [name for name in wanted if name.lower() not in known]
        if missing:
            raise ResourceNotFoundError("speaker", ", ".join(missing))
        return tuple(dict.fromkeys(known[name.lower()] for name in wanted))

    quote = app_commands.Group(name="quote", description="Quote commands")
    speaker = app_commands.Group(name="speaker", description="Speaker commands")

    # Searching

    @quote.command(name="search", description="Search quotes by text, speaker, submitter or date")
    @app_commands.describe(
        query="Words to look for; typos are fine",
        speaker="Only quotes by this speaker",
        submitter="Only quotes submitted by this member",
        date_from="Earliest quote date (YYYY-MM-DD)",
        date_to="Latest quote date (YYYY-MM-DD)",
        include_unknown_dates="Include quotes whose date is unknown",
        page="Page of results",
        per_page="Results per page",
    )
    @handle_interaction_errors
    async def quote_search(
        self,
        interaction: discord.Interaction,
        query: str | None = None,
        speaker: int | None = None,
        submitter: discord.Member | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        include_unknown_dates: bool = True,
        page: app_commands.Range[int, 1] = 1,
        per_page: app_commands.Range[int, 1, MAX_RESULTS_PER_EMBED] = 5,
    ) -> None:
        """Search quotes and show one page of results."""
        async with RequestContext(self.logger, "quote_search"):
            await self.principal(interaction)
            search_filter = parse_request(
                SearchFilter,
                query=query or "",
                speaker_id=speaker,
                submitted_by_id=str(submitter.id) if submitter else None,
                quote_date_from=parse_date(date_from, "date_from"),
                quote_date_to=parse_date(date_to, "date_to"),
                include_unknown_dates=include_unknown_dates,
                page=page,
                limit=per_page,
            )
            self.log_command_usage(interaction, "quote search", query=search_filter.text)
            await interaction.response.defer(thinking=True)

            async with TimingContext(self.logger, "quote_search") as timing:
                result = await self.search_pipeline.search(search_filter)
                timing.add_info(total_results=result.pagination.total_results)

            pagination = result.pagination
            embed = discord.Embed(
                title="Quote Search Results",
                description=f"**Search:** `{search_filter.text}`" if search_filter.text else None,
                color=discord.Color.blue() if result.quotes else discord.Color.orange(),
                timestamp=discord.utils.utcnow(),
            )
            if not result.quotes:
                embed.add_field(
                    name="No Results Found",
                    value="No quotes match these filters.",
                    inline=False,
                )
            for view in result.quotes:
                heading = f"#{view.id} - {speaker_line(view)}"
                if view.relevance_score is not None:
                    heading += f" (score {view.relevance_score:.3f})"
                embed.add_field(name=preview(heading, 256), value=preview(view.content), inline=False)

            embed.set_footer(
                text=(
                    f"Page {pagination.current_page} of {max(pagination.total_pages, 1)}"
                    f" | {pagination.total_results} result(s)"
                )
            )
            await interaction.followup.send(embed=embed)

    # Submitting and editing

    @quote.command(name="add", description="Submit a new quote")
    @app_commands.describe(
        content="What was said",
        speakers="Who said it; separate several speakers with commas",
        date="When it was said: YYYY, YYYY-MM or YYYY-MM-DD",
        context="Where or why it was said",
    )
    @handle_interaction_errors
    async def quote_add(
        self,
        interaction: discord.Interaction,
        content: str,
        speakers: str,
        date: str | None = None,
        context: str | None = None,
    ) -> None:
        """Submit a quote credited to one or more existing speakers."""
        async with RequestContext(self.logger, "quote_add"):
            principal = await self.principal(interaction)
            require(principal, Permission.SUBMIT_QUOTES)

            quote_date, precision = (None, DatePrecision.UNKNOWN)
            if date:
                quote_date, precision = parse_partial_date(date)

            draft = parse_request(
                QuoteDraft,
                content=content,
                context=context,
                quote_date=quote_date,
                quote_date_precision=precision,
                speaker_ids=await self.resolve_speaker_names(speakers),
            )
            view = await self.quotes.create_quote(draft, principal.user_id)
            self.log_command_usage(interaction, "quote add", quote_id=view.id)

            await interaction.response.send_message(
                embed=quote_embed(view, title=f"Quote #{view.id} added")
            )

    @quote.command(name="edit", description="Edit a quote you submitted")
    @app_commands.describe(
        quote_id="The quote to edit",
        content="New text",
        speakers="New speakers, separated by commas",
        date="New date (YYYY, YYYY-MM or YYYY-MM-DD), or 'unknown' to clear it",
        context="New context, or '-' to clear it",
    )
    @handle_interaction_errors
    async def quote_edit(
        self,
        interaction: discord.Interaction,
        quote_id: int,
        content: str | None = None,
        speakers: str | None = None,
        date: str | None = None,
        context: str | None = None,
    ) -> None:
        """Change any part of a quote; untouched options keep their value."""
        async with RequestContext(self.logger, "quote_edit"):
            principal = await self.principal(interaction)
            current = await self.quotes.get_view(quote_id)
            require_quote_owner(principal, current.submitted_by_id)

            quote_date = current.quote_date
            precision = DatePrecision(current.quote_date_precision)
            if date is not None:
                if date.strip().lower() == DatePrecision.UNKNOWN.value:
                    quote_date, precision = None, DatePrecision.UNKNOWN
                else:
                    quote_date, precision = parse_partial_date(date)

            if context is None:
                new_context = current.context
            else:
                new_context = None if context.strip() == "-" else context

            draft = parse_request(
                QuoteDraft,
                content=content if content is not None else current.content,
                context=new_context,
                quote_date=quote_date,
                quote_date_precision=precision,
                speaker_ids=(
                    await self.resolve_speaker_names(speakers)
                    if speakers is not None
                    else tuple(speaker.id for speaker in current.speakers)
                ),
            )
            view = await self.quotes.update_quote(quote_id, draft)
            self.log_command_usage(interaction, "quote edit", quote_id=quote_id)

            await interaction.response.send_message(
                embed=quote_embed(view, title=f"Quote #{view.id} updated"), ephemeral=True
            )

    @quote.command(name="delete", description="Delete a quote you submitted")
    @handle_interaction_errors
    async def quote_delete(self, interaction: discord.Interaction, quote_id: int) -> None:
        """Delete a quote along with its votes."""
        async with RequestContext(self.logger, "quote_delete"):
            principal = await self.principal(interaction)
            current = await self.quotes.get_view(quote_id)
            require_quote_owner(principal, current.submitted_by_id)

            await self.quotes.delete_quote(quote_id)
            self.log_command_usage(interaction, "quote delete", quote_id=quote_id)
            await interaction.response.send_message(
                f"Quote #{quote_id} deleted.", ephemeral=True
            )

    # Voting

    @quote.command(name="vote", description="Vote on a quote; voting the same way again takes it back")
    @app_commands.choices(direction=VOTE_CHOICES)
    @handle_interaction_errors
    async def quote_vote(
        self, interaction: discord.Interaction, quote_id: int, direction: str
    ) -> None:
        """Cast, flip or withdraw a vote."""
        async with RequestContext(self.logger, "quote_vote"):
            principal = await self.principal(interaction)
            require(principal, Permission.VOTE)
            request = parse_request(VoteRequest, quote_id=quote_id, vote_type=direction)

            if not await self.quotes.exists(request.quote_id):
                raise ResourceNotFoundError("quote", str(request.quote_id))

            result = await self.votes.cast_vote(
                request.quote_id, principal.user_id, request.vote_type
            )
            stats = await self.votes.get_vote_stats(request.quote_id, principal.user_id)

            messages = {
                "created": f"Your {request.vote_type.value} on quote #{quote_id} was recorded.",
                "updated": f"Your vote on quote #{quote_id} is now a {request.vote_type.value}.",
                "removed": f"Your {request.vote_type.value} on quote #{quote_id} was withdrawn.",
            }
            await interaction.response.send_message(
                f"{messages[result.action.value]} Score: {stats.net_score:+d} "
                f"({stats.upvotes} up, {stats.downvotes} down)",
                ephemeral=True,
            )

    @quote.command(name="stats", description="Show a quote and its votes")
    @handle_interaction_errors
    async def quote_stats(self, interaction: discord.Interaction, quote_id: int) -> None:
        """Show a quote with its vote counts and your own vote."""
        async with RequestContext(self.logger, "quote_stats"):
            principal = await self.principal(interaction)
            view = await self.quotes.get_view(quote_id)
            stats = await self.votes.get_vote_stats(quote_id, principal.user_id)

            embed = quote_embed(view)
            embed.add_field(
                name="Votes",
                value=(
                    f"**Score:** {stats.net_score:+d}\n"
                    f"**Upvotes:** {stats.upvotes}\n"
                    f"**Downvotes:** {stats.downvotes}\n"
                    f"**Your vote:** {stats.user_vote.value if stats.user_vote else 'none'}"
                ),
                inline=False,
            )
            await interaction.response.send_message(embed=embed)

    @quote.command(name="voters", description="Who voted on a quote")
    @app_commands.choices(direction=VOTE_CHOICES)
    @handle_interaction_errors
    async def quote_voters(
        self, interaction: discord.Interaction, quote_id: int, direction: str
    ) -> None:
        """List the members who voted a given way, most recent first."""
        async with RequestContext(self.logger, "quote_voters"):
            await self.principal(interaction)
            request = parse_request(VoteRequest, quote_id=quote_id, vote_type=direction)
            if not await self.quotes.exists(request.quote_id):
                raise ResourceNotFoundError("quote", str(request.quote_id))

            voters = await self.votes.get_voters(request.quote_id, request.vote_type)
            lines = [
                f"{voter.name or voter.id} - "
                f"{discord.utils.format_dt(voter.voted_at.replace(tzinfo=UTC), 'R')}"
                for voter in voters[:25]
            ]
            embed = discord.Embed(
                title=f"{request.vote_type.value.capitalize()}s on quote #{quote_id}",
                description="\n".join(lines) or "Nobody yet.",
                color=discord.Color.blurple(),
            )
            if len(voters) > 25:
                embed.set_footer(text=f"and {len(voters) - 25} more")
            await interaction.response.send_message(embed=embed, ephemeral=True)

    # Ranking

    @quote.command(name="ranking", description="Best and worst quotes submitted in a year")
    @handle_interaction_errors
    async def quote_ranking(
        self,
        interaction: discord.Interaction,
        year: int | None = None,
        limit: app_commands.Range[int, 1, 50] = 10,
    ) -> None:
        """Show the leaderboard for a year, current year by default."""
        async with RequestContext(self.logger, "quote_ranking"):
            await self.principal(interaction)
            request = parse_request(
                RankingRequest,
                year=year if year is not None else datetime.now(UTC).year,
                limit=limit,
            )
            ranked = await self.ranking.get_ranked_by_year(request.year, request.limit)
            best, worst = split_best_worst(ranked)

            embed = discord.Embed(
                title=f"Quote ranking {request.year}",
                color=discord.Color.gold(),
                timestamp=discord.utils.utcnow(),
            )
            if not ranked:
                embed.description = "No quotes were submitted that year."
            if best:
                embed.add_field(name="Best", value=preview(ranked_lines(best), 1024), inline=False)
            if worst:
                embed.add_field(name="Worst", value=preview(ranked_lines(worst), 1024), inline=False)
            await interaction.response.send_message(embed=embed)

    @quote.command(name="years", description="Years that have quotes")
    @handle_interaction_errors
    async def quote_years(self, interaction: discord.Interaction) -> None:
        async with RequestContext(self.logger, "quote_years"):
            await self.principal(interaction)
            years = await self.ranking.get_available_years()
            lines = [f"**{entry.year}**: {entry.count} quote(s)" for entry in years]
            await interaction.response.send_message(
                "\n".join(lines) or "No quotes yet.", ephemeral=True
            )

    # Profiles

    @quote.command(name="profile", description="Quote statistics for a member")
    @handle_interaction_errors
    async def quote_profile(
        self, interaction: discord.Interaction, member: discord.Member | None = None
    ) -> None:
        """Submission and vote totals for yourself or another member."""
        async with RequestContext(self.logger, "quote_profile"):
            principal = await self.principal(interaction)
            user_id = str(member.id) if member else principal.user_id
            stats = await self.users.get_profile_stats(user_id)

            embed = discord.Embed(
                title=f"Profile: {stats.name or stats.user_id}",
                color=discord.Color.green(),
            )
            embed.add_field(name="Quotes submitted", value=str(stats.quotes_count), inline=True)
            embed.add_field(name="Upvotes received", value=str(stats.total_upvotes), inline=True)
            embed.add_field(name="Downvotes received", value=str(stats.total_downvotes), inline=True)
            embed.add_field(name="Net score", value=f"{stats.net_score:+d}", inline=True)
            embed.add_field(name="Role", value=stats.role.capitalize(), inline=True)
            await interaction.response.send_message(embed=embed)

    # Speakers

    @speaker.command(name="list", description="All speakers")
    @handle_interaction_errors
    async def speaker_list(self, interaction: discord.Interaction) -> None:
        async with RequestContext(self.logger, "speaker_list"):
            await self.principal(interaction)
            speakers = await self.speakers.list_by_name()
            lines = [f"`{speaker.id}` {speaker.name}" for speaker in speakers]
            await interaction.response.send_message(
                preview("\n".join(lines), 2000) or "No speakers yet.", ephemeral=True
            )

    @speaker.command(name="add", description="Add a speaker quotes can be credited to")
    @handle_interaction_errors
    async def speaker_add(self, interaction: discord.Interaction, name: str) -> None:
        async with RequestContext(self.logger, "speaker_add"):
            principal = await self.principal(interaction)
            require(principal, Permission.MANAGE_SPEAKERS)
            created = await self.speakers.create_speaker(name, principal.user_id)
            self.log_command_usage(interaction, "speaker add", speaker_id=created.id)
            await interaction.response.send_message(
                f"Speaker **{created.name}** added (id {created.id}).", ephemeral=True
            )

    @speaker.command(name="rename", description="Rename a speaker")
    @handle_interaction_errors
    async def speaker_rename(
        self, interaction: discord.Interaction, speaker: int, name: str
    ) -> None:
        async with RequestContext(self.logger, "speaker_rename"):
            principal = await self.principal(interaction)
            require(principal, Permission.MANAGE_SPEAKERS)
            renamed = await self.speakers.rename_speaker(speaker, name)
            await interaction.response.send_message(
                f"Speaker {renamed.id} is now **{renamed.name}**.", ephemeral=True
            )

    @speaker.command(name="delete", description="Delete a speaker with no quotes")
    @handle_interaction_errors
    async def speaker_delete(self, interaction: discord.Interaction, speaker: int) -> None:
        async with RequestContext(self.logger, "speaker_delete"):
            principal = await self.principal(interaction)
            require(principal, Permission.DELETE_SPEAKERS)
            await self.speakers.delete_speaker(speaker)
            self.log_command_usage(interaction, "speaker delete", speaker_id=speaker)
            await interaction.response.send_message(
                f"Speaker {speaker} deleted.", ephemeral=True
            )

    # Autocomplete

    @quote_search.autocomplete("speaker")
    @speaker_rename.autocomplete("speaker")
    @speaker_delete.autocomplete("speaker")
    async def speaker_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[int]]:
        """Speakers whose name contains what has been typed."""
        current = (current or "").lower()
        return [
            app_commands.Choice(name=speaker.name[:100], value=speaker.id)
            for speaker in await self.speakers.list_by_name()
            if current in speaker.name.lower()
        ][:25]

    @quote_add.autocomplete("speakers")
    @quote_edit.autocomplete("speakers")
    async def speaker_names_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        """Complete the last name in a comma separated speaker list."""
        done, _, typing = (current or "").rpartition(",")
        prefix = f"{done}, " if done else ""
        typing = typing.strip().lower()
        return [
            app_commands.Choice(name=(prefix + speaker.name)[:100], value=(prefix + speaker.name)[:100])
            for speaker in await self.speakers.list_by_name()
            if typing in speaker.name.lower()
        ][:25]


async def setup(bot: commands.Bot) -> None:
    """Set up the Quotes cog."""
    await bot.add_cog(Quotes(bot))
