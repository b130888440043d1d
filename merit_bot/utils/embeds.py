"""
Embed builders for game finalization results and stored achievement summaries.
"""

import json
from typing import Iterable, Mapping, Optional

import discord

from merit_bot.constants import UIConstants
from merit_bot.data_models.finalization import (
    AchievementDefinition, FinalizationResult, FinalizationStatus
)


class FinalizationEmbeds:
    """Factory for finalization-related embeds."""

    @staticmethod
    def in_progress(game_name: str) -> discord.Embed:
        return discord.Embed(
            title="Saving Game Results & Merits...",
            description=f"Finalizing **{game_name}**. Please wait.",
            color=UIConstants.DEFAULT_EMBED_COLOR
        )

    @staticmethod
    def result(result: FinalizationResult, player_names: Optional[Mapping[int, str]] = None) -> discord.Embed:
        """Status embed for a finalize_game outcome."""
        player_names = player_names or {}

        if result.status == FinalizationStatus.ALREADY_FINALIZED:
            return discord.Embed(
                title="Achievements Already Saved",
                description=f"Game achievements for game `{result.game_id}` have already been calculated and stored.",
                color=UIConstants.DEFAULT_EMBED_COLOR
            )

        if result.status == FinalizationStatus.SUMMARY_WRITE_FAILED:
            return discord.Embed(
                title="❌ Game Finalization Failed",
                description=getattr(result.error, 'user_message', str(result.error)),
                color=UIConstants.ERROR_COLOR
            )

        if result.status == FinalizationStatus.TRANSACTION_WRITE_FAILED:
            embed = discord.Embed(
                title="⚠️ Game Partially Finalized",
                description=getattr(result.error, 'user_message', str(result.error)),
                color=UIConstants.WARNING_COLOR
            )
            embed.add_field(name="Error", value=str(result.error)[:1024], inline=False)
            embed.set_footer(text="The End Game button stays disabled for this game until it is reconciled.")
            return embed

        if result.calculation_skipped:
            return discord.Embed(
                title="Game Ended",
                description="No player scored any points, so no achievements or merits were awarded.",
                color=UIConstants.SUCCESS_COLOR
            )

        embed = discord.Embed(
            title=f"{UIConstants.TROPHY_EMOJI} Game results and merits saved successfully!",
            description=f"{result.transaction_count} merit transactions recorded.",
            color=UIConstants.SUCCESS_COLOR
        )
        if result.summary is not None:
            mvp_id = result.summary.overall_mvp_player_id
            embed.add_field(name="Overall MVP", value=player_names.get(mvp_id, str(mvp_id)), inline=True)
        if result.merits_by_player:
            lines = [
                f"{player_names.get(player_id, str(player_id))}: {amount} {UIConstants.MERIT_EMOJI}"
                for player_id, amount in result.merits_by_player.items()
            ]
            embed.add_field(name="Merits Earned", value="\n".join(lines)[:1024], inline=False)
        return embed

    @staticmethod
    def error(message: str) -> discord.Embed:
        return discord.Embed(
            title="Game Finalization",
            description=message,
            color=UIConstants.ERROR_COLOR
        )

    @staticmethod
    def achievements_summary(record, team_names: Optional[Mapping[int, str]] = None) -> discord.Embed:
        """Render a stored GameAchievements row."""
        team_names = team_names or {}
        embed = discord.Embed(
            title=f"{UIConstants.TROPHY_EMOJI} Game Achievements",
            description=f"Game `{record.game_id}`",
            color=UIConstants.GOLD_RANK_COLOR
        )

        mvp_name = record.overall_mvp.display_name if record.overall_mvp else str(record.overall_mvp_player_id)
        embed.add_field(name="Overall MVP", value=mvp_name, inline=True)

        team_scores = json.loads(record.team_scores or '{}')
        if record.winning_team is not None:
            score = team_scores.get(str(record.winning_team_id), 0)
            embed.add_field(name="Winning Team", value=f"{record.winning_team.name} ({score:g} pts)", inline=True)

        podium = json.loads(record.podium_finishers or '[]')
        if podium:
            lines = [
                f"{UIConstants.MEDAL_EMOJIS.get(p['rank'], p['rank'])} {p.get('player_display_name') or p['player_id']} - {p['score']:g}"
                for p in podium
            ]
            embed.add_field(name="Podium", value="\n".join(lines), inline=False)

        if team_scores:
            lines = [
                f"{team_names.get(int(team_id), team_id)}: {score:g}"
                for team_id, score in team_scores.items()
            ]
            embed.add_field(name="Team Scores", value="\n".join(lines)[:1024], inline=False)

        kpi_winners = json.loads(record.kpi_winners or '[]')
        embed.set_footer(text=f"{len(kpi_winners)} KPI winners")
        return embed

    @staticmethod
    def achievement_rewards(definitions: Iterable[AchievementDefinition]) -> discord.Embed:
        embed = discord.Embed(
            title=f"{UIConstants.MERIT_EMOJI} Achievement Rewards",
            color=UIConstants.DEFAULT_EMBED_COLOR
        )
        lines = [
            f"**{d.name}**: {d.merit_reward}" + (" (streak)" if d.is_streak else "")
            for d in definitions
        ]
        embed.description = "\n".join(lines) if lines else "No achievement definitions configured."
        return embed
