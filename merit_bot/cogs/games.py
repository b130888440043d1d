"""
Game finalization commands.

/end-game posts the End Game button for a game; the remaining commands show
stored achievements and manage the achievement reward catalog.
"""

import discord
from discord.ext import commands
from discord import app_commands
import logging

from merit_bot.config import Config
from merit_bot.ui.end_game_view import EndGameView
from merit_bot.utils.embeds import FinalizationEmbeds

logger = logging.getLogger(__name__)


class GameFinalizationCog(commands.Cog):
    """Ending games and awarding merits."""

    def __init__(self, bot):
        self.bot = bot
        self.finalization_ops = bot.finalization_ops
        self.definition_service = bot.achievement_definition_service

    @app_commands.command(name="end-game", description="End a game and save its achievements and merits")
    @app_commands.describe(game_id="ID of the game to end")
    @app_commands.check(lambda interaction: interaction.user.id == Config.OWNER_DISCORD_ID)
    async def end_game(self, interaction: discord.Interaction, game_id: int):
        await interaction.response.defer()

        game = await self.finalization_ops.operations.get_game(game_id)
        if game is None:
            await interaction.followup.send(
                embed=FinalizationEmbeds.error(f"❌ Game `{game_id}` was not found!"), ephemeral=True
            )
            return

        inputs = await self.finalization_ops.operations.load_finalization_inputs(game_id)
        view = EndGameView(
            self.finalization_ops,
            game_id=game.id,
            game_name=game.name,
            owner_id=Config.OWNER_DISCORD_ID,
            player_names=inputs.display_names,
        )
        embed = discord.Embed(
            title=f"End {game.name}?",
            description=(
                f"{len(inputs.stats)} stat entries from {len(inputs.display_names)} players across "
                f"{len(inputs.team_ids)} teams will be scored. This can only be done once."
            ),
            color=discord.Color.orange()
        )
        view.message = await interaction.followup.send(embed=embed, view=view, wait=True)
        logger.info(f"End game view posted for game {game_id} by {interaction.user.id}")

    @app_commands.command(name="game-achievements", description="Show the saved achievements of a game")
    @app_commands.describe(game_id="ID of the game")
    async def game_achievements(self, interaction: discord.Interaction, game_id: int):
        await interaction.response.defer()

        record = await self.finalization_ops.operations.get_game_achievements(game_id)
        if record is None:
            await interaction.followup.send(
                embed=FinalizationEmbeds.error(f"No achievements have been saved for game `{game_id}` yet."),
                ephemeral=True
            )
            return

        inputs = await self.finalization_ops.operations.load_finalization_inputs(game_id)
        await interaction.followup.send(
            embed=FinalizationEmbeds.achievements_summary(record, inputs.team_names)
        )

    @app_commands.command(name="achievement-rewards", description="List the merit reward of every achievement")
    async def achievement_rewards(self, interaction: discord.Interaction):
        definitions = await self.definition_service.list_definitions()
        embed = FinalizationEmbeds.achievement_rewards(definitions)

        catalog = await self.definition_service.get_catalog()
        if catalog.integrity_warnings:
            embed.add_field(
                name="⚠️ Missing definitions",
                value="\n".join(catalog.integrity_warnings)[:1024],
                inline=False
            )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="set-achievement-reward", description="Change the merit reward of an achievement")
    @app_commands.describe(name="Achievement definition name", amount="New merit reward")
    @app_commands.check(lambda interaction: interaction.user.id == Config.OWNER_DISCORD_ID)
    async def set_achievement_reward(self, interaction: discord.Interaction, name: str, amount: int):
        try:
            definition = await self.definition_service.set_reward(name, amount)
        except ValueError as e:
            await interaction.response.send_message(f"❌ {e}", ephemeral=True)
            return

        note = "" if amount > 0 else " Rewards of 0 or less are not awarded."
        await interaction.response.send_message(
            f"✅ **{definition.name}** now rewards {definition.merit_reward} merits.{note}",
            ephemeral=True
        )

    @set_achievement_reward.autocomplete('name')
    async def achievement_name_autocomplete(self, interaction: discord.Interaction, current: str):
        definitions = await self.definition_service.list_definitions()
        return [
            app_commands.Choice(name=d.name, value=d.name)
            for d in definitions
            if current.lower() in d.name.lower()
        ][:25]


async def setup(bot):
    await bot.add_cog(GameFinalizationCog(bot))
