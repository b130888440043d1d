"""
End Game View

One-button trigger for game finalization. The button is disabled as soon
as it is clicked and only comes back when the outcome leaves nothing
persisted (a failed summary write, a missing catalog, or a finalization
already running elsewhere). A partially finalized game keeps the button
disabled, since a repeat click would report "already finalized" and hide
the missing merits.
"""

from typing import Optional

import discord

from merit_bot.constants import UIConstants
from merit_bot.data_models.finalization import FinalizationResult
from merit_bot.utils.embeds import FinalizationEmbeds
from merit_bot.utils.finalization_exceptions import (
    ConfigurationMissingError, FinalizationException, FinalizationInProgressError
)
from merit_bot.utils.logger import setup_logger

logger = setup_logger(__name__)

IDLE_LABEL = "End Game & Save Results"
BUSY_LABEL = "Saving Game Results & Merits..."


def should_reenable(result: Optional[FinalizationResult] = None,
                    error: Optional[Exception] = None) -> bool:
    """Whether the End Game button may be clicked again after an attempt."""
    if error is not None:
        return isinstance(error, (ConfigurationMissingError, FinalizationInProgressError))
    if result is None:
        return False
    return result.allows_retry


class EndGameView(discord.ui.View):
    """Button that finalizes one game through GameFinalizationOperations."""

    def __init__(self, finalization_ops, game_id: int, game_name: str,
                 owner_id: Optional[int] = None, player_names: Optional[dict] = None):
        super().__init__(timeout=UIConstants.END_GAME_VIEW_TIMEOUT)
        self.finalization_ops = finalization_ops
        self.game_id = game_id
        self.game_name = game_name
        self.owner_id = owner_id
        self.player_names = player_names or {}
        self.message: Optional[discord.Message] = None

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if self.owner_id and interaction.user.id != self.owner_id:
            await interaction.response.send_message(
                "❌ Only the bot owner can end a game.", ephemeral=True
            )
            return False
        return True

    @discord.ui.button(label=IDLE_LABEL, style=discord.ButtonStyle.danger, custom_id="end_game")
    async def end_game_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        button.disabled = True
        button.label = BUSY_LABEL
        await interaction.response.edit_message(
            embed=FinalizationEmbeds.in_progress(self.game_name), view=self
        )

        result = None
        error = None
        try:
            result = await self.finalization_ops.finalize_game(self.game_id)
            embed = FinalizationEmbeds.result(result, self.player_names)
        except FinalizationException as e:
            error = e
            logger.warning(f"End game {self.game_id} rejected: {e}")
            embed = FinalizationEmbeds.error(e.user_message)
        except Exception as e:
            error = e
            logger.error(f"Unexpected error ending game {self.game_id}: {e}", exc_info=True)
            embed = FinalizationEmbeds.error("An unexpected error occurred while ending the game.")

        if should_reenable(result, error):
            button.disabled = False
            button.label = IDLE_LABEL
        else:
            self.stop()

        await interaction.edit_original_response(embed=embed, view=self)

    async def on_timeout(self):
        logger.info(f"EndGameView for game {self.game_id} timed out")
        for item in self.children:
            item.disabled = True
        if self.message is not None:
            try:
                await self.message.edit(view=self)
            except discord.HTTPException as e:
                logger.warning(f"Could not disable End Game view on timeout: {e}")

    async def on_error(self, interaction: discord.Interaction, error: Exception, item):
        logger.error(f"EndGameView error: {error}", exc_info=True)
