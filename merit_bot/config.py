import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Bot configuration settings"""
    
    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    DISCORD_GUILD_ID = int(os.getenv('DISCORD_GUILD_ID', 0))
    DISCORD_GUILD_IDS = os.getenv('DISCORD_GUILD_IDS', '')  # Comma-separated for multi-guild support
    OWNER_DISCORD_ID = int(os.getenv('OWNER_DISCORD_ID', 0))
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///merit_board.db')
    
    # Bot settings
    COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    
    # Finalization settings
    REDIS_URL = os.getenv('REDIS_URL')
    FINALIZATION_LOCK_BACKEND = os.getenv('FINALIZATION_LOCK_BACKEND', 'memory')  # "memory" or "redis"
    FINALIZATION_LOCK_TTL = int(os.getenv('FINALIZATION_LOCK_TTL', 120))
    
    # Missing catalog definitions are fatal instead of falling back to MeritConstants.FALLBACK_REWARDS
    STRICT_ACHIEVEMENT_CATALOG = os.getenv('STRICT_ACHIEVEMENT_CATALOG', 'False').lower() == 'true'
    
    @classmethod
    def get_guild_ids(cls):
        """Get list of guild IDs for command syncing"""
        if cls.DISCORD_GUILD_IDS:
            try:
                return [int(guild_id.strip()) for guild_id in cls.DISCORD_GUILD_IDS.split(',') if guild_id.strip()]
            except ValueError:
                raise ValueError("DISCORD_GUILD_IDS must be comma-separated integers")
        elif cls.DISCORD_GUILD_ID:
            return [cls.DISCORD_GUILD_ID]
        else:
            # Global sync
            return []
    
    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not cls.OWNER_DISCORD_ID:
            raise ValueError("OWNER_DISCORD_ID is required")
        if cls.FINALIZATION_LOCK_BACKEND not in ('memory', 'redis'):
            raise ValueError("FINALIZATION_LOCK_BACKEND must be 'memory' or 'redis'")
