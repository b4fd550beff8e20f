"""Application constants and defaults."""
from pathlib import Path

# Directory Structure
DEFAULT_HOME_DIR = Path.home() / ".inkwell"
DEFAULT_PROJECTS_DIR = Path.home() / "Documents" / "InkwellProjects"
SETTINGS_FILE = "settings.json"
LOGS_DIR = "logs"
BACKUPS_DIR = "backups"

# Project Layout
PROJECT_FILE = "project.json"
CHAPTERS_DIR = "chapters"
ASSETS_DIR = "assets"
CHAPTER_CONTENT_FILE = "content.md"
CHAPTER_METADATA_FILE = "metadata.json"
CHARSET_DIR = "CharSet"
CHARACTERS_FILE = "characters.json"
WORLD_SETTINGS_FILE = "settings.json"
SCHEMA_VERSION = 1

# Git Configuration
DEFAULT_COMMIT_AUTHOR = "Inkwell"
DEFAULT_COMMIT_EMAIL = "inkwell@localhost"
DEFAULT_REMOTE = "origin"
DEFAULT_BRANCH = "main"

# AI Engines
DEFAULT_ENGINES = {
    'openai': {
        'apiKey': '',
        'baseURL': 'https://api.openai.com/v1',
        'model': 'gpt-4',
    },
    'ollama': {
        'baseURL': 'http://localhost:11434',
        'model': 'llama2',
    },
    'llamacpp': {
        'baseURL': 'http://localhost:8080',
        'model': 'llama2',
    },
    'custom': {
        'apiKey': '',
        'baseURL': 'https://api.example.com/v1',
        'model': 'custom-model',
        'name': 'Custom AI',
    },
}
DEFAULT_ENGINE = "openai"
DEFAULT_SYSTEM_PROMPT = (
    "You are a professional novelist. Continue the story from the context the "
    "user provides, keeping plot, tone and style consistent. Write roughly "
    "500-1000 words per response."
)
DEFAULT_AGENT_PROMPT = "Continue the story by writing the next chapter."
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
AI_CONNECT_TIMEOUT = 30     # seconds to establish a connection
AI_READ_TIMEOUT = 300       # local models can be slow between bytes

# Editor / General
DEFAULT_AUTOSAVE_INTERVAL_MS = 30000
DEFAULT_BACKUP_INTERVAL_MS = 300000
DEFAULT_FONT_SIZE = 16
DEFAULT_FONT_FAMILY = "Georgia, serif"
DEFAULT_THEME = "dark"
VALID_THEMES = ('light', 'dark', 'auto')
MAX_RECENT_PROJECTS = 10
MASKED_API_KEY = "***hidden***"

# Remote Access
DEFAULT_REMOTE_HOST = "0.0.0.0"
DEFAULT_REMOTE_PORT = 3000
REMOTE_TOKEN_ALGORITHM = "HS256"
REMOTE_TOKEN_TTL_HOURS = 24

# Export
EXPORT_FORMATS = ['md', 'txt']
