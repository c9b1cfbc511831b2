from .markdown import MarkdownHelper
from .settings import AppSettings, load_settings, save_settings
